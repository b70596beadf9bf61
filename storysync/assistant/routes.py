from __future__ import annotations

from typing import Any, Callable, Dict, Type

from flask import current_app, jsonify, request
from flask_login import current_user
from pydantic import BaseModel, ValidationError

from ..extensions import db
from ..models import Story
from ..services.expand import ExpandError, expand_text
from ..services.paraphrase import ParaphraseError, paraphrase_text
from ..services.schemas import (
    LANGUAGE_NAMES,
    ExpandTextInput,
    GenerateStoryPromptsInput,
    GetWritingSuggestionsInput,
    ParaphraseTextInput,
    SummarizeStoryInput,
    TranslateStoryInput,
)
from ..services.story_prompts import StoryPromptsError, generate_story_prompts
from ..services.summarize import SummarizeError, summarize_story
from ..services.text_generation import GeneratorUnavailableError, html_to_text
from ..services.translate import TranslateError, translate_story
from ..services.writing_suggestions import WritingSuggestionsError, get_writing_suggestions
from . import bp

FLOW_ERRORS = (
    ExpandError,
    ParaphraseError,
    StoryPromptsError,
    SummarizeError,
    TranslateError,
    WritingSuggestionsError,
)

# Fields that carry editor HTML rather than a plain-text selection.
_HTML_FIELDS = ("story_content", "current_story_content", "story_context")


def _story_access_error(story_id: int):
    if not current_user.is_authenticated:
        return jsonify({"error": "Please sign in to use the writing assistant."}), 401
    story = db.session.get(Story, story_id)
    if story is None:
        return jsonify({"error": "Story not found."}), 404
    if not story.can_edit(current_user):
        return jsonify({"error": "Only collaborators can use the writing assistant on this story."}), 403
    return None


def _validation_message(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(messages) or "Invalid request."


def _run_flow(story_id: int, schema: Type[BaseModel], flow: Callable[[Any], Any], flow_name: str):
    denied = _story_access_error(story_id)
    if denied is not None:
        return denied

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    cleaned: Dict[str, Any] = dict(payload)
    for field in _HTML_FIELDS:
        if isinstance(cleaned.get(field), str):
            cleaned[field] = html_to_text(cleaned[field])

    try:
        flow_input = schema.model_validate(cleaned)
    except ValidationError as exc:
        return jsonify({"error": _validation_message(exc)}), 400

    try:
        result = flow(flow_input)
    except GeneratorUnavailableError as exc:
        return jsonify({"error": str(exc)}), 503
    except FLOW_ERRORS as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:  # pragma: no cover - external integration
        current_app.logger.exception("Unexpected error during %s", flow_name)
        return jsonify({"error": "The writing assistant is unavailable right now. Please try again."}), 500

    response_payload = result.output.model_dump()
    response_payload["used_fallback"] = result.used_fallback
    return jsonify(response_payload)


@bp.route("/prompts", methods=["POST"])
def prompts(story_id: int):
    return _run_flow(story_id, GenerateStoryPromptsInput, generate_story_prompts, "story prompt generation")


@bp.route("/summarize", methods=["POST"])
def summarize(story_id: int):
    return _run_flow(story_id, SummarizeStoryInput, summarize_story, "summarization")


@bp.route("/suggestions", methods=["POST"])
def suggestions(story_id: int):
    return _run_flow(story_id, GetWritingSuggestionsInput, get_writing_suggestions, "writing suggestions")


@bp.route("/paraphrase", methods=["POST"])
def paraphrase(story_id: int):
    return _run_flow(story_id, ParaphraseTextInput, paraphrase_text, "paraphrasing")


@bp.route("/expand", methods=["POST"])
def expand(story_id: int):
    return _run_flow(story_id, ExpandTextInput, expand_text, "text expansion")


@bp.route("/translate", methods=["POST"])
def translate(story_id: int):
    return _run_flow(story_id, TranslateStoryInput, translate_story, "translation")


@bp.route("/languages")
def languages(story_id: int):
    denied = _story_access_error(story_id)
    if denied is not None:
        return denied
    return jsonify(
        {"languages": [{"code": code, "name": name} for code, name in LANGUAGE_NAMES.items()]}
    )
