from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from .schemas import SummarizeStoryInput, SummarizeStoryOutput
from .text_generation import (
    PromptConfigurationError,
    _apply_template,
    _call_generator,
    _extract_json,
    _get_text_generator,
    _load_prompt_entry,
)

PROMPT_KEY = "summarize_story"

_LENGTH_GUIDANCE = {
    "short": "Provide a 1-2 sentence summary.",
    "medium": "Provide a 3-5 sentence summary.",
    "long": "Provide a paragraph-length summary (approximately 5-8 sentences).",
}

_FALLBACK_SENTENCES = {"short": 2, "medium": 4, "long": 7}

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


class SummarizeError(RuntimeError):
    """Raised when a story summary cannot be produced."""


@dataclass
class SummaryResult:
    output: SummarizeStoryOutput
    prompt: str
    used_fallback: bool


def summarize_story(request: SummarizeStoryInput) -> SummaryResult:
    """Summarise ``request.story_content`` at the requested length.

    Without a usable model answer the summary is extracted from the opening
    sentences of the story.
    """

    try:
        entry = _load_prompt_entry(PROMPT_KEY)
    except PromptConfigurationError as exc:
        raise SummarizeError(str(exc)) from exc

    final_prompt = _apply_template(
        entry["prompt_template"],
        summary_length=request.summary_length,
        length_guidance=_LENGTH_GUIDANCE[request.summary_length],
        story_content=request.story_content,
    )

    raw_response = _call_generator(_get_text_generator(), final_prompt, entry, "summary")
    output = _parse_summary(raw_response)
    used_fallback = False
    if output is None:
        output = SummarizeStoryOutput(
            summary=_fallback_summary(request.story_content, request.summary_length)
        )
        used_fallback = True

    return SummaryResult(output=output, prompt=final_prompt, used_fallback=used_fallback)


def _parse_summary(raw_response: Optional[str]) -> Optional[SummarizeStoryOutput]:
    if not raw_response or not raw_response.strip():
        return None

    data = _extract_json(raw_response)
    if isinstance(data, dict):
        try:
            return SummarizeStoryOutput.model_validate(data)
        except ValidationError:
            return None
    return SummarizeStoryOutput(summary=raw_response.strip())


def _fallback_summary(story_content: str, summary_length: str) -> str:
    text = " ".join(story_content.split())
    sentences = [sentence for sentence in _SENTENCE_SPLIT.split(text) if sentence]
    count = _FALLBACK_SENTENCES.get(summary_length, 4)
    excerpt = " ".join(sentences[:count]).strip()
    if not excerpt:
        raise SummarizeError("There is not enough text to summarise.")
    return excerpt
