"""Shared plumbing for the writing assistant flows.

Each flow module renders a template from ``prompt_config.json``, hands the
prompt to the configured text generator and validates the answer against its
pydantic output schema. This module owns the pieces they share: loading the
prompt configuration, choosing and caching the generator, filtering generation
parameters and pulling JSON out of free-form model replies.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

from flask import current_app
from markupsafe import Markup

PROMPT_CACHE_KEY = "_PROMPT_CONFIG_CACHE"
GENERATOR_CACHE_KEY = "_TEXT_GENERATOR_INSTANCE"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class PromptConfigurationError(RuntimeError):
    """Raised when the prompt configuration is missing or malformed."""


class GeneratorUnavailableError(RuntimeError):
    """Raised by flows without a fallback when no text generator is configured."""


def _load_prompt_entry(key: str) -> Dict[str, Any]:
    config = _load_prompt_config()
    try:
        entry = config[key]
    except KeyError as exc:
        raise PromptConfigurationError(f"Prompt configuration is missing the '{key}' entry.") from exc
    if not isinstance(entry, dict):
        raise PromptConfigurationError(f"Prompt configuration entry '{key}' must be a dictionary.")
    if not entry.get("prompt_template"):
        raise PromptConfigurationError(f"Prompt configuration entry '{key}' is missing the template text.")
    return entry


def _load_prompt_config() -> Dict[str, Any]:
    app = current_app
    cached = app.config.get(PROMPT_CACHE_KEY)
    if isinstance(cached, dict):
        return cached

    config_path = app.config.get("PROMPT_CONFIG_PATH")
    if not config_path:
        raise PromptConfigurationError("PROMPT_CONFIG_PATH is not configured.")

    path = Path(config_path)
    if not path.exists():
        raise PromptConfigurationError(f"Prompt configuration file not found at: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise PromptConfigurationError(f"Unable to parse prompt configuration: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise PromptConfigurationError("Prompt configuration must be a JSON object.")

    app.config[PROMPT_CACHE_KEY] = data
    return data


_GENERATION_PARAMETER_KEYS = {
    "max_new_tokens",
    "temperature",
    "top_p",
    "repetition_penalty",
    "presence_penalty",
    "frequency_penalty",
    "top_k",
}


def _extract_generation_parameters(parameters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Filter a raw parameters dictionary to generation kwargs supported by the generators."""

    if not isinstance(parameters, dict):
        return {}

    return {
        key: parameters[key]
        for key in _GENERATION_PARAMETER_KEYS
        if key in parameters and parameters[key] is not None
    }


def _get_text_generator() -> Optional[Any]:  # pragma: no cover - integration point
    app = current_app
    if GENERATOR_CACHE_KEY in app.config:
        return app.config[GENERATOR_CACHE_KEY]

    generator = None
    api_key = app.config.get("OPENAI_API_KEY")
    model_path = app.config.get("TEXT_GENERATOR_MODEL_PATH")

    if api_key:
        model_name = app.config.get("OPENAI_MODEL") or "gpt-4o-mini"
        try:
            from ..api_handler import OpenAIGenerator

            app.logger.info("Using OpenAI generator with model: %s", model_name)
            generator = OpenAIGenerator(
                model_name=model_name,
                api_key=api_key,
                base_url=app.config.get("OPENAI_BASE_URL"),
            )
        except Exception as exc:
            app.logger.warning("Failed to initialise OpenAI generator '%s': %s", model_name, exc)
    elif model_path:
        try:
            from ..text_generator import TextGenerator

            app.logger.info("Initialising local text generator with model path: %s", model_path)
            generator = TextGenerator(model_path=model_path)
        except Exception as exc:
            app.logger.warning("Failed to initialise text generator at '%s': %s", model_path, exc)
    else:
        app.logger.info("No text generator configured; assistant flows will use fallbacks where available.")

    app.config[GENERATOR_CACHE_KEY] = generator
    return generator


def _call_generator(generator: Any, prompt: str, entry: Dict[str, Any], flow_name: str) -> Optional[str]:
    """Run ``prompt`` through ``generator``; failures are logged and reported as ``None``."""

    if generator is None:
        return None
    kwargs = _extract_generation_parameters(entry.get("parameters"))
    try:
        return generator.generate_response(prompt, **kwargs)
    except Exception as exc:  # pragma: no cover - external integration
        current_app.logger.warning("LLM %s generation failed. Error: %s", flow_name, exc)
        return None


def _apply_template(template: str, **values: Any) -> str:
    """Fill ``{name}`` placeholders in one pass; unknown names are left as written."""

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        raw = values[key]
        return raw if isinstance(raw, str) else str(raw)

    return _PLACEHOLDER.sub(_replace, template)


def _optional_block(label: str, text: Optional[str]) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        return ""
    return f"--- {label} ---\n{cleaned}\n--- End {label} ---"


_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _extract_json(raw_response: Optional[str]) -> Optional[Any]:
    """Return the JSON value in ``raw_response``, tolerating code fences and chatter."""

    if not raw_response:
        return None
    text = raw_response.strip()

    candidates = [text]
    candidates.extend(match.strip() for match in _FENCE_PATTERN.findall(text))
    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


_WHITESPACE_PATTERN = re.compile(r"[ \t\r\f\v]+")
_BLOCK_TAG_PATTERN = re.compile(r"</?(p|div|br|li|h[1-6]|blockquote|pre)\b[^>]*>", re.IGNORECASE)


def html_to_text(content: Optional[str]) -> str:
    """Reduce editor HTML to plain text, keeping paragraph breaks."""

    if not content:
        return ""
    with_breaks = _BLOCK_TAG_PATTERN.sub("\n", content)
    paragraphs = []
    for line in with_breaks.split("\n"):
        stripped = Markup(line).striptags()
        stripped = _WHITESPACE_PATTERN.sub(" ", stripped).strip()
        if stripped:
            paragraphs.append(stripped)
    return "\n\n".join(paragraphs)
