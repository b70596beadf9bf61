from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from .schemas import TranslateStoryInput, TranslateStoryOutput, language_display_name
from .text_generation import (
    GeneratorUnavailableError,
    PromptConfigurationError,
    _apply_template,
    _call_generator,
    _extract_json,
    _get_text_generator,
    _load_prompt_entry,
)

PROMPT_KEY = "translate_story"


class TranslateError(RuntimeError):
    """Raised when a translation cannot be produced."""


@dataclass
class TranslationResult:
    output: TranslateStoryOutput
    prompt: str
    used_fallback: bool = False


def translate_story(request: TranslateStoryInput) -> TranslationResult:
    try:
        entry = _load_prompt_entry(PROMPT_KEY)
    except PromptConfigurationError as exc:
        raise TranslateError(str(exc)) from exc

    if request.source_language:
        source_line = (
            f"Source Language: {language_display_name(request.source_language)} ({request.source_language})"
        )
    else:
        source_line = "Source Language: Autodetect"

    final_prompt = _apply_template(
        entry["prompt_template"],
        target_language=f"{language_display_name(request.target_language)} ({request.target_language})",
        source_language_line=source_line,
        story_content=request.story_content,
    )

    generator = _get_text_generator()
    if generator is None:
        raise GeneratorUnavailableError("Translation needs an AI model, and none is configured.")

    output = _parse_translation(_call_generator(generator, final_prompt, entry, "translation"))
    if output is None:
        raise TranslateError("Could not translate story. Please try again.")

    if request.source_language:
        output.detected_source_language = None
    return TranslationResult(output=output, prompt=final_prompt)


def _parse_translation(raw_response: Optional[str]) -> Optional[TranslateStoryOutput]:
    if not raw_response or not raw_response.strip():
        return None
    data = _extract_json(raw_response)
    if isinstance(data, dict):
        try:
            return TranslateStoryOutput.model_validate(data)
        except ValidationError:
            return None
    return TranslateStoryOutput(translated_content=raw_response.strip())
