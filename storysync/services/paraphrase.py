from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from .schemas import ParaphraseTextInput, ParaphraseTextOutput
from .text_generation import (
    GeneratorUnavailableError,
    PromptConfigurationError,
    _apply_template,
    _call_generator,
    _extract_json,
    _get_text_generator,
    _load_prompt_entry,
)

PROMPT_KEY = "paraphrase_text"

_TONE_LABELS = {
    "neutral": "neutral",
    "formal": "formal",
    "informal": "informal",
    "simpler": "simpler",
    "more_descriptive": "more descriptive",
}


class ParaphraseError(RuntimeError):
    """Raised when paraphrased variations cannot be produced."""


@dataclass
class ParaphraseResult:
    output: ParaphraseTextOutput
    prompt: str
    used_fallback: bool = False


def paraphrase_text(request: ParaphraseTextInput) -> ParaphraseResult:
    try:
        entry = _load_prompt_entry(PROMPT_KEY)
    except PromptConfigurationError as exc:
        raise ParaphraseError(str(exc)) from exc

    final_prompt = _apply_template(
        entry["prompt_template"],
        num_variations=request.num_variations,
        tone=_TONE_LABELS[request.tone],
        text_to_paraphrase=request.text_to_paraphrase,
    )

    generator = _get_text_generator()
    if generator is None:
        raise GeneratorUnavailableError("Paraphrasing needs an AI model, and none is configured.")

    output = _parse_variations(_call_generator(generator, final_prompt, entry, "paraphrase"))
    if output is None:
        raise ParaphraseError("Could not paraphrase text. Please try again.")

    output.paraphrased_texts = output.paraphrased_texts[: request.num_variations]
    return ParaphraseResult(output=output, prompt=final_prompt)


def _parse_variations(raw_response: Optional[str]) -> Optional[ParaphraseTextOutput]:
    data = _extract_json(raw_response)
    if isinstance(data, list):
        data = {"paraphrased_texts": data}
    if not isinstance(data, dict):
        return None
    try:
        return ParaphraseTextOutput.model_validate(data)
    except ValidationError:
        return None
