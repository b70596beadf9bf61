from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from .schemas import ExpandTextInput, ExpandTextOutput
from .text_generation import (
    GeneratorUnavailableError,
    PromptConfigurationError,
    _apply_template,
    _call_generator,
    _extract_json,
    _get_text_generator,
    _load_prompt_entry,
    _optional_block,
)

PROMPT_KEY = "expand_text"

_STYLE_GUIDANCE = {
    "add_detail": "Flesh out the text with more specific details, descriptions, or examples.",
    "explain_further": "Clarify the meaning of the text, elaborate on its concepts, or provide background information.",
    "continue_narrative": "The text is a story segment: write the next few sentences to continue the narrative flow.",
    "explore_implications": "Discuss potential consequences, outcomes, or related ideas stemming from the text.",
}

_LENGTH_GUIDANCE = {
    "short_paragraph": "Generate an expansion of about 2-3 sentences.",
    "medium_paragraph": "Generate an expansion of about 4-6 sentences.",
}


class ExpandError(RuntimeError):
    """Raised when an expansion cannot be produced."""


@dataclass
class ExpandResult:
    output: ExpandTextOutput
    prompt: str
    used_fallback: bool = False


def expand_text(request: ExpandTextInput) -> ExpandResult:
    try:
        entry = _load_prompt_entry(PROMPT_KEY)
    except PromptConfigurationError as exc:
        raise ExpandError(str(exc)) from exc

    context_block = _optional_block("Story Context", request.story_context)
    if context_block:
        context_block = (
            "Consider the following surrounding story context to ensure the expansion is consistent:\n"
            + context_block
        )

    final_prompt = _apply_template(
        entry["prompt_template"],
        text_to_expand=request.text_to_expand,
        expansion_style=request.expansion_style,
        style_guidance=_STYLE_GUIDANCE[request.expansion_style],
        desired_length=request.desired_length,
        length_guidance=_LENGTH_GUIDANCE[request.desired_length],
        story_context=context_block,
    )

    generator = _get_text_generator()
    if generator is None:
        raise GeneratorUnavailableError("Expanding text needs an AI model, and none is configured.")

    output = _parse_expansion(_call_generator(generator, final_prompt, entry, "expansion"))
    if output is None:
        raise ExpandError("Could not expand text. Please try again.")

    return ExpandResult(output=output, prompt=final_prompt)


def _parse_expansion(raw_response: Optional[str]) -> Optional[ExpandTextOutput]:
    if not raw_response or not raw_response.strip():
        return None
    data = _extract_json(raw_response)
    if isinstance(data, dict):
        try:
            return ExpandTextOutput.model_validate(data)
        except ValidationError:
            return None
    return ExpandTextOutput(expanded_text=raw_response.strip())
