"""Grammar, style and clarity suggestions for a text selection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from .schemas import GetWritingSuggestionsInput, GetWritingSuggestionsOutput, WritingSuggestion
from .text_generation import (
    PromptConfigurationError,
    _apply_template,
    _call_generator,
    _extract_json,
    _get_text_generator,
    _load_prompt_entry,
)

PROMPT_KEY = "writing_suggestions"

LONG_SENTENCE_WORDS = 40

_REPEATED_WORD = re.compile(r"\b(\w+)\s+(\1)\b", re.IGNORECASE)
_DOUBLE_SPACE = re.compile(r"(\S)( {2,})(\S)")
_SPACE_BEFORE_PUNCTUATION = re.compile(r"(\w)(\s+)([,.;:!?])")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

_WORDY_PHRASES = {
    "in order to": "to",
    "due to the fact that": "because",
    "at this point in time": "now",
    "in the event that": "if",
    "for the purpose of": "for",
    "very unique": "unique",
}


class WritingSuggestionsError(RuntimeError):
    """Raised when writing suggestions cannot be produced."""


@dataclass
class WritingSuggestionsResult:
    output: GetWritingSuggestionsOutput
    prompt: str
    used_fallback: bool


def get_writing_suggestions(request: GetWritingSuggestionsInput) -> WritingSuggestionsResult:
    try:
        entry = _load_prompt_entry(PROMPT_KEY)
    except PromptConfigurationError as exc:
        raise WritingSuggestionsError(str(exc)) from exc

    final_prompt = _apply_template(entry["prompt_template"], text_selection=request.text_selection)

    raw_response = _call_generator(_get_text_generator(), final_prompt, entry, "writing suggestions")
    output = _parse_suggestions(raw_response)
    used_fallback = False
    if output is None:
        output = GetWritingSuggestionsOutput(suggestions=_rule_based_suggestions(request.text_selection))
        used_fallback = True

    return WritingSuggestionsResult(output=output, prompt=final_prompt, used_fallback=used_fallback)


def _parse_suggestions(raw_response: Optional[str]) -> Optional[GetWritingSuggestionsOutput]:
    """Parse the model reply; ``None`` means the reply was unusable.

    Individual malformed suggestions are skipped so one bad entry does not
    discard the rest.
    """

    data = _extract_json(raw_response)
    if isinstance(data, list):
        data = {"suggestions": data}
    if not isinstance(data, dict):
        return None

    items = data.get("suggestions")
    if items is None:
        return GetWritingSuggestionsOutput(suggestions=[])
    if not isinstance(items, list):
        return None

    suggestions: List[WritingSuggestion] = []
    for item in items:
        try:
            suggestions.append(WritingSuggestion.model_validate(item))
        except ValidationError:
            continue
    if items and not suggestions:
        return None
    return GetWritingSuggestionsOutput(suggestions=suggestions)


def _rule_based_suggestions(text: str) -> List[WritingSuggestion]:
    suggestions: List[WritingSuggestion] = []

    for match in _REPEATED_WORD.finditer(text):
        suggestions.append(
            WritingSuggestion(
                original_segment=match.group(0),
                suggestion_type="grammar",
                message=f'The word "{match.group(1)}" is repeated.',
                suggested_fix=match.group(1),
            )
        )

    for match in _DOUBLE_SPACE.finditer(text):
        suggestions.append(
            WritingSuggestion(
                original_segment=match.group(0),
                suggestion_type="style",
                message="There is more than one space between these words.",
                suggested_fix=f"{match.group(1)} {match.group(3)}",
            )
        )

    for match in _SPACE_BEFORE_PUNCTUATION.finditer(text):
        suggestions.append(
            WritingSuggestion(
                original_segment=match.group(0),
                suggestion_type="punctuation",
                message="Remove the space before the punctuation mark.",
                suggested_fix=f"{match.group(1)}{match.group(3)}",
            )
        )

    lowered = text.lower()
    for phrase, replacement in _WORDY_PHRASES.items():
        start = lowered.find(phrase)
        if start == -1:
            continue
        segment = text[start : start + len(phrase)]
        suggestions.append(
            WritingSuggestion(
                original_segment=segment,
                suggestion_type="conciseness",
                message=f'"{segment}" can usually be shortened to "{replacement}".',
                suggested_fix=replacement,
            )
        )

    for sentence in _SENTENCE_SPLIT.split(" ".join(text.split())):
        if len(sentence.split()) > LONG_SENTENCE_WORDS:
            suggestions.append(
                WritingSuggestion(
                    original_segment=sentence,
                    suggestion_type="clarity",
                    message=(
                        f"This sentence runs past {LONG_SENTENCE_WORDS} words. "
                        "Consider splitting it so each idea lands on its own."
                    ),
                )
            )

    return suggestions
