"""Service layer helpers for the writing assistant flows."""

from __future__ import annotations

from .expand import ExpandError, ExpandResult, expand_text  # noqa: F401
from .paraphrase import ParaphraseError, ParaphraseResult, paraphrase_text  # noqa: F401
from .story_prompts import StoryPromptsError, StoryPromptsResult, generate_story_prompts  # noqa: F401
from .summarize import SummarizeError, SummaryResult, summarize_story  # noqa: F401
from .text_generation import GeneratorUnavailableError, PromptConfigurationError  # noqa: F401
from .translate import TranslateError, TranslationResult, translate_story  # noqa: F401
from .writing_suggestions import (  # noqa: F401
    WritingSuggestionsError,
    WritingSuggestionsResult,
    get_writing_suggestions,
)

__all__ = [
    "ExpandError",
    "ExpandResult",
    "GeneratorUnavailableError",
    "ParaphraseError",
    "ParaphraseResult",
    "PromptConfigurationError",
    "StoryPromptsError",
    "StoryPromptsResult",
    "SummarizeError",
    "SummaryResult",
    "TranslateError",
    "TranslationResult",
    "WritingSuggestionsError",
    "WritingSuggestionsResult",
    "expand_text",
    "generate_story_prompts",
    "get_writing_suggestions",
    "paraphrase_text",
    "summarize_story",
    "translate_story",
]
