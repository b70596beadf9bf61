"""Input and output schemas for the writing assistant flows."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SupportedLanguage = Literal["en", "es", "fr", "de", "it", "pt", "ja", "ko", "zh-CN", "ru", "ar", "hi"]

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ja": "Japanese",
    "ko": "Korean",
    "zh-CN": "Chinese (Simplified)",
    "ru": "Russian",
    "ar": "Arabic",
    "hi": "Hindi",
}


def language_display_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


class FlowInput(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# --- story prompts -----------------------------------------------------------


class GenerateStoryPromptsInput(FlowInput):
    current_story_content: Optional[str] = None
    genre: Optional[str] = Field(default=None, max_length=60)
    num_prompts: int = Field(default=3, ge=1, le=5)


class StoryPrompt(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)


class GenerateStoryPromptsOutput(BaseModel):
    prompts: List[StoryPrompt]


# --- summarize ---------------------------------------------------------------


class SummarizeStoryInput(FlowInput):
    story_content: str = Field(min_length=50)
    summary_length: Literal["short", "medium", "long"] = "medium"


class SummarizeStoryOutput(BaseModel):
    summary: str = Field(min_length=1)


# --- writing suggestions -----------------------------------------------------

SuggestionType = Literal["grammar", "style", "clarity", "conciseness", "tone", "vocabulary", "punctuation"]


class GetWritingSuggestionsInput(FlowInput):
    text_selection: str = Field(min_length=10)


class WritingSuggestion(BaseModel):
    original_segment: str
    suggestion_type: SuggestionType
    message: str
    suggested_fix: Optional[str] = None


class GetWritingSuggestionsOutput(BaseModel):
    suggestions: List[WritingSuggestion] = Field(default_factory=list)


# --- paraphrase --------------------------------------------------------------


class ParaphraseTextInput(FlowInput):
    text_to_paraphrase: str = Field(min_length=10)
    tone: Literal["neutral", "formal", "informal", "simpler", "more_descriptive"] = "neutral"
    num_variations: int = Field(default=2, ge=1, le=3)


class ParaphraseTextOutput(BaseModel):
    paraphrased_texts: List[str] = Field(min_length=1)

    @field_validator("paraphrased_texts")
    @classmethod
    def _drop_blank_variations(cls, value: List[str]) -> List[str]:
        cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
        if not cleaned:
            raise ValueError("at least one paraphrased text is required")
        return cleaned


# --- expand ------------------------------------------------------------------


class ExpandTextInput(FlowInput):
    text_to_expand: str = Field(min_length=5)
    expansion_style: Literal[
        "add_detail", "explain_further", "continue_narrative", "explore_implications"
    ] = "add_detail"
    desired_length: Literal["short_paragraph", "medium_paragraph"] = "short_paragraph"
    story_context: Optional[str] = None


class ExpandTextOutput(BaseModel):
    expanded_text: str = Field(min_length=1)


# --- translate ---------------------------------------------------------------


class TranslateStoryInput(FlowInput):
    story_content: str = Field(min_length=1)
    target_language: SupportedLanguage
    source_language: Optional[SupportedLanguage] = None


class TranslateStoryOutput(BaseModel):
    translated_content: str = Field(min_length=1)
    detected_source_language: Optional[SupportedLanguage] = None

    @field_validator("detected_source_language", mode="before")
    @classmethod
    def _ignore_unsupported_language(cls, value: object) -> object:
        if value not in LANGUAGE_NAMES:
            return None
        return value
