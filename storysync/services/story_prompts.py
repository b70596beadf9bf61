from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from .schemas import GenerateStoryPromptsInput, GenerateStoryPromptsOutput, StoryPrompt
from .text_generation import (
    PromptConfigurationError,
    _apply_template,
    _call_generator,
    _extract_json,
    _get_text_generator,
    _load_prompt_entry,
    _optional_block,
)

PROMPT_KEY = "story_prompts"


class StoryPromptsError(RuntimeError):
    """Raised when story prompts cannot be generated."""


@dataclass
class StoryPromptsResult:
    output: GenerateStoryPromptsOutput
    prompt: str
    used_fallback: bool


_FALLBACK_SEEDS = [
    (
        "The Letter That Arrived Twice",
        "A {genre}story begins when the same letter arrives a decade apart. "
        "The first time it was ignored; the second time its sender is standing at the door.",
    ),
    (
        "Borrowed Names",
        "Someone has been living under the protagonist's name in a town they have never visited. "
        "Following the trail turns this {genre}tale into a question of who deserves the life.",
    ),
    (
        "The Last Lamp on Keel Street",
        "Every night one fewer street lamp lights up in the old harbour district. "
        "A night-shift worker decides to find out who is switching them off, and why.",
    ),
    (
        "A Map With One Wrong Turn",
        "An heirloom map is perfect except for a single road that leads nowhere. "
        "Two estranged siblings set out to walk it together in this {genre}journey.",
    ),
    (
        "Quiet Hours",
        "A city passes a law that forbids speaking between midnight and dawn. "
        "One person breaks it to warn the others of something only they heard.",
    ),
]


def generate_story_prompts(request: GenerateStoryPromptsInput) -> StoryPromptsResult:
    try:
        entry = _load_prompt_entry(PROMPT_KEY)
    except PromptConfigurationError as exc:
        raise StoryPromptsError(str(exc)) from exc

    genre = (request.genre or "").strip()
    content = (request.current_story_content or "").strip()
    if content:
        content_instruction = (
            "Consider the following existing story content and try to generate prompts that could be "
            "continuations, alternative paths, prequels, sequels, or related themes:\n"
            + _optional_block("Current Story Content", content)
        )
    else:
        content_instruction = "Generate fresh and original ideas."

    final_prompt = _apply_template(
        entry["prompt_template"],
        num_prompts=request.num_prompts,
        genre_instruction=f"Focus on the {genre} genre." if genre else "",
        content_instruction=content_instruction,
    )

    raw_response = _call_generator(_get_text_generator(), final_prompt, entry, "story prompts")
    prompts = _parse_prompts(raw_response)
    used_fallback = False
    if not prompts:
        prompts = _fallback_prompts(request.num_prompts, genre, content)
        used_fallback = True

    output = GenerateStoryPromptsOutput(prompts=prompts[: request.num_prompts])
    return StoryPromptsResult(output=output, prompt=final_prompt, used_fallback=used_fallback)


def _parse_prompts(raw_response: Optional[str]) -> List[StoryPrompt]:
    data = _extract_json(raw_response)
    if isinstance(data, list):
        data = {"prompts": data}
    if not isinstance(data, dict):
        return []
    try:
        return GenerateStoryPromptsOutput.model_validate(data).prompts
    except ValidationError:
        return []


def _fallback_prompts(count: int, genre: str, content: str) -> List[StoryPrompt]:
    genre_fragment = f"{genre.lower()} " if genre else ""
    prompts: List[StoryPrompt] = []

    if content:
        opening = " ".join(content.split()[:18])
        prompts.append(
            StoryPrompt(
                title="What Happened Next",
                description=(
                    f'Pick up right after "{opening}…" and follow the character with the most to lose. '
                    "Give them a choice that cannot be undone by the end of the scene."
                ),
            )
        )

    for title, description in _FALLBACK_SEEDS:
        if len(prompts) >= count:
            break
        prompts.append(StoryPrompt(title=title, description=description.format(genre=genre_fragment)))

    return prompts
