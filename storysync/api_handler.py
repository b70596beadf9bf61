"""OpenAI-compatible text generator for the writing assistant."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the StorySync writing assistant. Follow the output format requested in the "
    "user's message exactly and never add commentary outside it."
)

# Families that only speak the Responses API.
_RESPONSES_PREFIXES = ("gpt-5", "o3", "o4", "gpt-4.1")


class OpenAIGenerator:
    """Send assistant prompts to an OpenAI (or OpenAI-compatible) endpoint.

    Reasoning-era models go through the Responses API; everything else uses
    Chat Completions, which is also what self-hosted compatible servers expose.
    """

    def __init__(
        self,
        model_name: str,
        api_key: str,
        base_url: Optional[str] = None,
        default_max_tokens: int = 512,
    ) -> None:
        self.model_name = (model_name or "").strip()
        if not self.model_name:
            raise ValueError("model_name must be provided.")
        self.default_max_tokens = int(default_max_tokens or 512)
        self._client = openai.OpenAI(api_key=(api_key or "").strip(), base_url=base_url or None)

    def uses_responses_api(self) -> bool:
        return self.model_name.lower().startswith(_RESPONSES_PREFIXES)

    def generate_response(
        self,
        prompt: str,
        *,
        max_new_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        **extra_parameters: Any,
    ) -> str:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValueError("prompt must be a non-empty string.")
        max_tokens = int(max_new_tokens if max_new_tokens is not None else self.default_max_tokens)
        if max_tokens <= 0:
            raise ValueError("max_new_tokens must be positive.")

        if self.uses_responses_api():
            text = self._call_responses(prompt, max_tokens)
        else:
            text = self._call_chat(prompt, max_tokens, temperature, top_p, extra_parameters)

        if not text:
            raise RuntimeError(f"Model '{self.model_name}' returned no text.")
        return text

    def _call_responses(self, prompt: str, max_tokens: int) -> str:
        # Sampling parameters are rejected by reasoning models.
        response = self._client.responses.create(
            model=self.model_name,
            instructions=SYSTEM_PROMPT,
            input=prompt,
            max_output_tokens=max_tokens,
            reasoning={"effort": "low"},
        )
        text = (getattr(response, "output_text", None) or "").strip()
        if not text and getattr(response, "status", None) == "incomplete":
            LOGGER.info("Responses call for %s stopped early; retrying with a larger budget.", self.model_name)
            response = self._client.responses.create(
                model=self.model_name,
                instructions=SYSTEM_PROMPT,
                input=prompt,
                max_output_tokens=min(4096, max_tokens * 2),
                reasoning={"effort": "low"},
            )
            text = (getattr(response, "output_text", None) or "").strip()
        return text

    def _call_chat(
        self,
        prompt: str,
        max_tokens: int,
        temperature: Optional[float],
        top_p: Optional[float],
        extra_parameters: Dict[str, Any],
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = float(temperature)
        if top_p is not None:
            kwargs["top_p"] = float(top_p)
        for key in ("presence_penalty", "frequency_penalty"):
            if extra_parameters.get(key) is not None:
                kwargs[key] = float(extra_parameters[key])

        response = self._client.chat.completions.create(**kwargs)
        return _chat_text(response)


def _chat_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    content = getattr(choices[0].message, "content", None)
    if isinstance(content, list):
        parts: List[str] = [
            str(part.get("text") or "") for part in content if isinstance(part, dict) and part.get("type") == "text"
        ]
        return "\n".join(part for part in parts if part).strip()
    return str(content or "").strip()
