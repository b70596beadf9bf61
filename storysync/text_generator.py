"""Local Hugging Face Transformers generator for the writing assistant.

Install the ``local`` extra to use it. The app builds one instance when
``TEXT_GENERATOR_MODEL_PATH`` is set and reuses it for every request.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

LOGGER = logging.getLogger(__name__)


class TextGenerator:
    def __init__(
        self,
        model_path: str,
        *,
        temperature: Optional[float] = 0.8,
        top_p: Optional[float] = 0.95,
        max_new_tokens: int = 512,
        seed: int = 42,
        device_map: str | Dict[str, Any] | None = "auto",
        trust_remote_code: bool = False,
    ):
        self.temperature = temperature
        self.top_p = top_p
        self.max_new_tokens = max_new_tokens

        torch.manual_seed(seed)
        if torch.cuda.is_available():
            torch.cuda.manual_seed_all(seed)

        LOGGER.info("Loading local model from %s", model_path)
        self.model = AutoModelForCausalLM.from_pretrained(
            model_path,
            device_map=device_map,
            torch_dtype="auto",
            trust_remote_code=trust_remote_code,
        )
        self.model.eval()

        self.tokenizer = AutoTokenizer.from_pretrained(model_path, trust_remote_code=trust_remote_code)
        if self.tokenizer.pad_token is None:
            self.tokenizer.pad_token = self.tokenizer.eos_token

    def _encode(self, prompt: str):
        # Instruction-tuned checkpoints expect their chat template.
        if getattr(self.tokenizer, "chat_template", None):
            input_ids = self.tokenizer.apply_chat_template(
                [{"role": "user", "content": prompt}],
                add_generation_prompt=True,
                return_tensors="pt",
            )
            return {"input_ids": input_ids.to(self.model.device)}
        return self.tokenizer(prompt, return_tensors="pt").to(self.model.device)

    def _generation_kwargs(
        self,
        max_new_tokens: Optional[int],
        temperature: Optional[float],
        top_p: Optional[float],
        extra_parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        tokens = int(self.max_new_tokens if max_new_tokens is None else max_new_tokens)
        if tokens <= 0:
            raise ValueError("max_new_tokens must be a positive integer")

        kwargs: Dict[str, Any] = {
            "max_new_tokens": tokens,
            "do_sample": True,
            "pad_token_id": self.tokenizer.pad_token_id,
        }
        effective_temperature = self.temperature if temperature is None else temperature
        effective_top_p = self.top_p if top_p is None else top_p
        if effective_temperature is not None:
            kwargs["temperature"] = effective_temperature
        if effective_top_p is not None:
            kwargs["top_p"] = effective_top_p
        for key in ("repetition_penalty", "top_k"):
            if extra_parameters.get(key) is not None:
                kwargs[key] = extra_parameters[key]
        return kwargs

    def generate_response(
        self,
        prompt: str,
        *,
        max_new_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        **extra_parameters: Any,
    ) -> str:
        """Generate a response to ``prompt`` without echoing it back."""

        encoded = self._encode(prompt)
        kwargs = self._generation_kwargs(max_new_tokens, temperature, top_p, extra_parameters)
        with torch.no_grad():
            output = self.model.generate(**encoded, **kwargs)

        prompt_len = encoded["input_ids"].shape[-1]
        generated_ids = output[0, prompt_len:]
        if generated_ids.numel() == 0:
            return ""
        return self.tokenizer.decode(generated_ids, skip_special_tokens=True).strip()
