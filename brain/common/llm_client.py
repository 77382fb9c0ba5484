"""
Provider-agnostic LLM client for Second Brain.

Supports Anthropic, OpenAI, and Google Gemini behind one text-generation
interface. Used by the capture classifier and the digest summarizer.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional

from .config import LLMConfig

logger = logging.getLogger("brain.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None
        self._google_models = {}

        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        init = getattr(self, f"_init_{self.provider}")
        try:
            self._client = init(api_key)
        except ImportError as e:
            logger.warning("%s SDK not installed: %s", self.provider, e)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @classmethod
    def from_config(cls, config: LLMConfig, model: Optional[str] = None) -> "LLMClient":
        """Build a client for the configured provider, optionally overriding the model"""
        keys = {
            "anthropic": config.anthropic_api_key,
            "openai": config.openai_api_key,
            "google": config.google_api_key,
        }
        provider = (config.provider or "anthropic").lower()
        return cls(
            provider=provider,
            model=model or config.model,
            api_key=keys.get(provider),
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Provider setup
    # ------------------------------------------------------------------

    @staticmethod
    def _init_anthropic(api_key: str):
        import anthropic

        return anthropic.Anthropic(api_key=api_key)

    @staticmethod
    def _init_openai(api_key: str):
        from openai import OpenAI

        return OpenAI(api_key=api_key)

    @staticmethod
    def _init_google(api_key: str):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai  # the module; models are built per system prompt

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        """Return the model's text answer for a single user prompt"""
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        generate = getattr(self, f"_generate_{self.provider}")
        return generate(prompt, system=system, max_tokens=max_tokens, timeout=timeout)

    def _generate_anthropic(self, prompt, *, system, max_tokens, timeout) -> str:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout,
        }
        if system:
            kwargs["system"] = system
        response = self._client.messages.create(**kwargs)
        block = response.content[0]
        if getattr(block, "type", "text") != "text":
            raise RuntimeError(f"Unexpected response block type: {block.type}")
        return block.text.strip()

    def _generate_openai(self, prompt, *, system, max_tokens, timeout) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages,
            timeout=timeout,
        )
        return (response.choices[0].message.content or "").strip()

    def _generate_google(self, prompt, *, system, max_tokens, timeout) -> str:
        cache_key = hashlib.md5((system or "").encode()).hexdigest()
        if cache_key not in self._google_models:
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
        model = self._google_models[cache_key]
        response = model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return response.text.strip()
