"""LLM client abstraction for extraction and consolidation."""

import json
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI

from ..core.config import LLMSettings

# Default base URLs per OpenAI-compatible provider (used when base_url not set in config)
_OPENAI_DEFAULT_BASE = "https://api.openai.com/v1"
_OPENAI_COMPATIBLE_DEFAULT_BASE = "http://localhost:8000/v1"
_OLLAMA_DEFAULT_BASE = "http://localhost:11434/v1"

JSON_OBJECT_FORMAT = {"type": "json_object"}


class LLMClient(ABC):
    """Abstract LLM client interface."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
        response_format: dict[str, Any] | None = None,
    ) -> str:
        """Return raw text completion. Transport and non-2xx errors propagate."""
        ...

    async def complete_json(
        self,
        prompt: str,
        temperature: float = 0.0,
        system_prompt: str | None = None,
    ) -> Any:
        """Return parsed JSON from a JSON-mode completion."""
        response = await self.complete(
            prompt,
            temperature=temperature,
            system_prompt=system_prompt
            or "You are a JSON generator. Always respond with valid JSON only, no markdown.",
            response_format=JSON_OBJECT_FORMAT,
        )
        return parse_json_from_response(response)


def parse_json_from_response(response: str) -> Any:
    """Extract and parse JSON from LLM response text.

    Raises ``ValueError`` (``json.JSONDecodeError``) when nothing parses.
    """
    if not response or not response.strip():
        raise json.JSONDecodeError("empty response", response or "", 0)
    try:
        return json.loads(response)
    except json.JSONDecodeError:
        match = re.search(r"\[.*\]|\{.*\}", response, re.DOTALL)
        if match:
            return json.loads(match.group())
        raise


def _default_base_url(provider: str) -> str:
    if provider == "openai":
        return _OPENAI_DEFAULT_BASE
    if provider in ("openai_compatible", "vllm"):
        return _OPENAI_COMPATIBLE_DEFAULT_BASE
    if provider == "ollama":
        return _OLLAMA_DEFAULT_BASE
    raise ValueError(f"Unknown LLM provider: {provider}")


class OpenAICompatibleClient(LLMClient):
    """Single client for any OpenAI-compatible API (OpenAI, local server, Ollama, proxies).

    SDK-level retries are disabled: a failed call surfaces immediately and the
    caller decides what failure means (abort extraction, fail open consolidation).
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.client = client or AsyncOpenAI(
            base_url=base_url or _OPENAI_DEFAULT_BASE,
            api_key=api_key or "dummy",
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, llm: LLMSettings) -> "OpenAICompatibleClient":
        return cls(
            model=llm.model,
            api_key=llm.resolved_api_key(),
            base_url=llm.base_url or _default_base_url(llm.provider),
        )

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
        response_format: dict[str, Any] | None = None,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = dict(model=self.model, messages=messages, temperature=temperature)
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if response_format is not None:
            kwargs["response_format"] = response_format
        response = await self.client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""


class MockLLMClient(LLMClient):
    """Mock LLM client for tests; returns queued responses and records every call."""

    def __init__(
        self,
        responses: Sequence[str | BaseException] | None = None,
        fixed_response: str | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self.fixed_response = fixed_response if fixed_response is not None else "{}"
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.0,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
        response_format: dict[str, Any] | None = None,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "temperature": temperature,
                "system_prompt": system_prompt,
                "response_format": response_format,
            }
        )
        response: str | BaseException = (
            self._responses.pop(0) if self._responses else self.fixed_response
        )
        if isinstance(response, BaseException):
            raise response
        return response


def get_llm_client(llm: LLMSettings) -> LLMClient:
    """Factory function to get the configured LLM client."""
    return OpenAICompatibleClient.from_settings(llm)
