"""
Generative Text Providers

Adapters for the external text-generation call used by the suggestion
generator and the summarizer.

Design:
    - Async HTTP calls (httpx for Ollama, AsyncOpenAI for OpenAI).
    - No mock fallback: connection errors, timeouts and error statuses
      become ``ProviderError`` after one retry, and the caller decides
      what the user sees.
    - ``json_mode`` asks the backend to constrain output to JSON; callers
      still validate what comes back.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

import httpx
from openai import APIError, AsyncOpenAI

from brainboard.core.exceptions import ProviderError
from brainboard.services.retry import retry_once

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```), if any."""
    text = text.strip()
    match = _CODE_FENCE.match(text)
    return match.group(1).strip() if match else text


class TextGenerator(Protocol):
    """Prompt in, text out."""

    name: str

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        json_mode: bool = False,
    ) -> str: ...

    async def close(self) -> None: ...


class OllamaGenerator:
    """
    Generation through a local Ollama server (``/api/generate``).

    Usage::

        async with httpx.AsyncClient(base_url="http://localhost:11434") as http:
            generator = OllamaGenerator(http, model="mistral")
            text = await generator.generate("Give me three ideas", json_mode=True)
    """

    name = "ollama"

    def __init__(
        self,
        client: httpx.AsyncClient,
        model: str = "mistral",
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        """
        Args:
            client: HTTP client whose base_url points at the Ollama server.
                Its timeout bounds each attempt.
            model: Ollama model name.
            retry_backoff_seconds: Pause before the single retry.
        """
        self._client = client
        self._model = model
        self._backoff = retry_backoff_seconds

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        json_mode: bool = False,
    ) -> str:
        payload: dict[str, object] = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
        }
        if system:
            payload["system"] = system
        if json_mode:
            payload["format"] = "json"

        async def _call() -> str:
            try:
                response = await self._client.post("/api/generate", json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise ProviderError(
                    self.name, f"HTTP {e.response.status_code}: {e.response.text[:200]}"
                ) from e
            except (httpx.HTTPError, ValueError) as e:
                raise ProviderError(self.name, f"{type(e).__name__}: {e}") from e

            content = data.get("response", "") if isinstance(data, dict) else ""
            logger.info(
                "Ollama response generated (model=%s, length=%d)",
                self._model,
                len(content),
            )
            return content

        return await retry_once(_call, provider=self.name, backoff_seconds=self._backoff)

    async def health_check(self) -> bool:
        """True if the Ollama server answers."""
        try:
            response = await self._client.get("/api/tags", timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


class OpenAIGenerator:
    """Generation through the OpenAI chat completions API."""

    name = "openai"

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        self._client = client
        self._model = model
        self._backoff = retry_backoff_seconds

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        json_mode: bool = False,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        extra: dict[str, object] = {}
        if json_mode:
            extra["response_format"] = {"type": "json_object"}

        async def _call() -> str:
            try:
                completion = await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=0.7,
                    **extra,  # type: ignore[arg-type]
                )
            except APIError as e:
                raise ProviderError(self.name, str(e)) from e
            return completion.choices[0].message.content or ""

        return await retry_once(_call, provider=self.name, backoff_seconds=self._backoff)

    async def close(self) -> None:
        await self._client.close()
