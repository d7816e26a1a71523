"""
Text Generator Tests

Ollama adapter against ``httpx.MockTransport``; OpenAI adapter against
a mocked client; code-fence stripping.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from brainboard.core.exceptions import ProviderError
from brainboard.services.llm import OllamaGenerator, OpenAIGenerator, strip_code_fences


def _ollama(handler) -> OllamaGenerator:
    client = httpx.AsyncClient(
        base_url="http://ollama.test", transport=httpx.MockTransport(handler)
    )
    return OllamaGenerator(client, model="mistral", retry_backoff_seconds=0)


class TestOllamaGenerator:
    @pytest.mark.asyncio
    async def test_generate_posts_payload(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/generate"
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"response": '{"suggestions": []}'})

        generator = _ollama(handler)
        text = await generator.generate("prompt", system="be brief", json_mode=True)
        await generator.close()

        assert text == '{"suggestions": []}'
        assert seen == [
            {
                "model": "mistral",
                "prompt": "prompt",
                "stream": False,
                "system": "be brief",
                "format": "json",
            }
        ]

    @pytest.mark.asyncio
    async def test_plain_mode_has_no_format(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"response": "hello"})

        generator = _ollama(handler)
        assert await generator.generate("prompt") == "hello"
        assert "format" not in seen[0]
        assert "system" not in seen[0]

    @pytest.mark.asyncio
    async def test_retries_once_on_server_error(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                return httpx.Response(503, text="loading model")
            return httpx.Response(200, json={"response": "ok"})

        generator = _ollama(handler)

        assert await generator.generate("prompt") == "ok"
        assert calls["n"] == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        generator = _ollama(handler)

        with pytest.raises(ProviderError, match="HTTP 500"):
            await generator.generate("prompt")

    @pytest.mark.asyncio
    async def test_connection_error_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        generator = _ollama(handler)

        with pytest.raises(ProviderError, match="ConnectError"):
            await generator.generate("prompt")

    @pytest.mark.asyncio
    async def test_health_check(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": []})

        assert await _ollama(handler).health_check() is True


class TestOpenAIGenerator:
    @pytest.mark.asyncio
    async def test_json_mode_sets_response_format(self):
        message = type("Message", (), {"content": '{"themes": []}'})
        completion = type("Completion", (), {"choices": [type("Choice", (), {"message": message})]})
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=completion)
        generator = OpenAIGenerator(client, model="gpt-4o-mini", retry_backoff_seconds=0)

        text = await generator.generate("summarize", system="sys", json_mode=True)

        assert text == '{"themes": []}'
        _, kwargs = client.chat.completions.create.call_args
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["messages"][1] == {"role": "user", "content": "summarize"}


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences("```\n[1, 2]\n```") == "[1, 2]"

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'
