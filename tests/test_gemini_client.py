"""Unit tests for the Gemini chat-completions client."""

from __future__ import annotations

from typing import Any

import aiohttp
import pytest
from unittest.mock import patch

from rbac_console.config.settings import Settings
from rbac_console.modules.assistant.gemini_client import GeminiClient, GeminiError


class _FakeResponse:
    def __init__(self, status: int, payload: Any) -> None:
        self.status = status
        self._payload = payload

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False

    async def json(self) -> Any:
        return self._payload

    async def text(self) -> str:
        return str(self._payload)


class _FakeSession:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.init_kwargs: dict[str, Any] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, **kwargs: Any) -> _FakeSession:
        self.init_kwargs = kwargs
        return self

    async def __aenter__(self) -> _FakeSession:
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False

    def post(self, url: str, json: dict[str, Any]) -> _FakeResponse:
        self.calls.append((url, json))
        if self.error:
            raise self.error
        return self.response


def _client(api_key: str = "test-key") -> GeminiClient:
    return GeminiClient(api_key, "gemini-1.5-flash", "https://gemini.test/v1beta/openai/", temperature=0.1, top_p=1.0)


def _completion(content: Any) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}]}


class TestGenerate:
    @pytest.mark.asyncio
    async def test_posts_chat_completion(self) -> None:
        session = _FakeSession(_FakeResponse(200, _completion('{"type": "unknown"}')))
        with patch("rbac_console.modules.assistant.gemini_client.aiohttp.ClientSession", session):
            text = await _client().generate("hello")

        assert text == '{"type": "unknown"}'
        url, body = session.calls[0]
        assert url == "https://gemini.test/v1beta/openai/chat/completions"
        assert body["model"] == "gemini-1.5-flash"
        assert body["messages"] == [{"role": "user", "content": "hello"}]
        assert body["temperature"] == 0.1
        assert body["max_tokens"] == 2048
        assert session.init_kwargs["headers"]["Authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        session = _FakeSession(_FakeResponse(429, {"error": "quota"}))
        with patch("rbac_console.modules.assistant.gemini_client.aiohttp.ClientSession", session):
            with pytest.raises(GeminiError, match="Gemini API error 429"):
                await _client().generate("hello")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
        with patch("rbac_console.modules.assistant.gemini_client.aiohttp.ClientSession", session):
            with pytest.raises(GeminiError, match="request failed"):
                await _client().generate("hello")

    @pytest.mark.asyncio
    async def test_missing_key(self) -> None:
        with pytest.raises(GeminiError, match="not configured"):
            await _client(api_key="").generate("hello")


class TestExtractText:
    def test_content_parts_joined(self) -> None:
        data = _completion([{"type": "text", "text": "{\"a\":"}, {"type": "text", "text": " 1}"}])
        assert GeminiClient.extract_text(data) == '{"a": 1}'

    def test_no_choices(self) -> None:
        with pytest.raises(GeminiError, match="no choices"):
            GeminiClient.extract_text({"choices": []})

    def test_empty_content(self) -> None:
        with pytest.raises(GeminiError, match="finish_reason=stop"):
            GeminiClient.extract_text(_completion(""))


class TestSettings:
    def test_legacy_env_name_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOOGLE_GEMINI_API_KEY", "from-env")
        config = Settings(_env_file=None)
        assert config.gemini_api_key == "from-env"
        assert config.ai_enabled is True
        assert GeminiClient.from_settings(config).available is True

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GOOGLE_GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        config = Settings(_env_file=None)
        assert config.gemini_model == "gemini-1.5-flash"
        assert config.gemini_temperature == 0.1
        assert config.gemini_max_output_tokens == 2048
        assert config.ai_context_ttl_seconds == 30
        assert config.ai_enabled is False
