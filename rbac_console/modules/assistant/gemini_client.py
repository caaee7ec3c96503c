"""Gemini client over the OpenAI-compatible chat completions endpoint.

Gemini exposes ``{base_url}/chat/completions`` with the OpenAI request shape,
so a plain aiohttp POST is enough; no SDK dependency.
"""

import logging
from typing import Any, Dict, Optional

import aiohttp

from rbac_console.config.settings import Settings, settings

logger = logging.getLogger(__name__)


class GeminiError(Exception):
    """The model could not be reached or returned an unusable payload."""


class GeminiClient:
    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        temperature: float = 0.1,
        top_p: float = 1.0,
        max_output_tokens: int = 2048,
        timeout_seconds: int = 30,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._top_p = top_p
        self._max_output_tokens = max_output_tokens
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @classmethod
    def from_settings(cls, config: Settings) -> "GeminiClient":
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            base_url=config.gemini_base_url,
            temperature=config.gemini_temperature,
            top_p=config.gemini_top_p,
            max_output_tokens=config.gemini_max_output_tokens,
            timeout_seconds=config.gemini_timeout_seconds,
        )

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    def _request_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature,
            "top_p": self._top_p,
            "max_tokens": self._max_output_tokens,
        }

    async def generate(self, prompt: str) -> str:
        """Send a single-turn prompt and return the text of the first choice."""
        if not self.available:
            raise GeminiError("Google Gemini API key is not configured")

        url = f"{self._base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with aiohttp.ClientSession(timeout=self._timeout, headers=headers) as session:
                async with session.post(url, json=self._request_body(prompt)) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        raise GeminiError(f"Gemini API error {resp.status}: {error_text[:300]}")
                    data = await resp.json()
        except aiohttp.ClientError as e:
            raise GeminiError(f"Gemini API request failed: {e}") from e
        except TimeoutError as e:
            raise GeminiError("Gemini API request timed out") from e

        return self.extract_text(data)

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        try:
            choice = data["choices"][0]
            content = choice["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GeminiError("Gemini API returned no choices") from e
        if isinstance(content, list):
            # Some responses split content into typed parts
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        if not content:
            finish_reason = choice.get("finish_reason")
            raise GeminiError(f"Gemini API returned an empty response (finish_reason={finish_reason})")
        return content


_client: Optional[GeminiClient] = None


def get_gemini_client() -> GeminiClient:
    global _client
    if _client is None:
        _client = GeminiClient.from_settings(settings)
        logger.info("Gemini client configured for model %s (available=%s)", _client.model, _client.available)
    return _client
