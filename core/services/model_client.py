"""External language-model clients.

Every provider implements ``ModelClient`` so the generation orchestrator can
treat them uniformly: one async ``complete`` call that returns raw text or
raises ``ModelTimeout`` / ``ModelTransportError``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from core.config import Settings
from core.errors import ModelTimeout, ModelTransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionOptions:
    temperature: float = 0.75
    max_tokens: int = 2048
    timeout_ms: int = 25000

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionOptions":
        return cls(
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_ms=settings.llm_timeout_ms,
        )


class ModelClient(ABC):
    """Interface every language-model provider must implement."""

    PROVIDER = ""

    @abstractmethod
    async def complete(self, prompt: str, options: CompletionOptions) -> str:
        """Return the raw completion text for ``prompt``."""

    async def aclose(self) -> None:
        return None


class GeminiClient(ModelClient):
    """Google Generative Language REST adapter (``generateContent``)."""

    PROVIDER = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient()
        self._owns_client = http_client is None

    def _payload(self, prompt: str, options: CompletionOptions) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
                "responseMimeType": "application/json",
            },
        }

    async def complete(self, prompt: str, options: CompletionOptions) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            resp = await self._client.post(
                url,
                params={"key": self.api_key},
                json=self._payload(prompt, options),
                timeout=options.timeout_seconds,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise ModelTimeout(f"{self.PROVIDER} call exceeded {options.timeout_ms} ms") from exc
        except httpx.HTTPStatusError as exc:
            raise ModelTransportError(f"{self.PROVIDER} returned HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ModelTransportError(f"{self.PROVIDER} request failed: {exc}") from exc
        return _extract_text(data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _extract_text(data: Any) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(p.get("text", "") for p in parts)
    except (KeyError, IndexError, TypeError) as exc:
        raise ModelTransportError("Model response has no candidate text") from exc
    if not text.strip():
        raise ModelTransportError("Model returned an empty completion")
    return text


def build_model_client(settings: Settings) -> Optional[ModelClient]:
    """Return the configured client, or None when no API key is set."""
    if not settings.model_enabled:
        logger.info("LLM_API_KEY not set; generation will use rule-based plans")
        return None
    return GeminiClient(api_key=settings.llm_api_key, model=settings.llm_model, base_url=settings.llm_base_url)
