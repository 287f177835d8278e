# backend/services/generation_client.py

"""
Text-generation adapter used for every per-recipient rewrite.

``GeminiGenerationClient`` is a thin async wrapper around the Gemini
``models/{model}:generateContent`` REST endpoint. It is the only place in the
backend that makes a call to the generation service.

Caller contract
---------------
``generate()`` either returns a non-empty rewritten string or raises
``GenerationError``. There is no retry: the send pipeline treats any failure as
terminal for that message attempt.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from backend.core.errors import GenerationError

logger = logging.getLogger(__name__)


class GenerationClient(Protocol):
    async def generate(self, system_instruction: str, input_text: str) -> str: ...


class GeminiGenerationClient:
    """
    Async client for the Gemini REST API.

    Attributes:
        model: Model identifier sent with every request (e.g. "gemini-2.5-flash")
        api_base: Base URL up to and including the API version
        timeout: Per-request timeout in seconds

    The underlying ``httpx.AsyncClient`` is created lazily and reused across
    calls; ``close()`` must be awaited on shutdown.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def generate(self, system_instruction: str, input_text: str) -> str:
        """
        Rewrite ``input_text`` following ``system_instruction``.

        Args:
            system_instruction: Natural-language description of the rewrite
            input_text: The sender's original message

        Returns:
            str: The rewritten text, stripped

        Raises:
            GenerationError: transport failure, timeout, non-2xx status
                (429 marks ``rate_limited``), malformed body or blank output
        """
        payload = self._build_payload(system_instruction, input_text)

        try:
            response = await self._get_client().post(
                self.endpoint,
                json=payload,
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.TimeoutException as exc:
            logger.warning(f"Generation request timed out after {self.timeout:.1f}s (model={self.model})")
            raise GenerationError("Generation request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Generation request failed: {exc}")
            raise GenerationError(f"Generation request failed: {exc}") from exc

        if response.status_code != 200:
            logger.error(f"Generation service returned HTTP {response.status_code}: {response.text[:200]}")
            raise GenerationError(
                f"Generation service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError("Generation service returned a non-JSON body") from exc

        text = self._extract_text(data)
        if not text:
            raise GenerationError("Generation service returned no text")
        return text

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _build_payload(self, system_instruction: str, input_text: str) -> dict:
        return {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [{"role": "user", "parts": [{"text": input_text}]}],
        }

    @staticmethod
    def _extract_text(data: Any) -> str:
        """Concatenate the text parts of the first candidate; "" when absent."""
        if not isinstance(data, dict):
            return ""
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return ""
        content = candidates[0].get("content")
        if not isinstance(content, dict):
            return ""
        parts = content.get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        return text.strip()
