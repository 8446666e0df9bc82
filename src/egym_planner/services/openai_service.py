"""
Service for OpenAI chat completion calls used by plan generation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..config import SETTINGS
from ..errors import GenerationFailed, GenerationTimedOut


class OpenAIService:
    """
    Thin chat-completions client with deterministic decoding and a hard deadline.

    Failures are classified instead of swallowed: the request deadline becomes
    ``GenerationTimedOut``, everything else becomes ``GenerationFailed``. There
    is no automatic retry. The deadline bounds the provider request itself; how
    long a caller waits for the plan is decided by the orchestrator.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else SETTINGS.OPENAI_API_KEY
        self.base_url = (base_url or SETTINGS.OPENAI_BASE_URL).rstrip("/")
        self.default_model = model or SETTINGS.OPENAI_MODEL
        self.default_timeout = timeout or SETTINGS.OPENAI_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def is_available(self) -> bool:
        """Check if OpenAI service is available."""
        return bool(self.api_key)

    async def complete(self, messages: list[dict[str, str]], model: str | None = None) -> str:
        """
        Run one chat completion at temperature 0.

        Args:
            messages: Role-tagged messages (system, developer, user)
            model: Override for the configured model

        Returns:
            Raw completion text

        Raises:
            GenerationTimedOut: the deadline passed before a response arrived
            GenerationFailed: provider, auth, rate-limit or transport failure
        """
        if not self.api_key:
            logging.error("OPENAI_API_KEY is not configured")
            raise GenerationFailed("Server is missing OpenAI API key configuration.")

        payload = {
            "model": model or self.default_model,
            "temperature": 0,
            "messages": messages,
        }

        try:
            result = await asyncio.wait_for(self._post(payload), timeout=self.default_timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logging.warning(
                "OpenAI completion exceeded %.0fs deadline: %s", self.default_timeout, e
            )
            raise GenerationTimedOut(
                "The provider did not answer before the request deadline."
            ) from e
        except httpx.HTTPStatusError as e:
            body = (e.response.text or "")[:500]
            logging.error("OpenAI API HTTP error %s: %s", e.response.status_code, body)
            raise GenerationFailed(
                "Failed to generate workout plan (OpenAI error).",
                detail={"status": e.response.status_code, "body": body},
            ) from e
        except httpx.HTTPError as e:
            logging.error("OpenAI HTTP request failed: %s", e)
            raise GenerationFailed(
                "Failed to generate workout plan (OpenAI unreachable).", detail=str(e)
            ) from e

        content = self._extract_content(result)
        logging.info("Raw OpenAI response (truncated): %s", content[:300])
        return content

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        timeout = httpx.Timeout(self.default_timeout, connect=min(30.0, self.default_timeout))
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=self._transport,
        ) as client:
            response = await client.post("/chat/completions", json=payload)
            response.raise_for_status()
            try:
                return response.json()
            except ValueError as e:
                logging.error("OpenAI returned a non-JSON body: %s", response.text[:300])
                raise GenerationFailed(
                    "Failed to generate workout plan (malformed provider response)."
                ) from e

    @staticmethod
    def _extract_content(result: dict[str, Any]) -> str:
        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logging.warning("Unexpected OpenAI response format: %s", str(result)[:300])
            raise GenerationFailed(
                "Failed to generate workout plan (unexpected provider response)."
            ) from e
        if content is None:
            return ""
        if not isinstance(content, str):
            logging.warning("OpenAI message content is %s, not text", type(content).__name__)
            raise GenerationFailed(
                "Failed to generate workout plan (unexpected provider response)."
            )
        return content
