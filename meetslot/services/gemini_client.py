# meetslot/services/gemini_client.py
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from meetslot.core.config import get_settings


class GeminiClientError(RuntimeError):
    """
    Raised when the Generative Language API is unreachable or returns an
    unusable response.
    """


class GeminiClient:
    """
    Thin wrapper around the Gemini ``generateContent`` endpoint.

    Returns plain text; prompt construction and parsing belong to the
    re-ranking strategy.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_seconds: float = 20.0,
        temperature: float = 0.05,
        max_output_tokens: int = 2000,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")

        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self._model}:generateContent"

    def _build_payload(self, system_instruction: str, prompt: str) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self._max_output_tokens,
                "temperature": self._temperature,
                "topP": 0.95,
            },
        }

    async def generate(self, system_instruction: str, prompt: str) -> str:
        """
        Send one prompt and return the text of the first candidate.
        """
        payload = self._build_payload(system_instruction, prompt)

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(
                    self.endpoint,
                    params={"key": self._api_key},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            raise GeminiClientError(f"Gemini request failed: {exc}") from exc

        if resp.status_code // 100 != 2:
            raise GeminiClientError(
                f"Gemini generateContent failed (status={resp.status_code}): {resp.text}"
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise GeminiClientError(f"Gemini response is not JSON: {resp.text[:200]}") from exc

        try:
            parts = body["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError) as exc:
            raise GeminiClientError("Gemini response did not contain any candidate text") from exc

        if not text.strip():
            raise GeminiClientError("Gemini returned an empty candidate")
        return text


def get_gemini_client() -> Optional[GeminiClient]:
    """
    Build a GeminiClient from settings, or None when no API key is configured.
    """
    settings = get_settings()
    if not settings.GEMINI_API_KEY:
        return None
    return GeminiClient(
        api_key=settings.GEMINI_API_KEY,
        model=settings.GEMINI_MODEL,
        base_url=settings.GEMINI_BASE_URL,
        timeout_seconds=settings.GEMINI_TIMEOUT_SECONDS,
    )
