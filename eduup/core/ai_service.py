import logging
from typing import Any, Optional

import requests

from eduup.core.config import settings

logger = logging.getLogger(__name__)

_GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class AIServiceError(RuntimeError):
    """The generative model could not produce an answer."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AIQuotaExceededError(AIServiceError):
    """The provider rejected the call because of rate limits or quota."""


def looks_like_quota_error(status_code: Optional[int], message: str) -> bool:
    lowered = (message or "").lower()
    return status_code == 429 or "429" in lowered or "quota" in lowered


def _extract_text(data: dict[str, Any]) -> str:
    for candidate in data.get("candidates") or []:
        content = candidate.get("content") or {}
        parts = content.get("parts") or []
        texts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        combined = "".join(texts).strip()
        if combined:
            return combined
    return ""


def call_gemini(prompt: str, model: Optional[str] = None, temperature: Optional[float] = None) -> str:
    """
    Sends a single-turn prompt to Gemini and returns the text of the answer.

    An answer without text comes back as an empty string.

    Raises:
        AIQuotaExceededError: HTTP 429 or a quota message from the provider.
        AIServiceError: any other transport or provider failure.
    """
    api_key = settings.GEMINI_API_KEY
    if not api_key:
        raise AIServiceError("GEMINI_API_KEY is not configured")

    model_name = model or settings.GEMINI_MODEL
    payload: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
    if temperature is not None:
        payload["generationConfig"] = {"temperature": temperature}

    try:
        response = requests.post(
            _GEMINI_ENDPOINT.format(model=model_name),
            params={"key": api_key},
            json=payload,
            timeout=settings.GEMINI_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.HTTPError as exc:
        status_code = exc.response.status_code if exc.response is not None else None
        detail = exc.response.text if exc.response is not None else str(exc)
        logger.error("Gemini API error (%s): %s", status_code, detail)
        if looks_like_quota_error(status_code, detail):
            raise AIQuotaExceededError(detail, status_code=429) from exc
        raise AIServiceError(detail or str(exc), status_code=status_code) from exc
    except requests.RequestException as exc:
        logger.error("Gemini request failed: %s", exc)
        if looks_like_quota_error(None, str(exc)):
            raise AIQuotaExceededError(str(exc), status_code=429) from exc
        raise AIServiceError(str(exc)) from exc

    try:
        data = response.json()
    except ValueError as exc:
        logger.error("Gemini returned invalid JSON: %s", response.text[:200])
        raise AIServiceError("Invalid response from Gemini") from exc

    text = _extract_text(data if isinstance(data, dict) else {})
    if not text:
        logger.warning("Gemini answered without text: %s", data)
    return text
