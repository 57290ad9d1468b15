from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from ..errors import EmptyQuery, ServiceError

logger = logging.getLogger(__name__)

PHOTO_TIPS: tuple[str, ...] = (
    "Ensure the face is well-lit, avoiding shadows.",
    "Capture a clear, front-facing view of the person.",
    "The mouth area should be in focus and not blurry.",
    "Avoid any objects obstructing the face, like hands or pacifiers.",
    "Use a neutral background if possible.",
)


class GuidanceClient(Protocol):
    def request_guidance(self, query: str) -> str: ...


def clean_query(query: str | None) -> str:
    text = (query or "").strip()
    if not text:
        raise EmptyQuery("Guidance query is empty")
    return text


@dataclass
class GeminiGuidanceClient:
    """Ask the Google Gemini API for photo-taking advice."""

    api_key: str
    model: str = "models/gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: float = 30.0

    def request_guidance(self, query: str) -> str:
        text = clean_query(query)
        if not self.api_key:
            raise ServiceError("Gemini API key is required to request guidance")

        url = f"{self.base_url.rstrip('/')}/{self.model}:generateContent"
        logger.info("Requesting guidance model=%s query_chars=%d", self.model, len(text))
        response_data = self._send_request(url, self._build_payload(text))
        message = self._extract_message_content(response_data)
        return self._parse_message(message)

    def _send_request(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = requests.post(
                url,
                params={"key": self.api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as exc:
            logger.warning("Guidance request timed out after %.1fs", self.timeout)
            raise ServiceError("Timed out waiting for guidance response") from exc
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Guidance request failed: %s", exc)
            raise ServiceError(f"Failed to reach Gemini API: {exc}") from exc

    def _build_payload(self, query: str) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": self._build_prompt(query)}],
                }
            ],
            "generationConfig": {
                "temperature": 0.4,
                "responseMimeType": "application/json",
            },
        }

    def _build_prompt(self, query: str) -> str:
        return (
            "You are an expert in providing guidance on how to capture better photos "
            "for AI models to make more accurate predictions.\n\n"
            "The user will ask a question about how to improve their image capture "
            "technique. Provide clear, concise, and actionable instructions.\n\n"
            "Return a JSON object with a single string field 'guidance'.\n\n"
            f"User Query: {query}"
        )

    def _extract_message_content(self, data: dict[str, Any]) -> str:
        try:
            parts = data["candidates"][0]["content"]["parts"]
            return "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            logger.warning("Unexpected guidance response shape: %s", data)
            raise ServiceError("Unexpected response format from Gemini API") from exc

    def _parse_message(self, message: str) -> str:
        try:
            payload = json.loads(message)
        except json.JSONDecodeError as exc:
            raise ServiceError("Gemini API response was not valid JSON") from exc
        guidance = payload.get("guidance") if isinstance(payload, dict) else None
        if not isinstance(guidance, str) or not guidance.strip():
            raise ServiceError("Gemini API response did not include guidance")
        return guidance.strip()


@dataclass
class MockGuidanceClient:
    """Offline guidance that answers every question with the built-in tips."""

    def request_guidance(self, query: str) -> str:
        text = clean_query(query)
        tips = "\n".join(f"- {tip}" for tip in PHOTO_TIPS)
        return f"Tips for \"{text}\":\n{tips}"


__all__ = [
    "PHOTO_TIPS",
    "GuidanceClient",
    "GeminiGuidanceClient",
    "MockGuidanceClient",
    "clean_query",
]
