from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

import requests

from camera.capture import RawImage
from cleftdetect.errors import (
    CaptureInProgress,
    CleftDetectError,
    EmptyQuery,
    InferenceError,
    InvalidFormat,
    ModelNotLoaded,
    ServiceError,
)
from cleftdetect.ai.guidance import clean_query

_STATUS_ERRORS: Dict[int, type[CleftDetectError]] = {
    409: CaptureInProgress,
    415: InvalidFormat,
    422: InferenceError,
    503: ModelNotLoaded,
}


@dataclass
class CleftDetectHttpClient:
    """Submit captures and guidance questions to a running CleftDetect server."""

    base_url: str
    timeout: float = 30.0
    session: requests.Session = field(default_factory=requests.Session)

    def classify(self, image: RawImage, filename: str = "capture") -> Dict[str, Any]:
        extension = image.encoding or "jpeg"
        files = {"file": (f"{filename}.{extension}", image.data, image.content_type)}
        try:
            response = self.session.post(
                self._url("/v1/predictions"), files=files, timeout=self.timeout
            )
        except requests.Timeout as exc:  # pragma: no cover - network conditions
            raise InferenceError("Timed out waiting for prediction response") from exc
        except requests.RequestException as exc:  # pragma: no cover - network conditions
            raise InferenceError(f"Failed to call CleftDetect API: {exc}") from exc
        if response.status_code != 200:
            raise self._error_for(response)
        return response.json()

    def retake(self) -> Dict[str, Any]:
        response = self.session.post(self._url("/v1/retake"), timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def request_guidance(self, query: str) -> str:
        text = clean_query(query)
        try:
            response = self.session.post(
                self._url("/v1/guidance"),
                json={"userQuery": text},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:  # pragma: no cover - network conditions
            raise ServiceError(f"Failed to call CleftDetect API: {exc}") from exc
        if response.status_code == 400:
            raise EmptyQuery(str(self._detail(response)))
        if response.status_code != 200:
            raise ServiceError(str(self._detail(response)))
        return str(response.json()["guidance"])

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def _detail(self, response: requests.Response) -> Any:
        try:
            return response.json().get("detail")
        except ValueError:
            return response.text

    def _error_for(self, response: requests.Response) -> CleftDetectError:
        detail = self._detail(response)
        message = detail
        if isinstance(detail, dict) and isinstance(detail.get("notification"), dict):
            notification = detail["notification"]
            message = f"{notification.get('title')}: {notification.get('description')}"
        error_type = _STATUS_ERRORS.get(response.status_code, CleftDetectError)
        return error_type(f"HTTP {response.status_code}: {message}")


__all__ = ["CleftDetectHttpClient"]
