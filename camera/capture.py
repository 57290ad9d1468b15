from __future__ import annotations

import contextlib
import io
import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol

from PIL import Image

from cleftdetect.errors import DeviceUnavailable, PermissionDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawImage:
    """Encoded still image as handed over by an image source."""

    data: bytes
    content_type: str = "image/jpeg"
    width: int | None = None
    height: int | None = None
    channels: int | None = None

    @property
    def encoding(self) -> str:
        return self.content_type.split("/", 1)[-1]


class Camera(Protocol):
    def capture(self) -> RawImage: ...

    def release(self) -> None: ...


class StubCamera:
    """Camera stand-in that returns a sample file or a plain grey PNG."""

    def __init__(self, sample_path: pathlib.Path | None = None) -> None:
        self._sample_path = sample_path
        self._released = False
        self._fallback_payload = _placeholder_png()

    @property
    def released(self) -> bool:
        return self._released

    def capture(self) -> RawImage:
        if self._released:
            raise DeviceUnavailable("Stub camera has been released")
        if self._sample_path and self._sample_path.exists():
            suffix = self._sample_path.suffix.lstrip(".").lower() or "jpeg"
            if suffix == "jpg":
                suffix = "jpeg"
            return RawImage(
                data=self._sample_path.read_bytes(), content_type=f"image/{suffix}"
            )
        return RawImage(
            data=self._fallback_payload, content_type="image/png", width=64, height=64, channels=3
        )

    def release(self) -> None:
        self._released = True


class OpenCVCamera:
    """Capture stills from an OpenCV-compatible video device (USB/RTSP)."""

    _BACKEND_ALIASES = {
        "any": "CAP_ANY",
        "auto": "CAP_ANY",
        "v4l2": "CAP_V4L2",
        "dshow": "CAP_DSHOW",
        "directshow": "CAP_DSHOW",
        "msmf": "CAP_MSMF",
        "avfoundation": "CAP_AVFOUNDATION",
    }

    def __init__(
        self,
        source: int | str = 0,
        *,
        encoding: str = "png",
        resolution: tuple[int, int] | None = None,
        backend: str | int | None = None,
        warmup_frames: int = 2,
    ) -> None:
        try:
            import cv2  # type: ignore
        except ImportError as exc:  # pragma: no cover - depends on optional dep
            raise DeviceUnavailable("opencv-python is required for OpenCVCamera") from exc

        self._cv2 = cv2
        self._encoding = encoding.lstrip(".").lower() or "png"
        self._source = source
        _check_device_permissions(source)
        self._cap = cv2.VideoCapture(source, self._resolve_backend(backend, cv2))
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise DeviceUnavailable(f"Unable to open camera source {source!r}")
        if resolution:
            width, height = resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(width))
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(height))
        if warmup_frames > 0:
            self._warmup(warmup_frames)
        logger.info("Camera opened source=%r encoding=%s", source, self._encoding)

    def _resolve_backend(self, backend: str | int | None, cv2_module) -> int:
        if backend is None:
            return cv2_module.CAP_ANY
        if isinstance(backend, int):
            return backend
        key = backend.strip().lower()
        attr_name = self._BACKEND_ALIASES.get(key)
        if attr_name is None:
            raise ValueError(f"Unknown OpenCV backend alias: {backend!r}")
        return getattr(cv2_module, attr_name, cv2_module.CAP_ANY)

    def _warmup(self, warmup_frames: int) -> None:
        for _ in range(warmup_frames):
            ok, _ = self._cap.read()
            if not ok:
                break

    def capture(self) -> RawImage:
        if self._cap is None:
            raise DeviceUnavailable("Camera has been released")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise DeviceUnavailable("Failed to capture frame from camera")
        success, buffer = self._cv2.imencode(f".{self._encoding}", frame)
        if not success:
            raise DeviceUnavailable(f"OpenCV failed to encode frame as {self._encoding}")
        height, width = frame.shape[:2]
        channels = frame.shape[2] if frame.ndim == 3 else 1
        return RawImage(
            data=buffer.tobytes(),
            content_type=f"image/{'jpeg' if self._encoding == 'jpg' else self._encoding}",
            width=int(width),
            height=int(height),
            channels=int(channels),
        )

    def release(self) -> None:
        if getattr(self, "_cap", None) is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released source=%r", self._source)

    def __del__(self) -> None:  # pragma: no cover - destructor best effort
        try:
            self.release()
        except Exception:
            pass


def _placeholder_png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 64), (128, 128, 128)).save(buffer, format="PNG")
    return buffer.getvalue()


def _check_device_permissions(source: int | str) -> None:
    if isinstance(source, int):
        node = pathlib.Path(f"/dev/video{source}")
    elif source.startswith("/dev/"):
        node = pathlib.Path(source)
    else:
        return
    if node.exists() and not os.access(node, os.R_OK | os.W_OK):
        raise PermissionDenied(f"No permission to access camera device {node}")


@contextlib.contextmanager
def open_camera(factory: Callable[[], Camera]) -> Iterator[Camera]:
    """Open a camera and release it on every exit path."""
    camera = factory()
    try:
        yield camera
    finally:
        camera.release()


__all__ = ["RawImage", "Camera", "StubCamera", "OpenCVCamera", "open_camera"]
