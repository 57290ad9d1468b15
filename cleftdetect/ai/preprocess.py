from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

try:
    _RESAMPLE = Image.Resampling.BILINEAR  # type: ignore[attr-defined]
except AttributeError:  # pragma: no cover - Pillow < 9 fallback
    _RESAMPLE = Image.BILINEAR  # type: ignore[attr-defined]

from camera.capture import RawImage

from ..errors import DecodeError
from .types import INPUT_MODES, InputTensor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Preprocessor:
    """Turn an encoded image into the batched RGB tensor the model expects.

    ``input_mode`` follows the shipped model: ``"float"`` scales channels to
    [0, 1], ``"integer"`` keeps them as uint8 in 0-255.
    """

    input_size: int = 224
    input_mode: str = "float"

    def __post_init__(self) -> None:
        if self.input_mode not in INPUT_MODES:
            raise ValueError(f"input_mode must be one of {INPUT_MODES}, got {self.input_mode!r}")
        if self.input_size <= 0:
            raise ValueError("input_size must be positive")

    def prepare(self, raw: RawImage) -> InputTensor:
        image = self._decode(raw)
        resized = image.resize((self.input_size, self.input_size), _RESAMPLE)
        pixels = np.asarray(resized, dtype=np.uint8)
        if self.input_mode == "float":
            array = pixels.astype(np.float32) / 255.0
        else:
            array = pixels.copy()
        batch = np.expand_dims(array, axis=0)
        logger.debug(
            "Prepared tensor source=%sx%s shape=%s dtype=%s",
            image.width,
            image.height,
            batch.shape,
            batch.dtype,
        )
        return InputTensor(array=batch, mode=self.input_mode)

    def _decode(self, raw: RawImage) -> Image.Image:
        if not raw.data:
            raise DecodeError("Image payload is empty")
        try:
            with Image.open(io.BytesIO(raw.data)) as img:
                img.load()
                return img.convert("RGB")
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as exc:
            raise DecodeError(f"Could not decode {raw.content_type} image: {exc}") from exc


__all__ = ["Preprocessor"]
