from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import numpy as np

CLEFT = "Cleft"
NON_CLEFT = "Non-Cleft"
CLASSES: tuple[str, str] = (CLEFT, NON_CLEFT)

# Bands used to colour the confidence bar in the UI.
HIGH_CONFIDENCE_THRESHOLD: float = 0.8
MEDIUM_CONFIDENCE_THRESHOLD: float = 0.6

INPUT_MODES = ("float", "integer")


class ModelHandle(Protocol):
    def predict(self, tensor: np.ndarray) -> Any: ...


@dataclass(frozen=True)
class RawScoreVector:
    """Raw per-class scores, indexed in label-list order."""

    values: tuple[float, ...]

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "RawScoreVector":
        return cls(values=tuple(float(v) for v in values))

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class Prediction:
    label: str
    confidence: float
    cleft: float
    non_cleft: float

    @property
    def confidence_level(self) -> str:
        if self.confidence > HIGH_CONFIDENCE_THRESHOLD:
            return "high"
        if self.confidence > MEDIUM_CONFIDENCE_THRESHOLD:
            return "medium"
        return "low"

    def as_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "confidence_level": self.confidence_level,
            "scores": {"cleft": self.cleft, "non_cleft": self.non_cleft},
        }


@dataclass
class InputTensor:
    """Batched model input; must be released once the model has consumed it."""

    array: np.ndarray | None
    mode: str = "float"
    _released: bool = field(default=False, init=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.data.shape)

    @property
    def data(self) -> np.ndarray:
        if self._released or self.array is None:
            raise RuntimeError("Input tensor has already been released")
        return self.array

    def release(self) -> None:
        self.array = None
        self._released = True

    def __enter__(self) -> "InputTensor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


__all__ = [
    "CLEFT",
    "NON_CLEFT",
    "CLASSES",
    "HIGH_CONFIDENCE_THRESHOLD",
    "MEDIUM_CONFIDENCE_THRESHOLD",
    "INPUT_MODES",
    "ModelHandle",
    "RawScoreVector",
    "Prediction",
    "InputTensor",
]
