from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence, Union

import numpy as np

from ..errors import InferenceError
from .model import ModelRegistry
from .types import InputTensor, RawScoreVector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingleOutput:
    tensor: Any

    def primary(self) -> Any:
        return self.tensor


@dataclass(frozen=True)
class MultipleOutputs:
    tensors: Sequence[Any]

    def primary(self) -> Any:
        # Some exported models emit auxiliary heads; the class scores are first.
        return self.tensors[0]


ModelOutput = Union[SingleOutput, MultipleOutputs]


def tag_output(raw: Any) -> ModelOutput:
    if isinstance(raw, (list, tuple)):
        if not raw:
            raise InferenceError("Model returned no outputs")
        return MultipleOutputs(tensors=tuple(raw))
    return SingleOutput(tensor=raw)


@dataclass
class ClassifierAdapter:
    """Run the loaded model on a prepared tensor and return raw scores."""

    registry: ModelRegistry

    def classify(self, tensor: InputTensor) -> RawScoreVector:
        outputs: ModelOutput | None = None
        try:
            loaded = self.registry.require()
            try:
                raw = loaded.handle.predict(tensor.data)
                outputs = tag_output(raw)
                scores = np.asarray(outputs.primary(), dtype=np.float64).ravel()
            except InferenceError:
                raise
            except Exception as exc:
                raise InferenceError(f"Model execution failed: {exc}") from exc
            if scores.size != len(loaded.labels):
                raise InferenceError(
                    f"Model returned {scores.size} scores for {len(loaded.labels)} labels"
                )
            if not np.all(np.isfinite(scores)):
                raise InferenceError("Model returned non-finite scores")
            logger.debug("Raw scores=%s", scores.tolist())
            return RawScoreVector.from_sequence(scores.tolist())
        finally:
            tensor.release()
            outputs = None


__all__ = [
    "ClassifierAdapter",
    "SingleOutput",
    "MultipleOutputs",
    "ModelOutput",
    "tag_output",
]
