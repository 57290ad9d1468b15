from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import numpy as np

from ..errors import ModelLoadError, ModelNotLoaded
from .labels import LabelMap, load_label_map
from .types import ModelHandle

logger = logging.getLogger(__name__)


class ModelStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    LOAD_FAILED = "load_failed"


class TFLiteModel:
    """Thin wrapper over a TFLite interpreter exposing ``predict``."""

    def __init__(self, interpreter: Any) -> None:
        self._interpreter = interpreter
        self._interpreter.allocate_tensors()
        self._input = interpreter.get_input_details()[0]
        self._outputs = interpreter.get_output_details()
        self._lock = threading.Lock()

    @property
    def input_dtype(self) -> np.dtype:
        return np.dtype(self._input["dtype"])

    @property
    def input_shape(self) -> tuple[int, ...]:
        return tuple(int(v) for v in self._input["shape"])

    @property
    def output_size(self) -> int:
        return int(self._outputs[0]["shape"][-1])

    def predict(self, tensor: np.ndarray) -> np.ndarray | list[np.ndarray]:
        with self._lock:
            self._interpreter.set_tensor(
                self._input["index"], tensor.astype(self.input_dtype, copy=False)
            )
            self._interpreter.invoke()
            outputs = [self._read_output(detail) for detail in self._outputs]
        return outputs[0] if len(outputs) == 1 else outputs

    def _read_output(self, detail: dict[str, Any]) -> np.ndarray:
        value = np.array(self._interpreter.get_tensor(detail["index"]))
        scale, zero_point = detail.get("quantization", (0.0, 0))
        if np.issubdtype(value.dtype, np.integer) and scale:
            return (value.astype(np.float32) - zero_point) * scale
        return value


def load_tflite_model(path: Path, num_threads: int = 2) -> TFLiteModel:
    if not path.exists():
        raise ModelLoadError(f"Model file not found: {path}")
    try:
        import tflite_runtime.interpreter as tflite  # type: ignore
    except ImportError:
        try:
            import tensorflow.lite as tflite  # type: ignore
        except ImportError as exc:  # pragma: no cover - depends on optional dep
            raise ModelLoadError(
                "tflite-runtime (or tensorflow) is required to load the model"
            ) from exc
    interpreter = tflite.Interpreter(model_path=str(path), num_threads=num_threads)
    return TFLiteModel(interpreter)


@dataclass(frozen=True)
class LoadedModel:
    handle: ModelHandle
    labels: LabelMap


ModelLoader = Callable[[Path], ModelHandle]


class ModelRegistry:
    """Process-wide model and label state, loaded once and read-only afterwards."""

    def __init__(
        self,
        model_path: Path,
        labels_path: Path,
        *,
        input_mode: str = "float",
        input_size: int = 224,
        loader: ModelLoader | None = None,
    ) -> None:
        self.model_path = model_path
        self.labels_path = labels_path
        self.input_mode = input_mode
        self.input_size = input_size
        self._loader: ModelLoader = loader or load_tflite_model
        self._lock = threading.Lock()
        self._status = ModelStatus.UNINITIALIZED
        self._loaded: LoadedModel | None = None
        self._last_error: str | None = None

    @property
    def status(self) -> ModelStatus:
        return self._status

    @property
    def ready(self) -> bool:
        return self._status is ModelStatus.READY

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def labels(self) -> LabelMap | None:
        return self._loaded.labels if self._loaded else None

    def load(self) -> ModelStatus:
        with self._lock:
            if self._status is ModelStatus.READY:
                return self._status
            self._status = ModelStatus.LOADING
            self._last_error = None
            logger.info(
                "Loading model=%s labels=%s input_mode=%s",
                self.model_path,
                self.labels_path,
                self.input_mode,
            )
            try:
                labels = load_label_map(self.labels_path)
                handle = self._loader(self.model_path)
                self._validate(handle, labels)
            except Exception as exc:
                self._status = ModelStatus.LOAD_FAILED
                self._last_error = str(exc)
                logger.exception("Model load failed: %s", exc)
                return self._status
            self._loaded = LoadedModel(handle=handle, labels=labels)
            self._status = ModelStatus.READY
            logger.info("Model ready labels=%s", list(labels.names))
            return self._status

    def require(self) -> LoadedModel:
        loaded = self._loaded
        if self._status is not ModelStatus.READY or loaded is None:
            raise ModelNotLoaded(f"Model is not ready (status={self._status.value})")
        return loaded

    def _validate(self, handle: ModelHandle, labels: LabelMap) -> None:
        output_size = getattr(handle, "output_size", None)
        if output_size is not None and int(output_size) != len(labels):
            raise ModelLoadError(
                f"Label list has {len(labels)} entries but model outputs {output_size} scores"
            )
        input_shape = getattr(handle, "input_shape", None)
        expected_shape = (1, self.input_size, self.input_size, 3)
        if input_shape is not None and tuple(int(v) for v in input_shape) != expected_shape:
            raise ModelLoadError(
                f"Model expects input shape {tuple(input_shape)} but images are prepared as {expected_shape}"
            )
        input_dtype = getattr(handle, "input_dtype", None)
        if input_dtype is None:
            return
        expects_integer = np.issubdtype(np.dtype(input_dtype), np.integer)
        if expects_integer != (self.input_mode == "integer"):
            raise ModelLoadError(
                f"Model expects {np.dtype(input_dtype).name} input but input_mode is {self.input_mode!r}"
            )

    def describe(self) -> dict[str, Any]:
        labels = self.labels
        return {
            "status": self._status.value,
            "model_path": str(self.model_path),
            "labels": list(labels.names) if labels else [],
            "input_mode": self.input_mode,
            "input_size": self.input_size,
            "error": self._last_error,
        }


__all__ = [
    "ModelStatus",
    "ModelRegistry",
    "LoadedModel",
    "TFLiteModel",
    "load_tflite_model",
]
