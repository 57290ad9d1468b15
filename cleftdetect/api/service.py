from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from camera.capture import RawImage

from ..ai.classifier import ClassifierAdapter
from ..ai.model import ModelRegistry
from ..ai.normalize import normalize
from ..ai.preprocess import Preprocessor
from ..ai.types import Prediction
from ..errors import CaptureInProgress, CleftDetectError, ModelNotLoaded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = "default"

    def as_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "description": self.description,
            "variant": self.variant,
        }


MODEL_LOADED = Notification("Model Loaded", "The AI model is ready for predictions.")
MODEL_LOAD_ERROR = Notification(
    "Model Load Error",
    "Could not load the AI model. Use Reload Model to try again.",
    "destructive",
)
MODEL_NOT_READY = Notification(
    "Model Not Ready",
    "The AI model is still loading. Please wait a moment.",
    "destructive",
)
PREDICTION_ERROR = Notification(
    "Prediction Error",
    "Failed to make a prediction. Please try again.",
    "destructive",
)


@dataclass(frozen=True)
class CaptureOutcome:
    capture_id: int
    prediction: Prediction | None = None
    notification: Notification | None = None
    discarded: bool = False

    @property
    def ok(self) -> bool:
        return self.prediction is not None


@dataclass
class PredictionService:
    """Capture -> prepare -> classify -> normalize, with single-session state.

    Only one prediction is live at a time. Starting a capture clears it, and a
    run that was superseded by a retake or a newer capture is discarded when
    it finishes.
    """

    registry: ModelRegistry
    preprocessor: Preprocessor = field(default_factory=Preprocessor)
    classifier: ClassifierAdapter | None = None
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock)
    _sequence: int = field(init=False, default=0)
    _active_capture: int | None = field(init=False, default=None)
    _captured: RawImage | None = field(init=False, default=None)
    _prediction: Prediction | None = field(init=False, default=None)
    _notification: Notification | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        if self.classifier is None:
            self.classifier = ClassifierAdapter(registry=self.registry)

    @property
    def prediction(self) -> Prediction | None:
        return self._prediction

    @property
    def captured(self) -> RawImage | None:
        return self._captured

    @property
    def busy(self) -> bool:
        return self._active_capture is not None

    @property
    def notification(self) -> Notification | None:
        return self._notification

    def notify(self, notification: Notification) -> None:
        with self._lock:
            self._notification = notification

    def start_capture(self, image: RawImage) -> int:
        with self._lock:
            if not self.registry.ready:
                self._notification = MODEL_NOT_READY
                raise ModelNotLoaded(
                    f"Capture refused; model status={self.registry.status.value}"
                )
            if self._active_capture is not None:
                raise CaptureInProgress(
                    f"Capture {self._active_capture} is still being analyzed"
                )
            self._sequence += 1
            self._active_capture = self._sequence
            self._captured = image
            self._prediction = None
            self._notification = None
            capture_id = self._sequence
        logger.info(
            "Capture started id=%d content_type=%s bytes=%d",
            capture_id,
            image.content_type,
            len(image.data),
        )
        return capture_id

    def run_capture(self, capture_id: int, image: RawImage) -> CaptureOutcome:
        try:
            prediction = self._predict(image)
        except CleftDetectError as exc:
            logger.warning("Inference failed id=%d: %s", capture_id, exc)
            return self._fail(capture_id)
        except Exception:
            logger.exception("Unexpected inference failure id=%d", capture_id)
            return self._fail(capture_id)
        return self._publish(capture_id, prediction)

    def process(self, image: RawImage) -> CaptureOutcome:
        try:
            capture_id = self.start_capture(image)
        except ModelNotLoaded:
            return CaptureOutcome(capture_id=self._sequence, notification=MODEL_NOT_READY)
        return self.run_capture(capture_id, image)

    def retake(self) -> None:
        with self._lock:
            if self._active_capture is not None:
                logger.info("Retake while capture %d in flight", self._active_capture)
            self._sequence += 1
            self._active_capture = None
            self._captured = None
            self._prediction = None
            self._notification = None

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "model_status": self.registry.status.value,
                "capture_id": self._sequence,
                "busy": self._active_capture is not None,
                "captured": self._captured is not None,
                "capture_enabled": self.registry.ready and self._active_capture is None,
                "prediction": self._prediction.as_dict() if self._prediction else None,
                "notification": self._notification.as_dict() if self._notification else None,
            }

    def _predict(self, image: RawImage) -> Prediction:
        tensor = self.preprocessor.prepare(image)
        try:
            scores = self.classifier.classify(tensor)
        finally:
            tensor.release()
        labels = self.registry.require().labels
        return normalize(scores, labels)

    def _publish(self, capture_id: int, prediction: Prediction) -> CaptureOutcome:
        with self._lock:
            if capture_id != self._active_capture:
                logger.info("Discarding obsolete prediction id=%d", capture_id)
                return CaptureOutcome(capture_id=capture_id, prediction=None, discarded=True)
            self._prediction = prediction
            self._active_capture = None
        logger.info(
            "Prediction id=%d label=%s confidence=%.4f cleft=%.4f non_cleft=%.4f",
            capture_id,
            prediction.label,
            prediction.confidence,
            prediction.cleft,
            prediction.non_cleft,
        )
        return CaptureOutcome(capture_id=capture_id, prediction=prediction)

    def _fail(self, capture_id: int) -> CaptureOutcome:
        with self._lock:
            if capture_id != self._active_capture:
                return CaptureOutcome(capture_id=capture_id, discarded=True)
            self._captured = None
            self._prediction = None
            self._active_capture = None
            self._notification = PREDICTION_ERROR
        return CaptureOutcome(capture_id=capture_id, notification=PREDICTION_ERROR)


__all__ = [
    "Notification",
    "CaptureOutcome",
    "PredictionService",
    "MODEL_LOADED",
    "MODEL_LOAD_ERROR",
    "MODEL_NOT_READY",
    "PREDICTION_ERROR",
]
