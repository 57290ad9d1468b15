from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from camera.files import load_upload

from ..ai.guidance import GeminiGuidanceClient, GuidanceClient, MockGuidanceClient
from ..ai.model import ModelLoader, ModelRegistry, ModelStatus, load_tflite_model
from ..ai.preprocess import Preprocessor
from ..errors import CaptureInProgress, EmptyQuery, InvalidFormat, ModelNotLoaded, ServiceError
from ..web import register_ui
from .config_loader import AppConfig, GuidanceSettings
from .logging_utils import StartupLogBuffer
from .schemas import (
    ClassScores,
    GuidanceRequest,
    GuidanceResponse,
    ModelStatusResponse,
    NotificationModel,
    PredictionResponse,
)
from .service import (
    MODEL_LOAD_ERROR,
    MODEL_LOADED,
    MODEL_NOT_READY,
    PREDICTION_ERROR,
    Notification,
    PredictionService,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_FILE = Notification(
    "Unsupported File", InvalidFormat.user_message, "destructive"
)
ANALYSIS_IN_PROGRESS = Notification(
    "Analysis In Progress", CaptureInProgress.user_message, "destructive"
)
CAPTURE_SUPERSEDED = Notification(
    "Capture Replaced", "This photo was replaced by a newer capture.", "default"
)


def _notification_error(status_code: int, notification: Notification) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"notification": NotificationModel(**notification.as_dict()).model_dump()},
    )


def build_guidance_client(settings: GuidanceSettings) -> GuidanceClient:
    if settings.backend == "mock":
        return MockGuidanceClient()
    api_key = os.environ.get(settings.api_key_env, "")
    if not api_key:
        logger.warning(
            "Environment variable %s is not set; using offline guidance",
            settings.api_key_env,
        )
        return MockGuidanceClient()
    return GeminiGuidanceClient(
        api_key=api_key,
        model=settings.model,
        base_url=settings.base_url,
        timeout=settings.timeout,
    )


def create_app(
    config: AppConfig | None = None,
    *,
    registry: ModelRegistry | None = None,
    model_loader: ModelLoader | None = None,
    guidance_client: GuidanceClient | None = None,
    startup_log: StartupLogBuffer | None = None,
) -> FastAPI:
    cfg = config or AppConfig()
    model_registry = registry or ModelRegistry(
        model_path=Path(cfg.model.model_path),
        labels_path=Path(cfg.model.labels_path),
        input_mode=cfg.model.input_mode,
        input_size=cfg.model.input_size,
        loader=model_loader
        or functools.partial(load_tflite_model, num_threads=cfg.model.num_threads),
    )
    preprocessor = Preprocessor(
        input_size=model_registry.input_size, input_mode=model_registry.input_mode
    )
    service = PredictionService(registry=model_registry, preprocessor=preprocessor)
    guidance = guidance_client or build_guidance_client(cfg.guidance)

    app = FastAPI(title="CleftDetect API", version="0.1.0")
    app.state.config = cfg
    app.state.registry = model_registry
    app.state.service = service
    app.state.guidance_client = guidance

    logger.info(
        "API server initialised model=%s labels=%s input_mode=%s guidance=%s",
        model_registry.model_path,
        model_registry.labels_path,
        model_registry.input_mode,
        guidance.__class__.__name__,
    )

    async def _load_model() -> ModelStatus:
        status = await run_in_threadpool(model_registry.load)
        service.notify(MODEL_LOADED if status is ModelStatus.READY else MODEL_LOAD_ERROR)
        return status

    @app.on_event("startup")
    async def _startup() -> None:
        status = await _load_model()
        if startup_log is not None:
            path = startup_log.finish(outcome=status.value)
            if path is not None:
                logger.info("Startup logs written to %s", path)

    @app.get("/health", response_model=dict[str, str])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok", "model": model_registry.status.value}

    @app.get("/v1/model", response_model=ModelStatusResponse)
    def model_status() -> ModelStatusResponse:
        return ModelStatusResponse(**model_registry.describe())

    @app.post("/v1/model/reload", response_model=ModelStatusResponse)
    async def reload_model() -> ModelStatusResponse:
        if model_registry.status is ModelStatus.LOADING:
            raise HTTPException(status_code=409, detail="Model is already loading")
        await _load_model()
        return ModelStatusResponse(**model_registry.describe())

    @app.post("/v1/predictions", response_model=PredictionResponse)
    async def create_prediction(
        file: UploadFile = File(..., description="Photo to classify"),
    ) -> PredictionResponse:
        data = await file.read()
        try:
            image = load_upload(data, file.content_type, file.filename)
        except InvalidFormat as exc:
            logger.info("Rejected upload filename=%s: %s", file.filename, exc)
            raise _notification_error(415, UNSUPPORTED_FILE) from exc

        try:
            capture_id = service.start_capture(image)
        except ModelNotLoaded as exc:
            raise _notification_error(503, MODEL_NOT_READY) from exc
        except CaptureInProgress as exc:
            raise _notification_error(409, ANALYSIS_IN_PROGRESS) from exc

        outcome = await run_in_threadpool(service.run_capture, capture_id, image)
        if outcome.discarded:
            raise _notification_error(409, CAPTURE_SUPERSEDED)
        if outcome.prediction is None:
            raise _notification_error(422, outcome.notification or PREDICTION_ERROR)

        prediction = outcome.prediction
        return PredictionResponse(
            capture_id=outcome.capture_id,
            label=prediction.label,
            confidence=prediction.confidence,
            confidence_level=prediction.confidence_level,
            scores=ClassScores(cleft=prediction.cleft, non_cleft=prediction.non_cleft),
        )

    @app.post("/v1/retake", response_model=dict[str, Any])
    def retake() -> dict[str, Any]:
        service.retake()
        return service.snapshot()

    @app.post("/v1/guidance", response_model=GuidanceResponse)
    async def request_guidance(payload: GuidanceRequest) -> GuidanceResponse:
        try:
            text = await run_in_threadpool(guidance.request_guidance, payload.user_query)
        except EmptyQuery as exc:
            raise HTTPException(status_code=400, detail=exc.user_message) from exc
        except ServiceError as exc:
            logger.warning("Guidance request failed: %s", exc)
            raise HTTPException(status_code=502, detail=ServiceError.user_message) from exc
        return GuidanceResponse(guidance=text)

    register_ui(app)

    return app


__all__ = ["create_app", "build_guidance_client"]
