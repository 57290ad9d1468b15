from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ClassScores(BaseModel):
    cleft: float = Field(..., ge=0.0, le=1.0)
    non_cleft: float = Field(..., ge=0.0, le=1.0)


class PredictionResponse(BaseModel):
    capture_id: int
    label: str = Field(..., description="Either 'Cleft' or 'Non-Cleft'")
    confidence: float = Field(..., ge=0.0, le=1.0)
    confidence_level: str = Field(..., description="high, medium or low")
    scores: ClassScores


class NotificationModel(BaseModel):
    """Toast shown by the capture page; also the body of prediction errors."""

    title: str
    description: str
    variant: str = "default"


class ModelStatusResponse(BaseModel):
    status: str
    model_path: str
    labels: list[str] = Field(default_factory=list)
    input_mode: str
    input_size: int = 224
    error: str | None = None


class GuidanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_query: str = Field(..., alias="userQuery", description="Question about taking better photos")


class GuidanceResponse(BaseModel):
    guidance: str


__all__ = [
    "ClassScores",
    "PredictionResponse",
    "NotificationModel",
    "ModelStatusResponse",
    "GuidanceRequest",
    "GuidanceResponse",
]
