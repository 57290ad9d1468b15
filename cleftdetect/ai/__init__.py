from __future__ import annotations

from .types import CLEFT, NON_CLEFT, InputTensor, Prediction, RawScoreVector

__all__ = [
    "CLEFT",
    "NON_CLEFT",
    "InputTensor",
    "Prediction",
    "RawScoreVector",
    "Preprocessor",
    "ModelRegistry",
    "ClassifierAdapter",
    "normalize",
    "GeminiGuidanceClient",
    "MockGuidanceClient",
]


def __getattr__(name: str):
    if name == "Preprocessor":
        from .preprocess import Preprocessor

        return Preprocessor
    if name == "ModelRegistry":
        from .model import ModelRegistry

        return ModelRegistry
    if name == "ClassifierAdapter":
        from .classifier import ClassifierAdapter

        return ClassifierAdapter
    if name == "normalize":
        from .normalize import normalize

        return normalize
    if name == "GeminiGuidanceClient":
        from .guidance import GeminiGuidanceClient

        return GeminiGuidanceClient
    if name == "MockGuidanceClient":
        from .guidance import MockGuidanceClient

        return MockGuidanceClient
    raise AttributeError(f"module 'cleftdetect.ai' has no attribute {name!r}")
