from __future__ import annotations


class CleftDetectError(Exception):
    """Base class for failures that are reported to the user."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class AcquisitionError(CleftDetectError):
    user_message = "Could not acquire an image."


class PermissionDenied(AcquisitionError):
    user_message = "Camera access denied. Please enable camera permissions and retry."


class DeviceUnavailable(AcquisitionError):
    user_message = "Camera not supported or not available on this device."


class InvalidFormat(AcquisitionError):
    user_message = "Please choose an image file (JPEG, PNG, ...)."


class DecodeError(CleftDetectError):
    user_message = "The image could not be read. Please try another photo."


class ModelNotLoaded(CleftDetectError):
    user_message = "The AI model is still loading. Please wait a moment."


class ModelLoadError(CleftDetectError):
    user_message = "Could not load the AI model. Use Reload Model to try again."


class InferenceError(CleftDetectError):
    user_message = "Failed to make a prediction. Please try again."


class CaptureInProgress(CleftDetectError):
    user_message = "An image is already being analyzed. Please wait."


class ServiceError(CleftDetectError):
    user_message = "Failed to get guidance. Please check your connection and try again."


class EmptyQuery(CleftDetectError, ValueError):
    user_message = "Enter a question to get advice."


__all__ = [
    "CleftDetectError",
    "AcquisitionError",
    "PermissionDenied",
    "DeviceUnavailable",
    "InvalidFormat",
    "DecodeError",
    "ModelNotLoaded",
    "ModelLoadError",
    "InferenceError",
    "CaptureInProgress",
    "ServiceError",
    "EmptyQuery",
]
