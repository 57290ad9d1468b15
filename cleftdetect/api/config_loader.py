"""JSON configuration for the CleftDetect server.

The file only names the bundled assets and service endpoints. Secrets such as
the Gemini API key are read from the environment variable the file points at.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from ..ai.types import INPUT_MODES

logger = logging.getLogger(__name__)

GUIDANCE_BACKENDS = ("gemini", "mock")


@dataclass
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class ModelSettings:
    model_path: str = "model/model.tflite"
    labels_path: str = "model/labels.txt"
    # Must match the shipped model: "float" scales to [0, 1], "integer" keeps 0-255.
    input_mode: str = "float"
    input_size: int = 224
    num_threads: int = 2


@dataclass
class GuidanceSettings:
    backend: str = "gemini"
    api_key_env: str = "GEMINI_API_KEY"
    model: str = "models/gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: float = 30.0


@dataclass
class LoggingSettings:
    level: str = "INFO"
    startup_log_dir: str = "logs/startup"
    startup_window_seconds: float = 120.0


@dataclass
class AppConfig:
    server: ServerSettings = field(default_factory=ServerSettings)
    model: ModelSettings = field(default_factory=ModelSettings)
    guidance: GuidanceSettings = field(default_factory=GuidanceSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        config = cls(
            server=_build(ServerSettings, data.get("server")),
            model=_build(ModelSettings, data.get("model")),
            guidance=_build(GuidanceSettings, data.get("guidance")),
            logging=_build(LoggingSettings, data.get("logging")),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.model.input_mode not in INPUT_MODES:
            raise ValueError(
                f"model.input_mode must be one of {INPUT_MODES}, got {self.model.input_mode!r}"
            )
        if self.model.input_size <= 0:
            raise ValueError("model.input_size must be positive")
        if self.guidance.backend not in GUIDANCE_BACKENDS:
            raise ValueError(
                f"guidance.backend must be one of {GUIDANCE_BACKENDS}, got {self.guidance.backend!r}"
            )
        if not 0 < int(self.server.port) < 65536:
            raise ValueError(f"server.port out of range: {self.server.port}")


def _build(kind: type, section: Any):
    if section is None:
        return kind()
    if not isinstance(section, dict):
        raise ValueError(f"Expected an object for {kind.__name__}, got {type(section).__name__}")
    known = set(kind.__dataclass_fields__)
    unknown = sorted(set(section) - known)
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", kind.__name__, ", ".join(unknown))
    return kind(**{key: value for key, value in section.items() if key in known})


def load_config(path: str | Path | None) -> AppConfig:
    """Load configuration from ``path``; ``None`` yields the defaults.

    Raises FileNotFoundError when the path does not exist and ValueError when
    the contents are not a valid configuration.
    """
    if path is None:
        return AppConfig()
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(config_path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root in {config_path} must be an object")
    config = AppConfig.from_dict(data)
    logger.info("Loaded configuration from %s", config_path)
    return config


__all__ = [
    "AppConfig",
    "ServerSettings",
    "ModelSettings",
    "GuidanceSettings",
    "LoggingSettings",
    "load_config",
]
