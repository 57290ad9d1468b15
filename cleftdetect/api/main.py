from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from .config_loader import AppConfig, load_config
from .logging_utils import install_startup_log_buffer
from .server import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser with minimal CLI flags.

    Configuration is loaded from config/cleftdetect.json; flags only override it.
    """
    parser = argparse.ArgumentParser(
        description="Run the CleftDetect photo classification server",
        epilog="Configuration is loaded from config/cleftdetect.json. "
        "CLI arguments override config file settings.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/cleftdetect.json",
        help="Path to JSON configuration file (default: config/cleftdetect.json)",
    )
    parser.add_argument("--host", type=str, default=None, help="Override server host")
    parser.add_argument("--port", type=int, default=None, help="Override server port")
    parser.add_argument("--model", type=str, default=None, help="Override model file path")
    parser.add_argument("--labels", type=str, default=None, help="Override label list path")
    parser.add_argument(
        "--input-mode",
        choices=["float", "integer"],
        default=None,
        help="Override how pixels are scaled for the model",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> AppConfig:
    config_path = Path(args.config)
    try:
        cfg = load_config(config_path if config_path.exists() else None)
    except ValueError as exc:
        logger.error("Failed to load configuration %s: %s", config_path, exc)
        sys.exit(1)
    if not config_path.exists():
        logger.info(
            "No configuration at %s; using defaults. Copy config/cleftdetect.example.json to get started",
            config_path,
        )

    if args.host:
        cfg.server.host = args.host
    if args.port:
        cfg.server.port = args.port
    if args.model:
        cfg.model.model_path = args.model
    if args.labels:
        cfg.model.labels_path = args.labels
    if args.input_mode:
        cfg.model.input_mode = args.input_mode
    return cfg


def configure_logging() -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s"
        )


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    configure_logging()
    args = build_parser().parse_args(argv)
    cfg = resolve_config(args)
    logging.getLogger().setLevel(getattr(logging, cfg.logging.level.upper(), logging.INFO))

    startup_log = install_startup_log_buffer(
        output_dir=Path(cfg.logging.startup_log_dir),
        window_seconds=cfg.logging.startup_window_seconds,
    )

    logger.info("Server configuration: %s:%s", cfg.server.host, cfg.server.port)
    logger.info("Model: %s (labels %s, input_mode=%s)", cfg.model.model_path, cfg.model.labels_path, cfg.model.input_mode)
    logger.info("Guidance backend: %s", cfg.guidance.backend)

    app = create_app(cfg, startup_log=startup_log)
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level=cfg.logging.level.lower())


if __name__ == "__main__":
    main()
