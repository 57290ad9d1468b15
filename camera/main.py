from __future__ import annotations

import argparse
import platform
import sys
from pathlib import Path
from typing import Any, Dict

from cleftdetect.api.client import CleftDetectHttpClient
from cleftdetect.errors import CleftDetectError

from camera.capture import OpenCVCamera, RawImage, StubCamera, open_camera
from camera.files import load_image_file


def parse_resolution(value: str | None) -> tuple[int, int] | None:
    if value is None:
        return None
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError("resolution must be WIDTHxHEIGHT")
    width, height = parts
    try:
        return int(width), int(height)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("resolution must be numeric") from exc


def parse_backend(value: str | None) -> str | int | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return value


def build_camera(
    kind: str,
    source: str,
    resolution: tuple[int, int] | None,
    backend: str | int | None,
    warmup_frames: int,
) -> OpenCVCamera | StubCamera:
    if kind == "opencv":
        try:
            converted_source: int | str = int(source)
        except ValueError:
            converted_source = source
        if backend is None and platform.system().lower().startswith("win"):
            backend = "dshow"
        return OpenCVCamera(
            source=converted_source,
            resolution=resolution,
            backend=backend,
            warmup_frames=warmup_frames,
        )
    sample = Path(source) if source else None
    return StubCamera(sample_path=sample if sample and sample.exists() else None)


def acquire_image(args: argparse.Namespace) -> RawImage:
    if args.file:
        return load_image_file(Path(args.file))
    with open_camera(
        lambda: build_camera(
            args.camera,
            args.camera_source,
            args.camera_resolution,
            args.camera_backend,
            args.camera_warmup,
        )
    ) as camera:
        return camera.capture()


def format_prediction(result: Dict[str, Any]) -> str:
    scores = result.get("scores", {})
    return (
        f"{result['label']} (confidence {result['confidence'] * 100:.1f}%, "
        f"{result.get('confidence_level', 'unknown')}) "
        f"cleft={scores.get('cleft', 0.0) * 100:.2f}% "
        f"non-cleft={scores.get('non_cleft', 0.0) * 100:.2f}%"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Capture a photo (or read a file) and classify it with a CleftDetect server"
    )
    parser.add_argument("--api-url", default="http://127.0.0.1:8000", help="CleftDetect server URL")
    parser.add_argument("--api-timeout", type=float, default=30.0, help="request timeout in seconds")
    parser.add_argument("--file", default=None, help="classify this image file instead of using a camera")
    parser.add_argument(
        "--camera",
        choices=["stub", "opencv"],
        default="opencv",
        help="camera backend to use",
    )
    parser.add_argument(
        "--camera-source",
        default="0",
        help="camera source index or path (OpenCV) or sample image path (stub)",
    )
    parser.add_argument(
        "--camera-resolution",
        type=parse_resolution,
        default=None,
        help="force camera resolution WIDTHxHEIGHT (only for OpenCV backend)",
    )
    parser.add_argument(
        "--camera-backend",
        type=parse_backend,
        default=None,
        help="preferred OpenCV backend (e.g. v4l2, dshow, msmf, 200)",
    )
    parser.add_argument(
        "--camera-warmup",
        type=int,
        default=2,
        help="number of frames to discard after opening the camera",
    )
    parser.add_argument("--save", default=None, help="also write the captured image to this path")
    parser.add_argument("--ask", default=None, help="ask the guidance assistant a question instead")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    client = CleftDetectHttpClient(base_url=args.api_url, timeout=args.api_timeout)

    if args.ask is not None:
        try:
            print(client.request_guidance(args.ask))
        except CleftDetectError as exc:
            print(f"[camera] {exc.user_message}", file=sys.stderr)
            return 1
        return 0

    try:
        image = acquire_image(args)
    except CleftDetectError as exc:
        print(f"[camera] {exc.user_message} ({exc})", file=sys.stderr)
        return 2

    if args.save:
        Path(args.save).write_bytes(image.data)
        print(f"[camera] Saved capture to {args.save}")

    try:
        result = client.classify(image)
    except CleftDetectError as exc:
        print(f"[camera] {exc.user_message} ({exc})", file=sys.stderr)
        return 1
    print(format_prediction(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
