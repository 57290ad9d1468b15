from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class StartupLogBuffer(logging.Handler):
    """Hold log records emitted while the server boots and the model loads.

    The buffer is written to ``startup_<timestamp>_<outcome>.log`` as soon as
    :meth:`finish` is called with the model load outcome, or when the window
    elapses, whichever comes first. Records after that are ignored.
    """

    def __init__(
        self,
        output_dir: Path,
        window_seconds: float = 120.0,
        capacity: int = 2000,
    ) -> None:
        super().__init__()
        self._output_dir = output_dir
        self._capacity = max(1, capacity)
        self._lines: list[str] = []
        self._lock = threading.Lock()
        self._done = False
        self._file_path: Optional[Path] = None
        self._timer: Optional[threading.Timer] = threading.Timer(
            window_seconds, self.finish, kwargs={"outcome": "timeout"}
        )
        self._timer.daemon = True
        self._timer.start()

    @property
    def file_path(self) -> Optional[Path]:
        with self._lock:
            return self._file_path

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._done

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._lock:
            if self._done:
                return
            if len(self._lines) >= self._capacity:
                # Keep the earliest records and the most recent one.
                self._lines[-1] = line
            else:
                self._lines.append(line)

    def finish(self, outcome: str = "ready") -> Optional[Path]:
        with self._lock:
            if self._done:
                return self._file_path
            self._done = True
            lines, self._lines = self._lines, []
            if lines:
                self._output_dir.mkdir(parents=True, exist_ok=True)
                stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
                self._file_path = self._output_dir / f"startup_{stamp}_{outcome}.log"
                self._file_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
            path = self._file_path
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return path

    def close(self) -> None:
        try:
            self.finish(outcome="closed")
        finally:
            super().close()


def install_startup_log_buffer(
    output_dir: Path | None = None,
    window_seconds: float = 120.0,
    capacity: int = 2000,
    formatter: logging.Formatter | None = None,
) -> StartupLogBuffer:
    handler = StartupLogBuffer(
        output_dir=output_dir or Path("logs/startup"),
        window_seconds=window_seconds,
        capacity=capacity,
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter or logging.Formatter(DEFAULT_FORMAT))
    logging.getLogger().addHandler(handler)
    logging.getLogger(__name__).info(
        "Buffering startup logs for up to %.0f seconds", window_seconds
    )
    return handler


__all__ = ["StartupLogBuffer", "install_startup_log_buffer", "DEFAULT_FORMAT"]
