"""Append-only operator log file.

Every line is written as ``[<ISO-8601 timestamp>] <message>`` so the file can
be tailed during a deployment. Write failures never reach the caller; they are
reported through structlog instead.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

import structlog

logger = structlog.get_logger()


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AppendLogger:
    """Timestamped line sink backed by a single file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._fh: TextIO | None = None

    def write(self, message: str) -> None:
        """Append one timestamped line, creating parent directories if needed.

        The file is opened on first use and kept open; after a failed write it
        is reopened on the next call.
        """
        line = f"[{_timestamp()}] {message}\n"
        logger.info("append_log", message=message)
        with self._lock:
            try:
                if self._fh is None:
                    self.path.parent.mkdir(parents=True, exist_ok=True)
                    self._fh = self.path.open("a", encoding="utf-8")
                self._fh.write(line)
                self._fh.flush()
            except OSError as exc:
                self._close_quietly()
                logger.warning(
                    "append_log_write_failed",
                    path=str(self.path),
                    error=str(exc),
                    message=message,
                )

    def close(self) -> None:
        with self._lock:
            self._close_quietly()

    def _close_quietly(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        try:
            fh.close()
        except OSError as exc:
            logger.warning("append_log_close_failed", path=str(self.path), error=str(exc))
