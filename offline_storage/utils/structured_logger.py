"""
Structured logging for storage operations.
Emits human-readable console lines and, optionally, JSON lines for analysis.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that writes each event both to the standard logging tree and,
    when a log directory is given, to a JSONL file.

    Usage:
        logger = StructuredLogger("offline_storage", log_dir=Path("logs"))
        logger.info("store_completed", offline_uri="offline:manifest/0", size=34)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"offline_storage_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Added to every JSON entry
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            # Event names are bracketed; keep them out of rich markup parsing.
            self._logger.log(
                level, self._format_message(event, **context), extra={"markup": False}
            )
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        """Log debug event."""
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        """Log info event."""
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        """Log warning event."""
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        """Log error event."""
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class StorageEventLogger:
    """Specialized logger for store and remove events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def store_started(self, original_uri: str, engine: str):
        """Log store operation started."""
        self.logger.info("store_started", original_uri=original_uri, engine=engine)

    def store_completed(
        self,
        offline_uri: str,
        original_uri: str,
        size_bytes: int,
        segments: int,
        duration_s: float,
    ):
        """Log store operation completed."""
        self.logger.info(
            "store_completed",
            offline_uri=offline_uri,
            original_uri=original_uri,
            size_bytes=size_bytes,
            size_mb=round(size_bytes / (1024 * 1024), 2),
            segments=segments,
            duration_s=round(duration_s, 2),
        )

    def store_failed(self, original_uri: str, error: str, purged_segments: int):
        """Log store operation failed."""
        self.logger.error(
            "store_failed",
            original_uri=original_uri,
            error=error,
            purged_segments=purged_segments,
        )

    def content_removed(self, offline_uri: str, segments_removed: int):
        """Log stored content removed."""
        self.logger.info(
            "content_removed",
            offline_uri=offline_uri,
            segments_removed=segments_removed,
        )

    def segment_missing(self, offline_uri: str, segment_id: int):
        """Log a referenced segment that no longer exists."""
        self.logger.warning(
            "segment_missing", offline_uri=offline_uri, segment_id=segment_id
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, StorageEventLogger]:
    """
    Create the structured loggers.

    Returns:
        Tuple of (base_logger, storage_event_logger)
    """
    base = StructuredLogger("offline_storage", log_dir=log_dir, enable_json=enable_json)
    return base, StorageEventLogger(base)
