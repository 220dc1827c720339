"""
Logging configuration using loguru.

``setup_logging()`` configures loguru sinks at app startup. ``JournalLogger``
is the sink handed to the store and persistence layer: it accepts events and
errors at one of four severities, forwards them to loguru, and can keep an
in-memory record of the session for diagnostics.
"""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from loguru import logger


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    fmt: str = "<level>[{level.name}]</level> {message}",
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Configure loguru with console and optional file output.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        log_file: Path to log file. If None, only logs to stderr.
        fmt: Loguru format string.
        rotation: Log file rotation size.
        retention: How long to keep rotated logs.
    """
    logger.remove()
    logger.configure(extra={"component": "daybook"})
    logger.add(sys.stderr, level=level, format=fmt)

    if log_file:
        logger.add(
            log_file,
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[component]} | {message}",
            rotation=rotation,
            retention=retention,
        )


class Severity(Enum):
    """Severity of a logged event, ordered from least to most serious."""

    DEBUG = "debug"
    INFO = "info"
    CRITICAL_ERROR = "critical_error"
    SYSTEM_FAULT = "system_fault"

    @property
    def loguru_level(self) -> str:
        return _LOGURU_LEVELS[self]


_LOGURU_LEVELS = {
    Severity.DEBUG: "DEBUG",
    Severity.INFO: "INFO",
    Severity.CRITICAL_ERROR: "ERROR",
    Severity.SYSTEM_FAULT: "CRITICAL",
}


@dataclass(frozen=True)
class LoggedEvent:
    severity: Severity
    message: str
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class JournalLogger:
    """Severity-aware logging sink shared by the store and persistence layer.

    Never raises: a failing loguru sink must not break a save or a read.

    Args:
        label: Component name bound into every record as ``component``.
        record_session: Keep ``session_events`` / ``session_errors`` in memory.
    """

    def __init__(self, label: str = "daybook", record_session: bool = False):
        self.label = label
        self.record_session = record_session
        self._logger = logger.bind(component=label)
        self._lock = threading.Lock()
        self._events: list[LoggedEvent] = []
        self._errors: list[LoggedEvent] = []

    @property
    def session_events(self) -> list[LoggedEvent]:
        with self._lock:
            return list(self._events)

    @property
    def session_errors(self) -> list[LoggedEvent]:
        with self._lock:
            return list(self._errors)

    def log_event(self, message: str, severity: Severity = Severity.INFO) -> None:
        self._emit(severity, message)
        if self.record_session:
            with self._lock:
                self._events.append(LoggedEvent(severity, message))

    def log_error(self, error: BaseException, severity: Severity = Severity.CRITICAL_ERROR) -> None:
        message = str(error) or type(error).__name__
        self._emit(severity, message)
        if self.record_session:
            with self._lock:
                self._errors.append(LoggedEvent(severity, message))

    def _emit(self, severity: Severity, message: str) -> None:
        try:
            self._logger.log(severity.loguru_level, message)
        except Exception:  # noqa: BLE001 - a broken sink must not reach callers
            pass
