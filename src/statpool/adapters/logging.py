"""Python logging adapters for statpool diagnostics.

statpool reports dropped stats, failed flushes and unsent payloads through
the standard library logging module under the "statpool" logger. This
module offers a handler that keeps those records in a bounded buffer for
inspection, and a helper that mirrors them to stderr.
"""

import logging
import sys
import traceback
from collections import deque
from typing import TextIO

from statpool.core.models import Diagnostic

LOGGER_NAME = "statpool"

VERBOSE_FORMAT = "statpool: %(asctime)s %(message)s"

DEFAULT_MAX_ENTRIES = 1000

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class DiagnosticsHandler(logging.Handler):
    """Logging handler that keeps the most recent records as Diagnostics.

    When the buffer is full the oldest entry is evicted.

    Example:
        ```python
        handler = DiagnosticsHandler()
        logging.getLogger("statpool").addHandler(handler)
        ...
        for payload in handler.unsent_payloads():
            replay(payload)
        ```
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        level: int = logging.NOTSET,
    ) -> None:
        """Initialize the handler.

        Args:
            max_entries: Maximum number of diagnostics retained.
            level: Minimum level of records to keep.
        """
        super().__init__(level)
        self._buffer: deque[Diagnostic] = deque(maxlen=max_entries)

    def emit(self, record: logging.LogRecord) -> None:
        """Store a log record as a Diagnostic.

        Args:
            record: The log record to emit.
        """
        attributes: dict[str, str | int | float | bool] = {"logger": record.name}

        # Structured fields passed via extra=
        for key, value in record.__dict__.items():
            if key not in _STANDARD_LOGRECORD_ATTRS and isinstance(
                value, (str, int, float, bool)
            ):
                attributes[key] = value

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            if exc_type is not None:
                attributes["exc_type"] = exc_type.__name__
            if exc_value is not None:
                attributes["exc_message"] = str(exc_value)
                attributes["exc_traceback"] = "".join(
                    traceback.format_exception(exc_type, exc_value, exc_tb)
                )

        self._buffer.append(
            Diagnostic(
                timestamp=record.created,
                level=record.levelname,
                message=record.getMessage(),
                attributes=attributes,
            )
        )

    def entries(self, level: str | None = None) -> list[Diagnostic]:
        """Return retained diagnostics, oldest first.

        Args:
            level: Only return entries with this level name (e.g., "ERROR").
        """
        if level is None:
            return list(self._buffer)
        return [entry for entry in self._buffer if entry.level == level.upper()]

    def unsent_payloads(self) -> list[str]:
        """Request bodies of chunks that failed to send, oldest first."""
        return [
            str(entry.attributes["payload"])
            for entry in self._buffer
            if "payload" in entry.attributes
        ]

    def clear(self) -> None:
        """Forget all retained diagnostics."""
        self._buffer.clear()


def enable_verbose_logging(
    stream: TextIO | None = None,
    level: int = logging.DEBUG,
) -> logging.Handler:
    """Mirror statpool diagnostics to a stream (stderr by default).

    Args:
        stream: Stream to write to. Defaults to sys.stderr.
        level: Minimum level written.

    Returns:
        The attached handler, so callers can remove it again.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT))
    handler.setLevel(level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > level:
        logger.setLevel(level)
    return handler
