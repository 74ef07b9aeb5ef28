"""Reporting and logging setup.

Components never print. They hand progress/result messages of the shape
``{msg, error?, val?}`` to a *reporter* callable; the default reporter,
:func:`report`, turns each message into a ``logging`` record on the
``weft.report`` logger with the message dict attached as ``context``.

Where the records go is decided here, once, by :func:`configure_logging`:

- ``text``: :class:`ConsoleHandler` writes ``msg`` or ``msg: val`` lines
- ``json``: :class:`StructuredHandler` writes one JSON event per line

``disable_cli_log`` silences non-error reports (``--quiet``).
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

REPORT_LOGGER = "weft.report"

Reporter = Callable[..., None]

_reporter_logger = logging.getLogger(REPORT_LOGGER)
_cli_log_enabled = True


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured JSON."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                context=getattr(record, "context", {}),
            )
            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            self.stream.write(event.to_json() + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


class ConsoleHandler(logging.Handler):
    """Plain-text handler for interactive use."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            ctx = getattr(record, "context", {}) or {}
            line = record.getMessage()
            if ctx.get("val") is not None:
                line = f"{line}: {ctx['val']}"
            if record.levelno >= logging.ERROR:
                line = f"ERROR: {line}"
            self.stream.write(line + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(level: str = "info", fmt: str = "text", stream: Any = None) -> logging.Handler:
    """Install one weft handler on the ``weft`` logger, replacing earlier ones."""
    root = logging.getLogger("weft")
    for h in list(root.handlers):
        if isinstance(h, (StructuredHandler, ConsoleHandler)):
            root.removeHandler(h)

    handler: logging.Handler = StructuredHandler(stream) if fmt == "json" else ConsoleHandler(stream)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper()))
    root.propagate = False
    return handler


def enable_cli_log() -> None:
    global _cli_log_enabled
    _cli_log_enabled = True


def disable_cli_log() -> None:
    global _cli_log_enabled
    _cli_log_enabled = False


def report(msg: str, *, error: bool = False, val: Any = None) -> None:
    """Default reporter: emit ``{msg, error?, val?}`` as a log record."""
    if not error and not _cli_log_enabled:
        return
    context: Dict[str, Any] = {"msg": msg}
    if error:
        context["error"] = True
    if val is not None:
        context["val"] = val
    _reporter_logger.log(logging.ERROR if error else logging.INFO, msg, extra={"context": context})
