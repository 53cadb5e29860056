"""Structured logging for fiberio.

structlog on top of stdlib logging. Every entry emitted while a fiber is
running is tagged with the run it belongs to and the fiber's id, so the
interleaved output of many fibers can be pulled apart again:

    configure_logging(level="DEBUG", format="json")
    log = get_logger("worker")

    with with_context(RunContext(fiber_id=3)):
        log.info("page_fetched", size=1024)
        # {"event": "page_fetched", "component": "worker",
        #  "run_id": "...", "fiber_id": 3, "size": 1024, ...}

The scheduler sets the context around each fiber resumption, so fiber
bodies never have to.
"""

from __future__ import annotations

import logging
import re
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console", "both"]

# Key fragments whose values are replaced before rendering.
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "auth",
    "bearer",
    "cookie",
    "credential",
    "password",
    "secret",
    "token",
})

REDACTED = "[REDACTED]"

_SENSITIVE_RE = re.compile(
    "|".join(re.escape(p) for p in sorted(SENSITIVE_PATTERNS)), re.IGNORECASE,
)


@dataclass(frozen=True)
class RunContext:
    """Correlation fields attached to every entry logged inside a run.

    Attributes:
        run_id: Identifies one scheduler run.
        fiber_id: The fiber being resumed, or None outside a resumption.
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    fiber_id: int | None = None

    def with_fiber(self, fiber_id: int | None) -> RunContext:
        return replace(self, fiber_id=fiber_id)

    def to_dict(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"run_id": self.run_id}
        if self.fiber_id is not None:
            fields["fiber_id"] = self.fiber_id
        return fields


_run_context: ContextVar[RunContext | None] = ContextVar(
    "fiberio_run_context", default=None,
)


def get_current_context() -> RunContext | None:
    """The RunContext active in this thread, if any."""
    return _run_context.get()


@contextmanager
def with_context(ctx: RunContext) -> Iterator[RunContext]:
    """Make ``ctx`` the active RunContext until the block exits."""
    reset_token = _run_context.set(ctx)
    try:
        yield ctx
    finally:
        _run_context.reset(reset_token)


def is_sensitive(key: str) -> bool:
    return _SENSITIVE_RE.search(key) is not None


def redact(key: str, value: Any) -> Any:
    """Return ``value`` with sensitive keys masked, recursing into mappings."""
    if is_sensitive(key):
        return REDACTED
    if isinstance(value, dict):
        return {k: redact(str(k), v) for k, v in value.items()}
    return value


# ─── Processors ────────────────────────────────────────────────────────


def redact_sensitive(
    logger: WrappedLogger, method_name: str, event_dict: EventDict,
) -> EventDict:
    """Mask values of keys that look like credentials."""
    return {key: redact(key, value) for key, value in event_dict.items()}


def add_run_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict,
) -> EventDict:
    """Fill in run_id / fiber_id from the active RunContext.

    Keys bound explicitly on the logger win over the context.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


def add_utc_timestamp(
    logger: WrappedLogger, method_name: str, event_dict: EventDict,
) -> EventDict:
    event_dict.setdefault("timestamp", datetime.now(UTC).isoformat())
    return event_dict


def _shared_processors(include_timestamps: bool, include_context: bool) -> list[Processor]:
    """Processors run for structlog and foreign stdlib records alike."""
    chain: list[Processor] = [structlog.stdlib.add_log_level, redact_sensitive]
    if include_context:
        chain.append(add_run_context)
    if include_timestamps:
        chain.append(add_utc_timestamp)
    chain += [
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    return chain


# ─── Logger wrapper ────────────────────────────────────────────────────


class FiberioLogger:
    """Component logger carrying a dict of bound fields.

    The structlog logger is resolved on every call, so instances created at
    import time pick up a later configure_logging().
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._context: dict[str, Any] = {"component": component, **initial_context}

    @property
    def component(self) -> str:
        return self._context["component"]

    def bind(self, **fields: Any) -> FiberioLogger:
        return FiberioLogger(**{**self._context, **fields})

    def unbind(self, *keys: str) -> FiberioLogger:
        kept = {k: v for k, v in self._context.items() if k not in keys or k == "component"}
        return FiberioLogger(**kept)

    def _emit(self, method: str, event: str, fields: dict[str, Any]) -> None:
        bound = structlog.get_logger().bind(**self._context)
        getattr(bound, method)(event, **fields)

    def debug(self, event: str, **fields: Any) -> None:
        self._emit("debug", event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit("info", event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit("warning", event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit("error", event, fields)

    def exception(self, event: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback attached."""
        self._emit("exception", event, fields)


def get_logger(component: str, **initial_context: Any) -> FiberioLogger:
    """Logger for one component, e.g. ``get_logger("io.http")``."""
    return FiberioLogger(component, **initial_context)


# ─── Setup ─────────────────────────────────────────────────────────────


def _formatter(renderer: Processor, pre_chain: list[Processor]) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Route structlog and stdlib logging to fiberio's handlers.

    Replaces any handlers already on the root logger. Nothing is ever
    written to stdout, which belongs to the fibers.

    Args:
        level: Minimum level emitted.
        format: "console" renders human-readable lines on stderr. "json"
            writes one JSON object per line, to ``file_path`` when given
            and stderr otherwise. "both" does console on stderr plus JSON
            in ``file_path``.
        file_path: Log file, rotated at ``max_file_size_mb``.
        max_file_size_mb: Rotation threshold in megabytes.
        backup_count: Rotated files kept.
        include_timestamps: Add an ISO8601 UTC ``timestamp`` field.
        include_context: Add ``run_id`` / ``fiber_id`` from the RunContext.

    Raises:
        ValueError: If format is "both" and no file_path is given.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    pre_chain = _shared_processors(include_timestamps, include_context)
    console = _formatter(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()), pre_chain)
    as_json = _formatter(structlog.processors.JSONRenderer(), pre_chain)

    handlers: list[logging.Handler] = []
    if format in ("console", "both"):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(console)
        handlers.append(stderr_handler)
    if format in ("json", "both"):
        json_handler: logging.Handler
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        else:
            json_handler = logging.StreamHandler(sys.stderr)
        json_handler.setFormatter(as_json)
        handlers.append(json_handler)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)
    root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # module-level loggers must see configuration applied after import
        cache_logger_on_first_use=False,
    )


__all__ = [
    "FiberioLogger",
    "REDACTED",
    "RunContext",
    "SENSITIVE_PATTERNS",
    "add_run_context",
    "add_utc_timestamp",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "redact",
    "redact_sensitive",
    "with_context",
]
