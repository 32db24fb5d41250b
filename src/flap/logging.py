"""Structured dispatch logging and tracing for flap.

Every guard call can emit a DispatchLog describing which clause fired (or
that the base function ran), how long it took, and whether it raised.
Logging is disabled by default and costs a single config lookup per call
when off.

Design Note: Dataclasses
------------------------
This module uses dataclasses (not Pydantic) for all types because:
- These are internal telemetry types, not user-provided configuration
- No external parsing or validation is needed - we create them directly
- Dataclasses have lower overhead (no validation on every instantiation)

See config.py for contrast - it uses Pydantic for parsing pyproject.toml
where validation and error messages for user config are important.
"""

from __future__ import annotations

import json
import logging as stdlib_logging
import warnings
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol
from uuid import uuid4

from flap._pyproject import flap_table, load_pyproject

# Module-level logger for debug messages about internal operations
_logger = stdlib_logging.getLogger(__name__)

# W3C Trace Context defines span_id as 16 hex chars
SPAN_ID_LENGTH = 16

DEFAULT_LOGGER_NAME = "flap"


class LogLevel(str, Enum):
    """Log levels for flap logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Core Types
# ---------------------------------------------------------------------------


@dataclass
class DispatchLog:
    """Log of one dispatch through a guard.

    Mutable while the dispatch runs; finalize() must be called exactly once.

    `outcome` is "clause" when a clause fired, "base" when the fallback ran,
    and None when a condition raised before either happened.
    """

    # Identity
    guard_name: str
    trace_id: str
    span_id: str
    parent_span_id: str | None = None

    # Timing
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None
    duration_ms: float | None = None

    # Dispatch
    arg_count: int = 0
    outcome: str | None = None
    clause_kind: str | None = None
    consequence: str | None = None
    clauses_evaluated: int = 0
    matched_count: int | None = None

    # Status
    success: bool = True
    error: str | None = None
    error_type: str | None = None

    # Custom
    tags: dict[str, str] = field(default_factory=dict)

    _finalized: bool = field(default=False, init=False, repr=False)

    def record_clause(self, kind: str, consequence: str, matched_count: int) -> None:
        self.outcome = "clause"
        self.clause_kind = kind
        self.consequence = consequence
        self.matched_count = matched_count

    def record_base(self, base: str) -> None:
        self.outcome = "base"
        self.consequence = base

    def finalize(self, *, success: bool, error: Exception | None = None) -> None:
        """Finalize the log with completion status.

        Raises:
            RuntimeError: If finalize() has already been called on this log
        """
        if self._finalized:
            raise RuntimeError(
                f"DispatchLog for '{self.guard_name}' already finalized. "
                "finalize() should only be called once per dispatch."
            )
        self._finalized = True
        self.end_time = datetime.now(timezone.utc)
        self.duration_ms = (self.end_time - self.start_time).total_seconds() * 1000
        self.success = success
        if error is not None:
            self.error = str(error)
            self.error_type = type(error).__name__

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "guard_name": self.guard_name,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "arg_count": self.arg_count,
            "outcome": self.outcome,
            "clause_kind": self.clause_kind,
            "consequence": self.consequence,
            "clauses_evaluated": self.clauses_evaluated,
            "matched_count": self.matched_count,
            "success": self.success,
            "error": self.error,
            "error_type": self.error_type,
            "tags": self.tags,
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())


# ---------------------------------------------------------------------------
# Trace Context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TraceContext:
    """W3C Trace Context compatible correlation IDs."""

    trace_id: str  # 32 hex chars, shared across spans
    span_id: str  # 16 hex chars, unique per dispatch
    parent_span_id: str | None = None

    @classmethod
    def new(cls, parent: TraceContext | None = None) -> TraceContext:
        """Create a new trace context, optionally inheriting from parent."""
        return cls(
            trace_id=parent.trace_id if parent else uuid4().hex,
            span_id=uuid4().hex[:SPAN_ID_LENGTH],
            parent_span_id=parent.span_id if parent else None,
        )

    def to_w3c_traceparent(self) -> str:
        """Format as W3C traceparent header: 00-{trace_id}-{span_id}-01"""
        return f"00-{self.trace_id}-{self.span_id}-01"


_trace_context: ContextVar[TraceContext | None] = ContextVar("trace", default=None)


def current_trace() -> TraceContext | None:
    """Get the current trace context, if any."""
    return _trace_context.get()


@contextmanager
def trace_context(
    parent: TraceContext | None = None,
) -> Generator[TraceContext, None, None]:
    """Context manager for trace context propagation.

    Creates a new span within the current trace, or starts a new trace
    if no parent is provided and no current trace exists.
    """
    current = parent or _trace_context.get()
    ctx = TraceContext.new(current)
    token = _trace_context.set(ctx)
    try:
        yield ctx
    finally:
        _trace_context.reset(token)


@contextmanager
def with_trace_id(trace_id: str) -> Generator[TraceContext, None, None]:
    """Context manager to set a specific trace ID (for external correlation)."""
    ctx = TraceContext(
        trace_id=trace_id,
        span_id=uuid4().hex[:SPAN_ID_LENGTH],
        parent_span_id=None,
    )
    token = _trace_context.set(ctx)
    try:
        yield ctx
    finally:
        _trace_context.reset(token)


# ---------------------------------------------------------------------------
# Handler Protocol and Implementations
# ---------------------------------------------------------------------------


class LogHandler(Protocol):
    """Protocol for log handlers."""

    def handle(self, log: DispatchLog) -> None:
        """Handle a dispatch log."""
        ...

    def flush(self) -> None:
        """Flush any buffered logs."""
        ...


class PythonLoggingHandler:
    """Handler that emits logs to Python's stdlib logging."""

    def __init__(self, logger_name: str = DEFAULT_LOGGER_NAME):
        self.logger = stdlib_logging.getLogger(logger_name)

    def handle(self, log: DispatchLog) -> None:
        level = stdlib_logging.INFO if log.success else stdlib_logging.ERROR
        self.logger.log(level, log.to_json())

    def flush(self) -> None:
        for handler in self.logger.handlers:
            handler.flush()


# ---------------------------------------------------------------------------
# Logging Configuration
# ---------------------------------------------------------------------------


@dataclass
class LoggingConfig:
    """Configuration for flap dispatch logging.

    With level WARNING or ERROR only failed dispatches are emitted.
    """

    enabled: bool = False
    level: LogLevel = LogLevel.INFO
    handlers: list[LogHandler] = field(default_factory=list)
    default_tags: dict[str, str] = field(default_factory=dict)


_logging_config: ContextVar[LoggingConfig | None] = ContextVar("logging_config", default=None)
_process_logging_config: LoggingConfig | None = None
_file_logging_config_cache: LoggingConfig | None = None
_file_logging_config_loaded: bool = False

# Context variable for capturing logs instead of emitting them
_capture_log: ContextVar[list[DispatchLog] | None] = ContextVar("capture_log", default=None)

# Handlers that have already warned about failures; later failures only hit debug logs
_handler_failure_warned: set[int] = set()


def configure_logging(config: LoggingConfig) -> None:
    """Set the logging configuration for the current process.

    Process-level config has lower priority than logging_context() and
    higher priority than [tool.flap.logging] in pyproject.toml.

    Example:
        configure_logging(LoggingConfig(
            enabled=True,
            handlers=[PythonLoggingHandler()],
        ))
    """
    global _process_logging_config
    _process_logging_config = config


def _create_handler(handler_type: str, config: dict[str, Any]) -> LogHandler | None:
    """Create a log handler from configuration, or None for unknown types."""
    if handler_type == "python":
        return PythonLoggingHandler(config.get("logger_name", DEFAULT_LOGGER_NAME))
    return None


def _parse_handlers(handlers_config: dict[str, Any]) -> list[LogHandler]:
    """Parse handler configurations into handler instances."""
    handlers: list[LogHandler] = []

    for handler_name, handler_settings in handlers_config.items():
        if not isinstance(handler_settings, dict):
            continue

        handler_type = handler_settings.get("type", handler_name)
        handler = _create_handler(handler_type, handler_settings)
        if handler is not None:
            handlers.append(handler)

    return handlers


def _parse_log_level(level_str: str) -> LogLevel:
    """Parse a case-insensitive level string; unknown values map to INFO."""
    try:
        return LogLevel(level_str.lower())
    except ValueError:
        return LogLevel.INFO


def _load_logging_config_from_file() -> LoggingConfig | None:
    """Load logging configuration from [tool.flap.logging] in pyproject.toml.

    Example pyproject.toml:
        [tool.flap.logging]
        enabled = true
        level = "debug"

        [tool.flap.logging.handlers.python]
        logger_name = "myapp.guards"
    """
    table = flap_table(load_pyproject())
    if not isinstance(table, dict):
        return None

    logging_config = table.get("logging", {})
    if not logging_config or not isinstance(logging_config, dict):
        return None

    enabled = bool(logging_config.get("enabled", False))
    handlers = _parse_handlers(logging_config.get("handlers", {}))

    # Default Python handler if logging enabled but no handlers specified
    if enabled and not handlers:
        handlers.append(PythonLoggingHandler())

    default_tags = logging_config.get("default_tags", {})
    if not isinstance(default_tags, dict):
        default_tags = {}

    return LoggingConfig(
        enabled=enabled,
        level=_parse_log_level(str(logging_config.get("level", "info"))),
        handlers=handlers,
        default_tags=default_tags,
    )


def get_logging_config() -> LoggingConfig:
    """Get the current logging configuration.

    Resolution order:
    1. Active context (from `logging_context()`)
    2. Process config (from `configure_logging()`)
    3. File config (from pyproject.toml, cached)
    4. Default disabled config
    """
    global _file_logging_config_cache, _file_logging_config_loaded

    ctx_config = _logging_config.get()
    if ctx_config is not None:
        return ctx_config
    if _process_logging_config is not None:
        return _process_logging_config

    if not _file_logging_config_loaded:
        _file_logging_config_cache = _load_logging_config_from_file()
        _file_logging_config_loaded = True
    if _file_logging_config_cache is not None:
        return _file_logging_config_cache

    return LoggingConfig()  # Disabled by default


@contextmanager
def logging_context(config: LoggingConfig) -> Generator[None, None, None]:
    """Context manager for scoped logging configuration.

    Example:
        with logging_context(LoggingConfig(enabled=True, handlers=[PythonLoggingHandler()])):
            route(request)
    """
    token = _logging_config.set(config)
    try:
        yield
    finally:
        _logging_config.reset(token)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    *,
    logger_name: str = DEFAULT_LOGGER_NAME,
    default_tags: dict[str, str] | None = None,
) -> None:
    """Quick setup: emit dispatch logs through stdlib logging.

    Args:
        level: Minimum log level
        logger_name: Name of the stdlib logger that receives the JSON records
        default_tags: Tags merged into every DispatchLog
    """
    configure_logging(
        LoggingConfig(
            enabled=True,
            level=level,
            handlers=[PythonLoggingHandler(logger_name)],
            default_tags=dict(default_tags or {}),
        )
    )


# ---------------------------------------------------------------------------
# Log Emission
# ---------------------------------------------------------------------------


def is_logging_active() -> bool:
    """Whether guard calls should build DispatchLogs at all."""
    return _capture_log.get() is not None or get_logging_config().enabled


def _emit_log(log: DispatchLog) -> None:
    """Emit a log to all configured handlers.

    Handler failures are warned about once per handler and otherwise logged
    at debug level; they never interrupt a dispatch.
    """
    capture_list = _capture_log.get()
    if capture_list is not None:
        capture_list.append(log)
        return

    config = get_logging_config()
    if not config.enabled:
        return

    if log.success and config.level in (LogLevel.WARNING, LogLevel.ERROR):
        return

    log.tags = {**config.default_tags, **log.tags}

    for handler in config.handlers:
        try:
            handler.handle(log)
        except Exception as e:
            # Intentionally broad: handler failures should never break dispatch
            handler_name = type(handler).__name__
            handler_id = id(handler)
            if handler_id not in _handler_failure_warned:
                _handler_failure_warned.add(handler_id)
                warnings.warn(
                    f"Log handler {handler_name} failed: {e}. "
                    f"Further errors from this handler will be suppressed.",
                    stacklevel=2,
                )
            _logger.debug("Log handler %s failed: %s", handler_name, e)


@dataclass
class CapturedLogs:
    """Container filled by capture_dispatch_logs()."""

    logs: list[DispatchLog] = field(default_factory=list)

    @property
    def log(self) -> DispatchLog | None:
        """The outermost dispatch log (emitted last), if any."""
        return self.logs[-1] if self.logs else None


@contextmanager
def capture_dispatch_logs() -> Generator[CapturedLogs, None, None]:
    """Capture dispatch logs instead of emitting them.

    Works even when logging is disabled. Nested guards (through before,
    after, map or filter) append their own logs first, so the outermost
    call's log is last.

    Example:
        with capture_dispatch_logs() as captured:
            route(request)
        print(captured.log.outcome)
    """
    captured = CapturedLogs()
    token = _capture_log.set(captured.logs)
    try:
        yield captured
    finally:
        _capture_log.reset(token)


__all__ = [
    "LogLevel",
    "DispatchLog",
    "TraceContext",
    "current_trace",
    "trace_context",
    "with_trace_id",
    "LogHandler",
    "PythonLoggingHandler",
    "LoggingConfig",
    "configure_logging",
    "get_logging_config",
    "logging_context",
    "setup_logging",
    "is_logging_active",
    "CapturedLogs",
    "capture_dispatch_logs",
]
