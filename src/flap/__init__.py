"""Flap - chainable guard clauses for Python functions.

This module provides the Guard wrapper (and the `guard` factory/decorator)
for redirecting calls based on their arguments, similar to guard clauses in
languages such as Elixir and Ruby, without nesting conditionals inside the
original function.

Import Guidelines:
    All public API is exported at the top level:
        from flap import guard, Guard, pattern, Config, ...

    Individual modules are NOT exported at package level.
    Use explicit imports if needed:
        from flap.logging import DispatchLog
"""

from importlib.metadata import version, PackageNotFoundError

from flap.clause import (
    Clause,
    MatchResult,
    PatternCondition,
    PredicateCondition,
)
from flap.config import (
    Config,
    FlapSettings,
    clear_config_cache,
    current_config,
)
from flap.exceptions import (
    ClauseError,
    FlapConfigError,
    FlapError,
    MatcherError,
)
from flap.guard import Guard, guard
from flap.logging import (
    # Configuration
    LoggingConfig,
    LogLevel,
    configure_logging,
    get_logging_config,
    logging_context,
    setup_logging,
    # Tracing
    TraceContext,
    trace_context,
    current_trace,
    with_trace_id,
    # Handlers
    LogHandler,
    PythonLoggingHandler,
    # Types (for custom handlers)
    DispatchLog,
    capture_dispatch_logs,
)
from flap.matcher import (
    JMESPathMatcher,
    JSONPathMatcher,
    JSONPointerMatcher,
    Match,
    Matcher,
    Pattern,
    available_matchers,
    get_matcher,
    pattern,
    register_matcher,
)

# Package metadata
try:
    __version__ = version("flap-guard")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development/editable installs

__all__ = [
    # Package metadata
    "__version__",
    # Core
    "Guard",
    "guard",
    "Clause",
    "MatchResult",
    "PredicateCondition",
    "PatternCondition",
    # Matchers
    "Match",
    "Matcher",
    "Pattern",
    "pattern",
    "JSONPathMatcher",
    "JMESPathMatcher",
    "JSONPointerMatcher",
    "register_matcher",
    "get_matcher",
    "available_matchers",
    # Configuration
    "Config",
    "FlapSettings",
    "current_config",
    "clear_config_cache",
    # Exceptions (all inherit from FlapError)
    "FlapError",
    "FlapConfigError",
    "ClauseError",
    "MatcherError",
    # Logging configuration
    "LoggingConfig",
    "LogLevel",
    "configure_logging",
    "get_logging_config",
    "logging_context",
    "setup_logging",
    # Distributed tracing
    "TraceContext",
    "trace_context",
    "current_trace",
    "with_trace_id",
    # Log handlers and types
    "LogHandler",
    "PythonLoggingHandler",
    "DispatchLog",
    "capture_dispatch_logs",
]
