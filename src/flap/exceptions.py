"""Exception hierarchy for flap.

All flap exceptions inherit from FlapError, allowing users to catch
all library errors with a single except clause:

    from flap import FlapError

    try:
        checked = guard(handler).when("$..user", on_user)
    except FlapError as e:
        # Handle any flap error
        ...

Errors raised by the computations you put into a guard (predicates,
consequences, the base function, mappers) are NEVER wrapped. They reach
the caller exactly as they were raised. Only problems with how a guard
was built, or how flap was configured, surface as FlapError subclasses.

Naming Convention:
------------------
- FlapError: Base class (prefix indicates library origin)
- FlapConfigError: Prefixed for clarity about library-specific config errors
- ClauseError: A clause or combinator argument is malformed
- MatcherError: A pattern cannot be compiled, or no such matcher exists

ClauseError also derives from TypeError and MatcherError from ValueError,
so code that already catches the builtin categories keeps working.
"""

from __future__ import annotations


class FlapError(Exception):
    """Base exception for all flap errors.

    Catch this to handle any error from the flap library.
    """

    pass


class FlapConfigError(FlapError):
    """Raised when configuration is invalid.

    Examples:
        - Invalid [tool.flap] section in pyproject.toml
        - Unknown default matcher name
    """

    pass


class ClauseError(FlapError, TypeError):
    """Raised when a guard clause is malformed at construction time.

    Examples:
        - Missing consequence (`then=None`)
        - Condition that is neither callable nor a pattern
        - Non-callable mapper, filter or transform
    """

    pass


class MatcherError(FlapError, ValueError):
    """Raised when a pattern cannot be used.

    Either the named matcher is not registered, or the matcher rejected
    the expression syntax.

    Attributes:
        message: Human-readable error message
        expression: The pattern expression that failed (if any)
        original_error: The underlying library exception (if available)
    """

    def __init__(
        self,
        message: str,
        expression: object = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.expression = expression
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


__all__ = [
    "FlapError",
    "FlapConfigError",
    "ClauseError",
    "MatcherError",
]
