"""Clauses: one (condition, consequence) pair attached to a guard.

A condition is one of two kinds behind the same `evaluate(args)` interface:

- PredicateCondition: a callable invoked once with the full argument list.
  When truthy, the consequence receives the same full argument list.
- PatternCondition: a structural pattern checked against each argument on
  its own. When any argument matches, the consequence receives only the
  matched arguments, in their original order.

Design Note: Dataclasses
------------------------
Clauses and conditions are frozen dataclasses: they are internal
bookkeeping built from already-checked user input, and being frozen keeps
every guard that references them immutable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union

from jsonpath_ng.jsonpath import JSONPath
from jsonpointer import JsonPointer

from flap.exceptions import ClauseError
from flap.matcher import Pattern, pattern


@dataclass(frozen=True)
class MatchResult:
    """Result of evaluating a condition against an argument list.

    Attributes:
        matched: Whether the clause fires
        args: Arguments the consequence is called with when it fires
    """

    matched: bool
    args: tuple[Any, ...] = ()


NOT_MATCHED = MatchResult(matched=False)


@dataclass(frozen=True)
class PredicateCondition:
    """Condition evaluated once against the whole argument list.

    `kind` names where the predicate came from ("predicate", "all", "any")
    and only shows up in logs and reprs.
    """

    predicate: Callable[..., Any]
    kind: str = "predicate"

    def evaluate(self, args: tuple[Any, ...]) -> MatchResult:
        if self.predicate(*args):
            return MatchResult(matched=True, args=args)
        return NOT_MATCHED


@dataclass(frozen=True)
class PatternCondition:
    """Condition evaluated per argument through a matcher."""

    pattern: Pattern

    @property
    def kind(self) -> str:
        return "pattern"

    def evaluate(self, args: tuple[Any, ...]) -> MatchResult:
        matched = tuple(arg for arg in args if self.pattern.matches(arg).matched)
        if matched:
            return MatchResult(matched=True, args=matched)
        return NOT_MATCHED


Condition = Union[PredicateCondition, PatternCondition]


def callable_name(fn: Any) -> str:
    """Get a human-readable name for a callable."""
    return getattr(fn, "__name__", None) or getattr(fn, "__qualname__", None) or type(fn).__name__


def require_callable(value: Any, role: str) -> Callable[..., Any]:
    """Return `value` if callable, otherwise raise ClauseError naming its role."""
    if value is None:
        raise ClauseError(f"A {role} is required, got None")
    if not callable(value):
        raise ClauseError(f"The {role} must be callable, got {type(value).__name__}")
    return value


def as_condition(condition: Any) -> Condition:
    """Coerce user input into a condition.

    Accepts, in order of precedence:
        - an existing PredicateCondition or PatternCondition
        - a compiled Pattern (from `flap.pattern()`)
        - a compiled jsonpath-ng expression or JsonPointer
        - a string, compiled with the configured default matcher
        - any other callable, used as a predicate

    Raises:
        ClauseError: If the condition is missing or of an unsupported type.
        MatcherError: If a pattern expression cannot be compiled.
    """
    if condition is None:
        raise ClauseError("A clause condition is required, got None")
    if isinstance(condition, (PredicateCondition, PatternCondition)):
        return condition
    if isinstance(condition, Pattern):
        return PatternCondition(condition)
    if isinstance(condition, JSONPath):
        return PatternCondition(pattern(condition, matcher="jsonpath"))
    if isinstance(condition, JsonPointer):
        return PatternCondition(pattern(condition, matcher="pointer"))
    if isinstance(condition, str):
        return PatternCondition(pattern(condition))
    if callable(condition):
        return PredicateCondition(condition)
    raise ClauseError(
        "A clause condition must be a callable or a pattern, "
        f"got {type(condition).__name__}"
    )


@dataclass(frozen=True)
class Clause:
    """One conditional redirect: when `condition` holds, call `then`."""

    condition: Condition
    then: Callable[..., Any]

    @classmethod
    def build(cls, condition: Any, then: Any) -> Clause:
        """Validate user input and build a clause.

        Raises:
            ClauseError: If either part is missing or malformed.
            MatcherError: If a pattern expression cannot be compiled.
        """
        consequence = require_callable(then, "clause consequence (`then`)")
        return cls(condition=as_condition(condition), then=consequence)

    @property
    def kind(self) -> str:
        return self.condition.kind

    @property
    def label(self) -> str:
        """Name of the consequence, for logs."""
        return callable_name(self.then)

    def evaluate(self, args: tuple[Any, ...]) -> MatchResult:
        return self.condition.evaluate(args)


__all__ = [
    "Clause",
    "Condition",
    "MatchResult",
    "NOT_MATCHED",
    "PatternCondition",
    "PredicateCondition",
    "as_condition",
    "callable_name",
    "require_callable",
]
