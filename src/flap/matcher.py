"""Structural matchers for pattern clauses.

A pattern clause (`Guard.when("$..user", on_user)`) asks a matcher, once per
argument, whether that argument satisfies the pattern. Matchers are
pluggable: anything implementing the `Matcher` protocol can be registered
under a name and selected through configuration or `pattern(..., matcher=)`.

Built-in matchers:
    jsonpath  JSONPath via jsonpath-ng (default)       "$..user.id"
    jmespath  JMESPath via jmespath                    "user.id"
    pointer   JSON Pointer (RFC 6901) via jsonpointer  "/user/id"

Only documents (mappings, lists and tuples) can match. Strings, numbers
and None never satisfy a structural pattern.

Example:
    from flap import guard, pattern

    handle = guard(default).when(pattern("/user/id", matcher="pointer"), on_user)
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import jmespath
from jmespath.exceptions import JMESPathError
from jsonpath_ng.jsonpath import JSONPath
from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as jsonpath_parse
from jsonpointer import EndOfList, JsonPointer, JsonPointerException

from flap.config import current_config
from flap.exceptions import FlapConfigError, MatcherError


@dataclass(frozen=True)
class Match:
    """Outcome of evaluating one pattern against one value.

    Attributes:
        matched: Whether the value satisfies the pattern
        value: What the pattern selected inside the value (None when unmatched)
    """

    matched: bool
    value: Any = None

    def __bool__(self) -> bool:
        return self.matched


NO_MATCH = Match(matched=False)


@runtime_checkable
class Matcher(Protocol):
    """Protocol for structural matchers.

    `compile` turns a user expression into whatever the matcher evaluates
    and must raise MatcherError for invalid syntax. `match` must be pure.
    """

    def compile(self, expression: Any) -> Any:
        """Compile an expression, raising MatcherError if it is invalid."""
        ...

    def match(self, compiled: Any, value: Any) -> Match:
        """Evaluate a compiled expression against a single value."""
        ...


def is_document(value: Any) -> bool:
    """Whether a value is a JSON-like container that patterns can address."""
    return isinstance(value, (Mapping, list, tuple))


class JSONPathMatcher:
    """JSONPath matcher backed by jsonpath-ng's extended parser.

    A document matches when the expression finds at least one datum.
    The match value is the list of found values.
    """

    name = "jsonpath"

    def compile(self, expression: Any) -> JSONPath:
        if isinstance(expression, JSONPath):
            return expression
        if not isinstance(expression, str):
            raise MatcherError(
                f"JSONPath expression must be a string, got {type(expression).__name__}",
                expression=expression,
            )
        try:
            return jsonpath_parse(expression)
        except JSONPathError as e:
            raise MatcherError(
                f"Invalid JSONPath expression {expression!r}: {e}",
                expression=expression,
                original_error=e,
            ) from e

    def match(self, compiled: JSONPath, value: Any) -> Match:
        if not is_document(value):
            return NO_MATCH
        found = compiled.find(value)
        if not found:
            return NO_MATCH
        return Match(matched=True, value=[datum.value for datum in found])


class JMESPathMatcher:
    """JMESPath matcher backed by jmespath.

    A document matches when the search result is neither None nor an
    empty list (projections over missing keys yield []).
    """

    name = "jmespath"

    def compile(self, expression: Any) -> Any:
        if not isinstance(expression, str):
            raise MatcherError(
                f"JMESPath expression must be a string, got {type(expression).__name__}",
                expression=expression,
            )
        try:
            return jmespath.compile(expression)
        except JMESPathError as e:
            raise MatcherError(
                f"Invalid JMESPath expression {expression!r}: {e}",
                expression=expression,
                original_error=e,
            ) from e

    def match(self, compiled: Any, value: Any) -> Match:
        if not is_document(value):
            return NO_MATCH
        result = compiled.search(value)
        if result is None or result == []:
            return NO_MATCH
        return Match(matched=True, value=result)


_UNRESOLVED = object()


class JSONPointerMatcher:
    """JSON Pointer matcher backed by jsonpointer.

    A document matches when the pointer resolves to an existing member.
    The "-" array index (one past the end) never matches.
    """

    name = "pointer"

    def compile(self, expression: Any) -> JsonPointer:
        if isinstance(expression, JsonPointer):
            return expression
        if not isinstance(expression, str):
            raise MatcherError(
                f"JSON Pointer must be a string, got {type(expression).__name__}",
                expression=expression,
            )
        try:
            return JsonPointer(expression)
        except JsonPointerException as e:
            raise MatcherError(
                f"Invalid JSON Pointer {expression!r}: {e}",
                expression=expression,
                original_error=e,
            ) from e

    def match(self, compiled: JsonPointer, value: Any) -> Match:
        if not is_document(value):
            return NO_MATCH
        resolved = compiled.resolve(value, _UNRESOLVED)
        if resolved is _UNRESOLVED or isinstance(resolved, EndOfList):
            return NO_MATCH
        return Match(matched=True, value=resolved)


# ---------------------------------------------------------------------------
# Matcher registry
# ---------------------------------------------------------------------------

_registry: dict[str, Matcher] = {
    JSONPathMatcher.name: JSONPathMatcher(),
    JMESPathMatcher.name: JMESPathMatcher(),
    JSONPointerMatcher.name: JSONPointerMatcher(),
}
_registry_lock = threading.Lock()


def register_matcher(name: str, matcher: Matcher) -> None:
    """Register a matcher under a name (case-insensitive).

    Registering an existing name replaces the previous matcher. Guards that
    were already built keep the matcher they were built with.

    Raises:
        MatcherError: If the name is empty or the object is not a Matcher.
    """
    key = name.strip().lower()
    if not key:
        raise MatcherError("Matcher name cannot be empty")
    if not isinstance(matcher, Matcher):
        raise MatcherError(
            f"Matcher {name!r} must provide compile() and match(), "
            f"got {type(matcher).__name__}"
        )
    with _registry_lock:
        _registry[key] = matcher


def get_matcher(name: str) -> Matcher:
    """Look up a registered matcher by name.

    Raises:
        MatcherError: If no matcher is registered under the name.
    """
    key = name.strip().lower()
    with _registry_lock:
        matcher = _registry.get(key)
    if matcher is None:
        raise MatcherError(
            f"Unknown matcher '{name}'. Available: {available_matchers()}"
        )
    return matcher


def available_matchers() -> list[str]:
    """Names of all registered matchers, sorted."""
    with _registry_lock:
        return sorted(_registry)


def default_matcher() -> Matcher:
    """The matcher selected by the active configuration.

    Raises:
        FlapConfigError: If the configured name is not registered.
    """
    name = current_config().matcher
    try:
        return get_matcher(name)
    except MatcherError as e:
        raise FlapConfigError(f"Configured default matcher is invalid: {e}") from e


# ---------------------------------------------------------------------------
# Compiled patterns
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pattern:
    """A compiled expression bound to the matcher that evaluates it."""

    expression: Any
    matcher: Matcher = field(compare=False)
    compiled: Any = field(repr=False, compare=False)

    def matches(self, value: Any) -> Match:
        """Evaluate this pattern against a single value."""
        return self.matcher.match(self.compiled, value)


def pattern(expression: Any, matcher: str | Matcher | None = None) -> Pattern:
    """Compile an expression into a Pattern.

    Args:
        expression: Pattern source, e.g. "$..user" or "/user/id".
        matcher: Matcher name, Matcher instance, or None for the configured default.

    Raises:
        MatcherError: If the matcher is unknown or rejects the expression.
        FlapConfigError: If matcher is None and the configured default is invalid.
    """
    if matcher is None:
        resolved = default_matcher()
    elif isinstance(matcher, str):
        resolved = get_matcher(matcher)
    else:
        resolved = matcher
    return Pattern(expression=expression, matcher=resolved, compiled=resolved.compile(expression))


__all__ = [
    "Match",
    "NO_MATCH",
    "Matcher",
    "JSONPathMatcher",
    "JMESPathMatcher",
    "JSONPointerMatcher",
    "Pattern",
    "pattern",
    "register_matcher",
    "get_matcher",
    "available_matchers",
    "default_matcher",
    "is_document",
]
