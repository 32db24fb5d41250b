"""Chainable guard clauses for plain Python functions.

A Guard wraps a function and lets you redirect calls to other functions
based on the arguments, without touching the original function body.
Clauses are added by chaining; every call returns a NEW guard and leaves
the receiver unchanged, so intermediate guards can be shared and reused.

Dispatch Order:
    The most recently attached clause is tried first, then earlier ones,
    and the base function runs only if none matched::

        add = (
            guard(lambda a, b: a + b)
            .when(lambda a, b: a < 0, lambda a, b: "a")   # tried second
            .when(lambda a, b: b < 0, lambda a, b: "b")   # tried first
        )

        add(1, 2)    # -> 3
        add(-1, 2)   # -> 'a'
        add(-1, -1)  # -> 'b'

Conditions:
    - Callables are predicates over the full argument list; the
      consequence receives the same arguments.
    - Strings and compiled patterns are structural queries checked against
      each argument on its own; the consequence receives only the arguments
      that matched::

          is_user = guard(lambda *docs: False).when("$..user", lambda *docs: True)
          is_user({"user": {"id": 1}})  # -> True

Transformations:
    before, after, map and filter wrap the guard they are called on. A
    clause added AFTER a transformation sees the untransformed arguments;
    clauses added before it see the transformed ones.

Errors:
    Exceptions raised by predicates, matchers, consequences or the base
    function propagate unchanged. Malformed clauses fail when the clause
    is built (ClauseError / MatcherError), never at call time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

from flap.clause import (
    Clause,
    PredicateCondition,
    callable_name,
    require_callable,
)
from flap.config import current_config
from flap.logging import (
    DispatchLog,
    _emit_log,
    is_logging_active,
    trace_context,
)

# Module-level logger for debug messages about dispatch decisions
_logger = logging.getLogger(__name__)


def _noop(*args: Any) -> None:
    return None


def _abort(*args: Any) -> None:
    return None


# ---------------------------------------------------------------------------
# Transformation steps
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Step:
    """Callable wrapper placed between a guard and the guard it transforms.

    Subclasses define __call__.
    """

    inner: Guard
    fn: Callable[..., Any]

    kind: ClassVar[str] = "step"

    @property
    def __name__(self) -> str:
        return f"{self.kind}({callable_name(self.fn)})"


class _Before(_Step):
    kind = "before"

    def __call__(self, *args: Any) -> Any:
        return self.inner(*self.fn(*args))


class _After(_Step):
    kind = "after"

    def __call__(self, *args: Any) -> Any:
        return self.fn(self.inner(*args))


class _Map(_Step):
    kind = "map"

    def __call__(self, *args: Any) -> Any:
        return self.inner(*[self.fn(arg) for arg in args])


class _Filter(_Step):
    kind = "filter"

    def __call__(self, *args: Any) -> Any:
        return self.inner(*[arg for arg in args if self.fn(arg)])


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


class Guard:
    """An immutable, chainable guard around a function.

    Attributes:
        base: What runs when this guard's own clause does not match: the
              wrapped function, the previous guard, or a transformation step.
        clause: The clause this guard attached, or None.
        name: Name used in logs and repr (defaults to the function's name).

    Call the guard directly, or through `value()`, with positional arguments.
    """

    base: Callable[..., Any]
    clause: Clause | None
    name: str

    def __init__(self, func: Callable[..., Any] | None = None, *, name: str | None = None) -> None:
        """Wrap a function.

        Args:
            func: Function to guard. Defaults to a no-op returning None.
            name: Override the name used in logs and repr.

        Raises:
            ClauseError: If func is given but not callable.
        """
        if func is None:
            func = _noop
        else:
            require_callable(func, "guarded function")
        self._setup(func, None, name or callable_name(func), func)

    def _setup(
        self,
        base: Callable[..., Any],
        clause: Clause | None,
        name: str,
        wrapped: Callable[..., Any],
    ) -> None:
        setattr_ = object.__setattr__
        setattr_(self, "base", base)
        setattr_(self, "clause", clause)
        setattr_(self, "name", name)
        # Mirror functools.wraps so the guard introspects like the function it wraps
        for attr in ("__module__", "__qualname__", "__doc__"):
            if hasattr(wrapped, attr):
                setattr_(self, attr, getattr(wrapped, attr))
        setattr_(self, "__name__", name)
        setattr_(self, "__wrapped__", wrapped)

    def _derive(self, base: Callable[..., Any], clause: Clause | None = None) -> Guard:
        derived = Guard.__new__(Guard)
        derived._setup(base, clause, self.name, self.__wrapped__)
        return derived

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Guard objects are immutable; cannot set {name!r}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Guard objects are immutable; cannot delete {name!r}")

    @property
    def func(self) -> Callable[..., Any]:
        """Alias for `base`."""
        return self.base

    @property
    def clauses(self) -> tuple[Clause, ...]:
        """Every clause reachable from this guard, oldest attachment first.

        Walks through previous guards and transformation steps. Clauses of a
        guard used as a consequence (as `unless` does) are not included.
        """
        found: list[Clause] = []
        node: Any = self
        while True:
            if isinstance(node, Guard):
                if node.clause is not None:
                    found.append(node.clause)
                node = node.base
            elif isinstance(node, _Step):
                node = node.inner
            else:
                break
        return tuple(reversed(found))

    def __repr__(self) -> str:
        return f"<Guard {self.name!r} clauses={len(self.clauses)}>"

    # -----------------------------------------------------------------------
    # Invocation
    # -----------------------------------------------------------------------

    def __call__(self, *args: Any) -> Any:
        if not is_logging_active():
            return self._dispatch(args, None)

        prefix = current_config().name_prefix
        with trace_context() as trace:
            log = DispatchLog(
                guard_name=f"{prefix}{self.name}" if prefix else self.name,
                trace_id=trace.trace_id,
                span_id=trace.span_id,
                parent_span_id=trace.parent_span_id,
                arg_count=len(args),
            )
            try:
                result = self._dispatch(args, log)
            except Exception as e:
                log.finalize(success=False, error=e)
                _emit_log(log)
                raise
            log.finalize(success=True)
            _emit_log(log)
            return result

    def value(self, *args: Any) -> Any:
        """Call the guard. Equivalent to `self(*args)`."""
        return self(*args)

    def _dispatch(self, args: tuple[Any, ...], log: DispatchLog | None) -> Any:
        node: Any = self
        evaluated = 0
        while isinstance(node, Guard):
            clause = node.clause
            if clause is not None:
                evaluated += 1
                if log is not None:
                    log.clauses_evaluated = evaluated
                outcome = clause.evaluate(args)
                if outcome.matched:
                    if _logger.isEnabledFor(logging.DEBUG):
                        _logger.debug(
                            "Guard '%s': %s clause matched, calling %s",
                            self.name, clause.kind, clause.label,
                        )
                    if log is not None:
                        log.record_clause(clause.kind, clause.label, len(outcome.args))
                    return clause.then(*outcome.args)
            node = node.base

        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("Guard '%s': no clause matched, calling %s", self.name, callable_name(node))
        if log is not None:
            log.record_base(callable_name(node))
        return node(*args)

    # -----------------------------------------------------------------------
    # Condition combinators
    # -----------------------------------------------------------------------

    def when(self, condition: Any, then: Callable[..., Any]) -> Guard:
        """If `condition` holds, call `then` instead of this guard.

        Args:
            condition: Predicate over the full argument list, or a pattern
                       (string, `flap.pattern()`, jsonpath-ng expression or
                       JsonPointer) checked against each argument.
            then: Called with the full arguments (predicate) or with only
                  the matching arguments (pattern).

        Returns:
            New Guard whose fallback is this guard.

        Raises:
            ClauseError: If condition or then is missing or malformed.
            MatcherError: If a pattern cannot be compiled.

        Example:
            divide = guard(lambda a, b: a / b).when(
                lambda a, b: b == 0,
                lambda a, b: a,
            )
            divide(6, 2)  # -> 3.0
            divide(6, 0)  # -> 6
        """
        return self._derive(self, Clause.build(condition, then))

    def unless(self, condition: Any, then: Callable[..., Any]) -> Guard:
        """Call `then` unless `condition` holds, in which case call this guard.

        Inverts `when`: `then` becomes the fallback and this guard becomes
        the consequence. The result keeps this guard's name and wrapped
        function, like every other combinator.

        Raises:
            ClauseError: If condition or then is missing or malformed.
        """
        fallback = require_callable(then, "clause consequence (`then`)")
        return self._derive(self._derive(fallback), Clause.build(condition, self))

    def all(self, predicate: Callable[[Any], Any], then: Callable[..., Any]) -> Guard:
        """Call `then` when every argument satisfies `predicate`.

        `predicate` is called once per argument. A call with no arguments
        satisfies it vacuously.
        """
        check = require_callable(predicate, "predicate")

        def every(*args: Any) -> bool:
            return all(check(arg) for arg in args)

        return self._derive(self, Clause.build(PredicateCondition(every, kind="all"), then))

    def any(self, predicate: Callable[[Any], Any], then: Callable[..., Any]) -> Guard:
        """Call `then` when at least one argument satisfies `predicate`.

        `predicate` is called once per argument. A call with no arguments
        never satisfies it.
        """
        check = require_callable(predicate, "predicate")

        def some(*args: Any) -> bool:
            return any(check(arg) for arg in args)

        return self._derive(self, Clause.build(PredicateCondition(some, kind="any"), then))

    def abort(self, condition: Any) -> Guard:
        """Return None, skipping everything else, when `condition` holds.

        Accepts the same conditions as `when`.
        """
        return self._derive(self, Clause.build(condition, _abort))

    # -----------------------------------------------------------------------
    # Transformation combinators
    # -----------------------------------------------------------------------

    def before(self, transform: Callable[..., Any]) -> Guard:
        """Rewrite the argument list before this guard sees it.

        `transform` receives the arguments spread positionally and returns an
        iterable that becomes the new positional arguments.

        Example:
            add3 = guard(lambda a, b, c: a + b + c).before(
                lambda a, b, c: [1 if a < 0 else a, b, c]
            )
            add3(-1, 1, 1)  # -> 3
        """
        return self._derive(_Before(self, require_callable(transform, "transform")))

    def after(self, transform: Callable[[Any], Any]) -> Guard:
        """Apply `transform` to whatever this guard returns."""
        return self._derive(_After(self, require_callable(transform, "transform")))

    def map(self, mapper: Callable[[Any], Any]) -> Guard:
        """Apply `mapper` to each argument before this guard sees them."""
        return self._derive(_Map(self, require_callable(mapper, "mapper")))

    def filter(self, predicate: Callable[[Any], Any]) -> Guard:
        """Drop arguments failing `predicate` before this guard sees them.

        Order is preserved; the number of arguments may shrink.
        """
        return self._derive(_Filter(self, require_callable(predicate, "filter predicate")))


def guard(func: Callable[..., Any] | None = None, *, name: str | None = None) -> Guard:
    """Wrap a function with chainable guard clauses.

    Also works as a bare decorator::

        @guard
        def parse(text):
            return int(text)

        safe_parse = parse.unless(str.isdigit, lambda text: None)

    Args:
        func: Function to guard. Defaults to a no-op returning None.
        name: Override the name used in logs and repr.
    """
    return Guard(func, name=name)


__all__ = [
    "Guard",
    "guard",
]
