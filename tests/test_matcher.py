"""Tests for structural matchers and the matcher registry."""

import pytest
from jsonpath_ng.ext import parse as jsonpath_parse

import flap.matcher as matcher_module
from flap import Config, FlapConfigError, Guard, MatcherError, pattern
from flap.matcher import (
    NO_MATCH,
    JMESPathMatcher,
    JSONPathMatcher,
    JSONPointerMatcher,
    Match,
    Matcher,
    Pattern,
    available_matchers,
    default_matcher,
    get_matcher,
    is_document,
    register_matcher,
)


class PrefixMatcher:
    """Matches strings that start with the expression."""

    def compile(self, expression):
        if not isinstance(expression, str):
            raise MatcherError("prefix must be a string", expression=expression)
        return expression

    def match(self, compiled, value):
        if isinstance(value, str) and value.startswith(compiled):
            return Match(matched=True, value=value[len(compiled):])
        return NO_MATCH


class TestMatch:
    """Tests for the Match result type."""

    def test_truthiness_follows_matched(self):
        assert Match(matched=True, value=0)
        assert not Match(matched=False)

    def test_no_match_constant(self):
        assert NO_MATCH.matched is False
        assert NO_MATCH.value is None


class TestIsDocument:
    """Only containers are addressable by patterns."""

    @pytest.mark.parametrize("value", [{}, {"a": 1}, [], [1], (1,)])
    def test_containers(self, value):
        assert is_document(value)

    @pytest.mark.parametrize("value", ["text", b"bytes", 1, 1.5, None, True])
    def test_scalars(self, value):
        assert not is_document(value)


class TestJSONPathMatcher:
    """Tests for the jsonpath-ng backed matcher."""

    def setup_method(self):
        self.matcher = JSONPathMatcher()

    def test_recursive_descent(self):
        compiled = self.matcher.compile("$..b")
        assert self.matcher.match(compiled, {"b": "y"}) == Match(True, ["y"])
        assert self.matcher.match(compiled, {"a": {"b": 1}}) == Match(True, [1])
        assert self.matcher.match(compiled, {"a": "z"}) == NO_MATCH

    def test_falsy_values_still_match(self):
        compiled = self.matcher.compile("$.b")
        assert self.matcher.match(compiled, {"b": 0}).matched
        assert self.matcher.match(compiled, {"b": None}).matched

    def test_list_documents(self):
        compiled = self.matcher.compile("$[0]")
        assert self.matcher.match(compiled, ["first"]) == Match(True, ["first"])

    def test_filter_expressions(self):
        compiled = self.matcher.compile("$.items[?price > 10]")
        assert self.matcher.match(compiled, {"items": [{"price": 50}]}).matched
        assert not self.matcher.match(compiled, {"items": [{"price": 5}]}).matched

    def test_scalars_never_match(self):
        compiled = self.matcher.compile("$..b")
        assert self.matcher.match(compiled, "b") == NO_MATCH
        assert self.matcher.match(compiled, None) == NO_MATCH

    def test_precompiled_expression_passes_through(self):
        expr = jsonpath_parse("$.a")
        assert self.matcher.compile(expr) is expr

    def test_invalid_expression(self):
        with pytest.raises(MatcherError, match="Invalid JSONPath") as exc_info:
            self.matcher.compile("$[[[")
        assert exc_info.value.expression == "$[[["
        assert exc_info.value.original_error is not None

    def test_non_string_expression(self):
        with pytest.raises(MatcherError, match="must be a string"):
            self.matcher.compile(42)


class TestJMESPathMatcher:
    """Tests for the jmespath backed matcher."""

    def setup_method(self):
        self.matcher = JMESPathMatcher()

    def test_field_lookup(self):
        compiled = self.matcher.compile("a.b")
        assert self.matcher.match(compiled, {"a": {"b": 1}}) == Match(True, 1)
        assert self.matcher.match(compiled, {"a": {}}) == NO_MATCH

    def test_empty_projection_is_no_match(self):
        compiled = self.matcher.compile("a[*].x")
        assert self.matcher.match(compiled, {"a": [{"y": 1}]}) == NO_MATCH
        assert self.matcher.match(compiled, {"a": [{"x": 1}]}) == Match(True, [1])

    def test_false_result_matches(self):
        compiled = self.matcher.compile("enabled")
        assert self.matcher.match(compiled, {"enabled": False}).matched

    def test_scalars_never_match(self):
        compiled = self.matcher.compile("@")
        assert self.matcher.match(compiled, "text") == NO_MATCH

    def test_invalid_expression(self):
        with pytest.raises(MatcherError, match="Invalid JMESPath"):
            self.matcher.compile("a[")

    def test_non_string_expression(self):
        with pytest.raises(MatcherError, match="must be a string"):
            self.matcher.compile(["a"])


class TestJSONPointerMatcher:
    """Tests for the jsonpointer backed matcher."""

    def setup_method(self):
        self.matcher = JSONPointerMatcher()

    def test_resolves_members(self):
        compiled = self.matcher.compile("/a/0")
        assert self.matcher.match(compiled, {"a": [5]}) == Match(True, 5)

    def test_missing_members(self):
        assert self.matcher.match(self.matcher.compile("/a/1"), {"a": [5]}) == NO_MATCH
        assert self.matcher.match(self.matcher.compile("/b"), {"a": 1}) == NO_MATCH

    def test_end_of_list_is_no_match(self):
        assert self.matcher.match(self.matcher.compile("/a/-"), {"a": [1]}) == NO_MATCH

    def test_empty_pointer_matches_whole_document(self):
        doc = {"a": 1}
        assert self.matcher.match(self.matcher.compile(""), doc) == Match(True, doc)

    def test_null_member_matches(self):
        assert self.matcher.match(self.matcher.compile("/a"), {"a": None}).matched

    def test_invalid_pointer(self):
        with pytest.raises(MatcherError, match="Invalid JSON Pointer"):
            self.matcher.compile("no-leading-slash")


class TestRegistry:
    """Tests for matcher registration and lookup."""

    def test_builtins_registered(self):
        assert available_matchers() == ["jmespath", "jsonpath", "pointer"]

    def test_builtins_satisfy_protocol(self):
        for name in available_matchers():
            assert isinstance(get_matcher(name), Matcher)

    def test_lookup_is_case_insensitive(self):
        assert isinstance(get_matcher(" JSONPath "), JSONPathMatcher)

    def test_unknown_matcher(self):
        with pytest.raises(MatcherError, match="Unknown matcher 'xpath'. Available"):
            get_matcher("xpath")

    def test_register_custom(self):
        custom = PrefixMatcher()
        register_matcher("Prefix", custom)
        assert get_matcher("prefix") is custom
        assert "prefix" in available_matchers()

    def test_register_replaces(self):
        custom = PrefixMatcher()
        register_matcher("jsonpath", custom)
        assert get_matcher("jsonpath") is custom

    def test_register_rejects_non_matcher(self):
        with pytest.raises(MatcherError, match="must provide compile"):
            register_matcher("broken", object())

    def test_register_rejects_empty_name(self):
        with pytest.raises(MatcherError, match="cannot be empty"):
            register_matcher("  ", PrefixMatcher())


class TestPattern:
    """Tests for pattern() and Pattern."""

    def test_default_matcher_is_jsonpath(self):
        p = pattern("$..b")
        assert isinstance(p, Pattern)
        assert isinstance(p.matcher, JSONPathMatcher)
        assert p.matches({"b": 1}).matched

    def test_named_matcher(self):
        p = pattern("/b", matcher="pointer")
        assert isinstance(p.matcher, JSONPointerMatcher)
        assert p.matches({"b": 1}) == Match(True, 1)

    def test_matcher_instance(self):
        p = pattern("ab", matcher=PrefixMatcher())
        assert p.matches("abc") == Match(True, "c")

    def test_configured_default(self):
        with Config({"matcher": "jmespath"}):
            p = pattern("a.b")
        assert isinstance(p.matcher, JMESPathMatcher)

    def test_configured_default_unregistered_later(self):
        register_matcher("temp", PrefixMatcher())
        with Config(matcher="temp"):
            matcher_module._registry.pop("temp")
            with pytest.raises(FlapConfigError, match="Configured default matcher is invalid"):
                default_matcher()

    def test_invalid_expression_raises(self):
        with pytest.raises(MatcherError):
            pattern("a[", matcher="jmespath")

    def test_equality_by_expression(self):
        assert pattern("$.a") == pattern("$.a")


class TestCustomMatcherInGuards:
    """Registered matchers plug into Guard.when."""

    def test_custom_matcher_by_name(self):
        register_matcher("prefix", PrefixMatcher())
        g = Guard(lambda *a: "other").when(pattern("cmd:", matcher="prefix"), lambda *cmds: cmds)
        assert g("cmd:run", "noise", "cmd:stop") == ("cmd:run", "cmd:stop")
        assert g("noise") == "other"

    def test_custom_matcher_as_configured_default(self):
        register_matcher("prefix", PrefixMatcher())
        with Config({"matcher": "prefix"}):
            g = Guard(lambda *a: "other").when("cmd:", lambda *cmds: "command")
        # Built inside the context; the matcher sticks after it exits
        assert g("cmd:run") == "command"
