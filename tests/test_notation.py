"""
Unit tests for notation-key resolution.

These tests verify that:
1. Numbers resolve to NUMERIC, tolerating thousands separators
2. Notation tokens resolve case-insensitively to their kind, never to zero
3. Blank cells and unknown text stay UNRESOLVED
"""

import pytest

from ghgkit.notation import NotationKind, NotationResolver


@pytest.fixture
def resolver():
    return NotationResolver()


# =============================================================================
# NUMERIC VALUES
# =============================================================================

class TestNumericValues:

    def test_plain_integer(self, resolver):
        decision = resolver.resolve("1500")
        assert decision.kind is NotationKind.NUMERIC
        assert decision.value == 1500.0
        assert decision.is_numeric is True
        assert decision.is_notation is False

    def test_thousands_separator_and_whitespace(self, resolver):
        assert resolver.resolve(" 1,500.25 ").value == 1500.25

    @pytest.mark.parametrize("raw,value", [
        ("1,500", 1500.0),
        ("12,345,678", 12345678.0),
        ("1 500 000", 1500000.0),
        ("-1,500.5", -1500.5),
    ])
    def test_grouped_thousands(self, resolver, raw, value):
        assert resolver.resolve(raw).value == value

    @pytest.mark.parametrize("raw", ["1,5", "12,34,5", "1,500 000", "1500,000", "1,50"])
    def test_misplaced_separator_is_unresolved(self, resolver, raw):
        decision = resolver.resolve(raw)
        assert decision.kind is NotationKind.UNRESOLVED
        assert decision.token == raw

    def test_negative_number_is_still_numeric(self, resolver):
        decision = resolver.resolve("-3")
        assert decision.is_numeric is True
        assert decision.value == -3.0

    def test_scientific_notation(self, resolver):
        assert resolver.resolve("2e3").value == 2000.0

    @pytest.mark.parametrize("raw", ["inf", "nan", "1e400"])
    def test_non_finite_is_unresolved(self, resolver, raw):
        assert resolver.resolve(raw).kind is NotationKind.UNRESOLVED


# =============================================================================
# NOTATION TOKENS
# =============================================================================

class TestNotationTokens:

    @pytest.mark.parametrize("raw,kind", [
        ("NO", NotationKind.NOT_APPLICABLE),
        ("na", NotationKind.NOT_APPLICABLE),
        ("IE", NotationKind.NOT_APPLICABLE),
        ("NE", NotationKind.NOT_ESTIMATED),
        ("nr", NotationKind.NOT_ESTIMATED),
        ("C", NotationKind.CONFIDENTIAL),
    ])
    def test_token_kinds(self, resolver, raw, kind):
        decision = resolver.resolve(raw)
        assert decision.kind is kind
        assert decision.value is None
        assert decision.token == raw.upper()
        assert decision.is_notation is True

    def test_token_never_means_zero(self, resolver):
        assert resolver.resolve("NO").value is None

    def test_is_token(self, resolver):
        assert resolver.is_token(" ne ") is True
        assert resolver.is_token("12") is False
        assert resolver.is_token(None) is False

    def test_custom_vocabulary(self):
        resolver = NotationResolver({"NULL": NotationKind.NOT_ESTIMATED})
        assert resolver.resolve("null").kind is NotationKind.NOT_ESTIMATED
        assert resolver.resolve("NO").kind is NotationKind.UNRESOLVED


# =============================================================================
# UNRESOLVED VALUES
# =============================================================================

class TestUnresolved:

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_is_unresolved_without_token(self, resolver, raw):
        decision = resolver.resolve(raw)
        assert decision.kind is NotationKind.UNRESOLVED
        assert decision.is_blank is True
        assert decision.value is None

    def test_text_is_unresolved_with_token(self, resolver):
        decision = resolver.resolve("abc")
        assert decision.kind is NotationKind.UNRESOLVED
        assert decision.is_blank is False
        assert decision.token == "abc"

    def test_parse_number_rejects_units(self):
        assert NotationResolver.parse_number("12 kWh") is None
