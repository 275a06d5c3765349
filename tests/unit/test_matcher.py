"""
Unit tests for the rule matcher.

Tests cover:
- SNI wildcard semantics
- Protocol, port and comparator conditions
- Missing context fields
- State gating (when / disable)
- The any short-circuit
"""

import pytest

from netpolicy.matcher import evaluate, match_conditions, match_sni, state_allows
from netpolicy.schema import MatchContext, MatchSpec, Rule, State


def make_rule(match: dict, **kwargs) -> Rule:
    data = {"name": "r", "priority": 10, "match": match, "action": {"route": "direct"}}
    data.update(kwargs)
    return Rule.model_validate(data)


# =============================================================================
# SNI Tests
# =============================================================================


class TestMatchSni:
    """Tests for wildcard SNI matching."""

    def test_exact(self) -> None:
        assert match_sni("call.zoom.us", "call.zoom.us") is True
        assert match_sni("call.zoom.us", "chat.zoom.us") is False

    def test_wildcard_one_label(self) -> None:
        assert match_sni("*.zoom.us", "call.zoom.us") is True

    def test_wildcard_many_labels(self) -> None:
        assert match_sni("*.zoom.us", "a.b.zoom.us") is True

    def test_wildcard_requires_a_label(self) -> None:
        """*.zoom.us does not cover the bare domain."""
        assert match_sni("*.zoom.us", "zoom.us") is False

    def test_wildcard_respects_label_boundary(self) -> None:
        assert match_sni("*.zoom.us", "evilzoom.us") is False

    def test_case_insensitive(self) -> None:
        assert match_sni("*.zoom.us", "CALL.Zoom.US") is True

    def test_trailing_dot_ignored(self) -> None:
        assert match_sni("*.zoom.us", "call.zoom.us.") is True

    def test_star_matches_anything(self) -> None:
        assert match_sni("*", "example.com") is True

    def test_empty_hostname(self) -> None:
        assert match_sni("*", "") is False


# =============================================================================
# Condition Tests
# =============================================================================


class TestMatchConditions:
    """Tests for match_conditions()."""

    def test_any_matches_empty_context(self) -> None:
        assert match_conditions(MatchSpec(any=True), MatchContext()) is True

    def test_any_short_circuits(self) -> None:
        spec = MatchSpec.model_validate({"any": True, "sni": "*.zoom.us", "port": "1"})
        assert match_conditions(spec, MatchContext(sni="example.com", port=2)) is True

    def test_any_false_evaluates_fields(self) -> None:
        spec = MatchSpec.model_validate({"any": False, "protocol": "udp"})
        assert match_conditions(spec, MatchContext(protocol="tcp")) is False

    def test_protocol_case_insensitive(self) -> None:
        spec = MatchSpec.model_validate({"protocol": "tcp"})
        assert match_conditions(spec, MatchContext(protocol="TCP")) is True
        assert match_conditions(spec, MatchContext(protocol="udp")) is False

    @pytest.mark.parametrize(
        ("port", "expected"),
        [(22, True), (80, True), (1500, True), (21, False), (999, False), (2001, False)],
    )
    def test_port_set(self, port: int, expected: bool) -> None:
        spec = MatchSpec.model_validate({"port": "22,80,1000-2000"})
        assert match_conditions(spec, MatchContext(port=port)) is expected

    @pytest.mark.parametrize(("latency", "expected"), [(121, True), (120, False), (500, True)])
    def test_latency_comparator(self, latency: float, expected: bool) -> None:
        spec = MatchSpec.model_validate({"latency_ms": ">120"})
        assert match_conditions(spec, MatchContext(latency_ms=latency)) is expected

    @pytest.mark.parametrize(("rtt", "expected"), [(50, True), (51, False), (0, True)])
    def test_rtt_comparator(self, rtt: float, expected: bool) -> None:
        spec = MatchSpec.model_validate({"rtt_ms": "<=50"})
        assert match_conditions(spec, MatchContext(rtt_ms=rtt)) is expected

    def test_latency_and_rtt_are_independent(self) -> None:
        """Both conditions are checked, each against its own context field."""
        spec = MatchSpec.model_validate({"latency_ms": ">100", "rtt_ms": "<50"})
        assert match_conditions(spec, MatchContext(latency_ms=150, rtt_ms=20)) is True
        assert match_conditions(spec, MatchContext(latency_ms=150, rtt_ms=80)) is False
        assert match_conditions(spec, MatchContext(latency_ms=150)) is False

    @pytest.mark.parametrize(
        "match",
        [
            {"sni": "*.zoom.us"},
            {"protocol": "tcp"},
            {"port": "443"},
            {"latency_ms": ">0"},
            {"rtt_ms": ">=0"},
        ],
    )
    def test_missing_context_field_fails(self, match: dict) -> None:
        spec = MatchSpec.model_validate(match)
        assert match_conditions(spec, MatchContext()) is False

    def test_all_fields_must_hold(self) -> None:
        spec = MatchSpec.model_validate({"sni": "*.zoom.us", "protocol": "tcp"})
        assert match_conditions(spec, MatchContext(sni="call.zoom.us", protocol="tcp")) is True
        assert match_conditions(spec, MatchContext(sni="call.zoom.us", protocol="udp")) is False
        assert match_conditions(spec, MatchContext(protocol="tcp")) is False


# =============================================================================
# State Gating Tests
# =============================================================================


class TestStateGating:
    """Tests for when/disable gating."""

    def test_ungated_rule_allowed_everywhere(self) -> None:
        rule = make_rule({"any": True})
        for state in State:
            assert state_allows(rule, state) is True

    def test_disable_blocks_listed_state(self) -> None:
        rule = make_rule({"any": True}, disable=["FAILOVER"])
        assert state_allows(rule, State.FAILOVER) is False
        assert state_allows(rule, State.NORMAL) is True

    def test_when_limits_to_listed_states(self) -> None:
        rule = make_rule({"any": True}, when={"state": ["DEGRADED", "RECOVERY"]})
        assert state_allows(rule, State.DEGRADED) is True
        assert state_allows(rule, State.RECOVERY) is True
        assert state_allows(rule, State.NORMAL) is False

    def test_when_without_state_is_ungated(self) -> None:
        rule = make_rule({"any": True}, when={})
        assert state_allows(rule, State.FAILOVER) is True

    def test_disable_wins_over_when(self) -> None:
        rule = make_rule({"any": True}, when={"state": "FAILOVER"}, disable="FAILOVER")
        assert state_allows(rule, State.FAILOVER) is False


class TestEvaluate:
    """Tests for evaluate()."""

    def test_disabled_rule_never_matches(self) -> None:
        rule = make_rule({"port": "6667"}, disable=["FAILOVER"])
        ctx = MatchContext(port=6667)
        assert evaluate(rule, ctx, State.FAILOVER) is False
        assert evaluate(rule, ctx, State.NORMAL) is True

    def test_any_rule_still_gated(self) -> None:
        rule = make_rule({"any": True}, when={"state": "DEGRADED"})
        assert evaluate(rule, MatchContext(), State.NORMAL) is False
        assert evaluate(rule, MatchContext(), State.DEGRADED) is True

    def test_repeatable(self) -> None:
        rule = make_rule({"sni": "*.zoom.us", "latency_ms": "<100"})
        ctx = MatchContext(sni="call.zoom.us", latency_ms=40)
        results = {evaluate(rule, ctx, State.NORMAL) for _ in range(50)}
        assert results == {True}
