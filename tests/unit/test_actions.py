"""
Unit tests for action resolution.
"""

import pytest

from netpolicy.actions import build_decision, describe_action, resolve_action
from netpolicy.schema import ActionKind, ActionSpec, Rule, State


class TestResolveAction:
    """Tests for resolve_action()."""

    @pytest.mark.parametrize(
        ("spec", "expected"),
        [
            ({"route": "tunnel_fast"}, (ActionKind.ROUTE, "tunnel_fast")),
            ({"switch_route": "backup"}, (ActionKind.SWITCH_ROUTE, "backup")),
            ({"block": True}, (ActionKind.BLOCK, None)),
            ({"throttle": "slow_lane"}, (ActionKind.THROTTLE, "slow_lane")),
            ({"log": True}, (ActionKind.NONE, None)),
            ({}, (ActionKind.NONE, None)),
            ({"block": False, "log": True}, (ActionKind.NONE, None)),
        ],
    )
    def test_variants(self, spec: dict, expected: tuple) -> None:
        assert resolve_action(ActionSpec.model_validate(spec)) == expected


class TestBuildDecision:
    """Tests for build_decision()."""

    def test_no_rule(self) -> None:
        decision = build_decision(None, State.FAILOVER)
        assert decision.rule is None
        assert decision.action == ActionKind.NONE
        assert decision.log is False
        assert decision.state == State.FAILOVER

    def test_log_flag_carried(self) -> None:
        rule = Rule.model_validate(
            {
                "name": "zoom",
                "priority": 1,
                "match": {"any": True},
                "action": {"route": "tunnel_fast", "log": True},
            }
        )
        decision = build_decision(rule, State.NORMAL)
        assert decision.rule == "zoom"
        assert decision.action == ActionKind.ROUTE
        assert decision.target == "tunnel_fast"
        assert decision.log is True
        assert decision.summary() == "route tunnel_fast"

    def test_log_only_rule(self) -> None:
        rule = Rule.model_validate(
            {"name": "audit", "priority": 1, "match": {"any": True}, "action": {"log": True}}
        )
        decision = build_decision(rule, State.NORMAL)
        assert decision.matched is True
        assert decision.action == ActionKind.NONE
        assert decision.log is True


class TestDescribeAction:
    def test_with_log(self) -> None:
        assert describe_action(ActionSpec(route="fast", log=True)) == "route fast +log"

    def test_block(self) -> None:
        assert describe_action(ActionSpec(block=True)) == "block"
