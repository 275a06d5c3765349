"""
Rule matcher for netpolicy.

Evaluates a single rule against a connection snapshot and the current
operating state. Evaluation is pure: no I/O, no mutation, and every value it
compares was already parsed when the ruleset was loaded.

How it works:
    1. State gating: disable wins over when
    2. match.any short-circuits to True
    3. Every other present condition must hold (logical AND)
    4. A condition on a field the context does not carry fails
"""

from netpolicy.schema import MatchContext, MatchSpec, Rule, State


def evaluate(rule: Rule, context: MatchContext, state: State) -> bool:
    """
    Check whether a rule applies to a context under a state.

    Args:
        rule: A validated rule
        context: The connection snapshot
        state: Current operating state

    Returns:
        True if the rule is enabled in this state and its match conditions hold
    """
    return state_allows(rule, state) and match_conditions(rule.match, context)


def state_allows(rule: Rule, state: State) -> bool:
    """Apply the rule's disable and when.state gating."""
    if rule.disable is not None and state in rule.disable:
        return False
    if rule.when is not None and rule.when.state is not None:
        return state in rule.when.state
    return True


def match_conditions(spec: MatchSpec, context: MatchContext) -> bool:
    """AND together every present condition of a MatchSpec."""
    if spec.is_any:
        return True

    if spec.sni is not None:
        if context.sni is None or not match_sni(spec.sni, context.sni):
            return False

    if spec.protocol is not None:
        if context.protocol is None:
            return False
        if context.protocol.strip().lower() != spec.protocol.value:
            return False

    if spec.port is not None:
        if context.port is None or context.port not in spec.port:
            return False

    if spec.latency_ms is not None:
        if context.latency_ms is None or not spec.latency_ms.apply(context.latency_ms):
            return False

    if spec.rtt_ms is not None:
        if context.rtt_ms is None or not spec.rtt_ms.apply(context.rtt_ms):
            return False

    return True


def match_sni(pattern: str, hostname: str) -> bool:
    """
    Match a hostname against an SNI pattern.

    Supports exact match and DNS-suffix wildcards.
    Examples:
        call.zoom.us matches call.zoom.us
        call.zoom.us matches *.zoom.us
        a.b.zoom.us matches *.zoom.us
        zoom.us does NOT match *.zoom.us
        evilzoom.us does NOT match *.zoom.us
        anything matches *
    """
    host = hostname.strip().lower().rstrip(".")
    pattern = pattern.lower().rstrip(".")

    if not host:
        return False
    if pattern == "*":
        return True

    if pattern.startswith("*."):
        suffix = pattern[1:]  # .zoom.us
        # At least one non-empty label must precede the suffix
        return host.endswith(suffix) and len(host) > len(suffix)

    return host == pattern
