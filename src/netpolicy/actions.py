"""
Action resolution for netpolicy.

Turns the winning rule's ActionSpec into a typed Decision. The loader already
rejects specs with more than one primary action, so resolution is a plain
lookup with no precedence rules.
"""

from netpolicy.schema import ActionKind, ActionSpec, Decision, Rule, State


def resolve_action(action: ActionSpec) -> tuple[ActionKind, str | None]:
    """
    Map an ActionSpec to its primary action and target.

    Returns:
        (kind, target) where target is the route name or throttle profile,
        or None for block and for log-only actions
    """
    if action.route is not None:
        return ActionKind.ROUTE, action.route
    if action.switch_route is not None:
        return ActionKind.SWITCH_ROUTE, action.switch_route
    if action.block:
        return ActionKind.BLOCK, None
    if action.throttle is not None:
        return ActionKind.THROTTLE, action.throttle
    return ActionKind.NONE, None


def build_decision(rule: Rule | None, state: State) -> Decision:
    """Build the Decision for a winning rule, or a no-match Decision."""
    if rule is None:
        return Decision.no_match(state)

    kind, target = resolve_action(rule.action)
    return Decision(
        rule=rule.name,
        action=kind,
        target=target,
        log=rule.action.log,
        state=state,
    )


def describe_action(action: ActionSpec) -> str:
    """Short form of an ActionSpec for listings, e.g. "route fast +log"."""
    kind, target = resolve_action(action)
    text = kind.value if target is None else f"{kind.value} {target}"
    if action.log:
        text += " +log"
    return text
