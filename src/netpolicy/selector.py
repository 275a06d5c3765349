"""
Rule selection for netpolicy.

Runs the matcher over every rule and picks a single winner. The ordering is
total, so the same inputs always produce the same winner:

    1. priority, higher first
    2. specificity (number of concrete match conditions), higher first
    3. declaration order, earlier first
"""

from netpolicy.matcher import evaluate
from netpolicy.schema import MatchContext, Rule, RuleSet, State


def rank(rule: Rule, index: int) -> tuple[int, int, int]:
    """Sort key for a candidate rule; smaller sorts first."""
    return (-rule.priority, -rule.specificity, index)


def matching_rules(
    ruleset: RuleSet,
    context: MatchContext,
    state: State,
) -> list[Rule]:
    """
    Every rule that applies, best first.

    Useful for explaining a decision; select_rule() returns the head of
    this list without sorting.
    """
    candidates = [
        (rank(rule, index), rule)
        for index, rule in enumerate(ruleset.rules)
        if evaluate(rule, context, state)
    ]
    candidates.sort(key=lambda pair: pair[0])
    return [rule for _, rule in candidates]


def select_rule(
    ruleset: RuleSet,
    context: MatchContext,
    state: State,
) -> Rule | None:
    """
    Pick the winning rule, or None when no rule applies.

    Single pass over the rules; keeps the best-ranked match seen so far.
    """
    best: Rule | None = None
    best_rank: tuple[int, int, int] | None = None

    for index, rule in enumerate(ruleset.rules):
        if not evaluate(rule, context, state):
            continue
        candidate_rank = rank(rule, index)
        if best_rank is None or candidate_rank < best_rank:
            best = rule
            best_rank = candidate_rank

    return best
