"""
Decision engine for netpolicy.

decide() is the pure boundary function: ruleset + state + context in,
Decision out. PolicyEngine wraps it for long-running processes:

- Publishing: holds the active RuleSet and swaps it atomically on reload
- State: reads the current state from a StateHolder
- Counters: decisions, matches, reloads and errors

Execution Flow:
    1. Caller builds a MatchContext for a connection
    2. Selector runs the matcher over every rule and picks the winner
    3. Action resolver turns the winner into a Decision
    4. Caller forwards the Decision to its action backend or log sink

Design Principles:
    - No I/O in the decision path
    - A failed reload never replaces the active ruleset
    - In-flight decisions see either the old or the new ruleset, never a mix
"""

import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from netpolicy.actions import build_decision
from netpolicy.config import EngineConfig
from netpolicy.errors import RuleSetError
from netpolicy.loader import load_ruleset, load_ruleset_file
from netpolicy.schema import Decision, MatchContext, RuleSet, State
from netpolicy.selector import select_rule
from netpolicy.state import StateHolder

logger = logging.getLogger(__name__)


def decide(ruleset: RuleSet, state: State, context: MatchContext) -> Decision:
    """
    Evaluate a ruleset against a context under a state.

    Pure function: the same inputs always give the same Decision. A context
    that no rule matches gives a Decision with rule=None and action NONE.

    Args:
        ruleset: A validated ruleset
        state: Current operating state
        context: The connection snapshot

    Returns:
        The resolved Decision
    """
    winner = select_rule(ruleset, context, state)
    return build_decision(winner, state)


@dataclass(frozen=True)
class EngineStats:
    """
    Snapshot of a PolicyEngine's counters.

    Attributes:
        decisions: Number of decisions made
        matches: Decisions that had a winning rule
        reloads: Successful ruleset reloads
        errors: Failed ruleset reloads
        last_error: Message of the most recent failed reload
    """

    decisions: int = 0
    matches: int = 0
    reloads: int = 0
    errors: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PolicyEngine:
    """
    Long-lived holder of the active ruleset and operating state.

    Usage:
        engine = PolicyEngine()
        engine.reload_file("rules.yaml")
        decision = engine.decide(MatchContext(sni="call.zoom.us", protocol="tcp"))
        if decision.matched:
            backend.apply(decision)

    Attributes:
        state_holder: Source of the current operating state
        log_decisions: Log every decision at INFO instead of DEBUG
    """

    def __init__(
        self,
        ruleset: RuleSet | None = None,
        state_holder: StateHolder | None = None,
        log_decisions: bool = False,
    ) -> None:
        self._ruleset = ruleset if ruleset is not None else RuleSet()
        self.state_holder = state_holder if state_holder is not None else StateHolder()
        self.log_decisions = log_decisions

        self._publish_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._decisions = 0
        self._matches = 0
        self._reloads = 0
        self._errors = 0
        self._last_error: str | None = None

    @classmethod
    def from_config(cls, config: EngineConfig) -> "PolicyEngine":
        """
        Build an engine from configuration.

        Loads config.ruleset_path when set. A bad ruleset raises, since there
        is no previous ruleset to fall back to.
        """
        engine = cls(
            state_holder=StateHolder(config.initial_state),
            log_decisions=config.log_decisions,
        )
        if config.ruleset_path is not None:
            engine.reload_file(config.ruleset_path)
        return engine

    @property
    def ruleset(self) -> RuleSet:
        """The currently published ruleset."""
        return self._ruleset

    def publish(self, ruleset: RuleSet) -> RuleSet:
        """
        Make a ruleset active.

        Returns:
            The ruleset that was active before
        """
        with self._publish_lock:
            previous = self._ruleset
            self._ruleset = ruleset
        return previous

    def reload(self, text: str, source: str = "<string>") -> RuleSet:
        """
        Load YAML rule text and publish it.

        On failure the previous ruleset stays active and the error is
        re-raised.

        Raises:
            RuleSetParseError, RuleSetValidationError
        """
        try:
            ruleset = load_ruleset(text, source=source)
        except RuleSetError as e:
            self._record_error(e)
            raise
        return self._published(ruleset, source)

    def reload_file(self, path: Path | str) -> RuleSet:
        """Load a ruleset file (YAML or DSL) and publish it."""
        try:
            ruleset = load_ruleset_file(path)
        except RuleSetError as e:
            self._record_error(e)
            raise
        return self._published(ruleset, str(path))

    def current_state(self) -> State:
        return self.state_holder.current_state()

    def set_state(self, new_state: State | str) -> State:
        """Forward a state change to the holder; returns the previous state."""
        return self.state_holder.set_state(new_state)

    def decide(self, context: MatchContext, state: State | str | None = None) -> Decision:
        """
        Decide for one connection.

        Args:
            context: The connection snapshot
            state: Override the holder's current state (e.g. for dry runs);
                a State or a state name

        Raises:
            InvalidStateError: If state is not a known state name
        """
        ruleset = self._ruleset
        if state is None:
            state = self.state_holder.current_state()
        else:
            state = State.parse(state)

        decision = decide(ruleset, state, context)

        with self._stats_lock:
            self._decisions += 1
            if decision.matched:
                self._matches += 1

        level = logging.INFO if self.log_decisions else logging.DEBUG
        if logger.isEnabledFor(level):
            logger.log(
                level,
                "decision state=%s rule=%s action=%s",
                state.value,
                decision.rule or "-",
                decision.summary(),
            )
        return decision

    def stats(self) -> EngineStats:
        """Snapshot of the counters."""
        with self._stats_lock:
            return EngineStats(
                decisions=self._decisions,
                matches=self._matches,
                reloads=self._reloads,
                errors=self._errors,
                last_error=self._last_error,
            )

    def _published(self, ruleset: RuleSet, source: str) -> RuleSet:
        self.publish(ruleset)
        with self._stats_lock:
            self._reloads += 1
        logger.info("ruleset reloaded from %s: %d rule(s)", source, len(ruleset))
        return ruleset

    def _record_error(self, error: RuleSetError) -> None:
        with self._stats_lock:
            self._errors += 1
            self._last_error = error.message
        logger.error("ruleset reload failed, keeping previous ruleset: %s", error.message)
