"""
netpolicy - Deterministic policy decisions for network connections.

Given a declarative ruleset, a connection snapshot and the current operating
state, netpolicy picks exactly one winning rule and resolves it into a
route / switch_route / block / throttle decision.
It provides:
- All-or-nothing ruleset loading with batch validation (YAML or DSL)
- Wildcard SNI, protocol, port-range and latency/RTT comparator matching
- Priority, specificity and declaration-order tie-breaking
- State-gated rules (when / disable)

netpolicy only decides. Capturing telemetry, applying firewall or proxy
changes and classifying the operating state are left to the caller.

Example usage:
    >>> from netpolicy import MatchContext, State, decide, load_ruleset_file
    >>> ruleset = load_ruleset_file("rules.yaml")
    >>> decision = decide(ruleset, State.NORMAL, MatchContext(sni="call.zoom.us"))
    >>> decision.summary()
    'route tunnel_fast'
"""

__version__ = "0.1.0"
__author__ = "netpolicy Contributors"

from netpolicy.config import EngineConfig, load_config, load_config_from_string
from netpolicy.dsl import parse_dsl
from netpolicy.engine import EngineStats, PolicyEngine, decide
from netpolicy.errors import (
    ConfigError,
    InvalidStateError,
    NetpolicyError,
    RuleSetError,
    RuleSetParseError,
    RuleSetValidationError,
    Violation,
)
from netpolicy.loader import build_ruleset, load_ruleset, load_ruleset_file
from netpolicy.matcher import evaluate
from netpolicy.schema import (
    ActionKind,
    ActionSpec,
    Comparator,
    Decision,
    MatchContext,
    MatchSpec,
    PortSet,
    Rule,
    RuleSet,
    State,
    WhenSpec,
)
from netpolicy.selector import select_rule
from netpolicy.state import StateHolder, current_state, get_state_holder, set_state

__all__ = [
    "__version__",
    "__author__",
    # Loading
    "load_ruleset",
    "load_ruleset_file",
    "build_ruleset",
    "parse_dsl",
    # Deciding
    "decide",
    "evaluate",
    "select_rule",
    "PolicyEngine",
    "EngineStats",
    # State
    "StateHolder",
    "current_state",
    "set_state",
    "get_state_holder",
    # Config
    "EngineConfig",
    "load_config",
    "load_config_from_string",
    # Models
    "ActionKind",
    "ActionSpec",
    "Comparator",
    "Decision",
    "MatchContext",
    "MatchSpec",
    "PortSet",
    "Rule",
    "RuleSet",
    "State",
    "WhenSpec",
    # Errors
    "NetpolicyError",
    "RuleSetError",
    "RuleSetParseError",
    "RuleSetValidationError",
    "Violation",
    "InvalidStateError",
    "ConfigError",
]
