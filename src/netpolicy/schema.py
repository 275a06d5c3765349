"""
Schema definitions for netpolicy.

This module defines the Pydantic models used throughout netpolicy:
- Rule/RuleSet: The declarative policy, validated and pre-parsed
- MatchSpec/WhenSpec/ActionSpec: The parts of a rule
- PortSet/Comparator: Match values resolved at load time
- MatchContext: A snapshot of one connection to decide on
- Decision: The result of evaluating a ruleset

Design Decisions:
    - Models are immutable (frozen=True) so a published ruleset can be
      shared between threads without copying
    - Unknown keys are rejected (extra="forbid")
    - Ports and comparators are parsed once, during validation, so the
      match phase only compares already-typed values
    - State names are case-insensitive in rule text
"""

from __future__ import annotations

import operator
from enum import Enum
from typing import Annotated, Any, Callable

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

from netpolicy.errors import InvalidStateError


# =============================================================================
# Enums
# =============================================================================


class State(str, Enum):
    """
    Operating state of the engine.

    Transitions are free: any state may follow any other. The state is
    supplied by an external classifier, never inferred by the engine.
    """

    NORMAL = "NORMAL"
    DEGRADED = "DEGRADED"
    FAILOVER = "FAILOVER"
    RECOVERY = "RECOVERY"

    @classmethod
    def parse(cls, value: State | str) -> State:
        """
        Parse a state name case-insensitively.

        Raises:
            InvalidStateError: If the name is not a known state
        """
        if isinstance(value, State):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidStateError(value=str(value))


class Protocol(str, Enum):
    """Transport protocol a rule can match on."""

    TCP = "tcp"
    UDP = "udp"


class ComparatorOp(str, Enum):
    """Operators accepted in latency_ms / rtt_ms conditions."""

    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    EQ = "=="


class ActionKind(str, Enum):
    """The primary action carried by a Decision."""

    ROUTE = "route"
    SWITCH_ROUTE = "switch_route"
    BLOCK = "block"
    THROTTLE = "throttle"
    NONE = "none"


_OPERATORS: dict[ComparatorOp, Callable[[Any, Any], bool]] = {
    ComparatorOp.GT: operator.gt,
    ComparatorOp.GTE: operator.ge,
    ComparatorOp.LT: operator.lt,
    ComparatorOp.LTE: operator.le,
    ComparatorOp.EQ: operator.eq,
}

# Two-character operators must be tried before their one-character prefixes
_OPERATOR_PREFIXES: tuple[tuple[str, ComparatorOp], ...] = (
    (">=", ComparatorOp.GTE),
    ("<=", ComparatorOp.LTE),
    ("==", ComparatorOp.EQ),
    (">", ComparatorOp.GT),
    ("<", ComparatorOp.LT),
    ("=", ComparatorOp.EQ),
)

MIN_PORT = 0
MAX_PORT = 65535


# =============================================================================
# Match Values
# =============================================================================


class PortRange(BaseModel):
    """An inclusive range of ports. A single port has start == end."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: int = Field(..., ge=MIN_PORT, le=MAX_PORT)
    end: int = Field(..., ge=MIN_PORT, le=MAX_PORT)

    @model_validator(mode="after")
    def check_order(self) -> PortRange:
        if self.start > self.end:
            msg = f"invalid port range (start > end): {self.start}-{self.end}"
            raise ValueError(msg)
        return self

    def __contains__(self, port: int) -> bool:
        return self.start <= port <= self.end

    def __str__(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"


class PortSet(BaseModel):
    """
    A set of port ranges parsed from list/range syntax.

    Examples:
        "443"               -> [443]
        "22,80,1000-2000"   -> [22, 80, 1000-2000]

    Overlapping ranges are allowed. Ranges are kept in the order written.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ranges: tuple[PortRange, ...] = Field(..., min_length=1)

    @classmethod
    def parse(cls, text: str | int) -> PortSet:
        """
        Parse port syntax into a PortSet.

        Raises:
            ValueError: If any entry is empty, non-numeric, out of range,
                or a range whose start exceeds its end
        """
        if isinstance(text, bool):
            raise ValueError(f"invalid port pattern: {text!r}")
        if isinstance(text, int):
            text = str(text)
        if not isinstance(text, str):
            raise ValueError(f"port pattern must be a string, got {type(text).__name__}")

        ranges = []
        for entry in text.split(","):
            token = entry.strip()
            if not token:
                raise ValueError(f"port pattern must not contain empty entries: {text!r}")
            if "-" in token:
                raw_start, raw_end = token.split("-", 1)
                start = _parse_port(raw_start, "invalid port range start")
                end = _parse_port(raw_end, "invalid port range end")
                if start > end:
                    raise ValueError(f"invalid port range (start > end): {token}")
            else:
                start = end = _parse_port(token, "invalid port value")
            ranges.append(PortRange(start=start, end=end))
        return cls(ranges=tuple(ranges))

    def __contains__(self, port: int) -> bool:
        return any(port in r for r in self.ranges)

    def __str__(self) -> str:
        return ",".join(str(r) for r in self.ranges)


def _parse_port(raw: str, label: str) -> int:
    value = raw.strip()
    if not (value.isascii() and value.isdigit()):
        raise ValueError(f"{label}: {raw.strip()!r}")
    port = int(value)
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"{label}: {port} is outside {MIN_PORT}-{MAX_PORT}")
    return port


class Comparator(BaseModel):
    """
    A numeric condition such as ">120" or "<=50".

    A bare "=" is read as "==". The threshold must be a non-negative number.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    op: ComparatorOp
    threshold: float = Field(..., ge=0)

    @classmethod
    def parse(cls, text: str) -> Comparator:
        """
        Parse comparator syntax.

        Raises:
            ValueError: If the operator is missing or the threshold is not a
                non-negative number
        """
        if not isinstance(text, str):
            raise ValueError(
                f"comparator must be a string like '>120', got {text!r}"
            )
        expr = text.strip()
        for prefix, op in _OPERATOR_PREFIXES:
            if expr.startswith(prefix):
                rest = expr[len(prefix):].strip()
                break
        else:
            raise ValueError(f"comparator needs one of >, >=, <, <=, ==: {text!r}")

        try:
            threshold = float(rest)
        except ValueError:
            raise ValueError(f"invalid comparator threshold: {text!r}") from None
        if threshold != threshold or threshold in (float("inf"), float("-inf")):
            raise ValueError(f"invalid comparator threshold: {text!r}")
        if threshold < 0:
            raise ValueError(f"comparator threshold must not be negative: {text!r}")
        return cls(op=op, threshold=threshold)

    def apply(self, value: float) -> bool:
        """Compare a context value against the threshold."""
        return _OPERATORS[self.op](value, self.threshold)

    def __str__(self) -> str:
        return f"{self.op.value}{self.threshold:g}"


def _coerce_port_set(value: Any) -> Any:
    if value is None or isinstance(value, (PortSet, dict)):
        return value
    return PortSet.parse(value)


def _coerce_comparator(value: Any) -> Any:
    if value is None or isinstance(value, (Comparator, dict)):
        return value
    return Comparator.parse(value)


def _coerce_states(value: Any) -> Any:
    """Accept a single state name or a list of names, any case."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"state must be a name or a list of names, got {value!r}")
    if not value:
        raise ValueError("state list must not be empty")
    states = set()
    for item in value:
        try:
            states.add(State.parse(item))
        except InvalidStateError:
            raise ValueError(f"invalid state value: {item!r}") from None
    return frozenset(states)


PortSpec = Annotated[PortSet, BeforeValidator(_coerce_port_set)]
ComparatorSpec = Annotated[Comparator, BeforeValidator(_coerce_comparator)]
StateSelector = Annotated[frozenset[State], BeforeValidator(_coerce_states)]


# =============================================================================
# Rule Models
# =============================================================================


class MatchSpec(BaseModel):
    """
    Conditions a connection must satisfy for a rule to apply.

    Every present field must hold. Absent fields are not evaluated.
    When any is true the other fields are ignored. A spec with neither
    any: true nor a concrete field is rejected.

    Attributes:
        any: Match every connection
        sni: Hostname pattern; "*.example.com" covers any subdomain depth
        protocol: tcp or udp
        port: Ports as "443", "80,443" or "1000-2000"
        latency_ms: Condition on measured latency, e.g. ">120"
        rtt_ms: Condition on round-trip time, e.g. "<=50"
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    any: StrictBool | None = None
    sni: StrictStr | None = None
    protocol: Protocol | None = None
    port: PortSpec | None = None
    latency_ms: ComparatorSpec | None = None
    rtt_ms: ComparatorSpec | None = None

    @field_validator("sni")
    @classmethod
    def validate_sni(cls, v: str | None) -> str | None:
        """Normalize the pattern; '*' may only stand for whole leading labels."""
        if v is None:
            return v
        pattern = v.strip().lower()
        # One trailing dot (fully qualified form), never after the wildcard
        if pattern.endswith(".") and not pattern.endswith("*."):
            pattern = pattern[:-1]
        if not pattern:
            msg = "sni pattern must not be empty"
            raise ValueError(msg)
        if pattern != "*":
            body = pattern[2:] if pattern.startswith("*.") else pattern
            if not body or "*" in body:
                msg = f"sni wildcard must be '*' or a leading '*.' label: {v!r}"
                raise ValueError(msg)
            if any(not label for label in body.split(".")):
                msg = f"sni pattern has an empty label: {v!r}"
                raise ValueError(msg)
        return pattern

    @field_validator("protocol", mode="before")
    @classmethod
    def normalize_protocol(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def check_not_empty(self) -> MatchSpec:
        if not self.is_any and not self.concrete_fields:
            msg = "match must contain at least one field or any: true"
            raise ValueError(msg)
        return self

    @property
    def is_any(self) -> bool:
        return self.any is True

    @property
    def concrete_fields(self) -> tuple[str, ...]:
        """Names of the conditions that are actually evaluated."""
        if self.is_any:
            return ()
        return tuple(
            name
            for name in ("sni", "protocol", "port", "latency_ms", "rtt_ms")
            if getattr(self, name) is not None
        )

    @property
    def specificity(self) -> int:
        """Number of concrete conditions; an any-rule has none."""
        return len(self.concrete_fields)


class WhenSpec(BaseModel):
    """Restricts a rule to a set of operating states."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    state: StateSelector | None = None


class ActionSpec(BaseModel):
    """
    What to do when a rule wins.

    At most one primary action (route, switch_route, block, throttle) may be
    set. log is independent. An action with only log, or nothing at all,
    is legal and resolves to no primary action.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    route: StrictStr | None = Field(default=None, min_length=1)
    switch_route: StrictStr | None = Field(default=None, min_length=1)
    block: StrictBool = False
    throttle: StrictStr | None = Field(default=None, min_length=1)
    log: StrictBool = False

    @model_validator(mode="after")
    def check_single_primary(self) -> ActionSpec:
        primaries = self.primary_fields
        if len(primaries) > 1:
            msg = (
                "action must not include multiple primary actions: "
                + ", ".join(primaries)
            )
            raise ValueError(msg)
        return self

    @property
    def primary_fields(self) -> tuple[str, ...]:
        """Names of the primary action fields that are set."""
        present = []
        if self.route is not None:
            present.append("route")
        if self.switch_route is not None:
            present.append("switch_route")
        if self.block:
            present.append("block")
        if self.throttle is not None:
            present.append("throttle")
        return tuple(present)


class Rule(BaseModel):
    """
    One named, prioritized match -> action mapping.

    Attributes:
        name: Unique rule name
        priority: Higher wins; must not be negative
        match: Conditions on the connection
        when: Optional state restriction (rule applies only in these states)
        disable: Optional states in which the rule never applies
        action: What to do if this rule wins
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: StrictStr = Field(..., min_length=1)
    priority: StrictInt = Field(..., ge=0)
    match: MatchSpec
    when: WhenSpec | None = None
    disable: StateSelector | None = None
    action: ActionSpec

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        name = v.strip()
        if not name:
            msg = "rule name must not be blank"
            raise ValueError(msg)
        return name

    @property
    def specificity(self) -> int:
        return self.match.specificity


class RuleSet(BaseModel):
    """
    An ordered, validated collection of rules.

    Declaration order is the final tie-break during selection, so the
    rules are kept as a tuple in the order they were written.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rules: tuple[Rule, ...] = ()

    @model_validator(mode="after")
    def check_unique_names(self) -> RuleSet:
        seen: set[str] = set()
        for rule in self.rules:
            if rule.name in seen:
                msg = f"duplicate rule name: {rule.name}"
                raise ValueError(msg)
            seen.add(rule.name)
        return self

    def __len__(self) -> int:
        return len(self.rules)

    def names(self) -> list[str]:
        return [rule.name for rule in self.rules]

    def get(self, name: str) -> Rule | None:
        """Look up a rule by name."""
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None


# =============================================================================
# Runtime Models
# =============================================================================


class MatchContext(BaseModel):
    """
    Snapshot of one connection, built per decision.

    Every field is optional; a rule condition on a missing field fails.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sni: str | None = None
    protocol: str | None = None
    port: int | None = Field(default=None, ge=MIN_PORT, le=MAX_PORT)
    latency_ms: float | None = Field(default=None, ge=0)
    rtt_ms: float | None = Field(default=None, ge=0)


class Decision(BaseModel):
    """
    Result of evaluating a ruleset against a context and state.

    Attributes:
        rule: Name of the winning rule, or None when nothing matched
        action: The primary action to apply
        target: Route name or throttle profile for actions that take one
        log: Whether the caller should log this decision
        state: The operating state the decision was made under
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rule: str | None = None
    action: ActionKind = ActionKind.NONE
    target: str | None = None
    log: bool = False
    state: State = State.NORMAL

    @classmethod
    def no_match(cls, state: State) -> Decision:
        """Create a decision for when no rule applies."""
        return cls(state=state)

    @property
    def matched(self) -> bool:
        return self.rule is not None

    def summary(self) -> str:
        """Short human-readable form, e.g. "route tunnel_fast"."""
        if self.target is not None:
            return f"{self.action.value} {self.target}"
        return self.action.value
