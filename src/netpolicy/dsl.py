"""
Line-oriented rule DSL for netpolicy.

An alternative to YAML for hand-written rulesets:

    # comments and blank lines are ignored
    rule zoom_priority:
      priority 100
      match sni="*.zoom.us" protocol=tcp port=443
      when state=DEGRADED,FAILOVER
      action route=tunnel_fast log

    rule default_log:
      priority 10
      match any
      action log

Directives inside a rule block:
    priority N
    match key=value ...       (keys: any, sni, protocol, port, latency_ms, rtt_ms)
    action key=value ...      (keys: route, switch_route, block, throttle, log)
    when [state=]S1,S2
    disable [state=]S1,S2

Syntax problems raise RuleSetParseError with the line number. The resulting
rules go through the same validation as YAML rules, so schema problems are
reported together as a RuleSetValidationError.
"""

import shlex
from typing import Any

from netpolicy.errors import RuleSetParseError
from netpolicy.loader import build_ruleset
from netpolicy.schema import RuleSet

MATCH_KEYS = frozenset({"any", "sni", "protocol", "port", "latency_ms", "rtt_ms"})
ACTION_KEYS = frozenset({"route", "switch_route", "block", "throttle", "log"})

# Keys that may be written as bare flags ("any", "block", "log")
_FLAG_KEYS = frozenset({"any", "block", "log"})


def parse_dsl(text: str, source: str = "<string>") -> RuleSet:
    """
    Parse DSL text into a validated RuleSet.

    Args:
        text: DSL rule text
        source: Label used in error messages

    Raises:
        RuleSetParseError: On syntax errors
        RuleSetValidationError: If any rule violates the schema
    """
    rules: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        directive, *remainder = line.split(None, 1)
        rest = remainder[0].strip() if remainder else ""

        if directive == "rule":
            name = rest.rstrip(":").strip()
            if not name:
                raise _syntax_error(source, line_no, "rule name is required")
            current = {"name": name}
            rules.append(current)
            continue

        if current is None:
            raise _syntax_error(source, line_no, "content must be inside a rule block")

        if directive == "priority":
            try:
                current["priority"] = int(rest)
            except ValueError:
                raise _syntax_error(source, line_no, f"invalid priority: {rest!r}") from None
        elif directive == "match":
            current.setdefault("match", {}).update(
                _parse_fields(rest, MATCH_KEYS, "match", source, line_no)
            )
        elif directive == "action":
            current.setdefault("action", {}).update(
                _parse_fields(rest, ACTION_KEYS, "action", source, line_no)
            )
        elif directive == "when":
            current["when"] = {"state": _parse_states(rest, source, line_no)}
        elif directive == "disable":
            current["disable"] = _parse_states(rest, source, line_no)
        else:
            raise _syntax_error(source, line_no, f"unknown directive: {directive}")

    return build_ruleset({"rules": rules}, source=source)


def _parse_fields(
    rest: str,
    allowed: frozenset[str],
    directive: str,
    source: str,
    line_no: int,
) -> dict[str, Any]:
    """Parse 'key=value flag key="quoted value"' tokens."""
    if not rest:
        raise _syntax_error(source, line_no, f"{directive} needs fields")
    try:
        tokens = shlex.split(rest)
    except ValueError as e:
        raise _syntax_error(source, line_no, str(e)) from None

    fields: dict[str, Any] = {}
    for token in tokens:
        key, sep, value = token.partition("=")
        if key not in allowed:
            raise _syntax_error(source, line_no, f"unknown {directive} key: {key}")
        if key in _FLAG_KEYS:
            if not sep or value.lower() == "true":
                fields[key] = True
            elif value.lower() == "false":
                fields[key] = False
            else:
                raise _syntax_error(source, line_no, f"{key} must be true or false")
        elif not sep:
            raise _syntax_error(source, line_no, f"invalid {directive} token: {token}")
        else:
            fields[key] = value
    return fields


def _parse_states(rest: str, source: str, line_no: int) -> list[str]:
    value = rest.removeprefix("state=").strip()
    states = [item.strip() for item in value.split(",") if item.strip()]
    if not states:
        raise _syntax_error(source, line_no, "state value is required")
    return states


def _syntax_error(source: str, line_no: int, message: str) -> RuleSetParseError:
    return RuleSetParseError(source=source, line=line_no, underlying_error=message)
