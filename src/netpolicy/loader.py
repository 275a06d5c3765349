"""
Ruleset loader for netpolicy.

Turns declarative rule text into a validated RuleSet. Loading is
all-or-nothing: either every rule is valid and a RuleSet is returned, or a
RuleSetValidationError listing every violation is raised and nothing takes
effect.

Accepted input:
    - YAML (and therefore JSON) with a top-level "rules" list
    - The line-oriented rule DSL (see netpolicy.dsl), picked by file suffix

Example:
    rules:
      - name: zoom_priority
        priority: 100
        match:
          sni: "*.zoom.us"
          protocol: tcp
        action:
          route: tunnel_fast

Design Decisions:
    - Each rule is validated on its own so one bad rule does not hide the
      problems of the next one
    - Duplicate names are checked on the raw text, so a duplicate is reported
      even when the rule has other problems
    - An empty rules list is rejected; an engine with nothing published
      holds an empty RuleSet instead
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from netpolicy.errors import RuleSetParseError, RuleSetValidationError, Violation
from netpolicy.schema import Rule, RuleSet

logger = logging.getLogger(__name__)

# Suffixes read with the rule DSL instead of YAML
DSL_SUFFIXES = frozenset({".dsl", ".rules"})

_TOP_LEVEL_KEYS = frozenset({"rules", "version"})


def load_ruleset(text: str, source: str = "<string>") -> RuleSet:
    """
    Load a ruleset from YAML text.

    Args:
        text: YAML (or JSON) rule text
        source: Label used in error messages

    Returns:
        Validated RuleSet

    Raises:
        RuleSetParseError: If the text is not well-formed YAML or lacks a
            "rules" list
        RuleSetValidationError: If any rule violates the schema
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        raise RuleSetParseError(
            source=source,
            line=mark.line + 1 if mark is not None else None,
            underlying_error=str(getattr(e, "problem", None) or e),
        ) from e

    return build_ruleset(data, source=source)


def load_ruleset_file(path: Path | str) -> RuleSet:
    """
    Load a ruleset from a file.

    Files ending in .dsl or .rules are read with the rule DSL; anything else
    is read as YAML.

    Raises:
        RuleSetParseError: If the file cannot be read or parsed
        RuleSetValidationError: If any rule violates the schema
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise RuleSetParseError(
            source=str(path),
            underlying_error=f"cannot read file: {e}",
        ) from e

    if path.suffix.lower() in DSL_SUFFIXES:
        # Imported lazily; the DSL module builds on this one
        from netpolicy.dsl import parse_dsl

        return parse_dsl(text, source=str(path))
    return load_ruleset(text, source=str(path))


def build_ruleset(data: Any, source: str = "<string>") -> RuleSet:
    """
    Validate an already-parsed document into a RuleSet.

    Args:
        data: Parsed document, expected to be {"rules": [...]}
        source: Label used in error messages

    Raises:
        RuleSetParseError: If the document does not have the expected shape
        RuleSetValidationError: If any rule violates the schema
    """
    if data is None:
        raise RuleSetParseError(
            source=source,
            underlying_error="document is empty, expected a mapping with a 'rules' list",
        )
    if not isinstance(data, dict):
        raise RuleSetParseError(
            source=source,
            underlying_error=f"expected a mapping at top level, got {type(data).__name__}",
        )
    if "rules" not in data:
        raise RuleSetParseError(
            source=source,
            underlying_error="missing 'rules' list",
        )
    raw_rules = data["rules"]
    if not isinstance(raw_rules, list):
        raise RuleSetParseError(
            source=source,
            underlying_error=f"'rules' must be a list, got {type(raw_rules).__name__}",
        )

    violations: list[Violation] = []
    for key in data:
        if key not in _TOP_LEVEL_KEYS:
            violations.append(
                Violation(None, None, str(key), "unknown top-level key")
            )
    if not raw_rules:
        violations.append(Violation(None, None, "rules", "rules must not be empty"))

    rules: list[Rule] = []
    first_seen: dict[str, int] = {}

    for index, raw in enumerate(raw_rules):
        if not isinstance(raw, dict):
            violations.append(
                Violation(index, None, "", f"rule must be a mapping, got {type(raw).__name__}")
            )
            continue

        name = _raw_name(raw)
        if name is not None:
            if name in first_seen:
                violations.append(
                    Violation(
                        index,
                        name,
                        "name",
                        f"duplicate rule name (first declared at rules[{first_seen[name]}])",
                    )
                )
            else:
                first_seen[name] = index

        try:
            rules.append(Rule.model_validate(raw))
        except ValidationError as e:
            violations.extend(_violations_from(e, index, name))

    if violations:
        logger.warning(
            "rejected ruleset %s: %d violation(s)", source, len(violations)
        )
        raise RuleSetValidationError(source=source, violations=violations)

    ruleset = RuleSet(rules=tuple(rules))
    logger.debug("loaded %d rule(s) from %s", len(ruleset), source)
    return ruleset


def _raw_name(raw: dict[str, Any]) -> str | None:
    name = raw.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


def _violations_from(
    error: ValidationError,
    index: int,
    name: str | None,
) -> list[Violation]:
    """Flatten a pydantic ValidationError into Violations."""
    violations = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        message = detail["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        violations.append(Violation(index, name, location, message))
    return violations
