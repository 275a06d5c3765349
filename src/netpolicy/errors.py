"""
Exception hierarchy for netpolicy.

All netpolicy exceptions inherit from NetpolicyError, allowing callers to catch
every netpolicy-specific failure with a single except clause.

Exception Categories:
    - RuleSetParseError: Rule text is not well-formed
    - RuleSetValidationError: Rule text is well-formed but violates the schema
    - InvalidStateError: Unknown operating state name
    - ConfigError: Engine configuration could not be loaded

A rule that matches nothing is not an error. Decisions without a winning rule
are returned as ordinary Decision values.

Design Principles:
    - All errors have error codes for programmatic handling
    - Validation errors carry every violation found, not just the first
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# RuleSet errors: 1xxx
ERROR_RULESET_PARSE = 1001
ERROR_RULESET_INVALID = 1002

# State errors: 2xxx
ERROR_STATE_INVALID = 2001

# Config errors: 3xxx
ERROR_CONFIG_INVALID = 3001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class NetpolicyError(Exception):
    """
    Base exception for all netpolicy errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# RuleSet Errors
# =============================================================================


@dataclass(frozen=True)
class Violation:
    """
    A single schema violation found while validating a ruleset.

    Attributes:
        rule_index: Position of the offending rule (None for top-level issues)
        rule_name: Name of the offending rule, when it could be read
        location: Dotted path to the offending field (e.g. "match.port")
        message: What is wrong
    """

    rule_index: int | None
    rule_name: str | None
    location: str
    message: str

    def __str__(self) -> str:
        where = []
        if self.rule_index is not None:
            where.append(f"rules[{self.rule_index}]")
        if self.rule_name:
            where.append(f"({self.rule_name})")
        prefix = " ".join(where)
        target = f"{prefix} {self.location}".strip() if self.location else prefix
        return f"{target}: {self.message}" if target else self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_index": self.rule_index,
            "rule_name": self.rule_name,
            "location": self.location,
            "message": self.message,
        }


@dataclass
class RuleSetError(NetpolicyError):
    """
    Base class for ruleset loading errors.

    A ruleset that raises one of these never becomes active.

    Attributes:
        source: Where the rule text came from (file path or "<string>")
    """

    source: str = "<string>"

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["source"] = self.source


@dataclass
class RuleSetParseError(RuleSetError):
    """Raised when rule text is not well-formed."""

    line: int | None = None
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            location = f" (line {self.line})" if self.line is not None else ""
            self.message = f"Cannot parse ruleset {self.source}{location}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_RULESET_PARSE
        super().__post_init__()
        self.context.update({
            "line": self.line,
            "underlying_error": self.underlying_error,
        })


@dataclass
class RuleSetValidationError(RuleSetError):
    """
    Raised when a ruleset is well-formed but violates schema invariants.

    Carries every violation found across all rules.
    """

    violations: list[Violation] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            count = len(self.violations)
            noun = "violation" if count == 1 else "violations"
            lines = [f"Invalid ruleset {self.source}: {count} {noun}"]
            lines.extend(f"  - {v}" for v in self.violations)
            self.message = "\n".join(lines)
        if self.code == 0:
            self.code = ERROR_RULESET_INVALID
        if not self.suggestion:
            self.suggestion = "Fix the listed rules; the previous ruleset stays active"
        super().__post_init__()
        self.context["violations"] = [v.to_dict() for v in self.violations]


# =============================================================================
# State Errors
# =============================================================================


@dataclass
class InvalidStateError(NetpolicyError):
    """Raised when an unknown operating state name is supplied."""

    value: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid state: {self.value!r}"
        if self.code == 0:
            self.code = ERROR_STATE_INVALID
        if not self.suggestion:
            self.suggestion = "Use one of NORMAL, DEGRADED, FAILOVER, RECOVERY"
        self.context["value"] = self.value


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(NetpolicyError):
    """Raised when the engine configuration cannot be loaded."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })
