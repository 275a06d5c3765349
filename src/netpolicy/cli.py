"""
CLI entry point for netpolicy.

This module provides the Typer-based command-line interface for netpolicy.

Commands:
    lint        Validate a ruleset file and report every violation
    decide      Dry-run one decision against a ruleset
    show        List the rules of a ruleset in declaration order

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to the
    loader and engine modules. Everything it does is available from Python.
"""

import json
import traceback
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from netpolicy import __version__
from netpolicy.actions import describe_action
from netpolicy.engine import decide as decide_ruleset
from netpolicy.errors import (
    InvalidStateError,
    NetpolicyError,
    RuleSetParseError,
    RuleSetValidationError,
)
from netpolicy.loader import load_ruleset_file
from netpolicy.log import configure_logging
from netpolicy.schema import ActionKind, Decision, MatchContext, Rule, RuleSet, State

app = typer.Typer(
    name="netpolicy",
    help="Validate network policy rulesets and dry-run decisions.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]netpolicy[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Log level for netpolicy messages (DEBUG, INFO, WARNING, ERROR).",
        ),
    ] = "WARNING",
) -> None:
    """
    netpolicy - deterministic routing/blocking/throttling decisions.

    Load declarative rulesets, check them, and see which rule wins for a
    given connection and operating state.
    """
    try:
        configure_logging(log_level)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)


RulesetPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the ruleset (YAML, or DSL for .dsl/.rules files).",
        exists=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
    ),
]


@app.command()
def lint(
    path: RulesetPath,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """
    Validate a ruleset file.

    Every violation in every rule is reported, not just the first.

    Example:
        $ netpolicy lint rules.yaml
    """
    try:
        ruleset = load_ruleset_file(path)
    except RuleSetValidationError as e:
        if json_output:
            _output_lint_json(False, path, [v.to_dict() for v in e.violations])
        else:
            count = len(e.violations)
            console.print(f"[red]lint failed: {escape(str(path))} ({count} violation(s))[/red]")
            for violation in e.violations:
                console.print(f"  [red]•[/red] {escape(str(violation))}", highlight=False)
        raise typer.Exit(code=1)
    except RuleSetParseError as e:
        if json_output:
            _output_lint_json(False, path, [{"message": e.message, "line": e.line}])
        else:
            console.print(f"[red]lint failed:[/red] {escape(e.message)}", highlight=False)
        raise typer.Exit(code=1)

    if json_output:
        _output_lint_json(True, path, [], rule_count=len(ruleset))
    else:
        console.print(f"[green]✓[/green] lint ok: {escape(str(path))} ({len(ruleset)} rule(s))")


@app.command()
def decide(
    path: RulesetPath,
    state: Annotated[
        str,
        typer.Option("--state", "-s", help="Operating state (normal, degraded, failover, recovery)."),
    ] = "NORMAL",
    sni: Annotated[
        Optional[str],
        typer.Option("--sni", help="TLS server name of the connection."),
    ] = None,
    protocol: Annotated[
        Optional[str],
        typer.Option("--protocol", help="Transport protocol (tcp or udp)."),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", help="Destination port.", min=0, max=65535),
    ] = None,
    latency_ms: Annotated[
        Optional[float],
        typer.Option("--latency-ms", help="Measured latency in milliseconds.", min=0),
    ] = None,
    rtt_ms: Annotated[
        Optional[float],
        typer.Option("--rtt-ms", help="Measured round-trip time in milliseconds.", min=0),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Show full error tracebacks."),
    ] = False,
) -> None:
    """
    Dry-run one decision.

    Example:
        $ netpolicy decide rules.yaml --sni call.zoom.us --protocol tcp --latency-ms 50
    """
    try:
        current = State.parse(state)
        ruleset = load_ruleset_file(path)
        context = MatchContext(
            sni=sni,
            protocol=protocol,
            port=port,
            latency_ms=latency_ms,
            rtt_ms=rtt_ms,
        )
        decision = decide_ruleset(ruleset, current, context)
    except NetpolicyError as e:
        if json_output:
            _output_json_error(e.to_dict(), debug)
        else:
            console.print(f"[red]Error:[/red] {escape(e.message)}", highlight=False)
            if isinstance(e, InvalidStateError) and e.suggestion:
                console.print(f"[dim]{e.suggestion}[/dim]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps(decision.model_dump(mode="json"), indent=2))
    else:
        _display_decision(decision)


@app.command()
def show(
    path: RulesetPath,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """
    List the rules of a ruleset in declaration order.

    Example:
        $ netpolicy show rules.yaml
    """
    try:
        ruleset = load_ruleset_file(path)
    except NetpolicyError as e:
        if json_output:
            _output_json_error(e.to_dict())
        else:
            console.print(f"[red]Error:[/red] {escape(e.message)}", highlight=False)
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps({"rules": [_rule_to_dict(rule) for rule in ruleset.rules]}, indent=2))
        return

    console.print(_rules_table(ruleset))


def _rule_to_dict(rule: Rule) -> dict[str, Any]:
    """Flatten a rule into display strings, as shown by `show`."""
    match = {
        name: _condition_text(getattr(rule.match, name))
        for name in rule.match.concrete_fields
    }
    return {
        "name": rule.name,
        "priority": rule.priority,
        "specificity": rule.specificity,
        "any": rule.match.is_any,
        "match": match,
        "when": _state_names(rule.when.state if rule.when is not None else None),
        "disable": _state_names(rule.disable),
        "action": describe_action(rule.action),
    }


def _rules_table(ruleset: RuleSet) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=3)
    table.add_column("Name", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Spec.", justify="right")
    table.add_column("Match")
    table.add_column("States")
    table.add_column("Action")

    for index, rule in enumerate(ruleset.rules, start=1):
        row = _rule_to_dict(rule)
        if row["any"]:
            match_text = "any"
        else:
            match_text = " ".join(f"{k}={v}" for k, v in row["match"].items()) or "-"

        gating = []
        if row["when"] is not None:
            gating.append("when " + ",".join(row["when"]))
        if row["disable"] is not None:
            gating.append("not " + ",".join(row["disable"]))

        table.add_row(
            str(index),
            escape(rule.name),
            str(rule.priority),
            str(rule.specificity),
            escape(match_text),
            "; ".join(gating) or "all",
            escape(row["action"]),
        )
    return table


def _state_names(states: frozenset[State] | None) -> list[str] | None:
    if states is None:
        return None
    return sorted(s.value for s in states)


def _condition_text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _display_decision(decision: Decision) -> None:
    """Display a decision in a formatted way."""
    if not decision.matched:
        console.print(f"[yellow]⊘[/yellow] state={decision.state.value} no match")
        return

    style = "red" if decision.action == ActionKind.BLOCK else "green"
    console.print(
        f"[{style}]✓[/{style}] state={decision.state.value} "
        f"rule=[cyan]{escape(decision.rule)}[/cyan] action=[bold]{escape(decision.summary())}[/bold]"
        + (" [dim](log)[/dim]" if decision.log else "")
    )


def _output_lint_json(
    ok: bool,
    path: Path,
    errors: list[dict[str, Any]],
    rule_count: int | None = None,
) -> None:
    output: dict[str, Any] = {"ok": ok, "path": str(path), "errors": errors}
    if rule_count is not None:
        output["rules"] = rule_count
    print(json.dumps(output, indent=2))


def _output_json_error(error: dict[str, Any], include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {"error": True, **error}
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2, default=str))


if __name__ == "__main__":
    app()
