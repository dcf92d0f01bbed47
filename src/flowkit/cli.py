"""Command-line interface for inspecting and test-running workflows."""

from __future__ import annotations

import json
import logging
import os
import random

import typer
from rich.console import Console
from rich.table import Table

from flowkit.errors import FlowkitError
from flowkit.loader import load_session
from flowkit.schema import SchemaValidationError
from flowkit.settings import ENV_VARS, FlowkitSettings, load_settings
from flowkit.workflow import (
    OutcomePolicy,
    RunSimulator,
    RunStatus,
    SimulatorConfig,
    StepResult,
    VariableType,
    WorkflowController,
    always_succeed,
    group_by_source,
    operators_for,
    scripted_policy,
    search_variables,
    summarize,
)

app = typer.Typer(
    name="flowkit",
    help="Inspect and test-run linear automation workflows.",
    no_args_is_help=True,
)

console = Console()

_STATUS_STYLE = {
    RunStatus.PENDING: "[dim]… running[/dim]",
    RunStatus.SUCCESS: "[green]✓ success[/green]",
    RunStatus.FAILURE: "[red]✗ failed[/red]",
}


def configure_logging(level: str) -> None:
    """Configure root logging for CLI runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def random_policy(success_rate: float, seed: int | None = None) -> OutcomePolicy:
    """Demo outcome policy: each step succeeds with the given probability."""
    rng = random.Random(seed)

    def _policy(step: object) -> bool:
        return rng.random() < success_rate

    return _policy


def parse_outcomes(spec: str) -> list[bool]:
    """Parse a comma-separated outcome script like "ok,ok,fail"."""
    outcomes: list[bool] = []
    for item in spec.split(","):
        token = item.strip().lower()
        if token in ("ok", "success", "s", "pass"):
            outcomes.append(True)
        elif token in ("fail", "failure", "f", "error"):
            outcomes.append(False)
        elif token:
            raise typer.BadParameter(f"Unknown outcome '{item.strip()}' (use ok/fail)")
    return outcomes


def _load_settings_or_exit(verbose: bool) -> FlowkitSettings:
    try:
        settings = load_settings()
    except FlowkitError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=2) from None

    configure_logging("DEBUG" if verbose else settings.log_level)
    return settings


def _load_or_exit(
    session_path: str, settings: FlowkitSettings, simulator: RunSimulator | None = None
) -> WorkflowController:
    try:
        return load_session(session_path, settings=settings, simulator=simulator)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=2) from None
    except SchemaValidationError as e:
        console.print(f"[red]Invalid session file:[/red] {e}")
        for error in e.errors:
            console.print(f"  • {error}")
        raise typer.Exit(code=2) from None
    except (FlowkitError, ValueError) as e:
        console.print(f"[red]Validation Error:[/red] {e}")
        raise typer.Exit(code=2) from None


@app.command("run")
def run_cmd(
    session_path: str = typer.Option(
        ...,
        "--workflow",
        "-w",
        help="Path to workflow session YAML file",
    ),
    outcomes: str | None = typer.Option(
        None,
        "--outcomes",
        help="Scripted outcomes per configured step, e.g. 'ok,fail,ok'",
    ),
    demo: bool = typer.Option(
        False,
        "--demo",
        help="Randomise step outcomes (demo mode)",
    ),
    success_rate: float = typer.Option(
        0.8,
        "--success-rate",
        min=0.0,
        max=1.0,
        help="Per-step success probability in demo mode",
    ),
    seed: int | None = typer.Option(
        None,
        "--seed",
        help="Random seed for demo mode",
    ),
    delay_ms: int | None = typer.Option(
        None,
        "--delay-ms",
        help="Simulated latency per step (default: FLOWKIT_STEP_DELAY_MS)",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the run summary as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Run a simulated test pass over the configured steps.

    Example:
        flowkit run -w workflows/gmail_to_slack.yaml --outcomes ok,fail
    """
    settings = _load_settings_or_exit(verbose)

    if outcomes is not None and demo:
        console.print("[red]Error:[/red] --outcomes and --demo are mutually exclusive")
        raise typer.Exit(code=2)

    policy: OutcomePolicy = always_succeed
    if outcomes is not None:
        policy = scripted_policy(parse_outcomes(outcomes))
    elif demo:
        policy = random_policy(success_rate, seed)

    simulator = RunSimulator(
        SimulatorConfig(
            outcome_policy=policy,
            step_delay_ms=settings.step_delay_ms if delay_ms is None else delay_ms,
        )
    )
    controller = _load_or_exit(session_path, settings, simulator)
    labels = {step.id: step.label for step in controller.steps}

    def _report(result: StepResult) -> None:
        if not as_json:
            console.print(f"  {labels[result.step_id]:<50} {_STATUS_STYLE[result.status]}")

    if not as_json:
        console.print(f"[cyan]Workflow:[/cyan] {controller.name}")
        console.print(f"[cyan]Ready to save:[/cyan] {'yes' if controller.can_save() else 'no'}")
        console.print()

    try:
        summary = summarize(controller.start_test_run(), controller.steps, on_result=_report)
    except FlowkitError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=2) from None

    if as_json:
        console.print_json(json.dumps(summary.to_dict()))
    elif summary.result == "Succeeded":
        console.print(f"\n[green]✓ Test run {summary.result}[/green]")
    else:
        console.print(f"\n[red]✗ Test run {summary.result}[/red]")
        if summary.skipped:
            console.print(f"[dim]Not attempted: {', '.join(labels[s] for s in summary.skipped)}[/dim]")

    raise typer.Exit(code=0 if summary.result == "Succeeded" else 1)


@app.command("catalog")
def catalog_cmd(
    session_path: str = typer.Option(
        ...,
        "--workflow",
        "-w",
        help="Path to workflow session YAML file",
    ),
    step_id: str | None = typer.Option(
        None,
        "--step",
        help="Only show the catalog of this step id",
    ),
    search: str = typer.Option(
        "",
        "--search",
        "-s",
        help="Filter variables by name, source or description",
    ),
) -> None:
    """Show the variables available to each step."""
    settings = _load_settings_or_exit(False)
    controller = _load_or_exit(session_path, settings)

    steps = controller.steps
    if step_id is not None:
        try:
            steps = (controller.registry.get(step_id),)
        except FlowkitError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=1) from None

    for step in steps:
        variables = search_variables(controller.available_variables_for(step.id), search)

        table = Table(title=f"{step.label} [dim]({step.id})[/dim]")
        table.add_column("Variable", style="cyan", no_wrap=True)
        table.add_column("Type", style="yellow")
        table.add_column("Source", style="green")
        table.add_column("Description", style="dim")

        for source, group in group_by_source(variables).items():
            for variable in group:
                table.add_row(
                    f"{{{{{variable.name}}}}}",
                    variable.type.value,
                    source,
                    variable.description or "",
                )

        if not variables:
            table.add_row("[yellow]No variables available.[/yellow]", "", "", "")
        console.print(table)


@app.command("validate")
def validate_cmd(
    session_path: str = typer.Option(
        ...,
        "--workflow",
        "-w",
        help="Path to workflow session YAML file",
    ),
) -> None:
    """Validate a workflow without running it.

    Checks:
    - Session file structure and payloads
    - A configured trigger and a configured action exist
    - Every step is configured
    - Every variable binding still resolves
    """
    settings = _load_settings_or_exit(False)
    # Dangling bindings are reported below rather than rejected at load time
    controller = _load_or_exit(
        session_path, settings.model_copy(update={"strict_bindings": False})
    )

    errors = controller.validate()
    if errors:
        console.print("[red]Validation failed:[/red]")
        for error in errors:
            console.print(f"  • {error}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Workflow '{controller.name}' is valid[/green]")
    raise typer.Exit(code=0)


@app.command("operators")
def operators_cmd(
    variable_type: str = typer.Option(
        "string",
        "--type",
        "-t",
        help="Variable type: string, number, boolean, object or array",
    ),
) -> None:
    """List the condition operators available for a variable type."""
    try:
        VariableType(variable_type)
    except ValueError:
        names = ", ".join(t.value for t in VariableType)
        console.print(
            f"[red]Error:[/red] Unknown variable type '{variable_type}' (expected one of: {names})"
        )
        raise typer.Exit(code=2) from None

    table = Table(title=f"Operators for {variable_type}")
    table.add_column("Operator", style="cyan", no_wrap=True)
    table.add_column("Label", style="green")
    table.add_column("Takes Value", style="dim")

    for op in operators_for(variable_type):
        table.add_row(op.name, op.label, "yes" if op.takes_value else "no")

    console.print(table)


@app.command("env")
def env_cmd() -> None:
    """Show the FLOWKIT_* environment variables and their current values."""
    table = Table(title="FLOWKIT Environment Variables")
    table.add_column("Variable", style="cyan", no_wrap=True)
    table.add_column("Default", style="yellow")
    table.add_column("Current Value", style="green")

    for field_name, env_var in sorted(ENV_VARS.items(), key=lambda x: x[1]):
        default = FlowkitSettings.model_fields[field_name].default
        value = os.environ.get(env_var, "(not set)")
        if len(value) > 50:
            value = value[:47] + "..."
        table.add_row(env_var, str(default), value)

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
