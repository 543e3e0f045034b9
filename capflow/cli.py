"""Command line interface for compiling plans and inspecting sessions."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from capflow import PlanCompiler, get_plan_cache, get_session_store
from capflow.compiler import CompileError
from capflow.config import load_config
from capflow.loader import WorkflowLoader

app = typer.Typer(help="CLI for capflow capture workflows")

# Command groups
plan_app = typer.Typer(help="Commands for compiling and inspecting plans")
workflow_app = typer.Typer(help="Commands for bundled workflow documents")
session_app = typer.Typer(help="Commands for the saved capture session")

app.add_typer(plan_app, name="plan")
app.add_typer(workflow_app, name="workflow")
app.add_typer(session_app, name="session")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """capflow CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@plan_app.command("compile")
def plan_compile(path: Path) -> None:
    """
    Compile a workflow document into a cached plan.

    Sends the document to the configured normalization backend unless a plan
    for identical content is already cached, then repairs and caches it.

    Example:
        capflow plan compile workflows/home_inspection.yaml
        # Output: Plan plan_3f2a...: 6 steps (compiled)
        #         - repaired: Step 'roof' has a transition to unknown step 'done'
    """
    if not path.is_file():
        typer.secho(f"File not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    compiler = PlanCompiler.from_config(load_config())
    try:
        report = asyncio.run(
            compiler.compile_with_report(path.read_text(encoding="utf-8"))
        )
    except CompileError as exc:
        typer.secho(f"Compilation failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    origin = "cached" if report.cache_hit else "compiled"
    typer.echo(f"Plan {report.key}: {len(report.plan.steps)} steps ({origin})")
    for correction in report.corrections:
        typer.echo(f"- repaired: {correction.describe()}")
    for warning in report.warnings:
        typer.secho(f"- warning: {warning}", fg=typer.colors.YELLOW)


@plan_app.command("list")
def plan_list() -> None:
    """List the keys of all cached plans."""
    keys = get_plan_cache().keys()
    if not keys:
        typer.echo("No cached plans")
        return
    for key in keys:
        typer.echo(key)


@plan_app.command("show")
def plan_show(key: str) -> None:
    """
    Show the steps and transitions of a cached plan.

    Example:
        capflow plan show plan_3f2a...
        # Output: Plan plan_3f2a... (home_inspection_v1)
        #         1. exterior [photo] Photograph the front of the house
        #            onSuccess -> roof
    """
    plan = get_plan_cache().get(key)
    if plan is None:
        typer.echo("Plan not found")
        raise typer.Exit(code=1)
    typer.echo(f"Plan {plan.id} ({plan.plan_id or 'unnamed'})")
    for number, step in enumerate(plan.steps, start=1):
        typer.echo(f"{number}. {step.id} [{step.capture_kind.value}] {step.instruction}")
        for transition in step.transitions:
            typer.echo(f"   {transition.when.value} -> {transition.to}")
    for advice in plan.advice or []:
        typer.echo(f"Advice: {advice}")


@workflow_app.command("list")
def workflow_list() -> None:
    """List workflow documents in the configured workflows directory."""
    config = load_config()
    names = WorkflowLoader(config.workflows_dir).list_bundled()
    if not names:
        typer.echo("No workflows found")
        return
    for name in names:
        typer.echo(name)


@session_app.command("show")
def session_show() -> None:
    """
    Show the saved capture session.

    Example:
        capflow session show
        # Output: Session active: step 2/6 (roof)
        #         Media: 3  Annotations: 1
    """
    state = asyncio.run(get_session_store().load())
    if state is None:
        typer.echo("No saved session")
        raise typer.Exit(code=1)
    total = len(state.plan.steps) if state.plan else 0
    line = f"Session {state.lifecycle_state.value}"
    if state.plan and state.current_step_index < total:
        step = state.plan.steps[state.current_step_index]
        line += f": step {state.current_step_index + 1}/{total} ({step.id})"
    typer.echo(line)
    typer.echo(f"Media: {len(state.captured_media)}  Annotations: {len(state.annotations)}")


@session_app.command("clear")
def session_clear() -> None:
    """Delete the saved capture session."""
    asyncio.run(get_session_store().clear())
    typer.echo("Session cleared")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
