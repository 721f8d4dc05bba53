"""Command line interface for running OneShip workflows."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from pydantic import ValidationError

from oneship.config import OneShipConfig, load_config
from oneship.errors import ConfigurationError, ProviderError
from oneship.providers import SANDBOX_PROVIDERS, ProviderConfig, build_registry, get_provider
from oneship.service import ShippingService
from oneship.workflow import (
    DEFAULT_WORKFLOWS,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowStepStatus,
    load_workflow,
)

app = typer.Typer(help="CLI for OneShip courier workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for validating and running workflows")
provider_app = typer.Typer(help="Commands for inspecting courier providers")

app.add_typer(workflow_app, name="workflow")
app.add_typer(provider_app, name="provider")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Logging level for OneShip output"),
) -> None:
    """OneShip CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_definition(path: Path) -> WorkflowDefinition:
    try:
        return load_workflow(path)
    except FileNotFoundError:
        typer.secho(f"Workflow file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        typer.secho(f"Invalid workflow definition: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _load_context(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except FileNotFoundError:
        typer.secho(f"Context file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except yaml.YAMLError as e:
        typer.secho(f"Invalid context file: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not isinstance(data, dict):
        typer.secho("Context file must contain a mapping", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return data


async def _run_workflow(
    definition: WorkflowDefinition,
    context: Dict[str, Any],
    config: OneShipConfig,
    sandbox: bool,
    timeout: Optional[float],
) -> WorkflowExecution:
    try:
        registry = await build_registry(config)
    except (ValueError, ProviderError) as e:
        raise ConfigurationError(f"Invalid provider configuration: {e}") from e
    if sandbox:
        for provider_id in SANDBOX_PROVIDERS:
            if registry.get(provider_id) is None:
                registry.register(get_provider(provider_id))
                await registry.initialize_provider(
                    provider_id, ProviderConfig(id=provider_id, api_key="sandbox")
                )
    service = ShippingService(registry=registry, config=config)
    try:
        return await service.run_workflow(definition, context, timeout=timeout)
    finally:
        await service.dispatcher.aclose()


@workflow_app.command("validate")
def workflow_validate(path: Path) -> None:
    """
    Check that a workflow file parses and its step graph is well formed.

    Example:
        oneship workflow validate workflows/create_order.yaml
    """
    definition = _load_definition(path)
    typer.echo(f"{definition.id}: {definition.name} ({len(definition.steps)} steps)")
    for step in definition.steps:
        unknown = [
            edge
            for edge in (step.on_success, step.on_failure)
            if edge and definition.get_step(edge) is None
        ]
        line = f"  {step.id}\t{step.type}\t-> {step.on_success or '-'} / {step.on_failure or '-'}"
        if unknown:
            line += f"\t(ends run: {', '.join(unknown)} not defined)"
        typer.echo(line)


@workflow_app.command("run")
def workflow_run(
    path: Path,
    context: Optional[Path] = typer.Option(
        None, help="YAML or JSON file with the initial execution context"
    ),
    config: Optional[Path] = typer.Option(None, help="Path to oneship.yaml"),
    sandbox: bool = typer.Option(
        True, help="Make every sandbox courier available, not only configured ones"
    ),
    timeout: Optional[float] = typer.Option(None, help="Seconds to wait for completion"),
) -> None:
    """
    Run a workflow file and print the execution record as JSON.

    Exits with code 1 when the execution fails.

    Example:
        oneship workflow run workflows/create_order.yaml --context order.json
    """
    definition = _load_definition(path)
    initial_context = _load_context(context)
    try:
        settings = load_config(str(config) if config else None)
    except ConfigurationError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    try:
        execution = asyncio.run(
            _run_workflow(definition, initial_context, settings, sandbox, timeout)
        )
    except ConfigurationError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except asyncio.TimeoutError:
        typer.secho(f"Workflow {definition.id} did not finish in {timeout}s", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(execution.model_dump_json(indent=2))
    if execution.status == WorkflowStepStatus.FAILED:
        raise typer.Exit(code=1)


@workflow_app.command("defaults")
def workflow_defaults() -> None:
    """List the built-in workflows."""
    for workflow in DEFAULT_WORKFLOWS.values():
        steps = " -> ".join(step.type for step in workflow.steps)
        typer.echo(f"{workflow.id}\t{workflow.trigger.value}\t{steps}")


@provider_app.command("list")
def provider_list() -> None:
    """List sandbox couriers and the capabilities they declare."""
    for provider_id, provider_cls in SANDBOX_PROVIDERS.items():
        capabilities = ", ".join(sorted(c.value for c in provider_cls.capabilities))
        typer.echo(f"{provider_id}\t{provider_cls.name}\t{capabilities}")


if __name__ == "__main__":  # pragma: no cover
    app()
