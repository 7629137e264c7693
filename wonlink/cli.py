"""Command line interface for the wonlink orchestrator."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from wonlink import CATALOGUE, OrchestratorRequest, WorkflowOrchestrator, get_store
from wonlink.config import load_config
from wonlink.constants import DEFAULT_HISTORY_LIMIT
from wonlink.errors import StateTransitionError, WorkflowNotFoundError
from wonlink.utils.logs import configure_logging

app = typer.Typer(help="CLI for wonlink workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for inspecting workflows")
capability_app = typer.Typer(help="Commands for inspecting capabilities")

app.add_typer(workflow_app, name="workflow")
app.add_typer(capability_app, name="capability")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, help="Logging level (defaults to the configured log_level)"
    ),
) -> None:
    """Wonlink CLI entry point."""
    configure_logging(log_level or load_config().log_level)


@app.command("run")
def run(
    query: str,
    org: str = typer.Option(..., "--org", help="Organization the request belongs to"),
    session: Optional[str] = typer.Option(None, help="Optional session id"),
    correlation_id: Optional[str] = typer.Option(
        None, help="Correlation id to use instead of a generated one"
    ),
) -> None:
    """
    Route a free-text request to a capability and run it.

    Prints the orchestrator response as JSON. High-stakes capabilities stop
    at the approval gate when approval mode is 'manual'; continue them with
    'wonlink approve'.

    Example:
        wonlink run "Find me a supplier on 1688 for phone cases" --org acme
    """
    orchestrator = WorkflowOrchestrator.from_config()
    request = OrchestratorRequest(
        user_query=query,
        organization_id=org,
        session_id=session,
        correlation_id=correlation_id,
    )
    response = asyncio.run(orchestrator.process_request(request))
    typer.echo(response.model_dump_json(indent=2))


@app.command("approve")
def approve(
    correlation_id: str,
    reject: bool = typer.Option(False, "--reject", help="Reject instead of approve"),
    feedback: Optional[str] = typer.Option(None, help="Reviewer note"),
) -> None:
    """
    Supply the reviewer decision for a suspended workflow.

    Example:
        wonlink approve abc123-def456-789 --feedback "Looks good"
        wonlink approve abc123-def456-789 --reject --feedback "Wrong program"
    """
    orchestrator = WorkflowOrchestrator.from_config()
    try:
        record = asyncio.run(
            orchestrator.resume_workflow(correlation_id, not reject, feedback)
        )
    except WorkflowNotFoundError:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    except StateTransitionError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Workflow {record.correlation_id}: {record.status.value}")
    if record.final_output:
        typer.echo(record.final_output)
    if record.error:
        typer.secho(f"Error: {record.error}", fg=typer.colors.RED)


@workflow_app.command("list")
def workflow_list(
    org: str = typer.Option(..., "--org", help="Organization to list"),
    limit: int = typer.Option(DEFAULT_HISTORY_LIMIT, help="Maximum workflows to show"),
) -> None:
    """
    List an organization's workflows, most recent first.

    Example:
        wonlink workflow list --org acme
        # Output: abc123-def456-789    completed    china_source
    """
    store = get_store()
    records = asyncio.run(store.list_by_organization(org, limit=limit))
    if not records:
        typer.echo("No workflows found")
        return
    for record in records:
        typer.echo(
            f"{record.correlation_id}\t{record.status.value}\t"
            f"{record.current_capability.value}"
        )


@workflow_app.command("show")
def workflow_show(correlation_id: str) -> None:
    """Show the stored record for a workflow."""
    store = get_store()
    record = asyncio.run(store.load_by_correlation_id(correlation_id))
    if record is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {record.correlation_id}: {record.status.value}")
    typer.echo(
        f"Intent: {record.intent.value if record.intent else '-'} "
        f"(confidence={record.confidence if record.confidence is not None else '-'})"
    )
    typer.echo(f"Capability: {record.current_capability.value}")
    typer.echo(f"Status history: {' -> '.join(s.value for s in record.status_history)}")
    typer.echo(f"Estimated cost: ${record.estimated_cost:.6f}")
    if record.final_output:
        typer.echo(f"Output: {record.final_output}")
    if record.error:
        typer.echo(f"Error: {record.error}")


@workflow_app.command("stats")
def workflow_stats(org: str = typer.Option(..., "--org")) -> None:
    """Print aggregate workflow statistics for an organization as JSON."""
    store = get_store()
    stats = asyncio.run(store.aggregate_stats(org))
    typer.echo(stats.model_dump_json(indent=2))


@capability_app.command("list")
def capability_list() -> None:
    """List the capability catalogue."""
    for capability, descriptor in CATALOGUE.items():
        flag = " [approval]" if descriptor.high_stakes else ""
        typer.echo(
            f"{capability.value}\t{descriptor.name}\t"
            f"${descriptor.estimated_cost_per_task:.3f}{flag}"
        )


if __name__ == "__main__":
    app()
