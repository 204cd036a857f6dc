"""TWX CLI - operator commands against the asset store.

Commands:
- init: Initialize database schema
- register: Register a new element
- link: Link an element to an external model object
- transfer request|approve|receive: Drive the transfer workflow
- status: Store, retire or scrap an element
- history: Show an element's project history
- session issue: Issue an API session token
- web serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from twx.config import get_config
from twx.db.connection import close_db, get_session, init_db
from twx.errors import TwxError
from twx.mapping.directory import MappingDirectory
from twx.models import Actor
from twx.registry.service import AssetRegistry
from twx.web.auth import create_session
from twx.workflow.engine import TransferWorkflow

app = typer.Typer(
    name="twx",
    help="TWX - Temporary-works asset registry and transfer workflow",
    no_args_is_help=True,
)
transfer_cli = typer.Typer(help="Project transfer workflow")
app.add_typer(transfer_cli, name="transfer")

session_cli = typer.Typer(help="API session tokens")
app.add_typer(session_cli, name="session")

web_cli = typer.Typer(help="HTTP API")
app.add_typer(web_cli, name="web")

console = Console()

T = TypeVar("T")

ACTOR_OPTION = typer.Option("cli", "--actor", help="User id recorded on the change")


def _run(operation: Callable[[], Awaitable[T]]) -> T:
    """Run an async operation, reporting domain errors and exiting non-zero."""

    async def _wrapped() -> T:
        try:
            return await operation()
        finally:
            await close_db()

    try:
        return asyncio.run(_wrapped())
    except TwxError as exc:
        console.print(f"[bold red]✗[/bold red] {exc.message}")
        raise typer.Exit(code=1) from exc


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")
    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")

    _run(lambda: init_db(drop=drop))
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def register(
    ifc_type: str = typer.Option(..., "--ifc-type", help="IFC type, e.g. IfcColumn"),
    project_id: str = typer.Option(..., "--project", help="Project ID"),
    condition: str = typer.Option("Good", "--condition", help="Excellent/Good/Fair/Poor"),
    actor_id: str = ACTOR_OPTION,
):
    """Register a new element in a project."""

    async def _register():
        async with get_session() as session:
            element = await AssetRegistry(session).register(
                ifc_type, project_id, condition, Actor(id=actor_id)
            )
            return element.asset_number, element.id, element.scan_code

    asset_number, element_id, scan_code = _run(_register)
    console.print(f"[bold green]✓[/bold green] Registered {asset_number}")
    console.print(f"  Element ID: {element_id}")
    console.print(f"  Scan code:  {scan_code}")


@app.command()
def link(
    element_id: UUID = typer.Argument(..., help="Element ID"),
    project_id: str = typer.Option(..., "--project", help="Project of the model"),
    external_element_id: str = typer.Option(..., "--external-id", help="Model object ID"),
    url: str | None = typer.Option(None, "--url", help="Model object URL"),
    notes: str | None = typer.Option(None, "--notes"),
    actor_id: str = ACTOR_OPTION,
):
    """Link an element to an external model object."""

    async def _link():
        async with get_session() as session:
            directory = MappingDirectory(session)
            await directory.link(
                element_id,
                project_id,
                external_element_id,
                Actor(id=actor_id),
                external_object_url=url,
                notes=notes,
            )
            element = await directory.registry.get(element_id)
            return element.current_project_id, element.status

    current_project, element_status = _run(_link)
    console.print(f"[bold green]✓[/bold green] Linked to {external_element_id}")
    console.print(f"  Project: {current_project} ({element_status})")


@transfer_cli.command("request")
def transfer_request(
    element_id: UUID = typer.Argument(..., help="Element ID"),
    destination: str = typer.Option(..., "--to", help="Destination project ID"),
    condition: str | None = typer.Option(None, "--condition", help="Condition on departure"),
    notes: str | None = typer.Option(None, "--notes"),
    actor_id: str = ACTOR_OPTION,
):
    """Request a transfer to another project."""

    async def _request():
        async with get_session() as session:
            record = await TransferWorkflow(session).request_transfer(
                element_id,
                destination,
                Actor(id=actor_id),
                transfer_condition=condition,
                condition_notes=notes,
            )
            return record is not None

    if _run(_request):
        console.print("[bold green]✓[/bold green] Transfer requested, awaiting approvals")
    else:
        console.print("[yellow]Element is already in that project[/yellow]")


@transfer_cli.command("approve")
def transfer_approve(
    element_id: UUID = typer.Argument(..., help="Element ID"),
    project_id: str = typer.Option(..., "--project", help="Destination project ID"),
    role: str = typer.Option(..., "--role", help="source or destination"),
    actor_id: str = ACTOR_OPTION,
):
    """Record a source or destination approval."""

    async def _approve():
        async with get_session() as session:
            _, both = await TransferWorkflow(session).approve(
                element_id, project_id, role, Actor(id=actor_id)
            )
            return both

    both = _run(_approve)
    console.print(f"[bold green]✓[/bold green] {role} approval recorded")
    if both:
        console.print("  Both approvals present; ready to receive")


@transfer_cli.command("receive")
def transfer_receive(
    element_id: UUID = typer.Argument(..., help="Element ID"),
    project_id: str = typer.Option(..., "--project", help="Destination project ID"),
    condition: str = typer.Option(..., "--condition", help="Condition on receipt"),
    location: str | None = typer.Option(None, "--location", help="Actual location"),
    notes: str | None = typer.Option(None, "--notes"),
    actor_id: str = ACTOR_OPTION,
):
    """Complete an approved transfer."""

    async def _receive():
        async with get_session() as session:
            element = await TransferWorkflow(session).receive(
                element_id,
                project_id,
                condition,
                Actor(id=actor_id),
                condition_notes=notes,
                actual_location=location,
            )
            return element.asset_number

    asset_number = _run(_receive)
    console.print(f"[bold green]✓[/bold green] {asset_number} received in {project_id}")


@app.command()
def status(
    element_id: UUID = typer.Argument(..., help="Element ID"),
    new_status: str = typer.Argument(..., help="active, in_storage, retired or scrapped"),
    actor_id: str = ACTOR_OPTION,
):
    """Change an element's lifecycle status."""

    async def _change():
        async with get_session() as session:
            element = await TransferWorkflow(session).change_status(
                element_id, new_status, Actor(id=actor_id)
            )
            return element.asset_number

    asset_number = _run(_change)
    console.print(f"[bold green]✓[/bold green] {asset_number} is now {new_status}")


@app.command()
def history(element_id: UUID = typer.Argument(..., help="Element ID")):
    """Show an element's project history, newest first."""

    async def _history():
        async with get_session() as session:
            return await TransferWorkflow(session).history(element_id)

    records = _run(_history)

    table = Table(title=f"History for {element_id}")
    table.add_column("Project", style="cyan")
    table.add_column("Status")
    table.add_column("From")
    table.add_column("Approvals")
    table.add_column("Activated")
    table.add_column("Via")

    for record in records:
        approvals = (
            f"src={'✓' if record.source_approved else '-'} "
            f"dst={'✓' if record.destination_approved else '-'}"
        )
        table.add_row(
            record.project_id,
            record.status,
            record.transferred_from_project_id or "",
            approvals,
            record.activated_date.isoformat() if record.activated_date else "",
            record.completed_via or "",
        )

    console.print(table)


@session_cli.command("issue")
def session_issue(
    user_id: str = typer.Option(..., "--user-id", help="User ID the token resolves to"),
    email: str | None = typer.Option(None, "--email"),
    name: str | None = typer.Option(None, "--name", help="Display name"),
):
    """Issue a session token for API clients."""
    token = create_session(user_id, email=email, display_name=name)
    hours = get_config().auth.session_expiry_hours
    console.print(f"[bold green]✓[/bold green] Session for {user_id} (valid {hours}h)")
    console.print(token)


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI HTTP API."""
    import uvicorn

    typer.echo(f"Starting TWX API on http://{host}:{port}")
    uvicorn.run("twx.web.app:app", host=host, port=port, reload=reload, workers=1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
