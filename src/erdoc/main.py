"""
ERDoc - CLI Entry Point.

Usage:
    erdoc serve              Run the web API
    erdoc route STEP         Show where a membership at STEP is sent
    erdoc health             Check configuration
    erdoc --help             Show help
"""

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="erdoc",
    help="ERDoc - membership and intake service.",
    add_completion=False,
)
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)"),
) -> None:
    """Run the FastAPI application with uvicorn."""
    import uvicorn

    uvicorn.run("erdoc.web.app:app", host=host, port=port, reload=reload)


@app.command()
def route(
    step: str = typer.Argument(None, help="onboarding_step value; omit for an empty column"),
    no_membership: bool = typer.Option(False, "--no-membership", help="Route a user with no membership row"),
) -> None:
    """Print the destination for an onboarding step and the stages it may submit."""
    from onboarding.state import IntakeStage, is_allowed, next_destination

    destination = next_destination(step, has_membership=not no_membership)
    console.print(f"[bold]Destination:[/bold] {destination.value}")

    if no_membership:
        return

    table = Table(title="Stage access")
    table.add_column("Stage")
    table.add_column("Allowed")
    for stage in IntakeStage:
        allowed = is_allowed(step, stage)
        table.add_row(stage.value, "[green]yes[/green]" if allowed else "[dim]no[/dim]")
    console.print(table)


@app.command()
def health() -> None:
    """Check that settings load and Supabase is configured."""
    from erdoc import __version__
    from erdoc.config import get_settings

    console.print(f"[bold]ERDoc[/bold] {__version__}")
    try:
        s = get_settings()
    except Exception as e:
        console.print(f"[red]✗ Settings failed to load:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Environment: {s.erdoc_env}")
    console.print(f"[green]✓[/green] Supabase URL: {s.supabase_url}")
    webhook = "[green]configured[/green]" if s.slack_webhook_url else "[yellow]not configured[/yellow]"
    console.print(f"  Slack webhook: {webhook}")


if __name__ == "__main__":
    app()
