"""
Main CLI application using Typer.
"""

from pathlib import Path
from typing import Optional, Annotated

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import AppConfig
from ..logging_setup import configure_logging
from ..adapters.mock_realflow_client import MockRealflowRepository
from ..adapters.sqlserver_client import SqlServerRealflowRepository
from ..domain.exceptions import RealflowError
from ..domain.models import COLUMNS
from ..domain.reconciler import JobReconciler, UnmatchedPolicy
from ..services.realflow_service import RealflowService

app = typer.Typer(
    name="realflow",
    help="Serve and inspect the RealFlow feed and its reconciled jobs",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the bundled JSON data instead of SQL Server.")
]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    try:
        config = AppConfig.load(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    configure_logging(config.log_level)
    return config


def _build_service(
    config: AppConfig,
    mock: bool,
    unmatched: Optional[UnmatchedPolicy] = None
) -> RealflowService:
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using bundled test data[/yellow]\n")
        repository = MockRealflowRepository(comid=config.comid)
    else:
        config.require_database()
        repository = SqlServerRealflowRepository.from_config(config.database, comid=config.comid)

    reconciler = JobReconciler(
        unmatched_policy=unmatched or config.unmatched_policy,
        timezone=config.timezone
    )
    return RealflowService(repository=repository, reconciler=reconciler)


def _display(value) -> str:
    return "" if value is None else escape(str(value))


@app.command()
def serve(
    config_file: ConfigOption = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Bind port")] = None,
):
    """
    Run the HTTP API.
    """
    from ..web.app import create_app

    config = _load_config(config_file)

    try:
        config.require_database()
    except RealflowError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    bind_host = host or config.server.host
    bind_port = port or config.server.port

    console.print(f"\n[bold cyan]🚀 RealFlow API[/bold cyan] on http://{bind_host}:{bind_port}")
    console.print(f"   Database: {config.database.connection_string()}\n")

    uvicorn.run(
        create_app(config),
        host=bind_host,
        port=bind_port,
        log_level=config.log_level.lower()
    )


@app.command()
def records(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Print the raw feed, newest first.
    """
    config = _load_config(config_file)

    try:
        service = _build_service(config, mock)
        try:
            rows = service.list_records()
        finally:
            service.close()
    except RealflowError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not rows:
        console.print("[yellow]No records found.[/yellow]")
        return

    table = Table(
        title=f"Realflow records (COMID={config.comid})",
        show_header=True,
        header_style="bold cyan"
    )
    columns = list(COLUMNS.values())
    for column in columns:
        table.add_column(column)

    for row in rows:
        table.add_row(*[_display(row.get(column)) for column in columns])

    console.print()
    console.print(table)
    console.print(f"\n{len(rows)} record(s)\n")


@app.command()
def jobs(
    config_file: ConfigOption = None,
    mock: MockOption = False,
    unmatched: Annotated[
        Optional[UnmatchedPolicy],
        typer.Option("--unmatched", help="What to do with jobs that never closed.")
    ] = None,
):
    """
    Reconcile the feed into job records and print them.

    Examples:

        realflow jobs --mock

        realflow jobs --mock --unmatched incomplete
    """
    config = _load_config(config_file)

    try:
        service = _build_service(config, mock, unmatched)
        try:
            result = service.reconcile_jobs()
        finally:
            service.close()
    except RealflowError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print()
    if not result.jobs:
        console.print("[yellow]⚠ No job records could be reconciled.[/yellow]")
    else:
        table = Table(
            title=f"Jobs ({result.count} of {result.records_consumed} records)",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Seq", style="bold yellow")
        table.add_column("Voyage")
        table.add_column("Vessel")
        table.add_column("Product")
        table.add_column("Start")
        table.add_column("End")
        table.add_column("Duration", style="bold")
        table.add_column("Status", style="dim")

        for job in result.jobs:
            table.add_row(
                _display(job.sequence),
                _display(job.voyage),
                _display(job.vessel_name),
                _display(job.product_name),
                _display(job.start_time),
                _display(job.end_time),
                _display(job.duration),
                job.status.value
            )

        console.print(table)

    if result.issues:
        console.print(f"\n[yellow]{len(result.issues)} issue(s):[/yellow]")
        for issue in result.issues:
            console.print(f"  [dim]{escape(str(issue))}[/dim]")

    console.print()


@app.command()
def check_db(config_file: ConfigOption = None):
    """
    Test the SQL Server connection.
    """
    config = _load_config(config_file)

    try:
        config.require_database()
    except RealflowError as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e}")
        raise typer.Exit(1)

    repository = SqlServerRealflowRepository.from_config(config.database, comid=config.comid)
    try:
        connected = repository.ping()
    finally:
        repository.close()

    if not connected:
        console.print(f"\n[bold red]✗ Could not reach {config.database.connection_string()}[/bold red]\n")
        raise typer.Exit(1)

    console.print(f"\n[bold green]✓ Connected to {config.database.connection_string()}[/bold green]\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]realflow[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
