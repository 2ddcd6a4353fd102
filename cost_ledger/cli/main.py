"""
CLI interface for Cost Ledger.

Provides command-line access to the cost endpoints.
"""

import json
import random
import sys
from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from cost_ledger.config.loader import LedgerConfig, load_config
from cost_ledger.demo.seed_demo_data import generate_demo_records
from cost_ledger.service.costs import ApiResponse, CostService
from cost_ledger.storage.repository import get_repository
from cost_ledger.utils.errors import LedgerError
from cost_ledger.utils.logger import setup_logger

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

START_DATE_OPTION = typer.Option(None, "--start-date", help="Earliest date (YYYY-MM-DD), inclusive")
END_DATE_OPTION = typer.Option(None, "--end-date", help="Latest date (YYYY-MM-DD), inclusive")
SERVICE_OPTION = typer.Option(None, "--service", "-s", help="Service name; repeat to match any")
REGION_OPTION = typer.Option(None, "--region", "-r", help="Region; repeat to match any")
ACCOUNT_OPTION = typer.Option(None, "--account", "-a", help="Account id; repeat to match any")
JSON_OPTION = typer.Option(False, "--json", help="Print the response envelope as JSON")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config file"),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite database file (overrides config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Cost Ledger CLI."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if db:
        config = replace(config, database=replace(config.database, path=db))

    setup_logger(config.logging.level, verbose=verbose, log_file=config.logging.file)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        console.print("Cost Ledger - Use --help to see available commands")


def _config(ctx: typer.Context) -> LedgerConfig:
    return ctx.obj if isinstance(ctx.obj, LedgerConfig) else load_config()


def _service(ctx: typer.Context) -> CostService:
    config = _config(ctx)
    repository = get_repository(config.database.path, config.database.timeout)
    return CostService(repository, max_limit=config.pagination.max_limit)


def _filter_params(
    start_date: Optional[str],
    end_date: Optional[str],
    services: Optional[List[str]],
    regions: Optional[List[str]],
    accounts: Optional[List[str]],
) -> Dict[str, Any]:
    return {
        "startDate": start_date,
        "endDate": end_date,
        "serviceName": services or None,
        "region": regions or None,
        "accountId": accounts or None,
    }


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.2f}"


def _emit(response: ApiResponse, as_json: bool, render: Callable[[ApiResponse], None]) -> None:
    """Print a response and exit with its outcome."""
    if as_json:
        typer.echo(json.dumps(response.to_dict(), indent=2))
    elif not response.success:
        console.print(f"[red]Error:[/] {response.message}")
        for error in response.errors:
            console.print(f"  [yellow]{error.field}[/]: {error.message}")
    else:
        render(response)

    sys.exit(EXIT_CODE_PASS if response.success else EXIT_CODE_FAIL)


def _show_message(response: ApiResponse) -> None:
    console.print(f"[green]✓[/] {response.message}")


def _show_record(response: ApiResponse) -> None:
    _show_message(response)
    _show_records([response.data])


def _show_records(records: List[Dict[str, Any]]) -> None:
    table = Table()
    for column in ("ID", "Date", "Service", "Cost", "Region", "Account", "Usage Type"):
        table.add_column(column, justify="right" if column in ("ID", "Cost") else "left")
    for record in records:
        table.add_row(
            str(record["id"]),
            record["date"],
            record["serviceName"],
            _format_currency(record["costAmount"]),
            record["region"],
            record["accountId"],
            record["usageType"] or "-",
        )
    console.print(table)


@app.command()
def init(ctx: typer.Context):
    """Initialize the Cost Ledger database."""
    config = _config(ctx)
    try:
        get_repository(config.database.path, config.database.timeout).initialize_schema()
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except LedgerError as e:
        console.print(f"[red]Error initializing database:[/] {e.message}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def seed(
    ctx: typer.Context,
    count: int = typer.Option(50, "--count", "-n", min=1, help="Number of records to generate"),
    days: int = typer.Option(30, "--days", min=0, help="Days of history to spread them over"),
    random_seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible data"),
):
    """Insert demo cost records."""
    config = _config(ctx)
    repository = get_repository(config.database.path, config.database.timeout)
    try:
        repository.initialize_schema()
        records = generate_demo_records(count=count, days=days, rng=random.Random(random_seed))
        created = repository.insert_records(records)
    except LedgerError as e:
        console.print(f"[red]Error seeding database:[/] {e.message}")
        sys.exit(EXIT_CODE_FAIL)

    total = sum((record.cost_amount for record in created), Decimal("0.00"))
    console.print(f"[green]✓[/] Inserted {len(created)} demo cost records")
    console.print(f"Total cost: {_format_currency(float(total))}")
    sys.exit(EXIT_CODE_PASS)


@app.command("list")
def list_costs(
    ctx: typer.Context,
    start_date: Optional[str] = START_DATE_OPTION,
    end_date: Optional[str] = END_DATE_OPTION,
    services: Optional[List[str]] = SERVICE_OPTION,
    regions: Optional[List[str]] = REGION_OPTION,
    accounts: Optional[List[str]] = ACCOUNT_OPTION,
    page: int = typer.Option(1, "--page", "-p", help="Page number, starting at 1"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Records per page"),
    as_json: bool = JSON_OPTION,
):
    """List cost records, newest first."""
    params = _filter_params(start_date, end_date, services, regions, accounts)
    params["page"] = page
    params["limit"] = limit if limit is not None else _config(ctx).pagination.default_limit

    def render(response: ApiResponse) -> None:
        pagination = response.pagination
        if not response.data:
            console.print("\n[dim]No cost records found.[/]")
        else:
            _show_records(response.data)
        console.print(
            f"Page {pagination.current_page} of {pagination.total_pages} "
            f"({pagination.total_records} records, {pagination.records_per_page} per page)"
        )

    _emit(_service(ctx).list_costs(params), as_json, render)


@app.command()
def summary(
    ctx: typer.Context,
    start_date: Optional[str] = START_DATE_OPTION,
    end_date: Optional[str] = END_DATE_OPTION,
    services: Optional[List[str]] = SERVICE_OPTION,
    regions: Optional[List[str]] = REGION_OPTION,
    accounts: Optional[List[str]] = ACCOUNT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Show total cost per service."""
    params = _filter_params(start_date, end_date, services, regions, accounts)

    def render(response: ApiResponse) -> None:
        console.print("\n[bold]Cost Summary by Service[/bold]")
        if not response.data:
            console.print("\n[dim]No cost records found.[/]")
            return
        table = Table()
        table.add_column("Service")
        table.add_column("Total Cost", justify="right")
        table.add_column("Records", justify="right")
        for item in response.data:
            table.add_row(item["serviceName"], _format_currency(item["totalCost"]), str(item["recordCount"]))
        console.print(table)

    _emit(_service(ctx).cost_summary(params), as_json, render)


@app.command()
def trends(
    ctx: typer.Context,
    start_date: Optional[str] = START_DATE_OPTION,
    end_date: Optional[str] = END_DATE_OPTION,
    services: Optional[List[str]] = SERVICE_OPTION,
    regions: Optional[List[str]] = REGION_OPTION,
    accounts: Optional[List[str]] = ACCOUNT_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Show total cost per day."""
    params = _filter_params(start_date, end_date, services, regions, accounts)

    def render(response: ApiResponse) -> None:
        console.print("\n[bold]Daily Cost Trend[/bold]")
        if not response.data:
            console.print("\n[dim]No cost records found.[/]")
            return
        table = Table()
        table.add_column("Date")
        table.add_column("Daily Cost", justify="right")
        for item in response.data:
            table.add_row(item["date"], _format_currency(item["dailyCost"]))
        console.print(table)

    _emit(_service(ctx).cost_trends(params), as_json, render)


@app.command()
def filters(ctx: typer.Context, as_json: bool = JSON_OPTION):
    """Show the services, regions and accounts present in the ledger."""
    def render(response: ApiResponse) -> None:
        for title, key in (("Services", "services"), ("Regions", "regions"), ("Accounts", "accounts")):
            values = response.data[key]
            console.print(f"[bold]{title}:[/bold] {', '.join(values) if values else '-'}")

    _emit(_service(ctx).available_filters(), as_json, render)


@app.command()
def add(
    ctx: typer.Context,
    date: str = typer.Option(..., "--date", "-d", help="Accrual date (YYYY-MM-DD)"),
    service: str = typer.Option(..., "--service", "-s", help="Service name"),
    amount: str = typer.Option(..., "--amount", "-m", help="Cost amount in USD"),
    region: str = typer.Option(..., "--region", "-r", help="Region"),
    account: str = typer.Option(..., "--account", "-a", help="Account id"),
    resource_id: Optional[str] = typer.Option(None, "--resource-id", help="Resource identifier"),
    usage_type: Optional[str] = typer.Option(None, "--usage-type", help="Usage type"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
    as_json: bool = JSON_OPTION,
):
    """Create a cost record."""
    payload = {
        "date": date,
        "serviceName": service,
        "costAmount": amount,
        "region": region,
        "accountId": account,
        "resourceId": resource_id,
        "usageType": usage_type,
        "description": description,
    }
    _emit(_service(ctx).create_cost(payload), as_json, _show_record)


@app.command()
def update(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Id of the record to update"),
    date: Optional[str] = typer.Option(None, "--date", "-d", help="Accrual date (YYYY-MM-DD)"),
    service: Optional[str] = typer.Option(None, "--service", "-s", help="Service name"),
    amount: Optional[str] = typer.Option(None, "--amount", "-m", help="Cost amount in USD"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="Region"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account id"),
    resource_id: Optional[str] = typer.Option(None, "--resource-id", help="Resource identifier"),
    usage_type: Optional[str] = typer.Option(None, "--usage-type", help="Usage type"),
    description: Optional[str] = typer.Option(None, "--description", help="Free-form description"),
    clear: Optional[List[str]] = typer.Option(
        None, "--clear", help="Optional field to clear (resourceId, usageType, description)"
    ),
    as_json: bool = JSON_OPTION,
):
    """Overwrite the given fields of a cost record."""
    supplied = {
        "date": date,
        "serviceName": service,
        "costAmount": amount,
        "region": region,
        "accountId": account,
        "resourceId": resource_id,
        "usageType": usage_type,
        "description": description,
    }
    payload: Dict[str, Any] = {field: value for field, value in supplied.items() if value is not None}
    for field in clear or []:
        payload[field] = None
    _emit(_service(ctx).update_cost(record_id, payload), as_json, _show_record)


@app.command()
def delete(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Id of the record to delete"),
    as_json: bool = JSON_OPTION,
):
    """Delete a cost record."""
    _emit(_service(ctx).delete_cost(record_id), as_json, _show_message)


if __name__ == "__main__":
    app()
