"""Command line interface for mssqlgen."""

import logging
import sys
from dataclasses import replace
from itertools import groupby
from pathlib import Path

from cyclopts import App
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from mssqlgen.config import SAMPLE_CONFIG, Config, load_config, validate_config
from mssqlgen.errors import MssqlgenError
from mssqlgen.events import (
    Event,
    MissingReference,
    RelationshipSkipped,
    TableAutoIncluded,
    TableFailed,
    TableStarted,
    TableSucceeded,
)
from mssqlgen.generator import generate as generate_schemas
from mssqlgen.generator import select_tables
from mssqlgen.metadata import (
    SqlAlchemyMetadataProvider,
    connection_string,
    create_engine_for_config,
)
from mssqlgen.output import write_output

app = App(help="Generate StepZen GraphQL schemas from SQL Server metadata")

console = Console()
err_console = Console(stderr=True)

INIT_FILE = "mssqlgen.config.yaml"


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {message}")


def print_warning(message: str) -> None:
    """Print warning message to stderr."""
    err_console.print(f"[bold yellow]![/] {message}")


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def configure_logging(*, verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def print_event(event: Event) -> None:
    """Render generation events on stderr."""
    match event:
        case TableStarted():
            pass
        case TableSucceeded(table):
            print_success(f"Processed {table}")
        case TableFailed(table, reason):
            print_error(f"Failed to process {table}: {reason}")
        case TableAutoIncluded(table, referenced_by):
            print_info(f"Auto-added {table} (referenced by {referenced_by})")
        case MissingReference():
            print_warning(event.message)
        case RelationshipSkipped(table, column, reason):
            print_warning(f"Skipped relationship {table}.{column}: {reason}")


def split_list(value: str | None) -> list[str]:
    """Split a comma separated option value, dropping empty entries."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_or_exit(config_path: Path | None) -> Config:
    """Load configuration, exiting on errors."""
    try:
        return load_config(config_path)
    except MssqlgenError as e:
        print_error(str(e))
        sys.exit(1)


def connect(config: Config) -> SqlAlchemyMetadataProvider:
    """Validate the configuration and create a metadata provider."""
    try:
        validate_config(config)
        engine = create_engine_for_config(config.database)
    except ImportError:
        print_error("SQL Server access requires [mssql] extra dependencies")
        sys.exit(1)
    except MssqlgenError as e:
        print_error(str(e))
        sys.exit(1)
    return SqlAlchemyMetadataProvider(engine)


@app.command
def generate(  # noqa: PLR0913
    *,
    config: Path | None = None,
    server: str | None = None,
    database: str | None = None,
    user: str | None = None,
    password: str | None = None,
    output: Path | None = None,
    tables: str | None = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """Generate StepZen schemas from database metadata."""
    configure_logging(verbose=verbose)
    settings = load_or_exit(config)

    overrides = {
        key: value
        for key, value in (
            ("server", server),
            ("database", database),
            ("user", user),
            ("password", password),
        )
        if value
    }
    settings.database = replace(settings.database, **overrides)
    if output:
        settings.generation.output_dir = output
    if tables:
        settings.generation.tables = split_list(tables)

    provider = connect(settings)
    print_info(f"Database: {settings.database.database} on {settings.database.server}")
    print_info(f"Output directory: {settings.generation.output_dir}")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=err_console,
        ) as progress:
            task = progress.add_task("Connecting to database...", total=None)
            provider.test_connection()

            if dry_run:
                progress.update(task, description="Selecting tables...")
                selection = select_tables(provider, settings.generation, print_event)
            else:
                progress.update(task, description="Generating schemas...")
                result = generate_schemas(provider, settings.generation, print_event)
    except MssqlgenError as e:
        print_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        print_error("Generation interrupted by user")
        sys.exit(1)

    if dry_run:
        for table in selection.tables:
            console.print(str(table))
        print_success(f"Dry run: {len(selection.tables)} tables would be generated")
        return

    try:
        write_output(
            settings.generation.output_dir,
            result,
            connection_string(settings.database),
        )
    except OSError as e:
        print_error(f"Failed to write output: {e}")
        sys.exit(1)

    print_success(
        f"Generated {len(result.documents)} of {len(result.generation_set)} tables "
        f"into {settings.generation.output_dir}",
    )
    if result.failed:
        print_error(f"{len(result.failed)} tables failed")
        sys.exit(1)


@app.command
def init(output: Path = Path(INIT_FILE)) -> None:
    """Write a sample configuration file."""
    if output.exists():
        print_error(f"Configuration file already exists: {output}")
        sys.exit(1)
    output.write_text(SAMPLE_CONFIG, encoding="utf-8")
    print_success(f"Created {output}")
    print_info("Edit the file with your database settings, then run: mssqlgen generate")


@app.command
def test(*, config: Path | None = None, verbose: bool = False) -> None:
    """Test the database connection."""
    configure_logging(verbose=verbose)
    settings = load_or_exit(config)
    provider = connect(settings)
    print_info(f"Connecting to {settings.database.server}:{settings.database.port}")

    try:
        provider.test_connection()
    except MssqlgenError as e:
        print_error(str(e))
        sys.exit(1)
    print_success("Connection successful")


@app.command(name="list-schemas")
def list_schemas(*, config: Path | None = None, verbose: bool = False) -> None:
    """List non-system schemas in the database."""
    configure_logging(verbose=verbose)
    provider = connect(load_or_exit(config))

    try:
        schemas = provider.get_schemas()
    except MssqlgenError as e:
        print_error(str(e))
        sys.exit(1)

    for name in schemas:
        console.print(name)
    print_info(f"{len(schemas)} schemas")


@app.command(name="list")
def list_tables(
    *,
    config: Path | None = None,
    schemas: str | None = None,
    verbose: bool = False,
) -> None:
    """List tables grouped by schema."""
    configure_logging(verbose=verbose)
    provider = connect(load_or_exit(config))

    try:
        found = provider.get_tables(split_list(schemas) or None)
    except MssqlgenError as e:
        print_error(str(e))
        sys.exit(1)

    if not found:
        console.print("No tables found.")
        return

    table = Table(title="Tables")
    table.add_column("Schema", style="bold cyan")
    table.add_column("Table")
    for schema, names in groupby(found, key=lambda name: name.schema):
        for index, name in enumerate(names):
            table.add_row(schema if index == 0 else "", name.name)
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
