"""Introspection commands."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import settings
from ..database.base import CatalogReader
from ..database.builder import StructuralModelBuilder
from ..database.duckdb import DuckDBCatalogReader
from ..database.postgres import PostgresCatalogReader
from ..datamodel.naming import get_naming_policy
from ..errors import DbModelError
from ..introspection import Introspector
from ..sdl import parse, render

app = typer.Typer(help="Introspect database schemas into datamodels")
console = Console()


def create_reader(database: Optional[str], dialect: str) -> CatalogReader:
    """Create a catalog reader for a DSN or DuckDB path."""
    target = database or settings.database_url
    if not target:
        console.print("[red]No database given. Pass a DSN/path or set DBMODEL_DATABASE_URL.[/red]")
        raise typer.Exit(1)
    if dialect == "duckdb":
        return DuckDBCatalogReader(database_path=target)
    if dialect == "postgres":
        return PostgresCatalogReader(dsn=target)
    console.print(f"[red]Unknown dialect: {dialect}[/red]")
    raise typer.Exit(1)


@app.command("introspect")
def introspect_schema(
    database: Optional[str] = typer.Argument(None, help="Postgres DSN or DuckDB file path (or DBMODEL_DATABASE_URL)"),
    schema: Optional[str] = typer.Option(None, "--schema", "-s", help="Schema to introspect (default: settings.default_schema)"),
    dialect: Optional[str] = typer.Option(None, "--dialect", "-d", help="Catalog dialect: postgres or duckdb"),
    reference: Optional[Path] = typer.Option(None, "--reference", "-r", help="Existing datamodel file whose names and order to keep"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the datamodel to this file instead of stdout"),
    raw: bool = typer.Option(False, "--raw", help="Keep database identifiers verbatim (unnormalized datamodel)"),
    strict: bool = typer.Option(False, "--strict", help="Fail on ambiguous relations instead of warning"),
):
    """
    Introspect a schema and print its datamodel.

    Examples:
        dbmodel introspect postgresql://localhost/app --schema public
        dbmodel introspect ./analytics.duckdb --dialect duckdb --schema main
        dbmodel introspect postgresql://localhost/app -r datamodel.graphql -o datamodel.graphql
    """
    schema_name = schema or settings.default_schema
    if raw and reference is not None:
        console.print("[red]--raw keeps database identifiers and cannot be combined with --reference[/red]")
        raise typer.Exit(1)
    try:
        naming = get_naming_policy(settings.naming_policy)
    except ValueError as e:
        console.print(f"[red]{e} (check DBMODEL_NAMING_POLICY)[/red]")
        raise typer.Exit(1)
    reader = create_reader(database, dialect or settings.dialect)

    reference_model = None
    if reference is not None:
        try:
            reference_model = parse(reference.read_text(encoding="utf-8"))
        except OSError as e:
            console.print(f"[red]Cannot read reference file: {e}[/red]")
            raise typer.Exit(1)
        except DbModelError as e:
            console.print(f"[red]Invalid reference datamodel: {e.message}[/red]")
            raise typer.Exit(1)

    try:
        with reader:
            result = Introspector(reader, strict=strict or settings.strict_relations).introspect(schema_name)
        if raw:
            datamodel = result.get_datamodel()
        else:
            datamodel = result.get_normalized_datamodel(reference_model, naming=naming)
    except ImportError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except DbModelError as e:
        console.print(f"[red]Error ({e.code}): {e.message}[/red]")
        raise typer.Exit(1)

    for relation in datamodel.low_confidence_relations():
        console.print(
            f"[yellow]Warning: relation {relation.name} was inferred with low confidence[/yellow]",
            highlight=False,
        )

    text = render(datamodel)
    if output is not None:
        output.write_text(text, encoding="utf-8")
        console.print(
            f"[green]Wrote {len(datamodel.models)} models and "
            f"{len(datamodel.relations)} relations to {output}[/green]"
        )
    else:
        typer.echo(text, nl=False)


@app.command("tables")
def list_tables(
    database: Optional[str] = typer.Argument(None, help="Postgres DSN or DuckDB file path (or DBMODEL_DATABASE_URL)"),
    schema: Optional[str] = typer.Option(None, "--schema", "-s", help="Schema to list"),
    dialect: Optional[str] = typer.Option(None, "--dialect", "-d", help="Catalog dialect: postgres or duckdb"),
):
    """List the tables of a schema with their keys."""
    schema_name = schema or settings.default_schema
    reader = create_reader(database, dialect or settings.dialect)

    try:
        with reader:
            catalog = reader.read_catalog(schema_name)
        structure = StructuralModelBuilder().build(catalog)
    except ImportError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except DbModelError as e:
        console.print(f"[red]Error ({e.code}): {e.message}[/red]")
        raise typer.Exit(1)

    if not structure.tables:
        console.print(Panel(f"Schema {schema_name} has no tables", title="dbmodel"))
        return

    table = Table(title=f"Tables in {schema_name}")
    table.add_column("Table", style="cyan")
    table.add_column("Columns", justify="right")
    table.add_column("Primary Key")
    table.add_column("Foreign Keys")

    for t in structure.tables:
        table.add_row(
            t.name,
            str(len(t.columns)),
            ", ".join(t.primary_key_columns) or "-",
            ", ".join(
                f"{'+'.join(fk.columns)} → {fk.referenced_table}" for fk in t.foreign_keys
            ) or "-",
        )

    console.print(table)
