"""dbmodel - Main entry point."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from .commands import introspect
from .config import settings

app = typer.Typer(
    name="dbmodel",
    help="Introspect relational schemas into canonical datamodels",
    add_completion=False,
)

# Add subcommands
app.registered_commands.extend(introspect.app.registered_commands)

console = Console()


@app.command()
def config():
    """Show current configuration."""
    console.print("[bold]Current Configuration[/bold]")
    console.print(f"  Database: {'Configured' if settings.database_url else 'Not set'}")
    console.print(f"  Dialect: {settings.dialect}")
    console.print(f"  Default Schema: {settings.default_schema}")
    console.print(f"  Naming Policy: {settings.naming_policy}")
    console.print(f"  Strict Relations: {'Yes' if settings.strict_relations else 'No'}")
    console.print(f"  Log Level: {settings.log_level}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    dbmodel - Introspect relational schemas into canonical datamodels.

    Examples:

        dbmodel introspect postgresql://localhost/app --schema public

        dbmodel introspect ./db.duckdb --dialect duckdb -r datamodel.graphql

        dbmodel tables postgresql://localhost/app
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


if __name__ == "__main__":
    app()
