"""ltigate CLI - configuration checks and platform listing."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def _configure_logging(verbose: bool) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
    )


def _load_config(config_file: str | None):
    from ltigate.core.config import ProviderConfig

    if config_file:
        return ProviderConfig.from_file(config_file)
    return ProviderConfig()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def main(verbose: bool):
    """ltigate - LTI 1.3 launch authentication.

    Examples:

        ltigate check-config -c ltigate.yaml

        LTIGATE_ENCRYPTION_KEY=secret ltigate check-config
    """
    _configure_logging(verbose)


@main.command("check-config")
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
def check_config(config_file: str | None):
    """Validate provider configuration from a file and LTIGATE_* variables."""
    from ltigate.core.exceptions import format_error_for_user

    try:
        config = _load_config(config_file)
        config.validate_setup()
    except Exception as e:
        console.print(
            Panel(
                f"[red]{format_error_for_user(e)}[/red]",
                title="Invalid configuration",
                border_style="red",
            )
        )
        sys.exit(1)

    table = Table(title="Provider configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.to_display_dict().items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)

    if not config.database_url:
        console.print("[yellow]No database_url: a Database must be passed to setup().[/yellow]")
    if config.dev_mode:
        console.print(
            "[bold yellow]Warning:[/bold yellow] dev_mode disables state and session "
            "cookie checks. Never enable it in production."
        )
    console.print("[green]Configuration OK[/green]")


@main.command()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
def platforms(config_file: str | None):
    """List platforms registered in the configured database."""
    from ltigate.core.exceptions import format_error_for_user
    from ltigate.platforms import PlatformRegistry
    from ltigate.storage import create_database

    async def _list():
        config = _load_config(config_file)
        if not config.database_url:
            raise click.UsageError("database_url is not configured")
        database = create_database(config.database_url)
        await database.connect()
        try:
            return await PlatformRegistry(database).get_all_platforms()
        finally:
            await database.close()

    try:
        registered = asyncio.run(_list())
    except click.UsageError:
        raise
    except Exception as e:
        console.print(f"[red]{format_error_for_user(e)}[/red]")
        sys.exit(1)

    if not registered:
        console.print("[dim]No registered platforms[/dim]")
        return

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Issuer")
    table.add_column("Client ID")
    table.add_column("Active", justify="center")
    for platform in registered:
        table.add_row(
            platform.name,
            platform.url,
            platform.client_id,
            "yes" if platform.active else "no",
        )
    console.print(table)


@main.command()
def version():
    """Show version information."""
    from ltigate import __version__

    console.print(f"[bold]ltigate[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


if __name__ == "__main__":
    main()
