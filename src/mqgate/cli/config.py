from typing import Annotated

import typer
from msgspec import json
from rich.console import Console
from rich.table import Table

from ..config import AppConfig

console = Console()

config_click = typer.Typer(
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@config_click.command("show")
def show_config(
    as_json: Annotated[bool, typer.Option("--json", help="Print the whole configuration as JSON.")] = False,
) -> None:
    """Show configured connections, passwords hidden."""

    app_config = AppConfig.get_config()

    if as_json:
        data = app_config.to_dict(exclude={"connections"})
        data["connections"] = {name: app_config.connections[name].redacted() for name in app_config.configured_connections()}
        console.print_json(json.encode(data).decode("utf-8"))
        return

    if not app_config.has_connections():
        console.print("No connections configured - add a [bold]mqgate.yaml[/bold] or set ACTIVEMQ_HOST.")
        return

    table = Table("Name", "Host", "Port", "Username", "SSL", "Password")
    for name in app_config.configured_connections():
        config = app_config.connections[name]
        table.add_row(
            name,
            config.host,
            str(config.port),
            config.username or "-",
            "yes" if config.ssl else "no",
            "***" if config.password else "-",
        )

    console.print(table)
