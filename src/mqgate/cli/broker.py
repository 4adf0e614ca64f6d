from typing import Annotated, Any

import anyio
import typer
from msgspec import json
from rich.console import Console

from ..broker import ConnectionRegistry
from ..config import DEFAULT_PORT, AppConfig, ConnectionConfig

console = Console()

broker_click = typer.Typer(
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _print_json(data: Any) -> None:
    console.print_json(json.encode(data).decode("utf-8"))


@broker_click.command("test")
def test_broker(
    host: Annotated[str, typer.Option("--host", "-H", help="ActiveMQ broker host.")] = "localhost",
    port: Annotated[int, typer.Option("--port", "-p", help="ActiveMQ web console port.")] = DEFAULT_PORT,
    username: Annotated[str, typer.Option("--username", "-u", help="Web console username.")] = "",
    password: Annotated[str, typer.Option("--password", "-w", help="Web console password.")] = "",
    ssl: Annotated[bool, typer.Option("--ssl/--no-ssl", help="Use HTTPS.")] = False,
) -> None:
    """Test connectivity to an ActiveMQ broker."""

    config = ConnectionConfig(host=host, port=port, username=username, password=password, ssl=ssl)

    async def probe() -> None:
        registry = ConnectionRegistry(auto_health_check=False)
        result = await registry.test_connection(config)

        if not result.success:
            console.print(f"[red]✗ Connection failed:[/red] {result.error}")
            raise typer.Exit(code=1)

        console.print("[green]✓ Connection successful[/green]")
        _print_json(result.broker_info.to_dict() if result.broker_info else {})

    console.print(f"Testing connection to {config.host}:{config.port}...")
    anyio.run(probe)


@broker_click.command("status")
def system_status() -> None:
    """Connect every configured broker and print the system status."""

    app_config = AppConfig.get_config()

    if not app_config.has_connections():
        console.print("[yellow]No connections configured.[/yellow]")
        raise typer.Exit(code=1)

    async def collect() -> None:
        async with ConnectionRegistry(auto_health_check=False) as registry:
            results = await registry.import_connections(
                {name: app_config.connections[name] for name in app_config.configured_connections()}
            )
            for result in results:
                if not result.success:
                    console.print(f"[red]✗ {result.connection_id}:[/red] {result.error}")

            _print_json(await registry.get_system_status())

    anyio.run(collect)
