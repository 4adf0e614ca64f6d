import typer
from rich.console import Console

from .._version import __version__
from .broker import broker_click
from .config import config_click

__all__ = ("cli",)

console = Console()

cli = typer.Typer(
    name="mqgate",
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

cli.add_typer(broker_click)
cli.add_typer(
    config_click,
    name="config",
    help="Configuration commands.",
)


@cli.command("version")
def show_version() -> None:
    """Show the installed version."""

    console.print(f"[cyan]mqgate[/cyan] {__version__}")
