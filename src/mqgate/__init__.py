import sys

from ._version import __version__
from .broker import BrokerFacade, ConnectionRegistry
from .config import AppConfig, ConnectionConfig
from .log import configure_logging

__all__ = (
    "AppConfig",
    "BrokerFacade",
    "ConnectionConfig",
    "ConnectionRegistry",
    "__version__",
    "configure_logging",
    "entrypoint",
)


def entrypoint() -> None:
    """Run the command line interface."""

    from .cli import cli

    config = AppConfig.get_config()
    configure_logging(config.log.level, config.log.json_format)

    if not sys.argv[1:]:
        sys.argv.append("--help")

    cli()
