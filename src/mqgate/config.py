import os
from pathlib import Path
from typing import Any, ClassVar, Final, Self

import httpx
from msgspec import Struct, ValidationError, convert, field, json, to_builtins, toml, yaml

from .base import BaseStruct
from .exception import InvalidArgumentError
from .lib.toolkit import get_env

__all__ = (
    "APP_NAME",
    "DEFAULT_PORT",
    "AppConfig",
    "ConnectionConfig",
    "LogConfig",
)

APP_NAME: Final[str] = "mqgate"

ROOT_DIR: Final[Path] = Path.cwd()

DEFAULT_PORT: Final[int] = 8161
"""ActiveMQ web console port, serving both the REST and the Jolokia APIs."""

DEFAULT_TIMEOUT_MS: Final[int] = 30000

CONFIG_FILES: Final[tuple[str, ...]] = (
    "mqgate.yaml",
    "mqgate.toml",
    "mqgate.json",
)


class ConnectionConfig(Struct, frozen=True, kw_only=True):
    """Broker connection settings, immutable once a connection exists."""

    host: str = field(default="")
    port: int = field(default=DEFAULT_PORT)
    username: str = field(default="")
    password: str = field(default="")
    ssl: bool = field(default=False)
    timeout_ms: int = field(default=DEFAULT_TIMEOUT_MS)

    @property
    def base_url(self) -> str:
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.host}:{self.port}"

    def validate(self) -> list[str]:
        """Collect configuration problems, empty when valid."""

        errors = []

        if not self.host:
            errors.append("host is required")

        if self.port <= 0:
            errors.append("port must be a positive number")

        if self.host and self.port > 0:
            try:
                httpx.URL(self.base_url)
            except httpx.InvalidURL:
                errors.append("host is invalid")

        return errors

    def ensure_valid(self) -> Self:
        if errors := self.validate():
            raise InvalidArgumentError(f"Invalid configuration: {', '.join(errors)}")

        return self

    @classmethod
    def coerce(cls, config: "ConnectionConfig | dict[str, Any] | None") -> "ConnectionConfig":
        """Accept either a struct or a plain mapping (e.g. decoded tool arguments).

        Unknown keys are ignored, `None` values fall back to the defaults.
        """

        if isinstance(config, cls):
            return config

        if not isinstance(config, dict):
            raise InvalidArgumentError("Configuration is required")

        known = {k: v for k, v in config.items() if k in cls.__struct_fields__ and v is not None}
        try:
            return convert(known, type=cls)
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return to_builtins(self)

    def redacted(self) -> dict[str, Any]:
        """Settings safe to show or export; the password never leaves."""

        ret = self.to_dict()
        ret.pop("password", None)
        return ret


class LogConfig(BaseStruct):
    """Logging configurations."""

    level: str = field(default_factory=get_env("MQGATE_LOG_LEVEL", "INFO"))
    json_format: bool = field(default_factory=get_env("MQGATE_LOG_JSON", False))


class AppConfig(BaseStruct):
    """Application configurations."""

    _instance: ClassVar["AppConfig | None"] = None

    log: LogConfig = field(default_factory=LogConfig)
    health_check_interval: float = field(default_factory=get_env("MQGATE_HEALTH_CHECK_INTERVAL", 30.0))
    connections: dict[str, ConnectionConfig] = field(default_factory=dict)

    @classmethod
    def from_file(cls, filename: str | None = None) -> Self:
        """Load the configuration from a file.

        Args:
            filename (`str`): The name of the configuration file, like "mqgate.yaml".

        Note:
            Configuration filename suffix determines the format:
            - `.yaml`: YAML format
            - `.toml`: TOML format
            - `.json`: JSON format

            When no filename is given, `MQGATE_CONFIG_PATH` and then the
            default filenames are tried in order. Missing files fall back to
            the defaults.
        """

        candidates = [filename] if filename else [os.environ.get("MQGATE_CONFIG_PATH"), *CONFIG_FILES]

        for candidate in filter(None, candidates):
            if (config_file := ROOT_DIR / candidate).exists():
                with config_file.open("r", encoding="utf-8") as f:
                    configuration = f.read()

                match suffix := config_file.suffix:
                    case ".yaml" | ".yml":
                        config = yaml.decode(configuration, type=cls)
                    case ".toml":
                        config = toml.decode(configuration, type=cls)
                    case ".json":
                        config = json.decode(configuration, type=cls)
                    case _:
                        raise ValueError(f"Unsupported configuration file format: {suffix}")

                return config.with_environment()

        return cls().with_environment()

    def with_environment(self) -> Self:
        """Overlay `ACTIVEMQ_*` variables onto the `default` connection."""

        overrides: dict[str, Any] = {}

        if host := os.environ.get("ACTIVEMQ_HOST"):
            overrides["host"] = host
        if port := os.environ.get("ACTIVEMQ_PORT"):
            overrides["port"] = int(port)
        if username := os.environ.get("ACTIVEMQ_USERNAME"):
            overrides["username"] = username
        if password := os.environ.get("ACTIVEMQ_PASSWORD"):
            overrides["password"] = password
        if ssl := os.environ.get("ACTIVEMQ_SSL"):
            overrides["ssl"] = ssl.lower() == "true"

        if overrides:
            current = self.connections.get("default")
            merged = {**(current.to_dict() if current else {}), **overrides}
            self.connections["default"] = convert(merged, type=ConnectionConfig, strict=False)

        return self

    def get_connection_config(self, name: str = "default") -> ConnectionConfig | None:
        """Get the configuration for a named connection."""
        return self.connections.get(name)

    def configured_connections(self) -> list[str]:
        """Names of connections carrying at least a host."""
        return [name for name, config in self.connections.items() if config.host]

    def has_connections(self) -> bool:
        return bool(self.configured_connections())

    @classmethod
    def get_config(cls, filename: str | None = None) -> "AppConfig":
        """Get the application configuration."""

        if cls._instance is None:
            cls._instance = cls.from_file(filename)

        return cls._instance
