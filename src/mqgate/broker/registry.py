"""Registry of named broker connections.

Every gateway operation addresses a broker by connection id; the registry
resolves the id to a live facade, keeps a periodic health check running and
offers bulk export/import and aggregate views.
"""

from __future__ import annotations

import asyncio
import contextlib
import resource
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final, Self, TypeAlias

import anyio
import structlog

from ..config import AppConfig, ConnectionConfig
from ..exception import (
    BrokerError,
    DuplicateIdError,
    InactiveError,
    InvalidArgumentError,
    NotFoundError,
    RemoteCallFailedError,
)
from .connection import Connection
from .integration import ImportResult, ProbeResult
from .service import BrokerFacade

if TYPE_CHECKING:
    from .integration import (
        BrokerHealth,
        BrokerInfo,
        ConnectionInfo,
        PurgeResult,
        QueueInfo,
        SendResult,
        TopicInfo,
    )
    from .message import Message

__all__ = ("ConnectionRegistry",)

logger = structlog.stdlib.get_logger(__name__)

DEFAULT_HEALTH_CHECK_INTERVAL: Final[float] = 30.0

_STARTED_AT: Final[float] = time.monotonic()

FacadeFactory: TypeAlias = Callable[[ConnectionConfig], BrokerFacade]
HealthObserver: TypeAlias = Callable[[str, bool], Any]


class ConnectionRegistry:
    """Owner of every named connection.

    The health check probes connections one after another rather than all
    at once; it keeps the load on the brokers flat, at the price of a full
    pass taking as long as the sum of the probes.

    Example:
        >>> async with ConnectionRegistry() as registry:
        ...     await registry.add_connection("local", {"host": "localhost", "port": 8161})
        ...     await registry.send_message("local", "/queue/orders", "hello")
    """

    def __init__(
        self,
        health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL,
        facade_factory: FacadeFactory = BrokerFacade,
        on_health_change: HealthObserver | None = None,
        auto_health_check: bool = True,
    ) -> None:
        """Initialize an empty registry.

        Args:
            health_check_interval: Seconds between two health check passes
            facade_factory: Builds the facade of a new connection
            on_health_change: Called with `(connection_id, healthy)` whenever
                a health check flips a connection's state
            auto_health_check: Start the health check with the first connection
        """

        self._connections: dict[str, Connection] = {}
        self._health_check_interval = health_check_interval
        self._facade_factory = facade_factory
        self._on_health_change = on_health_change
        self._auto_health_check = auto_health_check
        self._health_task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    @staticmethod
    def _validate_id(connection_id: Any) -> str:
        if not isinstance(connection_id, str) or not connection_id:
            raise InvalidArgumentError("Connection ID must be a non-empty string")
        return connection_id

    async def add_connection(
        self,
        connection_id: str,
        config: ConnectionConfig | dict[str, Any],
    ) -> dict[str, Any]:
        """Connect to a broker and register it under `connection_id`.

        Nothing is registered unless the connect succeeds.

        Raises:
            InvalidArgumentError: If the id or the configuration is malformed
            DuplicateIdError: If the id is already registered
            RemoteCallFailedError: If the broker cannot be reached
        """

        self._validate_id(connection_id)

        if connection_id in self._connections:
            raise DuplicateIdError(f"Connection '{connection_id}' already exists")

        config = ConnectionConfig.coerce(config).ensure_valid()

        logger.info("Adding new connection", connection_id=connection_id, host=config.host, port=config.port)

        facade = self._facade_factory(config)

        try:
            await facade.connect()
        except BrokerError as e:
            logger.error(
                "Failed to establish connection",
                connection_id=connection_id,
                host=config.host,
                port=config.port,
                error=str(e),
            )
            await facade.disconnect()
            raise RemoteCallFailedError(
                f"Failed to connect to '{connection_id}': {e}",
                status=getattr(e, "status", None),
            ) from e

        # another caller may have registered the same id while we were connecting
        if connection_id in self._connections:
            await facade.disconnect()
            raise DuplicateIdError(f"Connection '{connection_id}' already exists")

        self._connections[connection_id] = Connection(connection_id, facade, config)
        logger.info("Connection added successfully", connection_id=connection_id, host=config.host, port=config.port)

        if self._auto_health_check:
            self.start_health_check()

        return {
            "connection_id": connection_id,
            "status": "connected",
            "host": config.host,
            "port": config.port,
        }

    async def remove_connection(self, connection_id: str) -> dict[str, Any]:
        """Disconnect (best effort) and forget a connection."""

        connection = self._connections.get(connection_id)
        if connection is None:
            raise NotFoundError(f"Connection '{connection_id}' not found")

        await connection.disconnect()
        self._connections.pop(connection_id, None)

        logger.info("Connection removed", connection_id=connection_id)
        return {"connection_id": connection_id, "status": "removed"}

    async def connect_from_config(
        self,
        name: str = "default",
        connection_id: str | None = None,
        app_config: AppConfig | None = None,
    ) -> dict[str, Any]:
        """Register a connection described in the application configuration."""

        app_config = app_config or AppConfig.get_config()

        if (config := app_config.get_connection_config(name)) is None:
            available = ", ".join(app_config.configured_connections()) or "none"
            raise NotFoundError(f"No configuration named '{name}'. Configured connections: {available}")

        return await self.add_connection(connection_id or name, config)

    def get_facade(self, connection_id: str) -> BrokerFacade:
        """Resolve an id to a facade that is currently connected.

        Raises:
            InvalidArgumentError: If the id is not a non-empty string
            NotFoundError: If the id is not registered
            InactiveError: If the connection reports disconnected
        """

        self._validate_id(connection_id)

        connection = self._connections.get(connection_id)
        if connection is None:
            available = list(self._connections)
            if available:
                message = f"Connection '{connection_id}' not found. Available connections: {', '.join(available)}"
            else:
                message = f"Connection '{connection_id}' not found. No connections available."
            raise NotFoundError(message)

        if not connection.is_connected():
            logger.warning("Connection is not active", connection_id=connection_id)
            raise InactiveError(f"Connection '{connection_id}' is not active")

        return connection.facade

    def list_connections(self) -> list[ConnectionInfo]:
        return [connection.info() for connection in list(self._connections.values())]

    def get_connection_info(self, connection_id: str) -> ConnectionInfo:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise NotFoundError(f"Connection '{connection_id}' not found")

        return connection.info()

    async def send_message(
        self,
        connection_id: str,
        destination: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> SendResult:
        return await self.get_facade(connection_id).send_message(destination, body, headers)

    async def consume_message(
        self,
        connection_id: str,
        destination: str,
        timeout: int | None = None,
        client_id: str | None = None,
        selector: str | None = None,
    ) -> Message | None:
        return await self.get_facade(connection_id).consume_message(
            destination,
            timeout=timeout,
            client_id=client_id,
            selector=selector,
        )

    async def browse_messages(self, connection_id: str, queue_name: str, limit: int = 10) -> list[Message]:
        return await self.get_facade(connection_id).browse_messages(queue_name, limit)

    async def purge_queue(self, connection_id: str, queue_name: str) -> PurgeResult:
        return await self.get_facade(connection_id).purge_queue(queue_name)

    async def get_queue_info(self, connection_id: str, queue_name: str) -> QueueInfo:
        return await self.get_facade(connection_id).get_queue_info(queue_name)

    async def list_queues(self, connection_id: str) -> list[QueueInfo]:
        return await self.get_facade(connection_id).list_queues()

    async def publish_message(
        self,
        connection_id: str,
        topic_name: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> SendResult:
        return await self.get_facade(connection_id).publish_message(topic_name, body, headers)

    async def subscribe_to_topic(
        self,
        connection_id: str,
        topic_name: str,
        timeout_ms: int = 10000,
        max_messages: int = 1,
        client_id: str | None = None,
    ) -> list[Message]:
        return await self.get_facade(connection_id).subscribe_to_topic(
            topic_name,
            timeout_ms=timeout_ms,
            max_messages=max_messages,
            client_id=client_id,
        )

    async def list_topics(self, connection_id: str) -> list[TopicInfo]:
        return await self.get_facade(connection_id).list_topics()

    async def get_broker_info(self, connection_id: str) -> BrokerInfo:
        return await self.get_facade(connection_id).get_broker_info()

    async def get_broker_health(self, connection_id: str) -> BrokerHealth:
        return await self.get_facade(connection_id).get_broker_health()

    @property
    def is_health_check_running(self) -> bool:
        return self._health_task is not None and not self._health_task.done()

    def start_health_check(self) -> None:
        """Start the periodic health check, a no-op when already running."""

        if self.is_health_check_running:
            return

        self._health_task = asyncio.create_task(self._health_check_loop())

    async def stop_health_check(self) -> None:
        if self._health_task is None:
            return

        task, self._health_task = self._health_task, None
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _health_check_loop(self) -> None:
        while True:
            await anyio.sleep(self._health_check_interval)
            try:
                await self.perform_health_check()
            except Exception:  # noqa: BLE001 - the loop outlives a bad pass
                logger.exception("Health check pass failed")

    async def perform_health_check(self) -> dict[str, bool]:
        """Probe every registered connection in turn.

        Returns:
            Connection id to health after the probe.
        """

        results = {}

        for connection_id, connection in list(self._connections.items()):
            before = connection.healthy
            healthy = await connection.perform_health_check()
            results[connection_id] = healthy

            if healthy != before and self._on_health_change is not None:
                try:
                    outcome = self._on_health_change(connection_id, healthy)
                    if asyncio.iscoroutine(outcome):
                        await outcome
                except Exception:  # noqa: BLE001 - the remaining connections still get probed
                    logger.exception("Health change observer failed", connection_id=connection_id)

        return results

    def get_health_status(self) -> dict[str, Any]:
        connections = list(self._connections.items())
        healthy = sum(1 for _, connection in connections if connection.is_healthy())

        return {
            "total_connections": len(connections),
            "healthy_connections": healthy,
            "unhealthy_connections": len(connections) - healthy,
            "connections": {connection_id: connection.health_status() for connection_id, connection in connections},
        }

    async def disconnect_all(self) -> None:
        """Disconnect every connection at once, then empty the registry.

        A failing disconnect neither stops the others nor keeps its entry.
        Connections added while disconnecting are picked up by another round.
        """

        while connections := list(self._connections.items()):
            results = await asyncio.gather(*(c.disconnect() for _, c in connections), return_exceptions=True)

            for (connection_id, connection), result in zip(connections, results, strict=True):
                if isinstance(result, BaseException):
                    logger.error("Failed to disconnect", connection_id=connection_id, error=str(result))
                if self._connections.get(connection_id) is connection:
                    del self._connections[connection_id]
        await self.stop_health_check()

    async def test_connection(self, config: ConnectionConfig | dict[str, Any]) -> ProbeResult:
        """Probe a broker without registering it.

        Raises:
            InvalidArgumentError: Only for a malformed configuration, an
                unreachable broker is reported in the result
        """

        config = ConnectionConfig.coerce(config).ensure_valid()
        facade = self._facade_factory(config)

        try:
            await facade.connect()
            broker_info = await facade.get_broker_info()
        except BrokerError as e:
            return ProbeResult(success=False, error=str(e))
        finally:
            await facade.disconnect()

        return ProbeResult(success=True, broker_info=broker_info)

    def export_connections(self) -> dict[str, dict[str, Any]]:
        """Settings of every connection, passwords excluded."""

        return {
            connection_id: {
                **connection.config.redacted(),
                "created_at": connection.created_at.isoformat(),
            }
            for connection_id, connection in list(self._connections.items())
        }

    async def import_connections(
        self,
        connections: Mapping[str, ConnectionConfig | dict[str, Any]],
    ) -> list[ImportResult]:
        """Add each entry independently, collecting one result per entry."""

        results = []

        for connection_id, config in connections.items():
            try:
                await self.add_connection(connection_id, config)
            except BrokerError as e:
                results.append(ImportResult(connection_id=connection_id, success=False, status="failed", error=str(e)))
            else:
                results.append(ImportResult(connection_id=connection_id, success=True))

        return results

    async def get_broker_stats(self) -> dict[str, Any]:
        """Broker info of every connection; one failure is recorded inline."""

        connections = list(self._connections.items())
        stats: dict[str, Any] = {
            "total_connections": len(connections),
            "healthy_connections": 0,
            "brokers": {},
        }

        for connection_id, connection in connections:
            try:
                broker_info = await connection.facade.get_broker_info()
            except BrokerError as e:
                stats["brokers"][connection_id] = {"error": str(e), "connected": False}
                continue

            stats["brokers"][connection_id] = broker_info.to_dict()
            if connection.is_healthy():
                stats["healthy_connections"] += 1

        return stats

    async def get_system_status(self) -> dict[str, Any]:
        usage = resource.getrusage(resource.RUSAGE_SELF)

        return {
            **self.get_health_status(),
            "broker_stats": await self.get_broker_stats(),
            "uptime": time.monotonic() - _STARTED_AT,
            "max_rss_kb": usage.ru_maxrss,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def __aenter__(self) -> Self:
        if self._auto_health_check:
            self.start_health_check()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect_all()
