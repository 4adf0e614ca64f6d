from collections.abc import Mapping
from typing import Any, Self

import structlog

from ...config import ConnectionConfig
from ..client import BrokerClient
from ..destination import Destination
from ..integration import (
    BrokerHealth,
    BrokerInfo,
    BrokerStats,
    PurgeResult,
    QueueInfo,
    SendResult,
    TopicInfo,
)
from ..message import Message
from .broker import BrokerService
from .connection import ConnectionService
from .queue import QueueService
from .topic import TopicService

__all__ = ("BrokerFacade",)

logger = structlog.stdlib.get_logger(__name__)


class BrokerFacade:
    """Every gateway operation for one broker, behind one object.

    The four domain services share a single `BrokerClient`, hence a single
    HTTP session. The facade only delegates.

    Example:
        >>> async with BrokerFacade(ConnectionConfig(host="localhost")) as broker:
        ...     await broker.send_message("/queue/orders", "hello")
        ...     info = await broker.get_queue_info("orders")
    """

    def __init__(self, config: ConnectionConfig, **kwargs: Any) -> None:
        """Build the shared client and the domain services.

        Args:
            config: Connection settings
            **kwargs: Additional `httpx.AsyncClient` arguments, e.g. a transport
        """

        self.client = BrokerClient(config, **kwargs)

        self.connection_service = ConnectionService(self.client)
        self.queue_service = QueueService(self.client)
        self.topic_service = TopicService(self.client)
        self.broker_service = BrokerService(self.client)

        logger.debug("BrokerFacade created", host=config.host, port=config.port)

    async def connect(self) -> None:
        await self.connection_service.connect()

    async def disconnect(self) -> None:
        await self.connection_service.disconnect()

    async def test_connection(self) -> dict[str, Any]:
        return await self.connection_service.test_connection()

    def is_connected(self) -> bool:
        return self.connection_service.is_connected()

    def get_connection_info(self) -> dict[str, Any]:
        return self.connection_service.connection_info()

    async def get_broker_name(self) -> str:
        return await self.connection_service.broker_name()

    def invalidate_broker_name(self) -> None:
        self.connection_service.invalidate_broker_name()

    def parse_destination(self, destination: str) -> Destination:
        return self.connection_service.parse_destination(destination)

    def clean_destination_name(self, destination: str) -> str:
        return self.connection_service.clean_destination_name(destination)

    async def send_message(
        self,
        destination: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> SendResult:
        return await self.queue_service.send_message(destination, body, headers)

    async def consume_message(
        self,
        destination: str,
        timeout: int | None = None,
        client_id: str | None = None,
        selector: str | None = None,
    ) -> Message | None:
        return await self.queue_service.consume_message(
            destination,
            timeout=timeout,
            client_id=client_id,
            selector=selector,
        )

    async def browse_messages(self, queue_name: str, limit: int = 10) -> list[Message]:
        return await self.queue_service.browse_messages(queue_name, limit)

    async def purge_queue(self, queue_name: str) -> PurgeResult:
        return await self.queue_service.purge_queue(queue_name)

    async def get_queue_info(self, queue_name: str) -> QueueInfo:
        return await self.queue_service.get_queue_info(queue_name)

    async def list_queues(self) -> list[QueueInfo]:
        return await self.queue_service.list_queues()

    async def publish_message(
        self,
        topic_name: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> SendResult:
        return await self.topic_service.publish_message(topic_name, body, headers)

    async def subscribe_to_topic(
        self,
        topic_name: str,
        timeout_ms: int = 10000,
        max_messages: int = 1,
        client_id: str | None = None,
        poll_interval: float = 1.0,
    ) -> list[Message]:
        return await self.topic_service.subscribe_to_topic(
            topic_name,
            timeout_ms=timeout_ms,
            max_messages=max_messages,
            client_id=client_id,
            poll_interval=poll_interval,
        )

    async def list_topics(self) -> list[TopicInfo]:
        return await self.topic_service.list_topics()

    async def get_broker_info(self) -> BrokerInfo:
        return await self.broker_service.get_broker_info()

    async def get_broker_health(self) -> BrokerHealth:
        return await self.broker_service.get_broker_health()

    async def get_broker_stats(self) -> BrokerStats:
        return await self.broker_service.get_broker_stats()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
