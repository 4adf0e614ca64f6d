from collections.abc import Mapping
from typing import Any

from ..client import BrokerClient
from ..integration import PurgeResult, QueueInfo, SendResult
from ..message import Message

__all__ = ("QueueService",)


class QueueService:
    """Queue operations: send, consume, browse, purge, inspect."""

    def __init__(self, client: BrokerClient) -> None:
        self._client = client

    async def send_message(
        self,
        destination: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> SendResult:
        return await self._client.send(destination, body, headers)

    async def consume_message(
        self,
        destination: str,
        timeout: int | None = None,
        client_id: str | None = None,
        selector: str | None = None,
    ) -> Message | None:
        return await self._client.consume(destination, timeout=timeout, client_id=client_id, selector=selector)

    async def browse_messages(self, queue_name: str, limit: int = 10) -> list[Message]:
        return await self._client.browse(queue_name, limit)

    async def purge_queue(self, queue_name: str) -> PurgeResult:
        return await self._client.purge(queue_name)

    async def get_queue_info(self, queue_name: str) -> QueueInfo:
        return await self._client.queue_info(queue_name)

    async def list_queues(self) -> list[QueueInfo]:
        return await self._client.list_queues()
