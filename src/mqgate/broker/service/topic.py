from collections.abc import Mapping
from typing import Any

from ..client import BrokerClient
from ..destination import clean_name
from ..integration import SendResult, TopicInfo
from ..message import Message

__all__ = ("TopicService",)


class TopicService:
    """Topic operations: publish, bounded polling subscribe, listing."""

    def __init__(self, client: BrokerClient) -> None:
        self._client = client

    async def publish_message(
        self,
        topic_name: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> SendResult:
        # a bare name here means a topic, not the queue default of `parse`
        return await self._client.send(f"/topic/{clean_name(topic_name)}", body, headers)

    async def subscribe_to_topic(
        self,
        topic_name: str,
        timeout_ms: int = 10000,
        max_messages: int = 1,
        client_id: str | None = None,
        poll_interval: float = 1.0,
    ) -> list[Message]:
        return await self._client.subscribe(
            topic_name,
            timeout_ms=timeout_ms,
            max_messages=max_messages,
            client_id=client_id,
            poll_interval=poll_interval,
        )

    async def list_topics(self) -> list[TopicInfo]:
        return await self._client.list_topics()
