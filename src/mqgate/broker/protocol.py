from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Self

if TYPE_CHECKING:
    from .integration import BrokerHealth, BrokerInfo, BrokerStats, PurgeResult, QueueInfo, SendResult, TopicInfo
    from .message import Message


__all__ = ("AsyncBrokerClientABC",)


class AsyncBrokerClientABC(ABC):
    """Abstract base class for broker endpoint clients.

    A client owns one session to one broker address and translates the
    gateway operations into the broker's own request shapes. The domain
    services only ever talk to a broker through this interface.

    State is either connected or not: `connect()` and `disconnect()` are
    idempotent, every other remote operation raises `NotConnectedError`
    while disconnected.

    Example:
        >>> async with BrokerClient(config) as client:
        ...     await client.send("/queue/orders", {"id": 1})
        ...     message = await client.consume("/queue/orders")
    """

    @abstractmethod
    async def connect(self) -> None:
        """Validate reachability and credentials, then mark connected.

        Raises:
            RemoteCallFailedError: If the broker cannot be reached
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the session. Always succeeds locally."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the last `connect()` succeeded and no disconnect followed."""

    @abstractmethod
    async def broker_name(self) -> str:
        """Resolve (once) the broker identity used in management object names."""

    @abstractmethod
    async def send(
        self,
        destination: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> "SendResult":
        """Send one message to a queue or topic.

        Args:
            destination: Destination string, like "/queue/orders"
            body: Text is sent as is, anything else JSON encoded
            headers: Extra message properties
        """

    @abstractmethod
    async def consume(
        self,
        destination: str,
        timeout: int | None = None,
        client_id: str | None = None,
        selector: str | None = None,
    ) -> "Message | None":
        """Consume one message, `None` when the destination is empty."""

    @abstractmethod
    async def browse(self, queue_name: str, limit: int = 10) -> list["Message"]:
        """Read up to `limit` messages from a queue."""

    @abstractmethod
    async def purge(self, queue_name: str) -> "PurgeResult":
        """Drop every message of a queue."""

    @abstractmethod
    async def queue_info(self, queue_name: str) -> "QueueInfo":
        """Counters of one queue, zeroed with `error` set on a miss."""

    @abstractmethod
    async def list_queues(self) -> list["QueueInfo"]:
        """Every user-visible queue."""

    @abstractmethod
    async def list_topics(self) -> list["TopicInfo"]:
        """Every user-visible topic."""

    @abstractmethod
    async def subscribe(
        self,
        topic_name: str,
        timeout_ms: int = 10000,
        max_messages: int = 1,
        client_id: str | None = None,
        poll_interval: float = 1.0,
    ) -> list["Message"]:
        """Poll a topic for a bounded time."""

    @abstractmethod
    async def broker_info(self) -> "BrokerInfo":
        """Aggregate broker counters and resource usage."""

    @abstractmethod
    async def broker_health(self) -> "BrokerHealth":
        """Usage-based health classification."""

    @abstractmethod
    async def broker_stats(self) -> "BrokerStats":
        """Broker counters plus queue and topic aggregates."""

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
