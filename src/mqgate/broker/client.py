"""ActiveMQ endpoint client over the REST message API and Jolokia.

Two endpoint families are used:

- `/api/message/<name>?type=queue|topic` for sending (form POST) and
  consuming or browsing (GET, one message per request, 204 when empty)
- `/api/jolokia/read|exec|list/<mbean>` for management objects, addressed
  as `org.apache.activemq:type=Broker,brokerName=<broker>[,destinationType=
  Queue|Topic,destinationName=<name>]`

The broker name segment depends on the deployment and is discovered at
runtime, then cached for the lifetime of the client.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

import anyio
import httpx
import structlog
from msgspec import DecodeError, json

from ..config import ConnectionConfig
from ..exception import BrokerError, NotConnectedError, RemoteCallFailedError
from .destination import clean_name, parse
from .enum import DestinationType
from .integration import (
    BrokerHealth,
    BrokerInfo,
    BrokerStats,
    PurgeResult,
    QueueInfo,
    QueueStats,
    SendResult,
    TopicInfo,
    TopicStats,
)
from .message import Message
from .protocol import AsyncBrokerClientABC

__all__ = (
    "BrokerClient",
    "broker_mbean",
    "destination_mbean",
    "extract_property",
)

logger = structlog.stdlib.get_logger(__name__)

DOMAIN: Final[str] = "org.apache.activemq"
DEFAULT_BROKER_NAME: Final[str] = "localhost"
ADVISORY_MARKER: Final[str] = "ActiveMQ.Advisory"

MESSAGE_PATH: Final[str] = "/api/message"
JOLOKIA_PATH: Final[str] = "/api/jolokia"


def broker_mbean(broker_name: str) -> str:
    return f"{DOMAIN}:type=Broker,brokerName={broker_name}"


def destination_mbean(broker_name: str, kind: DestinationType, name: str) -> str:
    return f"{broker_mbean(broker_name)},destinationType={kind.mbean_type},destinationName={name}"


def extract_property(key: str, prop: str) -> str | None:
    """Pull `prop=<value>` out of an object name key, like `brokerName`."""

    marker = f"{prop}="
    if marker not in key:
        return None
    return key.split(marker, 1)[1].split(",", 1)[0] or None


def _encode_body(body: Any) -> str:
    if isinstance(body, str):
        return body
    return json.encode(body).decode("utf-8")


class BrokerClient(AsyncBrokerClientABC):
    """HTTP client bound to one ActiveMQ web console.

    Example:
        >>> client = BrokerClient(ConnectionConfig(host="localhost"))
        >>> await client.connect()
        >>> await client.send("/queue/orders", {"id": 1})
        >>> info = await client.queue_info("orders")
    """

    def __init__(self, config: ConnectionConfig, **kwargs: Any) -> None:
        """Initialize the client, no request is made yet.

        Args:
            config: Connection settings, validated here
            **kwargs: Additional `httpx.AsyncClient` arguments
        """

        self._config = config.ensure_valid()
        self._client_kwargs = kwargs
        self._http: httpx.AsyncClient | None = None
        self._connected = False
        self._broker_name: str | None = None

        logger.debug(
            "BrokerClient created",
            host=config.host,
            port=config.port,
            username="***" if config.username else "none",
            base_url=config.base_url,
        )

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    def _session(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            auth = httpx.BasicAuth(self._config.username, self._config.password) if self._config.username else None
            self._http = httpx.AsyncClient(
                base_url=self._config.base_url,
                auth=auth,
                timeout=self._config.timeout_ms / 1000,
                headers={"Accept": "application/json"},
                **self._client_kwargs,
            )
        return self._http

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise NotConnectedError("Not connected to ActiveMQ broker")

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._session().request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RemoteCallFailedError(f"{type(e).__name__}: {e}") from e

        if response.is_error:
            raise RemoteCallFailedError(
                f"HTTP {response.status_code} {response.reason_phrase}".strip(),
                status=response.status_code,
            )

        return response

    async def _jolokia(self, method: str, action: str, target: str) -> Any:
        """Call Jolokia and unwrap its `value`.

        Jolokia reports most failures with HTTP 200 and a `status` field in
        the payload, both forms raise here.
        """

        response = await self._request(method, f"{JOLOKIA_PATH}/{action}/{target}")

        if response.status_code == 204 or not response.content:
            raise RemoteCallFailedError(f"No data for {target}", status=response.status_code)

        try:
            payload = json.decode(response.content)
        except DecodeError as e:
            raise RemoteCallFailedError(f"Malformed Jolokia response: {e}", status=response.status_code) from e

        if not isinstance(payload, dict):
            raise RemoteCallFailedError("Malformed Jolokia response", status=response.status_code)

        if (status := payload.get("status", 200)) >= 400:
            raise RemoteCallFailedError(payload.get("error") or f"Jolokia status {status}", status=status)

        return payload.get("value")

    async def read_mbean(self, mbean: str) -> Any:
        return await self._jolokia("GET", "read", mbean)

    async def exec_mbean(self, mbean: str, operation: str) -> Any:
        return await self._jolokia("POST", "exec", f"{mbean}/{operation}")

    async def connect(self) -> None:
        """Validate the web console answers a management read."""

        if self._connected:
            logger.warning("Already connected to ActiveMQ broker", host=self._config.host, port=self._config.port)
            return

        logger.info(
            "Testing connection to ActiveMQ web console",
            host=self._config.host,
            port=self._config.port,
            base_url=self._config.base_url,
        )

        try:
            await self.read_mbean(broker_mbean("*"))
        except RemoteCallFailedError as e:
            logger.error(
                "Failed to connect to ActiveMQ web console",
                host=self._config.host,
                port=self._config.port,
                error=str(e),
                status=e.status,
            )
            await self._close_session()
            raise RemoteCallFailedError(f"Failed to connect to ActiveMQ: {e}", status=e.status) from e

        self._connected = True
        logger.info("Successfully connected to ActiveMQ web console", host=self._config.host, port=self._config.port)

    async def _close_session(self) -> None:
        if self._http is not None:
            http, self._http = self._http, None
            try:
                await http.aclose()
            except Exception as e:  # noqa: BLE001 - closing is best effort
                logger.debug("Failed to close HTTP session", error=str(e))

    async def disconnect(self) -> None:
        was_connected = self._connected
        self._connected = False
        await self._close_session()

        if was_connected:
            logger.info("Disconnected from ActiveMQ", host=self._config.host, port=self._config.port)

    def is_connected(self) -> bool:
        return self._connected

    async def test_connection(self) -> dict[str, Any]:
        """One management read without touching the connected state."""

        try:
            await self.read_mbean(broker_mbean("*"))
        except RemoteCallFailedError as e:
            logger.error("Connection test failed", host=self._config.host, port=self._config.port, error=str(e))
            return {"success": False, "connected": False, "error": str(e)}

        return {"success": True, "connected": True}

    def connection_info(self) -> dict[str, Any]:
        return {
            "host": self._config.host,
            "port": self._config.port,
            "base_url": self._config.base_url,
            "connected": self._connected,
            "username": "***" if self._config.username else "none",
        }

    async def broker_name(self) -> str:
        """Discover the broker name, trying cheaper lookups first.

        1. wildcard read of the broker object, name taken from a result key
        2. direct read of the `localhost` broker object
        3. Jolokia `list` of the whole domain, name taken from any key
        4. `localhost` as a last resort
        """

        if self._broker_name:
            return self._broker_name

        self._broker_name = await self._discover_broker_name()
        logger.debug("Discovered broker name", broker_name=self._broker_name)
        return self._broker_name

    async def _discover_broker_name(self) -> str:
        try:
            value = await self.read_mbean(broker_mbean("*"))
            if isinstance(value, dict):
                for key in value:
                    if name := extract_property(key, "brokerName"):
                        return name
        except RemoteCallFailedError as e:
            logger.debug("Wildcard broker lookup failed", error=str(e))

        try:
            await self.read_mbean(broker_mbean(DEFAULT_BROKER_NAME))
        except RemoteCallFailedError as e:
            logger.debug("Default broker lookup failed", error=str(e))
        else:
            return DEFAULT_BROKER_NAME

        try:
            value = await self._jolokia("GET", "list", DOMAIN)
            if isinstance(value, dict):
                for key in _walk_keys(value):
                    if name := extract_property(key, "brokerName"):
                        return name
        except RemoteCallFailedError as e:
            logger.warning("Failed to get broker name, using localhost", error=str(e))

        return DEFAULT_BROKER_NAME

    def invalidate_broker_name(self) -> None:
        """Forget the cached broker name, the next lookup rediscovers it."""
        self._broker_name = None

    async def send(
        self,
        destination: str,
        body: Any,
        headers: Mapping[str, Any] | None = None,
    ) -> SendResult:
        self._ensure_connected()

        target = parse(destination)
        payload = _encode_body(body)
        form = {"body": payload}
        for key, value in (headers or {}).items():
            form[str(key)] = str(value)

        logger.debug(
            "Sending message",
            destination_name=target.name,
            destination_type=target.type,
            message_length=len(payload),
        )

        try:
            response = await self._request(
                "POST",
                f"{MESSAGE_PATH}/{target.name}",
                params={"type": target.type.value},
                data=form,
            )
        except RemoteCallFailedError as e:
            logger.error("Failed to send message", destination=destination, error=str(e), status=e.status)
            raise RemoteCallFailedError(f"Failed to send message to {destination}: {e}", status=e.status) from e

        logger.info(
            "Message sent successfully",
            destination_name=target.name,
            destination_type=target.type,
            status=response.status_code,
        )
        return SendResult(success=True, status=response.status_code)

    def _to_message(self, response: httpx.Response, name: str, kind: DestinationType) -> Message | None:
        if response.status_code == 204 or not response.content:
            return None

        return Message(
            headers=dict(response.headers),
            body=response.text,
            destination_name=name,
            destination_type=kind,
        )

    async def consume(
        self,
        destination: str,
        timeout: int | None = None,
        client_id: str | None = None,
        selector: str | None = None,
    ) -> Message | None:
        self._ensure_connected()

        target = parse(destination)
        params: dict[str, Any] = {"type": target.type.value}
        if timeout is not None:
            params["timeout"] = str(timeout)
        if client_id:
            params["clientId"] = client_id
        if selector:
            params["selector"] = selector

        logger.debug("Consuming message", destination_name=target.name, destination_type=target.type, params=params)

        try:
            response = await self._request("GET", f"{MESSAGE_PATH}/{target.name}", params=params)
        except RemoteCallFailedError as e:
            logger.error("Failed to consume message", destination=destination, error=str(e), status=e.status)
            raise RemoteCallFailedError(f"Failed to consume message from {destination}: {e}", status=e.status) from e

        message = self._to_message(response, target.name, target.type)

        if message is None:
            logger.debug("No message available", destination_name=target.name, destination_type=target.type)
        else:
            logger.info("Message consumed successfully", destination_name=target.name, destination_type=target.type)

        return message

    async def browse(self, queue_name: str, limit: int = 10) -> list[Message]:
        """Collect up to `limit` messages, one request each.

        The REST API has no batch browse, so this issues at most `limit`
        requests and stops early on the first empty response.
        """

        self._ensure_connected()

        name = clean_name(queue_name)
        logger.debug("Browsing messages", queue_name=name, limit=limit)

        messages: list[Message] = []
        try:
            for _ in range(max(limit, 0)):
                response = await self._request(
                    "GET",
                    f"{MESSAGE_PATH}/{name}",
                    params={"type": DestinationType.QUEUE.value, "browse": "true"},
                )
                if (message := self._to_message(response, name, DestinationType.QUEUE)) is None:
                    break
                messages.append(message)
        except RemoteCallFailedError as e:
            logger.error("Failed to browse messages", queue_name=queue_name, error=str(e), status=e.status)
            raise RemoteCallFailedError(f"Failed to browse messages of {queue_name}: {e}", status=e.status) from e

        logger.info("Messages browsed successfully", queue_name=name, message_count=len(messages))
        return messages

    async def purge(self, queue_name: str) -> PurgeResult:
        self._ensure_connected()

        name = clean_name(queue_name)
        logger.info("Purging queue", queue_name=name)

        try:
            broker = await self.broker_name()
            value = await self.exec_mbean(destination_mbean(broker, DestinationType.QUEUE, name), "purge")
        except RemoteCallFailedError as e:
            logger.error("Failed to purge queue", queue_name=queue_name, error=str(e), status=e.status)
            raise RemoteCallFailedError(f"Failed to purge queue {queue_name}: {e}", status=e.status) from e

        purged = value if isinstance(value, int) and not isinstance(value, bool) else 0
        logger.info("Queue purged successfully", queue_name=name, purged_messages=purged)
        return PurgeResult(purged_messages=purged)

    async def queue_info(self, queue_name: str) -> QueueInfo:
        self._ensure_connected()

        name = clean_name(queue_name)
        logger.debug("Getting queue info", queue_name=name)

        try:
            broker = await self.broker_name()
            value = await self.read_mbean(destination_mbean(broker, DestinationType.QUEUE, name))
        except BrokerError as e:
            logger.error("Failed to get queue info", queue_name=queue_name, error=str(e))
            return QueueInfo(name=name, error=str(e))

        return QueueInfo.from_mbean(name, value if isinstance(value, dict) else {})

    async def _read_destinations(self, kind: DestinationType) -> dict[str, Any]:
        """Read every destination object of `kind`, keyed by object name.

        Tries the wildcard broker name, then `localhost`, then the
        discovered broker name.
        """

        try:
            value = await self.read_mbean(destination_mbean("*", kind, "*"))
        except RemoteCallFailedError:
            logger.debug("Wildcard broker query failed, trying specific broker name", kind=kind)
            try:
                value = await self.read_mbean(destination_mbean(DEFAULT_BROKER_NAME, kind, "*"))
            except RemoteCallFailedError:
                broker = await self.broker_name()
                value = await self.read_mbean(destination_mbean(broker, kind, "*"))

        return value if isinstance(value, dict) else {}

    @staticmethod
    def _user_destinations(data: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
        ret = []
        for key, value in data.items():
            if ADVISORY_MARKER in key or not isinstance(value, dict):
                continue
            if name := extract_property(key, "destinationName"):
                ret.append((name, value))
        return ret

    async def list_queues(self) -> list[QueueInfo]:
        self._ensure_connected()
        logger.debug("Listing queues")

        try:
            data = await self._read_destinations(DestinationType.QUEUE)
        except RemoteCallFailedError as e:
            logger.error("Failed to list queues", error=str(e), status=e.status)
            raise RemoteCallFailedError(f"Failed to list queues: {e}", status=e.status) from e

        queues = [QueueInfo.from_mbean(name, value) for name, value in self._user_destinations(data)]

        logger.info("Queues listed successfully", queue_count=len(queues))
        return queues

    async def list_topics(self) -> list[TopicInfo]:
        self._ensure_connected()
        logger.debug("Listing topics")

        try:
            data = await self._read_destinations(DestinationType.TOPIC)
        except RemoteCallFailedError as e:
            logger.error("Failed to list topics", error=str(e), status=e.status)
            raise RemoteCallFailedError(f"Failed to list topics: {e}", status=e.status) from e

        topics = [TopicInfo.from_mbean(name, value) for name, value in self._user_destinations(data)]

        logger.info("Topics listed successfully", topic_count=len(topics))
        return topics

    async def subscribe(
        self,
        topic_name: str,
        timeout_ms: int = 10000,
        max_messages: int = 1,
        client_id: str | None = None,
        poll_interval: float = 1.0,
    ) -> list[Message]:
        """Poll a topic until `max_messages` arrive or `timeout_ms` passes.

        Not a real subscription: messages published between polls may be
        missed, and nothing is delivered after the call returns.
        """

        self._ensure_connected()
        logger.warning("Topic subscription via REST API is polling-based, not real-time", topic_name=topic_name)

        destination = f"/topic/{clean_name(topic_name)}"
        deadline = anyio.current_time() + timeout_ms / 1000
        messages: list[Message] = []

        while len(messages) < max_messages:
            remaining = deadline - anyio.current_time()
            if remaining <= 0:
                break

            wait = min(poll_interval, remaining)
            message = await self.consume(destination, timeout=max(int(wait * 1000), 1), client_id=client_id)
            if message is not None:
                messages.append(message)
                continue

            await anyio.sleep(min(wait, max(deadline - anyio.current_time(), 0)))

        logger.info("Topic subscription finished", topic_name=topic_name, message_count=len(messages))
        return messages

    async def _read_broker(self) -> dict[str, Any]:
        broker = await self.broker_name()
        value = await self.read_mbean(broker_mbean(broker))
        return value if isinstance(value, dict) else {}

    async def broker_info(self) -> BrokerInfo:
        self._ensure_connected()
        logger.debug("Getting broker info")

        try:
            value = await self._read_broker()
        except RemoteCallFailedError as e:
            logger.error("Failed to get broker info", error=str(e), status=e.status)
            raise RemoteCallFailedError(f"Failed to get broker info: {e}", status=e.status) from e

        return BrokerInfo.from_mbean(self._config.host, self._config.port, self._connected, value)

    async def broker_health(self) -> BrokerHealth:
        self._ensure_connected()
        logger.debug("Checking broker health")

        try:
            info = await self.broker_info()
        except RemoteCallFailedError as e:
            return BrokerHealth(error=str(e))

        health = BrokerHealth.from_info(info)
        logger.debug("Broker health checked", status=health.status)
        return health

    async def broker_stats(self) -> BrokerStats:
        self._ensure_connected()
        logger.debug("Getting broker statistics")

        info = await self.broker_info()

        queue_stats = QueueStats()
        try:
            for _, value in self._user_destinations(await self._read_destinations(DestinationType.QUEUE)):
                queue_stats.count += 1
                queue_stats.total_messages += value.get("QueueSize") or 0
                queue_stats.total_consumers += value.get("ConsumerCount") or 0
        except RemoteCallFailedError as e:
            logger.warning("Failed to get queue statistics", error=str(e))
            queue_stats = QueueStats()

        topic_stats = TopicStats()
        try:
            for _, value in self._user_destinations(await self._read_destinations(DestinationType.TOPIC)):
                topic_stats.count += 1
                topic_stats.total_consumers += value.get("ConsumerCount") or 0
                topic_stats.total_subscriptions += value.get("SubscriptionCount") or 0
        except RemoteCallFailedError as e:
            logger.warning("Failed to get topic statistics", error=str(e))
            topic_stats = TopicStats()

        return BrokerStats.from_info(info, queue_stats, topic_stats)


def _walk_keys(tree: dict[str, Any]) -> list[str]:
    """Keys of a Jolokia `list` tree, which nests domain -> object name."""

    keys = []
    for key, value in tree.items():
        keys.append(key)
        if key == DOMAIN and isinstance(value, dict):
            keys.extend(value)
    return keys
