"""Test fixtures for broker gateway tests.

An in-memory ActiveMQ web console is served through `httpx.MockTransport`,
so no broker container is needed.
"""

from __future__ import annotations

from collections import deque
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
from msgspec import json

from mqgate.broker import BrokerClient, BrokerFacade, ConnectionRegistry
from mqgate.config import ConnectionConfig

BROKER_HOST = "broker.test"


@dataclass
class FakeDestination:
    messages: deque[str] = field(default_factory=deque)
    enqueue_count: int = 0
    dequeue_count: int = 0
    consumer_count: int = 0
    subscription_count: int = 0
    browse_cursor: int = 0


class FakeActiveMQ:
    """Just enough of the REST message API and Jolokia to exercise the client."""

    def __init__(self, broker_name: str = "amq-test") -> None:
        self.broker_name = broker_name
        self.queues: dict[str, FakeDestination] = {}
        self.topics: dict[str, FakeDestination] = {}
        self.requests: list[httpx.Request] = []

        self.wildcard_fails = False
        self.localhost_fails = False
        self.list_fails = False
        self.broker_read_fails = False
        self.endless_browse = False
        self.http_error: int | None = None

        self.usage = {
            "MemoryUsage": 10,
            "MemoryLimit": 100,
            "StoreUsage": 10,
            "StoreLimit": 100,
            "TempUsage": 10,
            "TempLimit": 100,
        }

    def jolokia_paths(self) -> list[str]:
        return [r.url.path for r in self.requests if r.url.path.startswith("/api/jolokia/")]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.http_error is not None:
            return httpx.Response(self.http_error)

        path = request.url.path
        if path.startswith("/api/message/"):
            return self._message(request, path.removeprefix("/api/message/"))
        if path.startswith("/api/jolokia/"):
            action, _, target = path.removeprefix("/api/jolokia/").partition("/")
            return self._jolokia(request, action, target)

        return httpx.Response(404)

    def _message(self, request: httpx.Request, name: str) -> httpx.Response:
        kind = request.url.params.get("type", "queue")
        store = self.topics if kind == "topic" else self.queues

        if request.method == "POST":
            form = parse_qs(request.content.decode("utf-8"))
            destination = store.setdefault(name, FakeDestination())
            destination.messages.append(form["body"][0])
            destination.enqueue_count += 1
            return httpx.Response(200)

        if request.url.params.get("browse") == "true":
            if self.endless_browse:
                return httpx.Response(200, text="again")
            destination = store.get(name)
            if destination is None or destination.browse_cursor >= len(destination.messages):
                if destination is not None:
                    destination.browse_cursor = 0
                return httpx.Response(204)
            body = destination.messages[destination.browse_cursor]
            destination.browse_cursor += 1
            return httpx.Response(200, text=body)

        destination = store.get(name)
        if destination is None or not destination.messages:
            return httpx.Response(204)

        destination.dequeue_count += 1
        return httpx.Response(
            200,
            text=destination.messages.popleft(),
            headers={"JMSDestination": f"{kind}://{name}"},
        )

    @staticmethod
    def _ok(value: Any) -> httpx.Response:
        return httpx.Response(200, content=json.encode({"status": 200, "value": value}))

    @staticmethod
    def _missing(target: str) -> httpx.Response:
        return httpx.Response(
            200,
            content=json.encode(
                {
                    "status": 404,
                    "error_type": "javax.management.InstanceNotFoundException",
                    "error": f"javax.management.InstanceNotFoundException : {target}",
                }
            ),
        )

    def _destination_key(self, kind: str, name: str) -> str:
        return f"org.apache.activemq:brokerName={self.broker_name},destinationName={name},destinationType={kind},type=Broker"

    def _destination_attrs(self, destination: FakeDestination) -> dict[str, Any]:
        return {
            "QueueSize": len(destination.messages),
            "EnqueueCount": destination.enqueue_count,
            "DequeueCount": destination.dequeue_count,
            "ConsumerCount": destination.consumer_count,
            "SubscriptionCount": destination.subscription_count,
            "MemoryUsageByteCount": 0,
            "MemoryLimit": 1024,
        }

    def _broker_attrs(self) -> dict[str, Any]:
        return {
            "BrokerName": self.broker_name,
            "BrokerVersion": "5.18.3",
            "UptimeMillis": 1000,
            "TotalConnectionsCount": 2,
            "TotalConsumerCount": 1,
            "TotalProducerCount": 1,
            "TotalEnqueueCount": sum(d.enqueue_count for d in self.queues.values()),
            "TotalDequeueCount": sum(d.dequeue_count for d in self.queues.values()),
            "TotalMessageCount": sum(len(d.messages) for d in self.queues.values()),
            **self.usage,
        }

    def _jolokia(self, request: httpx.Request, action: str, target: str) -> httpx.Response:
        if action == "list":
            if self.list_fails:
                return self._missing(target)
            return self._ok({f"brokerName={self.broker_name},type=Broker": {"attr": {}}})

        operation = None
        if action == "exec":
            target, _, operation = target.rpartition("/")

        props = dict(part.split("=", 1) for part in target.split(":", 1)[1].split(","))
        broker = props.get("brokerName")

        if broker == "*" and self.wildcard_fails:
            return self._missing(target)
        if broker == "localhost" and (self.localhost_fails or self.broker_name != "localhost"):
            return self._missing(target)
        if broker not in ("*", self.broker_name, "localhost"):
            return self._missing(target)

        kind = props.get("destinationType")
        if kind is None:
            if self.broker_read_fails:
                return self._missing(target)
            if broker == "*":
                return self._ok({f"org.apache.activemq:brokerName={self.broker_name},type=Broker": self._broker_attrs()})
            return self._ok(self._broker_attrs())

        store = self.queues if kind == "Queue" else self.topics
        name = props["destinationName"]

        if name == "*":
            value = {self._destination_key(kind, n): self._destination_attrs(d) for n, d in store.items()}
            value[self._destination_key("Topic", "ActiveMQ.Advisory.Connection")] = {"ConsumerCount": 0}
            return self._ok(value)

        if name not in store:
            return self._missing(target)

        if operation == "purge":
            store[name].messages.clear()
            return self._ok(None)

        return self._ok(self._destination_attrs(store[name]))


class FakeNetwork:
    """Routes requests to fake brokers by host; unknown hosts refuse."""

    def __init__(self) -> None:
        self.hosts: dict[str, FakeActiveMQ] = {}

    def handle(self, request: httpx.Request) -> httpx.Response:
        if (broker := self.hosts.get(request.url.host)) is None:
            raise httpx.ConnectError("Connection refused", request=request)
        return broker.handle(request)


@pytest.fixture
def fake_broker() -> FakeActiveMQ:
    return FakeActiveMQ()


@pytest.fixture
def network(fake_broker: FakeActiveMQ) -> FakeNetwork:
    network = FakeNetwork()
    network.hosts[BROKER_HOST] = fake_broker
    return network


@pytest.fixture
def config() -> ConnectionConfig:
    return ConnectionConfig(host=BROKER_HOST, port=8161, username="admin", password="secret")


@pytest.fixture
async def client(network: FakeNetwork, config: ConnectionConfig) -> AsyncGenerator[BrokerClient, None]:
    """Create and connect a client against the fake broker."""

    client = BrokerClient(config, transport=httpx.MockTransport(network.handle))
    await client.connect()
    try:
        yield client
    finally:
        await client.disconnect()


@pytest.fixture
def facade_factory(network: FakeNetwork):
    def factory(config: ConnectionConfig) -> BrokerFacade:
        return BrokerFacade(config, transport=httpx.MockTransport(network.handle))

    return factory


@pytest.fixture
async def registry(facade_factory) -> AsyncGenerator[ConnectionRegistry, None]:
    registry = ConnectionRegistry(facade_factory=facade_factory)
    try:
        yield registry
    finally:
        await registry.disconnect_all()
