"""Tests for the connection registry."""

from __future__ import annotations

from typing import Any

import anyio
import pytest

from mqgate.broker import ConnectionRegistry
from mqgate.config import AppConfig, ConnectionConfig
from mqgate.exception import (
    DuplicateIdError,
    InactiveError,
    InvalidArgumentError,
    NotFoundError,
    RemoteCallFailedError,
)

from .conftest import BROKER_HOST, FakeActiveMQ, FakeNetwork

OTHER_HOST = "other.test"


@pytest.fixture
def other_broker(network: FakeNetwork) -> FakeActiveMQ:
    broker = FakeActiveMQ(broker_name="amq-other")
    network.hosts[OTHER_HOST] = broker
    return broker


class TestAddConnection:
    async def test_add_and_info(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        result = await registry.add_connection("local", config)

        assert result == {"connection_id": "local", "status": "connected", "host": BROKER_HOST, "port": 8161}
        info = registry.get_connection_info("local")
        assert info.connected is True
        assert info.healthy is True
        assert info.client_type == "REST API"
        assert "local" in registry

    async def test_add_from_mapping(self, registry: ConnectionRegistry) -> None:
        await registry.add_connection("local", {"host": BROKER_HOST, "port": 8161, "unknown": "ignored"})
        assert len(registry) == 1

    async def test_duplicate(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)

        with pytest.raises(DuplicateIdError):
            await registry.add_connection("local", config)
        assert len(registry) == 1

    @pytest.mark.parametrize("connection_id", ["", None, 42])
    async def test_invalid_id(self, registry: ConnectionRegistry, config: ConnectionConfig, connection_id: Any) -> None:
        with pytest.raises(InvalidArgumentError):
            await registry.add_connection(connection_id, config)

    @pytest.mark.parametrize("settings", [{"host": ""}, {"host": BROKER_HOST, "port": 0}, {"port": "abc"}])
    async def test_invalid_config(self, registry: ConnectionRegistry, settings: dict[str, Any]) -> None:
        with pytest.raises(InvalidArgumentError):
            await registry.add_connection("local", settings)
        assert len(registry) == 0

    async def test_unreachable(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(RemoteCallFailedError, match="Failed to connect to 'remote'"):
            await registry.add_connection("remote", {"host": "nowhere.test"})
        assert "remote" not in registry

    async def test_starts_health_check(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        assert registry.is_health_check_running is False
        await registry.add_connection("local", config)
        assert registry.is_health_check_running is True

    async def test_connect_from_config(self, registry: ConnectionRegistry) -> None:
        app_config = AppConfig(connections={"default": ConnectionConfig(host=BROKER_HOST)})

        await registry.connect_from_config(app_config=app_config)
        assert "default" in registry

        with pytest.raises(NotFoundError, match="Configured connections: default"):
            await registry.connect_from_config("staging", app_config=app_config)


class TestRemoveConnection:
    async def test_remove(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)
        facade = registry.get_facade("local")

        assert await registry.remove_connection("local") == {"connection_id": "local", "status": "removed"}
        assert "local" not in registry
        assert facade.is_connected() is False

    async def test_remove_unknown(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(NotFoundError):
            await registry.remove_connection("ghost")

    async def test_remove_when_disconnect_fails(
        self,
        registry: ConnectionRegistry,
        config: ConnectionConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await registry.add_connection("local", config)
        facade = registry.get_facade("local")

        async def broken_disconnect() -> None:
            raise RuntimeError("socket gone")

        monkeypatch.setattr(facade, "disconnect", broken_disconnect)

        await registry.remove_connection("local")
        assert "local" not in registry

        await facade.client.disconnect()


class TestGetFacade:
    async def test_not_found_lists_available(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)

        with pytest.raises(NotFoundError, match="Available connections: local"):
            registry.get_facade("ghost")

    async def test_not_found_empty(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(NotFoundError, match="No connections available"):
            registry.get_facade("ghost")

    async def test_inactive(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)
        await registry.get_facade("local").disconnect()

        with pytest.raises(InactiveError):
            await registry.send_message("local", "/queue/orders", "hello")

    async def test_invalid_id(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(InvalidArgumentError):
            registry.get_facade("")


class TestRouting:
    async def test_send_consume_roundtrip(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)

        await registry.send_message("local", "/queue/orders", {"id": 1})
        info = await registry.get_queue_info("local", "orders")
        assert info.size == 1
        assert info.enqueue_count == 1

        message = await registry.consume_message("local", "/queue/orders")
        assert message is not None
        assert message.body == '{"id":1}'

        info = await registry.get_queue_info("local", "orders")
        assert info.size == 0
        assert info.dequeue_count == 1

    async def test_connections_are_isolated(
        self,
        registry: ConnectionRegistry,
        config: ConnectionConfig,
        fake_broker: FakeActiveMQ,
        other_broker: FakeActiveMQ,
    ) -> None:
        await registry.add_connection("a", config)
        await registry.add_connection("b", {"host": OTHER_HOST})

        await registry.publish_message("b", "events", "hello")

        assert "events" in other_broker.topics
        assert "events" not in fake_broker.topics
        assert (await registry.get_broker_info("b")).broker_name == "amq-other"

    async def test_browse_and_purge(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)
        for body in ("a", "b"):
            await registry.send_message("local", "orders", body)

        assert len(await registry.browse_messages("local", "orders", limit=1)) == 1
        await registry.purge_queue("local", "orders")
        assert (await registry.get_queue_info("local", "orders")).size == 0
        assert [q.name for q in await registry.list_queues("local")] == ["orders"]


class TestHealthCheck:
    async def test_flip_notifies_observer(
        self,
        facade_factory,
        config: ConnectionConfig,
        fake_broker: FakeActiveMQ,
    ) -> None:
        changes: list[tuple[str, bool]] = []

        async with ConnectionRegistry(
            facade_factory=facade_factory,
            on_health_change=lambda connection_id, healthy: changes.append((connection_id, healthy)),
            auto_health_check=False,
        ) as registry:
            await registry.add_connection("local", config)
            assert (await registry.get_broker_info("local")).broker_name == "amq-test"

            assert await registry.perform_health_check() == {"local": True}
            assert changes == []

            # the broker comes back under another name
            fake_broker.broker_name = "amq-renamed"
            assert await registry.perform_health_check() == {"local": False}
            assert registry.get_health_status()["unhealthy_connections"] == 1

            assert await registry.perform_health_check() == {"local": True}
            assert (await registry.get_broker_info("local")).broker_name == "amq-renamed"

        assert changes == [("local", False), ("local", True)]

    async def test_async_observer(self, facade_factory, config: ConnectionConfig, fake_broker: FakeActiveMQ) -> None:
        changes: list[bool] = []

        async def observer(connection_id: str, healthy: bool) -> None:
            changes.append(healthy)

        async with ConnectionRegistry(
            facade_factory=facade_factory,
            on_health_change=observer,
            auto_health_check=False,
        ) as registry:
            await registry.add_connection("local", config)
            fake_broker.broker_read_fails = True
            await registry.perform_health_check()

        assert changes == [False]

    async def test_observer_failure_keeps_probing(
        self,
        facade_factory,
        config: ConnectionConfig,
        fake_broker: FakeActiveMQ,
        other_broker: FakeActiveMQ,
    ) -> None:
        notified: list[str] = []

        def observer(connection_id: str, healthy: bool) -> None:
            notified.append(connection_id)
            raise RuntimeError("observer down")

        async with ConnectionRegistry(
            facade_factory=facade_factory,
            on_health_change=observer,
            auto_health_check=False,
        ) as registry:
            await registry.add_connection("a", config)
            await registry.add_connection("b", {"host": OTHER_HOST})
            fake_broker.broker_read_fails = True
            other_broker.broker_read_fails = True

            assert await registry.perform_health_check() == {"a": False, "b": False}
            assert notified == ["a", "b"]
            assert registry.get_health_status()["unhealthy_connections"] == 2

    async def test_periodic(self, facade_factory, config: ConnectionConfig) -> None:
        async with ConnectionRegistry(health_check_interval=0.01, facade_factory=facade_factory) as registry:
            await registry.add_connection("local", config)
            created = registry.get_connection_info("local").created_at

            await anyio.sleep(0.1)

            assert registry.get_connection_info("local").last_health_check > created
            assert registry.is_health_check_running is True

        assert registry.is_health_check_running is False

    async def test_stop_is_idempotent(self, registry: ConnectionRegistry) -> None:
        registry.start_health_check()
        await registry.stop_health_check()
        await registry.stop_health_check()
        assert registry.is_health_check_running is False

    async def test_health_status(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)

        status = registry.get_health_status()
        assert status["total_connections"] == 1
        assert status["healthy_connections"] == 1
        assert status["connections"]["local"]["host"] == BROKER_HOST


class TestBulkOperations:
    async def test_disconnect_all(
        self,
        registry: ConnectionRegistry,
        config: ConnectionConfig,
        other_broker: FakeActiveMQ,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await registry.add_connection("a", config)
        await registry.add_connection("b", {"host": OTHER_HOST})
        healthy_facade = registry.get_facade("b")

        broken_facade = registry.get_facade("a")

        async def broken_disconnect() -> None:
            raise RuntimeError("socket gone")

        monkeypatch.setattr(broken_facade, "disconnect", broken_disconnect)

        await registry.disconnect_all()

        assert len(registry) == 0
        assert healthy_facade.is_connected() is False
        assert registry.is_health_check_running is False

        await broken_facade.client.disconnect()

    async def test_disconnect_all_includes_late_connections(
        self,
        registry: ConnectionRegistry,
        config: ConnectionConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await registry.add_connection("a", config)
        facade = registry.get_facade("a")
        disconnect = facade.disconnect
        late = []

        async def disconnect_and_race() -> None:
            await registry.add_connection("late", config)
            late.append(registry.get_facade("late"))
            await disconnect()

        monkeypatch.setattr(facade, "disconnect", disconnect_and_race)

        await registry.disconnect_all()

        assert len(registry) == 0
        assert late[0].is_connected() is False

    async def test_probe_success(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        result = await registry.test_connection(config)

        assert result.success is True
        assert result.broker_info is not None
        assert result.broker_info.broker_name == "amq-test"
        assert len(registry) == 0

    async def test_probe_failure(self, registry: ConnectionRegistry) -> None:
        result = await registry.test_connection({"host": "nowhere.test"})

        assert result.success is False
        assert result.error is not None

    async def test_probe_invalid(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(InvalidArgumentError):
            await registry.test_connection({"host": ""})

    async def test_export_without_password(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)

        exported = registry.export_connections()
        assert set(exported) == {"local"}
        assert "password" not in exported["local"]
        assert exported["local"]["username"] == "admin"
        assert "created_at" in exported["local"]

    async def test_import_mixed(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("existing", config)

        results = await registry.import_connections(
            {
                "good": {"host": BROKER_HOST},
                "invalid": {"host": ""},
                "unreachable": {"host": "nowhere.test"},
                "existing": config,
            }
        )

        outcomes = {r.connection_id: r.success for r in results}
        assert outcomes == {"good": True, "invalid": False, "unreachable": False, "existing": False}
        assert all(r.error for r in results if not r.success)
        assert set(registry.export_connections()) == {"existing", "good"}

    async def test_import_malformed_host(self, registry: ConnectionRegistry) -> None:
        """A host that cannot form a URL fails its own entry only."""
        results = await registry.import_connections({"bad": {"host": "exa\x00mple"}, "good": {"host": BROKER_HOST}})

        assert [(r.connection_id, r.success) for r in results] == [("bad", False), ("good", True)]
        assert "host is invalid" in (results[0].error or "")
        assert "good" in registry

    async def test_probe_malformed_host(self, registry: ConnectionRegistry) -> None:
        with pytest.raises(InvalidArgumentError, match="host is invalid"):
            await registry.test_connection({"host": "exa\x00mple"})

    async def test_broker_stats_inline_error(
        self,
        registry: ConnectionRegistry,
        config: ConnectionConfig,
        other_broker: FakeActiveMQ,
    ) -> None:
        await registry.add_connection("a", config)
        await registry.add_connection("b", {"host": OTHER_HOST})
        other_broker.broker_read_fails = True

        stats = await registry.get_broker_stats()
        assert stats["total_connections"] == 2
        assert stats["healthy_connections"] == 1
        assert stats["brokers"]["a"]["broker_name"] == "amq-test"
        assert stats["brokers"]["b"]["connected"] is False
        assert "error" in stats["brokers"]["b"]

    async def test_system_status(self, registry: ConnectionRegistry, config: ConnectionConfig) -> None:
        await registry.add_connection("local", config)

        status = await registry.get_system_status()
        assert status["total_connections"] == 1
        assert status["broker_stats"]["brokers"]["local"]["connected"] is True
        assert status["uptime"] >= 0
        assert "timestamp" in status
