"""Normalized result records returned by broker operations."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Self

from msgspec import to_builtins

from .enum import HealthStatus

__all__ = (
    "BrokerHealth",
    "BrokerInfo",
    "BrokerStats",
    "BrokerSummary",
    "ConnectionInfo",
    "ImportResult",
    "ProbeResult",
    "PurgeResult",
    "QueueInfo",
    "QueueStats",
    "SendResult",
    "TopicInfo",
    "TopicStats",
    "UsageStats",
    "classify_usage",
    "usage_percentage",
)

WARNING_THRESHOLD = 75
CRITICAL_THRESHOLD = 90


def usage_percentage(usage: float, limit: float) -> int:
    """Rounded usage share of `limit`, 0 when no limit is configured."""

    if not limit:
        return 0
    return round(usage / limit * 100)


def classify_usage(*percentages: int) -> HealthStatus:
    worst = max(percentages, default=0)

    if worst > CRITICAL_THRESHOLD:
        return HealthStatus.CRITICAL
    if worst > WARNING_THRESHOLD:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def _now_ms() -> int:
    return int(time.time() * 1000)


class _Record:
    def to_dict(self) -> dict[str, Any]:
        return to_builtins(self)


@dataclass
class SendResult(_Record):
    success: bool = True
    status: int = 200


@dataclass
class PurgeResult(_Record):
    purged_messages: int = 0


@dataclass
class QueueInfo(_Record):
    """Counters of one queue MBean.

    `error` is set when the MBean could not be read; the counters are then
    zeroed rather than raising, since a miss usually means "absent".
    """

    name: str
    size: int = 0
    consumer_count: int = 0
    enqueue_count: int = 0
    dequeue_count: int = 0
    memory_usage: int = 0
    memory_limit: int = 0
    error: str | None = None

    @classmethod
    def from_mbean(cls, name: str, value: dict[str, Any]) -> Self:
        return cls(
            name=name,
            size=value.get("QueueSize") or 0,
            consumer_count=value.get("ConsumerCount") or 0,
            enqueue_count=value.get("EnqueueCount") or 0,
            dequeue_count=value.get("DequeueCount") or 0,
            memory_usage=value.get("MemoryUsageByteCount") or 0,
            memory_limit=value.get("MemoryLimit") or 0,
        )


@dataclass
class TopicInfo(_Record):
    name: str
    consumer_count: int = 0
    enqueue_count: int = 0
    dequeue_count: int = 0
    subscription_count: int = 0

    @classmethod
    def from_mbean(cls, name: str, value: dict[str, Any]) -> Self:
        return cls(
            name=name,
            consumer_count=value.get("ConsumerCount") or 0,
            enqueue_count=value.get("EnqueueCount") or 0,
            dequeue_count=value.get("DequeueCount") or 0,
            subscription_count=value.get("SubscriptionCount") or 0,
        )


@dataclass
class BrokerInfo(_Record):
    """Aggregate counters and resource usage of one broker."""

    host: str
    port: int
    broker_name: str = "localhost"
    broker_version: str = "Unknown"
    uptime: int = 0
    connected: bool = False
    total_connections_count: int = 0
    total_consumer_count: int = 0
    total_producer_count: int = 0
    total_enqueue_count: int = 0
    total_dequeue_count: int = 0
    total_message_count: int = 0
    memory_usage: int = 0
    memory_limit: int = 0
    store_usage: int = 0
    store_limit: int = 0
    temp_usage: int = 0
    temp_limit: int = 0

    @classmethod
    def from_mbean(cls, host: str, port: int, connected: bool, value: dict[str, Any]) -> Self:
        return cls(
            host=host,
            port=port,
            broker_name=value.get("BrokerName") or "localhost",
            broker_version=value.get("BrokerVersion") or "Unknown",
            uptime=value.get("UptimeMillis") or 0,
            connected=connected,
            total_connections_count=value.get("TotalConnectionsCount") or 0,
            total_consumer_count=value.get("TotalConsumerCount") or 0,
            total_producer_count=value.get("TotalProducerCount") or 0,
            total_enqueue_count=value.get("TotalEnqueueCount") or 0,
            total_dequeue_count=value.get("TotalDequeueCount") or 0,
            total_message_count=value.get("TotalMessageCount") or 0,
            memory_usage=value.get("MemoryUsage") or 0,
            memory_limit=value.get("MemoryLimit") or 0,
            store_usage=value.get("StoreUsage") or 0,
            store_limit=value.get("StoreLimit") or 0,
            temp_usage=value.get("TempUsage") or 0,
            temp_limit=value.get("TempLimit") or 0,
        )

    @property
    def memory_usage_percentage(self) -> int:
        return usage_percentage(self.memory_usage, self.memory_limit)

    @property
    def store_usage_percentage(self) -> int:
        return usage_percentage(self.store_usage, self.store_limit)

    @property
    def temp_usage_percentage(self) -> int:
        return usage_percentage(self.temp_usage, self.temp_limit)


@dataclass
class BrokerHealth(_Record):
    """Broker health status."""

    status: HealthStatus = HealthStatus.UNHEALTHY
    broker_name: str | None = None
    uptime: int = 0
    connections: int = 0
    consumers: int = 0
    producers: int = 0
    messages: int = 0
    memory_usage_percentage: int = 0
    store_usage_percentage: int = 0
    temp_usage_percentage: int = 0
    timestamp: int = field(default_factory=_now_ms)
    error: str | None = None

    @classmethod
    def from_info(cls, info: BrokerInfo) -> Self:
        memory = info.memory_usage_percentage
        store = info.store_usage_percentage
        temp = info.temp_usage_percentage

        return cls(
            status=classify_usage(memory, store, temp),
            broker_name=info.broker_name,
            uptime=info.uptime,
            connections=info.total_connections_count,
            consumers=info.total_consumer_count,
            producers=info.total_producer_count,
            messages=info.total_message_count,
            memory_usage_percentage=memory,
            store_usage_percentage=store,
            temp_usage_percentage=temp,
        )


@dataclass
class QueueStats(_Record):
    count: int = 0
    total_messages: int = 0
    total_consumers: int = 0


@dataclass
class TopicStats(_Record):
    count: int = 0
    total_consumers: int = 0
    total_subscriptions: int = 0


@dataclass
class UsageStats(_Record):
    usage: int = 0
    limit: int = 0
    usage_percentage: int = 0

    @classmethod
    def of(cls, usage: int, limit: int) -> Self:
        return cls(usage=usage, limit=limit, usage_percentage=usage_percentage(usage, limit))


@dataclass
class BrokerSummary(_Record):
    name: str = "localhost"
    version: str = "Unknown"
    uptime: int = 0
    total_connections: int = 0
    total_consumers: int = 0
    total_producers: int = 0
    total_enqueued: int = 0
    total_dequeued: int = 0
    current_messages: int = 0


@dataclass
class BrokerStats(_Record):
    broker: BrokerSummary = field(default_factory=BrokerSummary)
    queues: QueueStats = field(default_factory=QueueStats)
    topics: TopicStats = field(default_factory=TopicStats)
    memory: UsageStats = field(default_factory=UsageStats)
    store: UsageStats = field(default_factory=UsageStats)
    temp: UsageStats = field(default_factory=UsageStats)
    timestamp: int = field(default_factory=_now_ms)

    @classmethod
    def from_info(cls, info: BrokerInfo, queues: QueueStats, topics: TopicStats) -> Self:
        return cls(
            broker=BrokerSummary(
                name=info.broker_name,
                version=info.broker_version,
                uptime=info.uptime,
                total_connections=info.total_connections_count,
                total_consumers=info.total_consumer_count,
                total_producers=info.total_producer_count,
                total_enqueued=info.total_enqueue_count,
                total_dequeued=info.total_dequeue_count,
                current_messages=info.total_message_count,
            ),
            queues=queues,
            topics=topics,
            memory=UsageStats.of(info.memory_usage, info.memory_limit),
            store=UsageStats.of(info.store_usage, info.store_limit),
            temp=UsageStats.of(info.temp_usage, info.temp_limit),
        )


@dataclass
class ConnectionInfo(_Record):
    connection_id: str
    host: str
    port: int
    connected: bool
    healthy: bool
    created_at: datetime
    last_health_check: datetime
    client_type: str = "REST API"


@dataclass
class ImportResult(_Record):
    connection_id: str
    success: bool
    status: str = "imported"
    error: str | None = None


@dataclass
class ProbeResult(_Record):
    success: bool
    broker_info: BrokerInfo | None = None
    error: str | None = None
