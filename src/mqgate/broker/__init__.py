from .client import BrokerClient
from .connection import Connection
from .destination import Destination, clean_name, parse
from .enum import DestinationType, HealthStatus
from .integration import BrokerHealth, BrokerInfo, BrokerStats, QueueInfo, TopicInfo
from .message import Message
from .protocol import AsyncBrokerClientABC
from .registry import ConnectionRegistry
from .service import BrokerFacade

__all__ = (
    "AsyncBrokerClientABC",
    "BrokerClient",
    "BrokerFacade",
    "BrokerHealth",
    "BrokerInfo",
    "BrokerStats",
    "Connection",
    "ConnectionRegistry",
    "Destination",
    "DestinationType",
    "HealthStatus",
    "Message",
    "QueueInfo",
    "TopicInfo",
    "clean_name",
    "parse",
)
