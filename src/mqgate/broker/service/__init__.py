"""Domain services over one shared broker client.

`BrokerFacade` composes the client with one service per domain; it is the
object one registered connection owns.
"""

from .broker import BrokerService
from .connection import ConnectionService
from .facade import BrokerFacade
from .queue import QueueService
from .topic import TopicService

__all__ = (
    "BrokerFacade",
    "BrokerService",
    "ConnectionService",
    "QueueService",
    "TopicService",
)
