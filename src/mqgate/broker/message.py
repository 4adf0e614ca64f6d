from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from .enum import DestinationType

__all__ = ("Message",)

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class Message:
    """A message read from the broker's REST endpoint.

    Never stored locally; it only lives until it is handed back to the caller.

    Attributes:
        headers: HTTP response headers, carrying the JMS properties.
        body: Raw response body.
        timestamp: When the message was observed locally.
        destination_name: Bare destination name.
        destination_type: Queue or topic.
    """

    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    destination_name: str = ""
    destination_type: DestinationType = DestinationType.QUEUE

    async def ack(self) -> None:
        """No-op, the REST API acknowledges on delivery."""

        logger.debug("Message acknowledged (REST API auto-acknowledges)", destination=self.destination_name)

    async def nack(self) -> None:
        """No-op, negative acknowledgement is unsupported over REST."""

        logger.warning("NACK not supported in REST API mode", destination=self.destination_name)

    def __str__(self) -> str:
        return f"Message({self.destination_type}/{self.destination_name}, {len(self.body)} chars)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": self.headers,
            "body": self.body,
            "timestamp": self.timestamp.isoformat(),
            "destination_name": self.destination_name,
            "destination_type": self.destination_type.value,
        }
