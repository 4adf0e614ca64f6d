from ..client import BrokerClient
from ..integration import BrokerHealth, BrokerInfo, BrokerStats

__all__ = ("BrokerService",)


class BrokerService:
    """Broker-wide telemetry."""

    def __init__(self, client: BrokerClient) -> None:
        self._client = client

    async def get_broker_info(self) -> BrokerInfo:
        return await self._client.broker_info()

    async def get_broker_health(self) -> BrokerHealth:
        return await self._client.broker_health()

    async def get_broker_stats(self) -> BrokerStats:
        return await self._client.broker_stats()
