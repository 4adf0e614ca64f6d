from typing import Any

from ..client import BrokerClient
from ..destination import Destination, clean_name, parse

__all__ = ("ConnectionService",)


class ConnectionService:
    """Connection lifecycle and destination helpers."""

    def __init__(self, client: BrokerClient) -> None:
        self._client = client

    async def connect(self) -> None:
        await self._client.connect()

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def test_connection(self) -> dict[str, Any]:
        return await self._client.test_connection()

    def is_connected(self) -> bool:
        return self._client.is_connected()

    def connection_info(self) -> dict[str, Any]:
        return self._client.connection_info()

    async def broker_name(self) -> str:
        return await self._client.broker_name()

    def invalidate_broker_name(self) -> None:
        self._client.invalidate_broker_name()

    @staticmethod
    def parse_destination(destination: str) -> Destination:
        return parse(destination)

    @staticmethod
    def clean_destination_name(destination: str) -> str:
        return clean_name(destination)
