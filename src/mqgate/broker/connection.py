from datetime import UTC, datetime
from typing import Any

import structlog

from ..config import ConnectionConfig
from .integration import ConnectionInfo
from .service import BrokerFacade

__all__ = ("Connection",)

logger = structlog.stdlib.get_logger(__name__)


class Connection:
    """One registry entry: a facade plus its bookkeeping.

    `healthy` and `last_health_check` only change through
    `perform_health_check()`.
    """

    def __init__(self, connection_id: str, facade: BrokerFacade, config: ConnectionConfig) -> None:
        self.connection_id = connection_id
        self.facade = facade
        self.config = config
        self.created_at = datetime.now(UTC)
        self.last_health_check = self.created_at
        self.healthy = True

    def is_connected(self) -> bool:
        return self.facade.is_connected()

    def is_healthy(self) -> bool:
        return self.healthy and self.is_connected()

    async def perform_health_check(self) -> bool:
        """Probe the broker and record the outcome.

        A failed probe also drops the cached broker name, so a broker that
        came back under another name is rediscovered on the next call.
        """

        try:
            info = await self.facade.get_broker_info()
        except Exception as e:  # noqa: BLE001 - any failure means unhealthy
            self.healthy = False
            self.facade.invalidate_broker_name()
            logger.warning("Health check failed", connection_id=self.connection_id, error=str(e))
        else:
            self.healthy = info.connected
            logger.debug("Health check passed", connection_id=self.connection_id, healthy=self.healthy)
        finally:
            self.last_health_check = datetime.now(UTC)

        return self.healthy

    async def disconnect(self) -> dict[str, Any]:
        """Disconnect, reporting instead of raising."""

        try:
            await self.facade.disconnect()
        except Exception as e:  # noqa: BLE001 - removal must not depend on the broker
            logger.error("Failed to disconnect", connection_id=self.connection_id, error=str(e))
            return {"success": False, "error": str(e)}

        logger.info("Connection disconnected successfully", connection_id=self.connection_id)
        return {"success": True}

    def info(self) -> ConnectionInfo:
        return ConnectionInfo(
            connection_id=self.connection_id,
            host=self.config.host,
            port=self.config.port,
            connected=self.is_connected(),
            healthy=self.healthy,
            created_at=self.created_at,
            last_health_check=self.last_health_check,
        )

    def health_status(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "healthy": self.is_healthy(),
            "connected": self.is_connected(),
            "last_health_check": self.last_health_check.isoformat(),
            "host": self.config.host,
            "port": self.config.port,
        }
