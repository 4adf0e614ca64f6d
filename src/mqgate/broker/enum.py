from enum import StrEnum, auto

__all__ = (
    "DestinationType",
    "HealthStatus",
)


class DestinationType(StrEnum):
    """Kind of destination addressed on the broker."""

    QUEUE = auto()
    TOPIC = auto()

    @property
    def mbean_type(self) -> str:
        """Capitalised form used in Jolokia object names."""
        return self.value.capitalize()


class HealthStatus(StrEnum):
    """Broker health classification, derived from resource usage."""

    HEALTHY = auto()
    """Every usage below the warning threshold"""

    WARNING = auto()
    """Some usage above 75%"""

    CRITICAL = auto()
    """Some usage above 90%"""

    UNHEALTHY = auto()
    """Broker info could not be read"""
