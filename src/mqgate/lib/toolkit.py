import os
from collections.abc import Callable
from typing import Any, TypeVar

__all__ = ("get_env",)

T = TypeVar("T")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _cast(value: str, default: Any) -> Any:
    match default:
        case bool():
            return value.strip().lower() in _TRUTHY
        case int():
            return int(value)
        case float():
            return float(value)
        case _:
            return value


def get_env(key: str, default: T) -> Callable[[], T]:
    """Build a default factory reading `key` from the environment.

    The raw string is cast to the type of `default`.
    """

    def factory() -> T:
        value = os.environ.get(key)
        if value is None or value == "":
            return default
        return _cast(value, default)

    return factory
