"""Destination string parsing.

Callers address destinations as ``/queue/orders``, ``queue/orders``,
``/topic/events``, ``topic/events`` or a bare ``orders`` (a queue).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .enum import DestinationType

__all__ = (
    "Destination",
    "clean_name",
    "parse",
)

PREFIXES: Final[tuple[tuple[str, DestinationType], ...]] = (
    ("/queue/", DestinationType.QUEUE),
    ("/topic/", DestinationType.TOPIC),
    ("queue/", DestinationType.QUEUE),
    ("topic/", DestinationType.TOPIC),
)


@dataclass(frozen=True, slots=True)
class Destination:
    type: DestinationType
    name: str

    def __str__(self) -> str:
        return f"/{self.type}/{self.name}"


def parse(destination: str) -> Destination:
    """Split a destination string into its type and bare name.

    Example:
        >>> parse("/queue/orders.priority")
        Destination(type=<DestinationType.QUEUE: 'queue'>, name='orders.priority')
    """

    for prefix, kind in PREFIXES:
        if destination.startswith(prefix):
            return Destination(kind, destination[len(prefix) :])

    return Destination(DestinationType.QUEUE, destination)


def clean_name(destination: str) -> str:
    """Drop leading queue/topic prefixes, however many are stacked.

    Prefixes inside the name stay, so `events.topic/archive` is kept as is.
    """

    name = destination
    while True:
        stripped = name
        for prefix, _ in PREFIXES:
            stripped = stripped.removeprefix(prefix)
        if stripped == name:
            return name
        name = stripped
