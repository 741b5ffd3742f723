"""Realtime transport abstraction.

A transport owns the physical connection to the hub channel. Its methods are
fire-and-forget and must be called from the event loop thread; outcomes are
reported back through the listeners as TransportEvents and ChannelMessages.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol


class TransportEvent(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    SUSPENDED = "suspended"
    FAILED = "failed"
    AUTH_FAILED = "auth_failed"


@dataclass(frozen=True)
class ChannelMessage:
    """Raw message received on a channel, before protocol validation."""
    name: str
    id: Optional[str]
    data: Any


EventListener = Callable[[TransportEvent], None]
MessageListener = Callable[[ChannelMessage], None]


class Transport(Protocol):
    def set_listeners(self, on_event: EventListener, on_message: MessageListener) -> None:
        ...

    def open(self) -> None:
        ...

    def close(self) -> None:
        ...

    def subscribe(self, channel: str) -> None:
        ...

    def unsubscribe(self, channel: str) -> None:
        ...

    def send(self, channel: str, name: str, data: dict) -> None:
        ...

    async def aclose(self) -> None:
        ...
