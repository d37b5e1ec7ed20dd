"""Data models for inbound chat events."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ConnectionEstablished:
    """The chat transport finished (re)connecting."""

    raw_event: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatMessage:
    """An incoming text message from a chat platform."""

    channel_id: str
    message_id: str
    thread_id: str | None  # None if not in a thread
    user_id: str
    text: str
    timestamp: datetime

    # Platform-specific metadata
    raw_event: dict[str, Any]  # Original event payload


@dataclass(frozen=True)
class OtherEvent:
    """Any event the dispatcher has no behaviour for."""

    kind: str
    raw_event: dict[str, Any] = field(default_factory=dict)


ChatEvent = ConnectionEstablished | ChatMessage | OtherEvent


@dataclass(frozen=True)
class Channel:
    """A chat channel and the user ids that belong to it."""

    id: str
    name: str
    members: frozenset[str]
