"""Data models and transfer objects."""

from .command import CommandInvocation, DispatchResult, ProgressSink
from .commit import Commit
from .event import Channel, ChatEvent, ChatMessage, ConnectionEstablished, OtherEvent

__all__ = [
    # Event models
    "Channel",
    "ChatEvent",
    "ChatMessage",
    "ConnectionEstablished",
    "OtherEvent",
    # Command models
    "CommandInvocation",
    "DispatchResult",
    "ProgressSink",
    # Source-control models
    "Commit",
]
