"""Abstract interface for the chat transport."""

from collections.abc import AsyncIterator
from typing import Protocol

from ..models.event import Channel, ChatEvent


class ChatProvider(Protocol):
    """The chat transport as seen by the dispatcher.

    The provider owns the live connection, including reconnects and
    heartbeats, and never calls into the dispatcher itself. The dispatcher
    pulls events from ``listen()`` and pushes text with ``send_message()``.
    """

    async def connect(self) -> None:
        """Open the live connection. Events start queueing from here on."""
        ...

    async def disconnect(self) -> None:
        """Close the live connection; ``listen()`` ends soon after."""
        ...

    async def authenticate(self) -> str:
        """Return the user id the bot posts as.

        Raises:
            AuthenticationError: If the platform rejects the credentials
        """
        ...

    async def list_channels(self, exclude_archived: bool = True) -> list[Channel]:
        """Return the channels visible to the bot, with member ids filled in
        for those the bot has joined.
        """
        ...

    def listen(self) -> AsyncIterator[ChatEvent]:
        """Yield inbound events one at a time, in delivery order."""
        ...

    async def send_message(self, channel_id: str, text: str) -> str:
        """Post ``text`` to ``channel_id`` and return the new message's id.

        Raises:
            SendError: If the platform refuses the message
        """
        ...
