"""Slack chat adapter using slack-bolt over Socket Mode.

Socket Mode keeps its websocket alive on a background task, reconnecting as
needed. Every frame the bot cares about is converted into a ChatEvent and
put on a single queue, which ``listen()`` drains in arrival order:

- ``hello`` frames (sent on every (re)connect) become ConnectionEstablished
- ``message`` events become ChatMessage, except edits and deletions
- any other Events API payload becomes OtherEvent
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.app.async_app import AsyncApp
from slack_sdk.errors import SlackApiError

from ...config.schema import SlackConfig
from ...models.event import Channel, ChatEvent, ChatMessage, ConnectionEstablished, OtherEvent

if TYPE_CHECKING:
    from slack_sdk.socket_mode.async_client import AsyncBaseSocketModeClient
    from slack_sdk.web.async_slack_response import AsyncSlackResponse

log = structlog.get_logger()

# Subtypes that change existing messages instead of posting new text
IGNORED_SUBTYPES = frozenset({"message_changed", "message_deleted", "message_replied"})

PAGE_SIZE = 200
POLL_INTERVAL = 1.0


class SlackAdapterError(Exception):
    """Base exception for Slack adapter errors."""


class ConnectionError(SlackAdapterError):
    """Raised when the Socket Mode connection cannot be opened."""


class AuthenticationError(SlackAdapterError):
    """Raised when the bot token is rejected."""


class SendError(SlackAdapterError):
    """Raised when sending a message fails."""


def event_from_payload(payload: dict[str, Any]) -> ChatEvent:
    """Convert a ``message`` event payload into a ChatEvent."""
    subtype = payload.get("subtype")
    if subtype in IGNORED_SUBTYPES:
        return OtherEvent(kind=f"message.{subtype}", raw_event=payload)

    ts = payload.get("ts", "")
    try:
        timestamp = datetime.fromtimestamp(float(ts))
    except (TypeError, ValueError):
        timestamp = datetime.now()

    return ChatMessage(
        channel_id=payload.get("channel", ""),
        message_id=ts,
        thread_id=payload.get("thread_ts"),
        user_id=payload.get("user", ""),
        text=payload.get("text", ""),
        timestamp=timestamp,
        raw_event=payload,
    )


async def paginate(
    call: Callable[..., Awaitable[AsyncSlackResponse]],
    key: str,
    **kwargs: Any,
) -> AsyncIterator[Any]:
    """Yield every item under ``key`` across all pages of a cursor-paginated call."""
    cursor: str | None = None
    while True:
        page = await call(limit=PAGE_SIZE, cursor=cursor, **kwargs)
        for item in page.get(key, []):
            yield item
        cursor = (page.get("response_metadata") or {}).get("next_cursor") or None
        if cursor is None:
            return


class SlackAdapter:
    """Slack implementation of the ChatProvider protocol.

    Example:
        adapter = SlackAdapter(config.slack)
        await adapter.connect()
        bot_id = await adapter.authenticate()
        async for event in adapter.listen():
            ...
    """

    def __init__(self, config: SlackConfig) -> None:
        self._config = config
        self._app = AsyncApp(token=config.bot_token)
        self._client = self._app.client
        self._handler: AsyncSocketModeHandler | None = None
        self._events: asyncio.Queue[ChatEvent] = asyncio.Queue()
        self._closed = asyncio.Event()
        self._connected = False

        self._app.event("message")(self._on_message)
        # Registered after "message" so that one takes precedence
        self._app.event(re.compile(".*"))(self._on_other_event)

    async def _on_message(self, event: dict[str, Any]) -> None:
        chat_event = event_from_payload(event)
        await self._events.put(chat_event)
        log.debug("slack_event_queued", kind=type(chat_event).__name__)

    async def _on_other_event(self, event: dict[str, Any]) -> None:
        await self._events.put(OtherEvent(kind=event.get("type", "unknown"), raw_event=event))

    async def _on_socket_message(
        self,
        client: AsyncBaseSocketModeClient,
        message: dict[str, Any],
        raw_message: str | None,
    ) -> None:
        """Socket Mode listener: a ``hello`` frame means the session is (re)established."""
        if message.get("type") == "hello":
            await self._events.put(ConnectionEstablished(raw_event=message))

    async def connect(self) -> None:
        """Open the Socket Mode session.

        Raises:
            ConnectionError: If the session cannot be opened.
        """
        if self._connected:
            return

        handler = AsyncSocketModeHandler(app=self._app, app_token=self._config.app_token)
        handler.client.message_listeners.append(self._on_socket_message)
        try:
            await handler.connect_async()  # type: ignore[no-untyped-call]
        except Exception as e:
            log.error("slack_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Slack: {e}") from e

        self._handler = handler
        self._connected = True
        self._closed.clear()
        log.info("slack_connected")

    async def disconnect(self) -> None:
        """Close the Socket Mode session and end ``listen()``."""
        if not self._connected:
            return

        self._closed.set()
        self._connected = False
        if self._handler is not None:
            try:
                await self._handler.close_async()  # type: ignore[no-untyped-call]
            except Exception as e:
                log.warning("slack_close_failed", error=str(e))
        log.info("slack_disconnected")

    async def authenticate(self) -> str:
        """Return the bot's own user id from ``auth.test``.

        Raises:
            AuthenticationError: If Slack rejects the bot token.
        """
        try:
            response = await self._client.auth_test()
        except SlackApiError as e:
            log.error("slack_auth_failed", error=str(e))
            raise AuthenticationError(f"Slack authentication failed: {e}") from e

        user_id: str = response.get("user_id", "")
        log.info("slack_authenticated", user_id=user_id, team=response.get("team"))
        return user_id

    async def list_channels(self, exclude_archived: bool = True) -> list[Channel]:
        """List public channels. Private channels the bot sits in are not counted.

        Slack only reveals the members of channels the bot has joined, so
        every other channel is returned with an empty member set.

        Raises:
            SlackAdapterError: If a listing call fails.
        """
        channels: list[Channel] = []
        try:
            async for info in paginate(
                self._client.conversations_list,
                "channels",
                types="public_channel",
                exclude_archived=exclude_archived,
            ):
                members: frozenset[str] = frozenset()
                if info.get("is_member"):
                    members = frozenset(
                        [
                            m
                            async for m in paginate(
                                self._client.conversations_members, "members", channel=info["id"]
                            )
                        ]
                    )
                channels.append(Channel(id=info["id"], name=info.get("name", ""), members=members))
        except SlackApiError as e:
            log.error("list_channels_failed", error=str(e))
            raise SlackAdapterError(f"Failed to list channels: {e}") from e

        log.debug("channels_listed", count=len(channels))
        return channels

    async def listen(self) -> AsyncIterator[ChatEvent]:
        """Yield queued events in arrival order until disconnected.

        Raises:
            SlackAdapterError: If called before ``connect()``.
        """
        if not self._connected:
            raise SlackAdapterError("Not connected. Call connect() first.")

        while not self._closed.is_set():
            try:
                event = await asyncio.wait_for(self._events.get(), timeout=POLL_INTERVAL)
            except TimeoutError:
                continue
            yield event

    async def send_message(self, channel_id: str, text: str) -> str:
        """Post ``text`` to a channel and return the message ts.

        Raises:
            SendError: If Slack refuses the message.
        """
        try:
            response = await self._client.chat_postMessage(channel=channel_id, text=text)
        except SlackApiError as e:
            log.error("send_message_failed", channel_id=channel_id, error=str(e))
            raise SendError(f"Failed to send message: {e}") from e

        ts: str = response.get("ts", "")
        log.debug("message_sent", channel_id=channel_id, ts=ts)
        return ts
