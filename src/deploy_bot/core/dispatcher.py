"""Event loop that bridges the chat feed to the command router.

This module implements the Dispatcher, the bot's single consumer of chat
events. It:
- Guards startup: the bot must belong to exactly one channel
- Consumes events strictly in feed order, one at a time
- Runs each ``!command`` to completion before reading the next event, so
  at most one deployment is ever in flight
- Handles graceful shutdown on signals (SIGTERM, SIGINT)
"""

from __future__ import annotations

import asyncio
import io
import signal
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from deploy_bot.config.schema import AppConfig
from deploy_bot.core.pods import code_block
from deploy_bot.core.router import Command, CommandRouter, parse_invocation
from deploy_bot.models.command import DispatchResult, ProgressSink
from deploy_bot.models.event import Channel, ChatEvent, ChatMessage, ConnectionEstablished
from deploy_bot.utils.logging import bind_context, clear_context

if TYPE_CHECKING:
    from deploy_bot.interfaces.chat import ChatProvider

log = structlog.get_logger()


class DispatcherError(Exception):
    """Base exception for dispatcher errors."""


class StartupError(DispatcherError):
    """Failed to start the dispatcher."""


class ChannelGuardError(DispatcherError):
    """The bot is not a member of exactly one channel."""


def resolve_active_channel(channels: Sequence[Channel], identity: str) -> str:
    """Return the id of the only channel ``identity`` belongs to.

    Raises:
        ChannelGuardError: If the bot is in zero or several channels.
    """
    joined = [channel.id for channel in channels if identity in channel.members]
    if len(joined) != 1:
        log.error("channel_guard_failed", channel_count=len(joined), channels=joined)
        raise ChannelGuardError("must only be in one channel")
    return joined[0]


class Dispatcher:
    """Consumes chat events and dispatches commands, one at a time.

    Example:
        dispatcher = Dispatcher(config, chat, [PodsCommand(k8s), DeployCommand(...)])
        await dispatcher.start()  # Blocks until shutdown signal or feed closure
    """

    def __init__(
        self,
        config: AppConfig,
        chat: ChatProvider,
        commands: Sequence[Command],
    ) -> None:
        """Initialize the Dispatcher.

        Args:
            config: Application configuration
            chat: Chat provider adapter
            commands: Command table handed to every router
        """
        self._config = config
        self._chat = chat
        self._commands = list(commands)
        self._marker = config.bot.command_marker

        # Set once during startup
        self._identity: str | None = None
        self._active_channel: str | None = None

        self._running = False
        self._shutdown_requested = False
        self._signal_tasks: set[asyncio.Task[None]] = set()

        self._events_seen = 0
        self._commands_dispatched = 0
        self._commands_failed = 0

    @property
    def is_running(self) -> bool:
        """Return True if the dispatcher is currently consuming events."""
        return self._running

    @property
    def identity(self) -> str | None:
        """Return the bot's own user id, once authenticated."""
        return self._identity

    @property
    def active_channel(self) -> str | None:
        """Return the channel the bot operates in, once resolved."""
        return self._active_channel

    @property
    def stats(self) -> dict[str, int]:
        """Return processing statistics."""
        return {
            "events_seen": self._events_seen,
            "commands_dispatched": self._commands_dispatched,
            "commands_failed": self._commands_failed,
        }

    async def start(self) -> None:
        """Start the dispatcher and consume events until the feed ends.

        This method:
        1. Connects to the chat provider
        2. Resolves the bot's identity
        3. Resolves the single active channel
        4. Sets up signal handlers
        5. Consumes the event feed

        Raises:
            StartupError: If any startup step fails
        """
        if self._running:
            log.warning("dispatcher_already_running")
            return

        log.info("dispatcher_starting", commands=[c.name for c in self._commands])

        try:
            await self._chat.connect()
            self._identity = await self._chat.authenticate()
            log.info("identity_resolved", user_id=self._identity)

            channels = await self._chat.list_channels(exclude_archived=True)
            self._active_channel = resolve_active_channel(channels, self._identity)
            log.info("active_channel_resolved", channel_id=self._active_channel)
        except Exception as e:
            log.error("dispatcher_startup_failed", error=str(e))
            await self._cleanup()
            raise StartupError(f"Failed to start dispatcher: {e}") from e

        self._setup_signal_handlers()
        self._running = True
        log.info("dispatcher_started")

        try:
            await self.run_events()
        finally:
            self._running = False

    async def stop(self) -> None:
        """Stop consuming events and disconnect."""
        if not self._running:
            log.warning("dispatcher_not_running")
            return

        log.info("dispatcher_stopping")
        self._shutdown_requested = True
        self._running = False
        await self._cleanup()
        log.info("dispatcher_stopped", **self.stats)

    async def run_events(self) -> None:
        """Consume the event feed in order until it closes or the dispatcher stops."""
        async for event in self._chat.listen():
            if self._shutdown_requested:
                log.info("shutdown_signal_received_stopping_listener")
                break

            self._events_seen += 1
            try:
                await self.handle_event(event)
            except Exception as e:
                log.exception("event_handling_error", error=str(e))
            finally:
                clear_context()

    async def handle_event(self, event: ChatEvent) -> None:
        """Handle one inbound event."""
        if isinstance(event, ConnectionEstablished):
            log.info("chat_connection_established")
            if self._active_channel:
                await self._chat.send_message(self._active_channel, self._config.bot.greeting)
        elif isinstance(event, ChatMessage):
            await self._handle_message(event)
        else:
            log.debug("event_ignored", kind=getattr(event, "kind", type(event).__name__))

    async def _handle_message(self, message: ChatMessage) -> None:
        if message.user_id == self._identity:
            return
        if not message.text.startswith(self._marker):
            return

        bind_context(channel_id=message.channel_id, message_id=message.message_id)
        sink = self._make_sink(message.channel_id)

        try:
            invocation = parse_invocation(message.text, message.channel_id, self._marker)
        except ValueError as e:
            log.info("tokenize_failed", error=str(e))
            await sink("error: " + str(e))
            return

        log.info("command_received", command=invocation.name, user_id=message.user_id)

        buffer = io.StringIO()
        router = CommandRouter(self._commands, sink, buffer)
        result = await router.dispatch(invocation.tokens)

        self._commands_dispatched += 1
        if result == DispatchResult.FAILED:
            self._commands_failed += 1

        captured = buffer.getvalue()
        if captured:
            await sink(code_block(captured))

    def _make_sink(self, channel_id: str) -> ProgressSink:
        """Bind a progress sink to ``channel_id``.

        Progress is best effort: a failed send is logged and the command
        carries on with its next step. Empty text is never sent.
        """

        async def sink(text: str) -> None:
            if not text.strip():
                log.debug("progress_empty_skipped", channel_id=channel_id)
                return
            try:
                await self._chat.send_message(channel_id, text)
            except Exception as e:
                log.warning("progress_send_failed", channel_id=channel_id, error=str(e))

        return sink

    async def _cleanup(self) -> None:
        """Clean up resources."""
        try:
            await self._chat.disconnect()
            log.info("chat_provider_disconnected")
        except Exception as e:
            log.warning("chat_disconnect_error", error=str(e))

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._on_signal, sig)
            log.debug("signal_handler_registered", signal=sig.name)

    def _on_signal(self, sig: signal.Signals) -> None:
        task = asyncio.create_task(self._handle_signal(sig), name=f"signal_{sig.name}")
        self._signal_tasks.add(task)
        task.add_done_callback(self._signal_tasks.discard)

    async def _handle_signal(self, sig: signal.Signals) -> None:
        log.info("received_signal", signal=sig.name)
        await self.stop()


def create_dispatcher(config: AppConfig) -> Dispatcher:
    """Factory function to create a Dispatcher with all dependencies.

    Raises:
        CliNotFoundError: If gh or kubectl cannot be found
    """
    # Import adapters here to avoid loading unnecessary dependencies
    from deploy_bot.adapters.chat.slack import SlackAdapter
    from deploy_bot.adapters.orchestrator.kubectl import KubectlAdapter
    from deploy_bot.adapters.vcs.github import GitHubAdapter
    from deploy_bot.core.deployer import DeployCommand
    from deploy_bot.core.pods import PodsCommand

    chat = SlackAdapter(config.slack)
    vcs = GitHubAdapter(config.github)
    orchestrator = KubectlAdapter(config.deployment)

    commands: list[Command] = [
        PodsCommand(orchestrator, report_failures=config.deployment.report_pods_failures),
        DeployCommand(vcs, orchestrator, config.github, config.deployment),
    ]
    return Dispatcher(config, chat, commands)
