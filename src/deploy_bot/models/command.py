"""Data models for chat command invocations."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

# Sends one chat message per call, to the channel the command came from.
ProgressSink = Callable[[str], Awaitable[None]]


@dataclass(frozen=True)
class CommandInvocation:
    """A tokenized command, before dispatch."""

    name: str
    args: tuple[str, ...]
    channel_id: str

    @property
    def tokens(self) -> list[str]:
        """Return the full token list, command name first.

        The bare marker has no command name and yields an empty list.
        """
        if not self.name:
            return []
        return [self.name, *self.args]


class DispatchResult(Enum):
    """Outcome of dispatching one command."""

    HANDLED = "handled"  # handler ran to completion
    USAGE = "usage"  # help, unknown command or bad flags; text is in the buffer
    FAILED = "failed"  # handler raised; logged and swallowed
