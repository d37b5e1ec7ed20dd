"""Command tokenizing and dispatch.

A chat line such as ``!pods --namespace "kube system"`` is split with shell
word rules and resolved against a fixed table of commands. Everything the
argument parser would normally print to stdout/stderr (usage, help, parse
errors) is written to a per-invocation buffer instead, and the parser never
exits the process.
"""

from __future__ import annotations

import argparse
import io
import shlex
from collections.abc import Sequence
from typing import IO, NoReturn, Protocol

import structlog

from deploy_bot.models.command import CommandInvocation, DispatchResult, ProgressSink

log = structlog.get_logger()

COMMAND_MARKER = "!"
PROG_NAME = "deploy-bot"


class Command(Protocol):
    """A chat command registered with the router."""

    name: str
    help: str

    def configure(self, parser: argparse.ArgumentParser) -> None:
        """Declare the command's flags on its subparser."""
        ...

    async def execute(self, sink: ProgressSink, args: argparse.Namespace) -> None:
        """Run the command, reporting progress through ``sink``."""
        ...


class ParserExit(Exception):
    """Raised instead of ``sys.exit`` when the parser is done."""

    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


class CapturingArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that writes to a buffer and raises instead of exiting."""

    def __init__(self, *args: object, output: IO[str] | None = None, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self.output: IO[str] = output if output is not None else io.StringIO()

    def print_usage(self, file: IO[str] | None = None) -> None:
        self.output.write(self.format_usage())

    def print_help(self, file: IO[str] | None = None) -> None:
        self.output.write(self.format_help())

    def exit(self, status: int = 0, message: str | None = None) -> NoReturn:
        if message:
            self.output.write(message)
        raise ParserExit(status)

    def error(self, message: str) -> NoReturn:
        self.print_usage()
        self.exit(2, f"{self.prog}: error: {message}\n")


def tokenize(text: str, marker: str = COMMAND_MARKER) -> list[str]:
    """Strip the command marker and split the rest into shell words.

    Raises:
        ValueError: If the text lacks the marker or has unbalanced quotes.
    """
    if not text.startswith(marker):
        raise ValueError(f"not a command: missing {marker!r} prefix")
    return shlex.split(text[len(marker) :])


def parse_invocation(text: str, channel_id: str, marker: str = COMMAND_MARKER) -> CommandInvocation:
    """Tokenize a chat message into a CommandInvocation.

    Example:
        parse_invocation('!pods --namespace "kube system"', "C123")
        # CommandInvocation(name="pods", args=("--namespace", "kube system"), channel_id="C123")
    """
    tokens = tokenize(text, marker)
    if not tokens:
        return CommandInvocation(name="", args=(), channel_id=channel_id)
    return CommandInvocation(name=tokens[0], args=tuple(tokens[1:]), channel_id=channel_id)


class CommandRouter:
    """Resolves a token list against the command table and runs the handler.

    A router is built per invocation: it is bound to the sink of the
    channel the command came from and to a fresh output buffer.

    Example:
        buffer = io.StringIO()
        router = CommandRouter([PodsCommand(k8s)], sink, buffer)
        await router.dispatch(["pods", "--namespace", "default"])
        if buffer.getvalue():
            ...
    """

    def __init__(
        self,
        commands: Sequence[Command],
        sink: ProgressSink,
        output: IO[str] | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            commands: Command table, keyed by each command's ``name``
            sink: Progress sink passed to the handler
            output: Buffer for usage, help and parse errors
        """
        self._sink = sink
        self.output: IO[str] = output if output is not None else io.StringIO()
        self._commands = {command.name: command for command in commands}
        self._parser = self._build_parser()

    def _build_parser(self) -> CapturingArgumentParser:
        parser = CapturingArgumentParser(
            prog=PROG_NAME,
            description="Chat commands, prefixed with the command marker.",
            allow_abbrev=False,
            output=self.output,
        )
        subparsers = parser.add_subparsers(dest="command", metavar="<command>", required=True)
        for command in self._commands.values():
            subparser = subparsers.add_parser(
                command.name, help=command.help, allow_abbrev=False, output=self.output
            )
            command.configure(subparser)
        return parser

    @property
    def command_names(self) -> list[str]:
        """Return the registered command names."""
        return list(self._commands)

    async def dispatch(self, tokens: Sequence[str]) -> DispatchResult:
        """Parse ``tokens`` and invoke the matching handler.

        Unknown commands and bad flags only produce text in the output
        buffer; stray positional arguments are ignored. Handler exceptions
        are logged and swallowed: user-facing feedback is the handler's job.

        Args:
            tokens: ``[name, *args]`` as produced by ``tokenize``

        Returns:
            DispatchResult describing what happened
        """
        if not tokens or tokens[0] == "help":
            self._parser.print_help()
            return DispatchResult.USAGE

        try:
            args, extras = self._parser.parse_known_args(list(tokens))
            unknown_flags = [token for token in extras if token.startswith("-")]
            if unknown_flags:
                self._parser.error(f"unrecognized arguments: {' '.join(unknown_flags)}")
        except ParserExit as e:
            log.info("command_usage", tokens=list(tokens), status=e.status)
            return DispatchResult.USAGE

        command = self._commands[args.command]
        if extras:
            log.info("extra_arguments_ignored", command=command.name, extras=extras)
        log.info("command_dispatched", command=command.name)

        try:
            await command.execute(self._sink, args)
        except Exception as e:
            log.exception("command_failed", command=command.name, error=str(e))
            return DispatchResult.FAILED

        log.info("command_completed", command=command.name)
        return DispatchResult.HANDLED
