"""The ``pods`` command: show current pod status."""

from __future__ import annotations

import argparse
from typing import TYPE_CHECKING

import structlog

from deploy_bot.models.command import ProgressSink

if TYPE_CHECKING:
    from deploy_bot.interfaces.orchestrator import OrchestratorProvider

log = structlog.get_logger()


def code_block(text: str) -> str:
    """Wrap text in a chat code fence."""
    return f"```{text}```"


class PodsCommand:
    """Lists pods, optionally scoped with ``--namespace``.

    On failure kubectl's output is only logged, unless
    ``report_failures`` is set, in which case it is sent to chat the same
    way ``deploy`` reports errors.
    """

    name = "pods"
    help = "list pods, optionally in one namespace"

    def __init__(self, orchestrator: OrchestratorProvider, report_failures: bool = False) -> None:
        self._orchestrator = orchestrator
        self._report_failures = report_failures

    def configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--namespace", default="", help="namespace to list pods in")

    async def execute(self, sink: ProgressSink, args: argparse.Namespace) -> None:
        await sink("about to list pods")

        result = await self._orchestrator.list_workloads(args.namespace or None)
        if not result.success:
            log.warning("list_pods_failed", namespace=args.namespace, output=result.output)
            if self._report_failures:
                await sink("ERROR: " + result.output)
            return

        await sink(code_block(result.output))
