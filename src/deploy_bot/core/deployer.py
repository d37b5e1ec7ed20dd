"""The ``deploy`` command: roll the latest commit out to Kubernetes.

The sequence runs in a fixed order and stops at the first failure:

1. Announce the deploy
2. Fetch the commit history of the configured repository
3. Resolve the newest commit to a 12-character revision
4. Report how many commits were seen
5. Build ``<image_prefix>:<revision>`` and announce it
6. ``set image`` on the deployment (all containers)
7. Report kubectl's output
8. Wait for the rollout
9. Report kubectl's output and ``finished deployment``

Orchestrator failures are reported to chat as ``ERROR: <output>`` and end
the command normally. There is no retry and no rollback; an operator
watching the channel decides what to do next.
"""

from __future__ import annotations

import argparse
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from deploy_bot.models.command import ProgressSink

if TYPE_CHECKING:
    from deploy_bot.config.schema import DeploymentConfig, GitHubConfig
    from deploy_bot.interfaces.orchestrator import OrchestratorProvider
    from deploy_bot.interfaces.vcs import VCSProvider
    from deploy_bot.models.commit import Commit

log = structlog.get_logger()

SHORT_SHA_LENGTH = 12


class DeploymentError(Exception):
    """Base exception for deployment errors."""


class NoRevisionError(DeploymentError):
    """No commit in the history carried a sha."""


def resolve_short_revision(commits: Iterable[Commit]) -> str | None:
    """Return the first 12 characters of the first non-empty sha.

    Commits are scanned in the order given. The GitHub API lists newest
    first, so the result is the latest revision; the list is not re-sorted.
    """
    for commit in commits:
        if commit.sha:
            return commit.sha[:SHORT_SHA_LENGTH]
    return None


def build_image_reference(image_prefix: str, revision: str) -> str:
    """Return ``<image_prefix>:<revision>``."""
    return f"{image_prefix}:{revision}"


class DeployCommand:
    """Deploys the newest commit of the configured repository."""

    name = "deploy"
    help = "deploy the latest commit"

    def __init__(
        self,
        vcs: VCSProvider,
        orchestrator: OrchestratorProvider,
        github: GitHubConfig,
        target: DeploymentConfig,
    ) -> None:
        self._vcs = vcs
        self._orchestrator = orchestrator
        self._github = github
        self._target = target

    def configure(self, parser: argparse.ArgumentParser) -> None:
        """``deploy`` takes no flags."""

    async def execute(self, sink: ProgressSink, args: argparse.Namespace) -> None:
        """Run the deployment sequence.

        Raises:
            NoRevisionError: If no commit has a sha; nothing is deployed.
            CommitListError: If the commit history cannot be fetched.
        """
        await sink("about to deploy")

        commits = await self._vcs.list_commits(self._github.org, self._github.repo)

        revision = resolve_short_revision(commits)
        if revision is None:
            raise NoRevisionError("no sha found")

        await sink(f"{len(commits)} commits")

        image = build_image_reference(self._target.image_prefix, revision)
        await sink("deploying image " + image)
        log.info(
            "deployment_started",
            image=image,
            namespace=self._target.namespace,
            deployment=self._target.deployment,
        )

        result = await self._orchestrator.set_image(
            self._target.namespace, self._target.deployment, image
        )
        if not result.success:
            log.warning("set_image_failed", image=image, output=result.output)
            await sink("ERROR: " + result.output)
            return
        await sink(result.output)

        result = await self._orchestrator.wait_for_rollout(
            self._target.namespace, self._target.deployment
        )
        if not result.success:
            log.warning("rollout_failed", image=image, output=result.output)
            await sink("ERROR: " + result.output)
            return
        await sink(result.output)

        await sink("finished deployment")
        log.info("deployment_finished", image=image)
