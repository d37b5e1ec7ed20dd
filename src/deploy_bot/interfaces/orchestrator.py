"""Abstract interface for container orchestrator integrations."""

from typing import Protocol

from ..utils.safe_subprocess import CommandResult


class OrchestratorProvider(Protocol):
    """Abstract interface for the orchestrator control plane.

    Every operation returns the combined output of the underlying call and a
    success flag (``CommandResult.success``). Failures are returned, not
    raised, so callers can show the orchestrator's own error text.
    """

    async def list_workloads(self, namespace: str | None = None) -> CommandResult:
        """List pod status, optionally scoped to one namespace."""
        ...

    async def set_image(self, namespace: str, deployment: str, image: str) -> CommandResult:
        """Set ``image`` on every container of the deployment's pod template."""
        ...

    async def wait_for_rollout(self, namespace: str, deployment: str) -> CommandResult:
        """Block until the deployment's rollout finishes or fails."""
        ...
