"""Kubernetes orchestrator adapter using kubectl.

Implements the OrchestratorProvider protocol on top of SafeKubectl.
Validation failures and timeouts are turned into failed results carrying
the error text, so every caller reports them the same way it reports
kubectl's own errors.
"""

from __future__ import annotations

from collections.abc import Awaitable

import structlog

from ...config.schema import DeploymentConfig
from ...utils.safe_subprocess import CommandResult, CommandTimeoutError, SafeKubectl
from ...utils.security import ValidationError

log = structlog.get_logger()


class KubectlAdapter:
    """Kubernetes adapter implementing the OrchestratorProvider protocol.

    Example:
        adapter = KubectlAdapter(config.deployment)
        result = await adapter.set_image("prod", "web", "ghcr.io/org/web:abc123")
        if not result.success:
            print(result.output)
    """

    def __init__(self, config: DeploymentConfig) -> None:
        self._config = config
        self._kubectl = SafeKubectl(
            kubectl_path=config.kubectl_path,
            default_timeout=config.command_timeout,
        )

    async def _guarded(self, operation: str, call: Awaitable[CommandResult]) -> CommandResult:
        try:
            result = await call
        except (ValidationError, CommandTimeoutError) as e:
            log.warning("kubectl_rejected", operation=operation, error=str(e))
            return CommandResult(stdout=str(e), stderr="", return_code=-1, command=[])

        log.info(
            "kubectl_finished",
            operation=operation,
            return_code=result.return_code,
        )
        return result

    async def list_workloads(self, namespace: str | None = None) -> CommandResult:
        """List pods, optionally in one namespace."""
        return await self._guarded("get_pods", self._kubectl.get_pods(namespace))

    async def set_image(self, namespace: str, deployment: str, image: str) -> CommandResult:
        """Set ``image`` on all containers of ``deployment``."""
        return await self._guarded(
            "set_image", self._kubectl.set_image(namespace, deployment, image)
        )

    async def wait_for_rollout(self, namespace: str, deployment: str) -> CommandResult:
        """Wait for the rollout of ``deployment`` to finish."""
        return await self._guarded(
            "rollout_status", self._kubectl.rollout_status(namespace, deployment)
        )
