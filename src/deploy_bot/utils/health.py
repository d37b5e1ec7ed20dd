"""Health checks run by ``deploy-bot --health-check``.

Each check probes one external dependency the bot needs before it can
deploy: Slack credentials, an authenticated gh, and a runnable kubectl.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from deploy_bot.utils.safe_subprocess import SafeCliError, SafeGHCli, SafeKubectl

if TYPE_CHECKING:
    from deploy_bot.config.schema import AppConfig

log = structlog.get_logger()


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    """Combined result of all checks."""

    status: HealthStatus
    timestamp: datetime
    checks: list[CheckResult]

    @property
    def healthy(self) -> bool:
        """Return False only if some check is unhealthy."""
        return self.status != HealthStatus.UNHEALTHY

    @property
    def failed(self) -> list[str]:
        """Return the names of checks that were not healthy."""
        return [c.name for c in self.checks if c.status != HealthStatus.HEALTHY]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dict suitable for a JSON log entry."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "failed": self.failed,
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.checks
            ],
        }


def overall_status(checks: list[CheckResult]) -> HealthStatus:
    """Worst status wins."""
    statuses = {c.status for c in checks}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


class HealthChecker:
    """Runs every dependency check concurrently.

    Example:
        report = await HealthChecker(config).run_all_checks()
        sys.exit(0 if report.healthy else 1)
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def checks(self) -> dict[str, Callable[[], Awaitable[CheckResult]]]:
        """Return the checks to run, keyed by name."""
        return {
            "slack_tokens": self._check_slack_tokens,
            "github_auth": self._check_github_auth,
            "kubectl": self._check_kubectl,
        }

    async def run_all_checks(self) -> HealthReport:
        """Run all checks and combine them into a report."""
        started = datetime.now(UTC)
        names = list(self.checks)
        outcomes = await asyncio.gather(
            *(check() for check in self.checks.values()), return_exceptions=True
        )

        results: list[CheckResult] = []
        for name, outcome in zip(names, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                log.error("health_check_crashed", check=name, error=str(outcome))
                outcome = CheckResult(name, HealthStatus.UNHEALTHY, f"check crashed: {outcome}")
            results.append(outcome)

        report = HealthReport(status=overall_status(results), timestamp=started, checks=results)
        log.info("health_check_complete", status=report.status.value, failed=report.failed)
        return report

    async def _check_slack_tokens(self) -> CheckResult:
        # Format only; a live check would need a socket connection
        slack = self._config.slack
        if slack.bot_token.startswith("xoxb-") and slack.app_token.startswith("xapp-"):
            return CheckResult("slack_tokens", HealthStatus.HEALTHY, "Slack tokens configured")
        return CheckResult("slack_tokens", HealthStatus.UNHEALTHY, "Invalid Slack token format")

    async def _check_github_auth(self) -> CheckResult:
        github = self._config.github
        start = time.monotonic()
        try:
            authenticated = await SafeGHCli(gh_path=github.gh_path, token=github.token).check_auth()
        except SafeCliError as e:
            return CheckResult("github_auth", HealthStatus.UNHEALTHY, str(e))
        latency = (time.monotonic() - start) * 1000

        if not authenticated:
            return CheckResult(
                "github_auth", HealthStatus.UNHEALTHY, "gh rejected the token", latency
            )
        return CheckResult(
            "github_auth",
            HealthStatus.HEALTHY,
            "gh authenticated",
            latency,
            {"repository": github.full_name},
        )

    async def _check_kubectl(self) -> CheckResult:
        deployment = self._config.deployment
        start = time.monotonic()
        try:
            kubectl = SafeKubectl(
                kubectl_path=deployment.kubectl_path,
                default_timeout=deployment.command_timeout,
            )
            result = await kubectl.client_version()
        except SafeCliError as e:
            return CheckResult("kubectl", HealthStatus.UNHEALTHY, str(e))
        latency = (time.monotonic() - start) * 1000

        # kubectl runs but is misconfigured; deploys may still work later
        if not result.success:
            return CheckResult(
                "kubectl",
                HealthStatus.DEGRADED,
                f"kubectl exited with {result.return_code}: {result.output.strip()}",
                latency,
            )
        return CheckResult(
            "kubectl",
            HealthStatus.HEALTHY,
            "kubectl available",
            latency,
            {"target": f"{deployment.namespace}/{deployment.deployment}"},
        )
