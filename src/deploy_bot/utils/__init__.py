"""Shared plumbing for the deploy bot.

- safe_subprocess: gh and kubectl wrappers that never touch a shell
- security: argument validators and secret redaction
- logging: structlog setup
- health: startup health checks
"""

from deploy_bot.utils.health import HealthChecker, HealthReport, HealthStatus
from deploy_bot.utils.logging import bind_context, clear_context, configure_logging
from deploy_bot.utils.safe_subprocess import (
    CommandResult,
    SafeCliError,
    SafeGHCli,
    SafeKubectl,
)
from deploy_bot.utils.security import SecretRedactor, SecurityError, ValidationError

__all__ = [
    "CommandResult",
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    "SafeCliError",
    "SafeGHCli",
    "SafeKubectl",
    "SecretRedactor",
    "SecurityError",
    "ValidationError",
    "bind_context",
    "clear_context",
    "configure_logging",
]
