"""Safe subprocess wrappers for the gh and kubectl CLIs.

Both wrappers:
- Never use shell=True
- Validate every argument that comes from chat or configuration
- Run the blocking call in a worker thread so the event loop keeps the
  chat connection alive while a command runs
- Optionally enforce a timeout

The gh wrapper raises on failure; the kubectl wrapper returns failed
results so callers can report kubectl's own output verbatim.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any

import structlog

from deploy_bot.utils.security import ensure_image_reference, ensure_k8s_name, ensure_repo_name

log = structlog.get_logger()

GITHUB_ACCEPT_HEADER = "Accept: application/vnd.github+json"


class SafeCliError(Exception):
    """Base exception for CLI wrapper errors."""


class CliNotFoundError(SafeCliError):
    """Raised when the CLI binary cannot be located."""


class CommandTimeoutError(SafeCliError):
    """Raised when a command times out."""


class GHCliError(SafeCliError):
    """Raised when a gh command fails."""


class AuthenticationError(GHCliError):
    """Raised when gh authentication fails."""


class RateLimitError(GHCliError):
    """Raised when the GitHub rate limit is exceeded."""


class NotFoundError(GHCliError):
    """Raised when a repository or resource is not found."""


@dataclass
class CommandResult:
    """Result of a CLI command execution."""

    stdout: str
    stderr: str
    return_code: int
    command: list[str]

    @property
    def success(self) -> bool:
        """Return True if the command succeeded."""
        return self.return_code == 0

    @property
    def output(self) -> str:
        """Return stdout and stderr as one block of text."""
        return self.stdout + self.stderr

    def json(self) -> Any:
        """Parse stdout as JSON.

        Raises:
            ValueError: If stdout is not valid JSON.
        """
        return json.loads(self.stdout)


class SafeCli:
    """Base wrapper around a single CLI binary."""

    BINARY = ""

    def __init__(
        self,
        binary_path: str | None = None,
        default_timeout: int | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """Initialize the wrapper.

        Args:
            binary_path: Path to the binary. If None, looks it up on PATH.
            default_timeout: Timeout in seconds, or None to wait indefinitely.
            env: Extra environment variables for every invocation.

        Raises:
            CliNotFoundError: If the binary is not found.
        """
        resolved_path = binary_path or shutil.which(self.BINARY)
        if not resolved_path:
            raise CliNotFoundError(f"{self.BINARY} CLI not found in PATH")

        self._path: str = resolved_path
        self._default_timeout = default_timeout
        self._env = env

    def _build_env(self) -> dict[str, str] | None:
        if not self._env:
            return None
        return {**os.environ, **self._env}

    async def _run_command(
        self,
        args: list[str],
        timeout: int | None = None,
        merge_stderr: bool = False,
    ) -> CommandResult:
        """Run a command safely in a worker thread.

        Args:
            args: Command arguments (without the binary).
            timeout: Timeout in seconds (uses default if None).
            merge_stderr: Interleave stderr into stdout, like a terminal would.

        Returns:
            CommandResult with output and return code.

        Raises:
            CommandTimeoutError: If the command times out.
        """
        cmd = [self._path, *args]
        effective_timeout = timeout if timeout is not None else self._default_timeout

        log.debug("executing_command", command=cmd, timeout=effective_timeout)

        def run_sync() -> subprocess.CompletedProcess[str]:
            return subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                text=True,
                timeout=effective_timeout,
                env=self._build_env(),
                shell=False,  # CRITICAL: Never use shell=True
            )

        try:
            proc = await asyncio.wait_for(
                asyncio.to_thread(run_sync),
                timeout=effective_timeout + 5 if effective_timeout is not None else None,
            )
        except (subprocess.TimeoutExpired, TimeoutError) as e:
            log.error("command_timeout", command=cmd, timeout=effective_timeout)
            raise CommandTimeoutError(
                f"Command timed out after {effective_timeout}s: {' '.join(cmd)}"
            ) from e

        return CommandResult(
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            return_code=proc.returncode,
            command=cmd,
        )


class SafeGHCli(SafeCli):
    """Safe wrapper for GitHub CLI (gh) operations.

    Example:
        gh = SafeGHCli(token="ghp_...")
        result = await gh.list_commits("owner/repo")
        commits = result.json()
    """

    BINARY = "gh"
    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        gh_path: str | None = None,
        token: str | None = None,
        default_timeout: int | None = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(
            binary_path=gh_path,
            default_timeout=default_timeout,
            env={"GH_TOKEN": token} if token else None,
        )

    def _parse_error(self, result: CommandResult) -> GHCliError:
        """Map a failed gh result to a specific error type."""
        combined = result.output.lower()
        detail = result.stderr or result.stdout

        if "authentication" in combined or "bad credentials" in combined:
            return AuthenticationError(f"Authentication failed: {detail}")
        if "rate limit" in combined:
            return RateLimitError(f"Rate limit exceeded: {detail}")
        if "not found" in combined or "could not resolve" in combined:
            return NotFoundError(f"Resource not found: {detail}")
        return GHCliError(f"Command failed: {detail}")

    async def _run_checked(self, args: list[str]) -> CommandResult:
        result = await self._run_command(args)
        if not result.success:
            raise self._parse_error(result)
        return result

    async def check_auth(self) -> bool:
        """Return True if gh is authenticated."""
        try:
            result = await self._run_command(["auth", "status"])
        except SafeCliError:
            return False
        return result.success

    async def list_commits(self, repo: str) -> CommandResult:
        """List the commits of a repository's default branch.

        The GitHub API returns commits newest first; no sorting is applied.

        Args:
            repo: Repository in owner/repo format.

        Returns:
            CommandResult with a JSON array on stdout.

        Raises:
            ValidationError: If repo name is invalid.
            GHCliError: If the command fails.
        """
        path = f"repos/{ensure_repo_name(repo)}/commits"
        return await self._run_checked(["api", "-H", GITHUB_ACCEPT_HEADER, path])


class SafeKubectl(SafeCli):
    """Safe wrapper for kubectl.

    Every command merges stderr into stdout so that the caller gets the same
    text an operator would see in a terminal.
    """

    BINARY = "kubectl"

    def __init__(
        self,
        kubectl_path: str | None = None,
        default_timeout: int | None = None,
    ) -> None:
        super().__init__(binary_path=kubectl_path, default_timeout=default_timeout)

    def _target(self, namespace: str, deployment: str, *verb: str) -> list[str]:
        """Return ``-n <namespace> <verb...> deployments/<deployment>``, validated."""
        ensure_k8s_name("namespace", namespace)
        ensure_k8s_name("deployment", deployment)
        return ["-n", namespace, *verb, f"deployments/{deployment}"]

    async def get_pods(self, namespace: str | None = None) -> CommandResult:
        """Run ``kubectl get pods``, optionally scoped to a namespace."""
        args = ["get", "pods"]
        if namespace:
            args.extend(["-n", ensure_k8s_name("namespace", namespace)])
        return await self._run_command(args, merge_stderr=True)

    async def set_image(self, namespace: str, deployment: str, image: str) -> CommandResult:
        """Point every container of a deployment's pod template at ``image``."""
        args = [
            *self._target(namespace, deployment, "set", "image"),
            f"*={ensure_image_reference(image)}",
        ]
        return await self._run_command(args, merge_stderr=True)

    async def rollout_status(self, namespace: str, deployment: str) -> CommandResult:
        """Block until the deployment's rollout completes or fails."""
        args = self._target(namespace, deployment, "rollout", "status")
        return await self._run_command(args, merge_stderr=True)

    async def client_version(self) -> CommandResult:
        """Run ``kubectl version --client``."""
        return await self._run_command(["version", "--client"], merge_stderr=True)
