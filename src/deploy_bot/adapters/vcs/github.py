"""GitHub VCS adapter using the gh CLI.

This module implements the VCSProvider protocol for GitHub using the
SafeGHCli wrapper. The configured token is handed to gh through its
environment, never on the command line.
"""

from __future__ import annotations

from typing import Any

import structlog

from ...config.schema import GitHubConfig
from ...models.commit import Commit
from ...utils.safe_subprocess import SafeCliError, SafeGHCli
from ...utils.security import SecurityError

log = structlog.get_logger()


class GitHubAdapterError(Exception):
    """Base exception for GitHub adapter errors."""


class CommitListError(GitHubAdapterError):
    """Raised when the commit history cannot be fetched."""


class GitHubAdapter:
    """GitHub VCS adapter implementing the VCSProvider protocol.

    Example:
        config = GitHubConfig(token="ghp_...", org="owner", repo="repo")
        adapter = GitHubAdapter(config)
        commits = await adapter.list_commits("owner", "repo")
    """

    def __init__(self, config: GitHubConfig) -> None:
        """Initialize the GitHub adapter.

        Args:
            config: GitHub-specific configuration.
        """
        self._config = config
        self._gh = SafeGHCli(gh_path=config.gh_path, token=config.token)

    def _parse_commit_json(self, data: dict[str, Any]) -> Commit:
        """Parse one element of the commits API response.

        Missing or null fields become empty strings, so a commit without a
        sha is still represented and simply skipped during revision lookup.
        """
        commit_data = data.get("commit") or {}
        author_data = commit_data.get("author") or {}

        return Commit(
            sha=data.get("sha") or "",
            message=commit_data.get("message") or "",
            author=author_data.get("name") or "",
            url=data.get("html_url") or "",
        )

    async def list_commits(self, org: str, repo: str) -> list[Commit]:
        """Fetch commits for ``org/repo`` in API order (newest first).

        Raises:
            CommitListError: If gh fails or returns something other than a list.
        """
        full_name = f"{org}/{repo}"

        try:
            result = await self._gh.list_commits(full_name)
            data = result.json()
        except (SafeCliError, SecurityError) as e:
            log.error("list_commits_failed", repo=full_name, error=str(e))
            raise CommitListError(f"Failed to list commits for {full_name}: {e}") from e
        except ValueError as e:
            log.error("list_commits_invalid_json", repo=full_name, error=str(e))
            raise CommitListError(f"Invalid response listing commits for {full_name}") from e

        if not isinstance(data, list):
            raise CommitListError(f"Unexpected response listing commits for {full_name}")

        commits = [self._parse_commit_json(item) for item in data if isinstance(item, dict)]
        log.debug("commits_listed", repo=full_name, count=len(commits))
        return commits
