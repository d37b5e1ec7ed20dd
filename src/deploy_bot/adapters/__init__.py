"""Concrete implementations of provider interfaces."""

from .chat.slack import SlackAdapter
from .orchestrator.kubectl import KubectlAdapter
from .vcs.github import GitHubAdapter

__all__ = [
    "GitHubAdapter",
    "KubectlAdapter",
    "SlackAdapter",
]
