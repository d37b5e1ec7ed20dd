"""Core business logic components.

This module exports the main business logic classes:
- Dispatcher: Consumes chat events and guards the single channel
- CommandRouter: Tokenizes and dispatches chat commands
- PodsCommand: Lists pod status
- DeployCommand: Rolls the latest commit out to the cluster
"""

from deploy_bot.core.deployer import DeployCommand, resolve_short_revision
from deploy_bot.core.dispatcher import Dispatcher, create_dispatcher, resolve_active_channel
from deploy_bot.core.pods import PodsCommand
from deploy_bot.core.router import CommandRouter, parse_invocation, tokenize

__all__ = [
    "CommandRouter",
    "DeployCommand",
    "Dispatcher",
    "PodsCommand",
    "create_dispatcher",
    "parse_invocation",
    "resolve_active_channel",
    "resolve_short_revision",
    "tokenize",
]
