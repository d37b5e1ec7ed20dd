"""Configuration loading and validation."""

from .loader import load_config, load_config_from_env
from .schema import (
    AppConfig,
    BotConfig,
    DeploymentConfig,
    GitHubConfig,
    LoggingConfig,
    SlackConfig,
)

__all__ = [
    # Loader
    "load_config",
    "load_config_from_env",
    # Root config
    "AppConfig",
    # Section configs
    "BotConfig",
    "DeploymentConfig",
    "GitHubConfig",
    "LoggingConfig",
    "SlackConfig",
]
