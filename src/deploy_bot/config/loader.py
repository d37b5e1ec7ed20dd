"""Configuration loading from the process environment or a YAML file."""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .schema import AppConfig

# Environment variable -> (section, field)
REQUIRED_ENV_VARS: dict[str, tuple[str, str]] = {
    "SLACK_TOKEN": ("slack", "bot_token"),
    "SLACK_APP_TOKEN": ("slack", "app_token"),
    "GITHUB_TOKEN": ("github", "token"),
    "GITHUB_ORG": ("github", "org"),
    "GITHUB_REPO": ("github", "repo"),
    "DOCKER_IMAGE_PREFIX": ("deployment", "image_prefix"),
    "K8S_NAMESPACE": ("deployment", "namespace"),
    "K8S_DEPLOYMENT": ("deployment", "deployment"),
}

OPTIONAL_ENV_VARS: dict[str, tuple[str, str]] = {
    "GH_PATH": ("github", "gh_path"),
    "KUBECTL_PATH": ("deployment", "kubectl_path"),
    "KUBECTL_TIMEOUT": ("deployment", "command_timeout"),
    "REPORT_PODS_FAILURES": ("deployment", "report_pods_failures"),
    "COMMAND_MARKER": ("bot", "command_marker"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
}


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config_from_env(environ: Mapping[str, str] | None = None) -> AppConfig:
    """
    Build the configuration from flat environment variables.

    Every variable in REQUIRED_ENV_VARS must be set and non-empty; all
    missing ones are reported together.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated AppConfig instance

    Raises:
        ValueError: If required variables are missing
        ValidationError: If values don't match the schema
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_ENV_VARS if not env.get(name, "").strip()]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    config_dict: dict[str, dict[str, Any]] = {}
    for name, (section, key) in {**REQUIRED_ENV_VARS, **OPTIONAL_ENV_VARS}.items():
        value = env.get(name)
        if value:
            config_dict.setdefault(section, {})[key] = value

    return AppConfig.model_validate(config_dict)


def load_config(path: Path | None = None) -> AppConfig:
    """
    Load configuration from YAML file, or from the environment if no path is given.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if path is None:
        return load_config_from_env()

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    config_dict = yaml.safe_load(substitute_env_vars(raw_yaml))
    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    return AppConfig.model_validate(config_dict)
