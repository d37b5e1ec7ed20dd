"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SlackConfig(BaseModel):
    """Slack-specific configuration."""

    model_config = ConfigDict(frozen=True)

    bot_token: str
    app_token: str

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate Slack bot token format."""
        if not v.startswith("xoxb-"):
            raise ValueError("Bot token must start with xoxb-")
        return v

    @field_validator("app_token")
    @classmethod
    def validate_app_token(cls, v: str) -> str:
        """Validate Slack app token format."""
        if not v.startswith("xapp-"):
            raise ValueError("App token must start with xapp-")
        return v


class GitHubConfig(BaseModel):
    """GitHub-specific configuration."""

    model_config = ConfigDict(frozen=True)

    token: str
    org: str
    repo: str
    gh_path: str | None = None

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Reject empty tokens."""
        if not v.strip():
            raise ValueError("GitHub token must not be empty")
        return v

    @model_validator(mode="after")
    def check_repository(self) -> "GitHubConfig":
        """Validate the org/repo pair as a repository name."""
        from ..utils.security import validate_repo_name

        if not validate_repo_name(self.full_name):
            raise ValueError(f"Invalid repository format: {self.full_name}. Expected: owner/repo")
        return self

    @property
    def full_name(self) -> str:
        """Return the repository as ``org/repo``."""
        return f"{self.org}/{self.repo}"


class DeploymentConfig(BaseModel):
    """The deployment the bot rolls out, and how kubectl is invoked."""

    model_config = ConfigDict(frozen=True)

    image_prefix: str
    namespace: str
    deployment: str
    kubectl_path: str | None = None
    command_timeout: int | None = Field(None, ge=1, description="kubectl timeout in seconds")
    report_pods_failures: bool = False

    @field_validator("image_prefix")
    @classmethod
    def validate_image_prefix(cls, v: str) -> str:
        """Validate the image name prefix (registry and repository, no tag)."""
        from ..utils.security import validate_image_reference

        if not validate_image_reference(v) or ":" in v.rsplit("/", 1)[-1]:
            raise ValueError(f"Invalid image prefix: {v!r}")
        return v

    @field_validator("namespace", "deployment")
    @classmethod
    def validate_k8s_names(cls, v: str) -> str:
        """Validate namespace and deployment names."""
        from ..utils.security import validate_k8s_name

        if not validate_k8s_name(v):
            raise ValueError(f"Invalid Kubernetes name: {v!r}")
        return v


class BotConfig(BaseModel):
    """Chat-facing behaviour."""

    model_config = ConfigDict(frozen=True)

    command_marker: str = Field("!", min_length=1)
    greeting: str = "Hi there"


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/deploy-bot/bot.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class AppConfig(BaseSettings):
    """Root configuration for the deploy bot."""

    slack: SlackConfig
    github: GitHubConfig
    deployment: DeploymentConfig
    bot: BotConfig = BotConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        frozen=True,
    )
