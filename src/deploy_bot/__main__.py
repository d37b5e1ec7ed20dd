"""Command line entry point for the deploy bot.

    deploy-bot                      # configuration from the environment
    deploy-bot -c config.yaml       # configuration from a YAML file
    deploy-bot --dry-run            # validate configuration and exit
    deploy-bot --health-check       # probe Slack tokens, gh and kubectl and exit
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from deploy_bot._version import __version__

if TYPE_CHECKING:
    from deploy_bot.config.schema import AppConfig

log = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="deploy-bot",
        description="Roll the latest commit out to Kubernetes from a Slack channel",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (default: read the environment)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log format until the configuration is loaded (default: console)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration without connecting to Slack",
    )
    mode.add_argument(
        "--health-check",
        action="store_true",
        help="Check tokens and CLI tools, then exit",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def describe_config(config: "AppConfig") -> dict[str, str]:
    """Return the loaded settings with secrets masked, for the dry-run log line."""
    from deploy_bot.utils.security import mask_config_value

    return {
        "slack_bot_token": mask_config_value("bot_token", config.slack.bot_token),
        "github_token": mask_config_value("token", config.github.token),
        "repository": config.github.full_name,
        "image_prefix": config.deployment.image_prefix,
        "target": f"{config.deployment.namespace}/{config.deployment.deployment}",
        "command_marker": config.bot.command_marker,
    }


async def run_bot(
    config_path: Path | None,
    dry_run: bool = False,
    health_check: bool = False,
    debug: bool = False,
) -> int:
    """Load configuration and run the selected mode.

    Returns:
        Process exit code: 0 on a clean shutdown, 1 on any fatal error.
    """
    from deploy_bot.config.loader import load_config
    from deploy_bot.utils.logging import configure_logging

    log.info(
        "deploy_bot_starting",
        version=__version__,
        config_path=str(config_path) if config_path else None,
    )

    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        log.error("configuration_invalid", error=str(e))
        return 1

    file_path = config.logging.file.path if config.logging.file.enabled else None
    configure_logging(
        level="DEBUG" if debug else config.logging.level,
        log_format=config.logging.format,
        file_path=file_path,
    )

    if dry_run:
        log.info("dry_run_config_valid", **describe_config(config))
        return 0

    if health_check:
        from deploy_bot.utils.health import HealthChecker

        report = await HealthChecker(config).run_all_checks()
        log.info("health_report", report=report.to_dict())
        return 0 if report.healthy else 1

    from deploy_bot.core.dispatcher import create_dispatcher

    try:
        dispatcher = create_dispatcher(config)
        await dispatcher.start()
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1

    log.info("deploy_bot_stopped")
    return 0


def main() -> int:
    """Console script entry point."""
    args = parse_args()

    from deploy_bot.utils.logging import configure_logging

    configure_logging(level="DEBUG" if args.debug else "INFO", log_format=args.format)

    try:
        return asyncio.run(run_bot(args.config, args.dry_run, args.health_check, args.debug))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
