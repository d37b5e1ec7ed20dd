"""Input validation and secret redaction.

Every value that ends up in a gh or kubectl argument list is checked by one
of the validators below. Chat users can only influence the ``pods``
namespace; everything else comes from configuration, and is checked anyway.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when a redaction pattern is unusable."""


class ValidationError(SecurityError):
    """Raised when a value is unsafe to pass to a subprocess."""


REPO_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

# RFC 1123 label: namespaces and deployment names
K8S_NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?$")

# [registry[:port]/]path[/path...][:tag]
IMAGE_REFERENCE_PATTERN = re.compile(
    r"^(?:[A-Za-z0-9.-]+(?::[0-9]+)?/)?"
    r"[a-z0-9]+(?:[._-][a-z0-9]+)*(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*"
    r"(?::[A-Za-z0-9_][A-Za-z0-9_.-]{0,127})?$"
)

SENSITIVE_KEY_PARTS = ("token", "key", "secret", "password", "credential")


@dataclass(frozen=True)
class SecretPattern:
    """A named regular expression for one kind of secret."""

    name: str
    regex: re.Pattern[str]


def _pattern(name: str, expression: str) -> SecretPattern:
    return SecretPattern(name=name, regex=re.compile(expression))


DEFAULT_SECRET_PATTERNS: tuple[SecretPattern, ...] = (
    _pattern("Slack bot/user token", r"xox[baprs]-[\w-]+"),
    _pattern("Slack app token", r"xapp-[\w-]+"),
    _pattern("GitHub token", r"gh[pousr]_[A-Za-z0-9]{36,}"),
    _pattern("GitHub fine-grained token", r"github_pat_[A-Za-z0-9_]{22,}"),
    _pattern("Bearer header", r"(?i)bearer\s+[\w.~+/-]{16,}=*"),
    _pattern(
        "Credential assignment",
        r"(?i)(?:token|secret|password|api[_-]?key)\s*[=:]\s*[\"']?[\w-]{16,}",
    ),
    _pattern("URL with credentials", r"[a-z][a-z0-9+.-]*://[^\s:/@]+:[^\s@]+@\S+"),
    _pattern("Private key", r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----"),
    _pattern("JWT", r"eyJ[\w-]*\.eyJ[\w-]*\.[\w-]*"),
)


class SecretRedactor:
    """Replaces tokens, keys and credentials in text with a placeholder.

    Example:
        redactor = SecretRedactor()
        redactor.redact("GH_TOKEN=ghp_...")  # "GH_TOKEN=[REDACTED]"
    """

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        extra_patterns: Iterable[tuple[str, str]] = (),
    ) -> None:
        """Initialize the redactor.

        Args:
            placeholder: Replacement text for each match.
            extra_patterns: Additional ``(name, regex)`` pairs.

        Raises:
            RedactionError: If an extra pattern does not compile.
        """
        self.placeholder = placeholder
        self._patterns = list(DEFAULT_SECRET_PATTERNS)
        for name, expression in extra_patterns:
            try:
                self._patterns.append(_pattern(name, expression))
            except re.error as e:
                raise RedactionError(f"Bad secret pattern {name!r}: {e}") from e

    def redact(self, text: str) -> str:
        """Return ``text`` with every secret replaced by the placeholder."""
        for pattern in self._patterns:
            text = pattern.regex.sub(self.placeholder, text)
        return text

    def has_secrets(self, text: str) -> bool:
        """Return True if any pattern matches ``text``."""
        return any(p.regex.search(text) for p in self._patterns)


def validate_repo_name(repo: str) -> bool:
    """Return True if ``repo`` is a safe ``owner/name`` pair."""
    return bool(REPO_NAME_PATTERN.match(repo))


def validate_k8s_name(name: str) -> bool:
    """Return True if ``name`` is a valid namespace or deployment name.

    A leading hyphen can never match, so the value cannot be read by kubectl
    as a flag.
    """
    return bool(K8S_NAME_PATTERN.match(name))


def validate_image_reference(image: str) -> bool:
    """Return True if ``image`` is a well-formed container image reference."""
    return bool(IMAGE_REFERENCE_PATTERN.match(image))


def ensure_k8s_name(kind: str, value: str) -> str:
    """Return ``value`` if it is a valid Kubernetes name.

    Raises:
        ValidationError: Naming ``kind`` in the message.
    """
    if not validate_k8s_name(value):
        log.warning("invalid_k8s_name_rejected", kind=kind, value=value)
        raise ValidationError(f"Invalid {kind} name: {value}")
    return value


def ensure_image_reference(image: str) -> str:
    """Return ``image`` if it is a valid image reference.

    Raises:
        ValidationError: If it is not.
    """
    if not validate_image_reference(image):
        log.warning("invalid_image_rejected", image=image)
        raise ValidationError(f"Invalid image reference: {image}")
    return image


def ensure_repo_name(repo: str) -> str:
    """Return ``repo`` if it is a valid ``owner/name`` pair.

    Raises:
        ValidationError: If it is not.
    """
    if not validate_repo_name(repo):
        log.warning("invalid_repo_name_rejected", repo=repo)
        raise ValidationError(f"Invalid repository name: {repo}")
    return repo


def mask_config_value(key: str, value: str) -> str:
    """Mask ``value`` for display when ``key`` names a secret.

    Long values keep four characters at each end; short ones are hidden.
    """
    if not any(part in key.lower() for part in SENSITIVE_KEY_PARTS):
        return value
    if len(value) > 8:
        return f"{value[:4]}...{value[-4:]}"
    return "***"
