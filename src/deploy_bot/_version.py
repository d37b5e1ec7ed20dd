"""Package version, from installed metadata or the source tree's pyproject.toml."""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION = "deploy-bot"
PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def resolve_version() -> str:
    """Return the version of the installed distribution.

    Running from a source checkout without installing falls back to the
    ``[project]`` table of pyproject.toml.

    Raises:
        RuntimeError: If neither source is available.
    """
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        pass

    if not PYPROJECT.is_file():
        raise RuntimeError(f"{DISTRIBUTION} is not installed and {PYPROJECT} is missing")
    with PYPROJECT.open("rb") as f:
        return str(tomllib.load(f)["project"]["version"])


__version__ = resolve_version()

__all__ = ["__version__"]
