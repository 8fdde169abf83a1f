"""Discover and load ``<prefix>-config.env`` documents.

Documents are ``KEY="value"`` lines as written by the setup command and
are parsed with python-dotenv. Nothing here talks to AWS: every failure
in this module happens before the first remote call.
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path

from dotenv import dotenv_values
from pydantic import ValidationError

from airbrx_deploy.models.config import REQUIRED_CONFIG_KEYS, DeploymentConfig

logger = logging.getLogger(__name__)

CONFIG_SUFFIX = "-config.env"


class PreconditionError(RuntimeError):
    """Raised when the local environment cannot support a run."""


class ConfigurationError(PreconditionError):
    """Raised when a configuration document is missing, incomplete or invalid."""


def discover_config_files(directory: Path) -> list[Path]:
    """All configuration documents in *directory*, sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(directory.glob(f"*{CONFIG_SUFFIX}"))


def resolve_config_path(path: Path | None, directory: Path) -> Path | list[Path]:
    """Resolve the document to use.

    Returns the path when the choice is unambiguous, or the list of
    candidates when several documents exist and the caller must choose.
    """
    if path is not None:
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")
        return path
    candidates = discover_config_files(directory)
    if not candidates:
        raise ConfigurationError(
            f"No *{CONFIG_SUFFIX} found in {directory}. Run 'airbrx-deploy setup' first."
        )
    if len(candidates) == 1:
        return candidates[0]
    return candidates


def check_permissions(path: Path) -> bool:
    """Warn when the document is readable by group or others."""
    mode = path.stat().st_mode
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        logger.warning(
            "%s is accessible by group/others (mode %o); it contains secrets, chmod 600 it",
            path,
            stat.S_IMODE(mode),
        )
        return False
    return True


def load_config(path: Path) -> DeploymentConfig:
    """Parse and validate a configuration document."""
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    check_permissions(path)

    values = dotenv_values(path)
    missing = [key for key in REQUIRED_CONFIG_KEYS if not values.get(key)]
    if missing:
        raise ConfigurationError(
            f"{path.name} is missing required values: {', '.join(missing)}"
        )
    try:
        config = DeploymentConfig.from_document(values)
    except ValidationError as exc:
        raise ConfigurationError(f"{path.name} is invalid: {exc}") from exc

    logger.info("Loaded configuration for %s (%s)", config.prefix, config.region)
    return config


def config_path_for(prefix: str, directory: Path) -> Path:
    return directory / f"{prefix}{CONFIG_SUFFIX}"
