"""Local and account checks that must pass before the first remote write."""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Any

from airbrx_deploy.core.config_loader import ConfigurationError, PreconditionError
from airbrx_deploy.models.config import DeploymentConfig
from airbrx_deploy.models.tokens import AdminToken

logger = logging.getLogger(__name__)

REQUIRED_TOOLS: tuple[str, ...] = ("git", "node", "npm")


def token_path(prefix: str, directory: Path) -> Path:
    return directory / f"{prefix}-god-pat.json"


def check_tools(tools: tuple[str, ...] = REQUIRED_TOOLS) -> dict[str, str]:
    """Resolve every tool on PATH; raises PreconditionError naming the missing ones."""
    found = {name: shutil.which(name) for name in tools}
    missing = [name for name, path in found.items() if path is None]
    if missing:
        raise PreconditionError(f"Required tools not found on PATH: {', '.join(missing)}")
    return {name: path for name, path in found.items() if path is not None}


def check_node_version(minimum: int, runner: Any = subprocess.run) -> int:
    try:
        result = runner(["node", "-v"], capture_output=True, text=True, check=True, timeout=10)
    except (subprocess.SubprocessError, OSError) as exc:
        raise PreconditionError(f"Could not determine Node.js version: {exc}") from exc
    match = re.match(r"v?(\d+)", result.stdout.strip())
    if match is None:
        raise PreconditionError(f"Unrecognized Node.js version: {result.stdout.strip()!r}")
    major = int(match.group(1))
    if major < minimum:
        raise PreconditionError(f"Node.js {minimum}+ required, found {result.stdout.strip()}")
    return major


def load_admin_token(config: DeploymentConfig, directory: Path) -> AdminToken:
    """Read the persisted token record and check it matches the configuration."""
    path = token_path(config.prefix, directory)
    if not path.is_file():
        raise ConfigurationError(f"Admin token file not found: {path}")
    try:
        token = AdminToken.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except ValueError as exc:
        raise ConfigurationError(f"{path.name} is not a valid token record: {exc}") from exc
    if token.token != config.god_pat:
        raise ConfigurationError(
            f"{path.name} does not match GOD_PAT in the configuration document"
        )
    return token


def resolve_account(clients: Any) -> str:
    """Account id of the ambient credentials."""
    account = clients.account.get_account_id()
    logger.info("Deploying into account %s", account)
    return account
