"""Source fetch and package build — git, npm and zip are invoked, not reimplemented."""

from __future__ import annotations

import json
import logging
import subprocess
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class SourceBuildError(RuntimeError):
    """Raised when cloning or packaging a component fails."""


def _run(runner: Runner, args: list[str], *, cwd: Path | None = None, secret: str = "") -> None:
    try:
        runner(args, cwd=cwd, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        command = " ".join(args)
        if secret:
            detail = detail.replace(secret, "***")
            command = command.replace(secret, "***")
        raise SourceBuildError(f"{command!r} failed ({exc.returncode}): {detail}") from None
    except OSError as exc:
        raise SourceBuildError(f"Could not run {args[0]!r}: {exc}") from exc


class GitSourceFetcher:
    """Shallow-clones one branch of each repository.

    Parameters
    ----------
    token:
        Personal access token, embedded in the clone URL.
    branch:
        Branch to clone.
    host, org:
        Where the repositories live.
    runner:
        ``subprocess.run`` compatible callable.
    """

    def __init__(
        self,
        token: str,
        branch: str,
        *,
        host: str = "github.com",
        org: str = "airbrx",
        runner: Runner = subprocess.run,
    ) -> None:
        self._token = token
        self._branch = branch
        self._host = host
        self._org = org
        self._runner = runner

    def clone_url(self, repo: str) -> str:
        return f"https://{self._token}@{self._host}/{self._org}/{repo}.git"

    def fetch(self, repo: str, target: Path) -> Path:
        """Clone *repo* into *target*, or move an existing checkout to the branch head."""
        if (target / ".git").is_dir():
            logger.info("Updating %s to %s", target, self._branch)
            _run(
                self._runner,
                ["git", "fetch", "--depth", "1", self.clone_url(repo), self._branch],
                cwd=target,
                secret=self._token,
            )
            _run(self._runner, ["git", "reset", "--hard", "FETCH_HEAD"], cwd=target)
            return target
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Cloning %s/%s (%s)", self._org, repo, self._branch)
        _run(
            self._runner,
            ["git", "clone", "--depth", "1", "--branch", self._branch, self.clone_url(repo), str(target)],
            secret=self._token,
        )
        return target


class NpmPackageBuilder:
    """Installs production dependencies and zips a function package."""

    def __init__(self, runner: Runner = subprocess.run) -> None:
        self._runner = runner

    def build(self, source: Path, archive: Path) -> Path:
        if not source.is_dir():
            raise SourceBuildError(f"Source directory not found: {source}")
        logger.info("Building %s", source.name)
        _run(self._runner, ["npm", "install", "--omit=dev"], cwd=source)
        write_archive(source, archive)
        logger.info("Built %s (%d KiB)", archive.name, archive.stat().st_size // 1024)
        return archive


def write_archive(source: Path, archive: Path) -> Path:
    """Zip *source* into *archive*, skipping git metadata."""
    archive.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(source.rglob("*")):
            relative = path.relative_to(source)
            if any(part.startswith(".git") for part in relative.parts):
                continue
            if path.is_file():
                zf.write(path, relative.as_posix())
    return archive


def configure_frontend(frontend: Path, api_url: str) -> bool:
    """Point the frontend at the admin API; False if it has no ``lib/conf.json``."""
    conf_path = frontend / "lib" / "conf.json"
    if not conf_path.is_file():
        logger.warning("%s not found; skipping API URL configuration", conf_path)
        return False
    conf: dict[str, Any] = json.loads(conf_path.read_text(encoding="utf-8"))
    conf["defaultApiUrl"] = api_url.strip().rstrip("/")
    conf_path.write_text(json.dumps(conf, indent=2) + "\n", encoding="utf-8")
    return True
