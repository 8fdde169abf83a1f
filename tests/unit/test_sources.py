"""Unit tests for source fetching, packaging and frontend configuration."""

from __future__ import annotations

import json
import subprocess
import zipfile
from unittest.mock import MagicMock

import pytest

from airbrx_deploy.pipeline.sources import (
    GitSourceFetcher,
    NpmPackageBuilder,
    SourceBuildError,
    configure_frontend,
    write_archive,
)


class TestGitSourceFetcher:
    """Clones are shallow, single-branch, and never leak the token."""

    def test_clone_command(self, tmp_path):
        runner = MagicMock()
        fetcher = GitSourceFetcher("ghp_secret", "release", runner=runner)

        target = fetcher.fetch("airbrx-api", tmp_path / "sources" / "airbrx-api")

        args = runner.call_args.args[0]
        assert args[:6] == ["git", "clone", "--depth", "1", "--branch", "release"]
        assert args[6] == "https://ghp_secret@github.com/airbrx/airbrx-api.git"
        assert target == tmp_path / "sources" / "airbrx-api"

    def test_existing_checkout_is_updated(self, tmp_path):
        """A reused work directory is moved to the current head of the branch."""
        runner = MagicMock()
        target = tmp_path / "data-proxy"
        (target / ".git").mkdir(parents=True)

        GitSourceFetcher("ghp_secret", "release", runner=runner).fetch("data-proxy", target)

        calls = [(c.args[0], c.kwargs["cwd"]) for c in runner.call_args_list]
        assert calls == [
            (
                ["git", "fetch", "--depth", "1",
                 "https://ghp_secret@github.com/airbrx/data-proxy.git", "release"],
                target,
            ),
            (["git", "reset", "--hard", "FETCH_HEAD"], target),
        ]

    def test_update_failure_scrubs_token(self, tmp_path):
        runner = MagicMock(
            side_effect=subprocess.CalledProcessError(
                128, ["git"], stderr="fatal: couldn't find remote ref in https://ghp_secret@github.com"
            )
        )
        target = tmp_path / "data-proxy"
        (target / ".git").mkdir(parents=True)

        with pytest.raises(SourceBuildError) as excinfo:
            GitSourceFetcher("ghp_secret", "gone", runner=runner).fetch("data-proxy", target)
        assert "ghp_secret" not in str(excinfo.value)
        assert "git fetch" in str(excinfo.value)

    def test_failure_scrubs_token(self, tmp_path):
        runner = MagicMock(
            side_effect=subprocess.CalledProcessError(
                128, ["git"], stderr="fatal: could not read from https://ghp_secret@github.com"
            )
        )
        fetcher = GitSourceFetcher("ghp_secret", "main", runner=runner)

        with pytest.raises(SourceBuildError) as excinfo:
            fetcher.fetch("airbrx-api", tmp_path / "airbrx-api")
        assert "ghp_secret" not in str(excinfo.value)
        assert "***" in str(excinfo.value)

    def test_missing_git_binary(self, tmp_path):
        runner = MagicMock(side_effect=FileNotFoundError("git"))
        with pytest.raises(SourceBuildError, match="Could not run 'git'"):
            GitSourceFetcher("t", "main", runner=runner).fetch("x", tmp_path / "x")


class TestPackaging:
    def test_build_installs_then_zips(self, tmp_path):
        source = tmp_path / "api"
        source.mkdir()
        (source / "reportingapi.js").write_text("exports.handler = 1;\n")
        runner = MagicMock()

        archive = NpmPackageBuilder(runner=runner).build(source, tmp_path / "out" / "api.zip")

        runner.assert_called_once()
        assert runner.call_args.args[0] == ["npm", "install", "--omit=dev"]
        assert runner.call_args.kwargs["cwd"] == source
        with zipfile.ZipFile(archive) as zf:
            assert zf.namelist() == ["reportingapi.js"]

    def test_missing_source_directory(self, tmp_path):
        with pytest.raises(SourceBuildError, match="not found"):
            NpmPackageBuilder(runner=MagicMock()).build(tmp_path / "nope", tmp_path / "x.zip")

    def test_archive_skips_git_metadata(self, tmp_path):
        source = tmp_path / "src"
        (source / ".git").mkdir(parents=True)
        (source / ".git" / "config").write_text("[core]\n")
        (source / ".gitignore").write_text("node_modules\n")
        (source / "node_modules" / "dep").mkdir(parents=True)
        (source / "node_modules" / "dep" / "index.js").write_text("module.exports = 1;\n")

        archive = write_archive(source, tmp_path / "pkg.zip")

        with zipfile.ZipFile(archive) as zf:
            assert zf.namelist() == ["node_modules/dep/index.js"]


class TestConfigureFrontend:
    def test_sets_api_url_and_keeps_other_keys(self, tmp_path):
        conf = tmp_path / "lib" / "conf.json"
        conf.parent.mkdir()
        conf.write_text(json.dumps({"defaultApiUrl": "http://localhost:3000", "theme": "dark"}))

        assert configure_frontend(tmp_path, "https://d111.cloudfront.net/") is True
        assert json.loads(conf.read_text()) == {
            "defaultApiUrl": "https://d111.cloudfront.net",
            "theme": "dark",
        }

    def test_missing_conf_is_skipped(self, tmp_path):
        assert configure_frontend(tmp_path, "https://d111.cloudfront.net") is False
