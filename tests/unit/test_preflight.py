"""Unit tests for the local precondition checks."""

from __future__ import annotations

import json
import subprocess
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from fakes import FakeCloud

from airbrx_deploy.core.config_loader import ConfigurationError, PreconditionError
from airbrx_deploy.pipeline.preflight import (
    check_node_version,
    check_tools,
    load_admin_token,
    resolve_account,
    token_path,
)


class TestTools:
    def test_all_present(self):
        with patch("airbrx_deploy.pipeline.preflight.shutil.which", side_effect=lambda n: f"/usr/bin/{n}"):
            assert check_tools() == {"git": "/usr/bin/git", "node": "/usr/bin/node", "npm": "/usr/bin/npm"}

    def test_missing_tools_named(self):
        with patch("airbrx_deploy.pipeline.preflight.shutil.which", side_effect=lambda n: None if n != "git" else "/g"):
            with pytest.raises(PreconditionError, match="node, npm"):
                check_tools()


class TestNodeVersion:
    def _runner(self, stdout):
        return MagicMock(return_value=SimpleNamespace(stdout=stdout))

    def test_new_enough(self):
        assert check_node_version(20, runner=self._runner("v22.3.0\n")) == 22

    def test_too_old(self):
        with pytest.raises(PreconditionError, match="Node.js 20\\+ required"):
            check_node_version(20, runner=self._runner("v18.19.1\n"))

    def test_unparseable(self):
        with pytest.raises(PreconditionError, match="Unrecognized"):
            check_node_version(20, runner=self._runner("garbage"))

    def test_node_fails(self):
        runner = MagicMock(side_effect=subprocess.CalledProcessError(1, ["node"]))
        with pytest.raises(PreconditionError, match="Could not determine"):
            check_node_version(20, runner=runner)


class TestAdminToken:
    def test_load_matching_token(self, config, generated_dir, admin_token):
        assert load_admin_token(config, generated_dir) == admin_token

    def test_missing_file(self, config, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_admin_token(config, tmp_path)

    def test_mismatched_token(self, config, generated_dir, admin_token):
        record = admin_token.to_record()
        record["token"] = "airbrx_pat_" + "cd" * 32
        token_path(config.prefix, generated_dir).write_text(json.dumps(record))
        with pytest.raises(ConfigurationError, match="does not match GOD_PAT"):
            load_admin_token(config, generated_dir)

    def test_corrupt_file(self, config, generated_dir):
        token_path(config.prefix, generated_dir).write_text("{not json")
        with pytest.raises(ConfigurationError, match="not a valid token record"):
            load_admin_token(config, generated_dir)


def test_resolve_account():
    assert resolve_account(FakeCloud(account="210987654321")) == "210987654321"
