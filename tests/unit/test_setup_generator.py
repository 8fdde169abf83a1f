"""Unit tests for the setup generator — input validation and generated files."""

from __future__ import annotations

import json
import stat
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from airbrx_deploy.core.config_loader import load_config
from airbrx_deploy.models.config import ANTHROPIC_NOT_CONFIGURED, DESCOPE_NOT_CONFIGURED
from airbrx_deploy.pipeline.preflight import load_admin_token
from airbrx_deploy.setup.generator import (
    REGIONS,
    SetupGenerator,
    SetupRequest,
    config_file_body,
    is_generic_name,
    search_regions,
)

NOW = datetime(2025, 3, 14, 9, 26, 53, 589000, tzinfo=timezone.utc)


def _request(**overrides) -> SetupRequest:
    values = {
        "company": "acme",
        "environment": "dev",
        "region": "us-west-2",
        "git_pat": "ghp_testtoken",
        "account_id": "123456789012",
    }
    values.update(overrides)
    return SetupRequest(**values)


class TestSetupRequest:
    """Inputs are normalized and validated before anything is written."""

    def test_prefix_lowercased(self):
        request = _request(company=" Acme ", environment="DEV")
        assert request.prefix == "acme-dev"

    @pytest.mark.parametrize("company", ["-acme", "acme-", "ac_me", "ac me", ""])
    def test_bad_company(self, company):
        with pytest.raises(ValidationError):
            _request(company=company)

    def test_single_character_company(self):
        assert _request(company="a").prefix == "a-dev"

    @pytest.mark.parametrize("environment", ["de-v", "qa_1", ""])
    def test_bad_environment(self, environment):
        with pytest.raises(ValidationError):
            _request(environment=environment)

    def test_unknown_region(self):
        with pytest.raises(ValidationError, match="unknown region"):
            _request(region="mars-north-1")

    @pytest.mark.parametrize("account", ["12345", "12345678901a", "1234567890123"])
    def test_bad_account(self, account):
        with pytest.raises(ValidationError, match="12 digits"):
            _request(account_id=account)

    def test_blank_account_means_unknown(self):
        assert _request(account_id="").account_id is None

    def test_git_pat_required(self):
        with pytest.raises(ValidationError, match="git access token"):
            _request(git_pat="")


class TestHelpers:
    def test_search_regions_by_name_and_code(self):
        assert search_regions("tokyo") == ["ap-northeast-1"]
        assert search_regions("eu-west") == ["eu-west-1", "eu-west-2", "eu-west-3"]
        assert len(search_regions("")) == 5
        assert search_regions("atlantis") == []

    def test_region_table(self):
        assert next(iter(REGIONS)) == "us-east-1"
        assert len(REGIONS) == 28

    def test_generic_names(self):
        assert is_generic_name("test")
        assert not is_generic_name("acme")

    def test_config_body_escapes_quotes(self, config):
        body = config_file_body(config.model_copy(update={"slack_webhook": 'a"b\\c'}), NOW)
        assert 'SLACK_WEBHOOK="a\\"b\\\\c"' in body
        assert body.startswith("# Airbrx Data Gateway - Deployment Configuration\n")
        assert "2025-03-14 09:26:53 UTC" in body


class TestSetupGenerator:
    """One setup run writes the config, token and five policy files."""

    def test_generated_files(self, tmp_path):
        result = SetupGenerator(tmp_path / "generated", clock=lambda: NOW).generate(_request())

        assert sorted(p.name for p in result.all_paths) == [
            "acme-dev-airbrx-api-policy.json",
            "acme-dev-airbrx-gateway-policy.json",
            "acme-dev-airbrx-log-summary-policy.json",
            "acme-dev-config.env",
            "acme-dev-deployer-policy.json",
            "acme-dev-god-pat.json",
            "acme-dev-lambda-trust-policy.json",
        ]
        assert not result.account_placeholder

    def test_secret_files_are_private(self, tmp_path):
        result = SetupGenerator(tmp_path, clock=lambda: NOW).generate(_request())
        for path in (result.config_path, result.token_path):
            assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_config_and_token_agree(self, tmp_path):
        result = SetupGenerator(tmp_path, clock=lambda: NOW).generate(_request())

        config = load_config(result.config_path)
        token = load_admin_token(config, tmp_path)

        assert config.prefix == "acme-dev"
        assert config.region == "us-west-2"
        assert config.god_pat == token.token
        assert token.id == result.token_id
        assert token.created_at == "2025-03-14T09:26:53.589Z"
        assert len(config.jwt_secret) == 64
        assert config.descope_project_id == DESCOPE_NOT_CONFIGURED
        assert config.anthropic_api_key == ANTHROPIC_NOT_CONFIGURED

    def test_each_run_mints_new_secrets(self, tmp_path):
        generator = SetupGenerator(tmp_path, clock=lambda: NOW)
        first = load_config(generator.generate(_request()).config_path)
        second = load_config(generator.generate(_request()).config_path)
        assert first.god_pat != second.god_pat
        assert first.jwt_secret != second.jwt_secret

    def test_policies_use_account(self, tmp_path):
        result = SetupGenerator(tmp_path, clock=lambda: NOW).generate(_request())
        api = json.loads((tmp_path / "acme-dev-airbrx-api-policy.json").read_text())
        assert "123456789012" in api["Statement"][0]["Resource"]
        assert all(p.read_text().endswith("}\n") for p in result.policy_paths)

    def test_placeholder_when_account_unknown(self, tmp_path, caplog):
        result = SetupGenerator(tmp_path, clock=lambda: NOW).generate(_request(account_id=None))

        assert result.account_placeholder
        deployer = (tmp_path / "acme-dev-deployer-policy.json").read_text()
        assert "<ACCOUNT_ID>" in deployer
        assert "placeholder" in caplog.text

    def test_optional_integrations_written(self, tmp_path):
        result = SetupGenerator(tmp_path, clock=lambda: NOW).generate(
            _request(descope_project_id="P2abc", anthropic_api_key="sk-ant-1", slack_webhook="https://hooks/x")
        )
        config = load_config(result.config_path)
        assert config.descope_configured
        assert config.anthropic_api_key == "sk-ant-1"
        assert config.slack_webhook == "https://hooks/x"
