"""Setup generator — writes everything a deployment needs before ``deploy``.

For one prefix the generator produces, in the generated directory:

- ``<prefix>-config.env``: the configuration document (mode 0600)
- ``<prefix>-god-pat.json``: the admin token record (mode 0600)
- ``<prefix>-lambda-trust-policy.json``: shared trust policy
- ``<prefix>-airbrx-{api,gateway,log-summary}-policy.json``: execution policies
- ``<prefix>-deployer-policy.json``: permissions for the operator

Inputs are validated here; prompting is the CLI's job.
"""

from __future__ import annotations

import json
import logging
import os
import re
import secrets
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from airbrx_deploy.core.config_loader import config_path_for
from airbrx_deploy.core.policies import (
    ACCOUNT_PLACEHOLDER,
    deployer_policy,
    execution_policy,
    lambda_trust_policy,
)
from airbrx_deploy.models.config import (
    ANTHROPIC_NOT_CONFIGURED,
    DESCOPE_NOT_CONFIGURED,
    DeploymentConfig,
)
from airbrx_deploy.models.resources import FunctionRole, ResourceNames
from airbrx_deploy.models.tokens import AdminToken
from airbrx_deploy.pipeline.preflight import token_path

logger = logging.getLogger(__name__)

COMPANY_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
ENVIRONMENT_PATTERN = re.compile(r"^[a-z0-9]+$")
ACCOUNT_PATTERN = re.compile(r"^[0-9]{12}$")

ENVIRONMENTS: tuple[str, ...] = ("dev", "stage", "prod")
GENERIC_NAMES = frozenset({"app", "data", "api", "test", "company", "org", "client"})

# Ordered by how often they are picked.
REGIONS: dict[str, str] = {
    "us-east-1": "N. Virginia",
    "us-west-2": "Oregon",
    "eu-west-1": "Ireland",
    "us-east-2": "Ohio",
    "eu-central-1": "Frankfurt",
    "ap-northeast-1": "Tokyo",
    "ap-southeast-1": "Singapore",
    "eu-west-2": "London",
    "ap-southeast-2": "Sydney",
    "us-west-1": "N. California",
    "ca-central-1": "Canada",
    "ap-south-1": "Mumbai",
    "ap-northeast-2": "Seoul",
    "eu-north-1": "Stockholm",
    "sa-east-1": "Sao Paulo",
    "eu-west-3": "Paris",
    "ap-southeast-3": "Jakarta",
    "ap-northeast-3": "Osaka",
    "me-south-1": "Bahrain",
    "af-south-1": "Cape Town",
    "eu-south-1": "Milan",
    "ap-east-1": "Hong Kong",
    "ap-south-2": "Hyderabad",
    "ap-southeast-4": "Melbourne",
    "eu-central-2": "Zurich",
    "eu-south-2": "Spain",
    "il-central-1": "Tel Aviv",
    "me-central-1": "UAE",
}


def search_regions(query: str, limit: int = 5) -> list[str]:
    """Region codes whose code or display name contains *query*."""
    needle = query.strip().lower()
    matches = [
        code
        for code, name in REGIONS.items()
        if needle in code or needle in name.lower()
    ]
    return matches[:limit]


def is_generic_name(company: str) -> bool:
    """Names likely to collide with someone else's bucket."""
    return company in GENERIC_NAMES


def config_file_body(config: DeploymentConfig, generated_at: datetime) -> str:
    """Render the configuration document as ``KEY="value"`` lines."""
    lines = [
        "# Airbrx Data Gateway - Deployment Configuration",
        f"# Generated by airbrx-deploy setup on {generated_at:%Y-%m-%d %H:%M:%S %Z}".rstrip(),
        "#",
        "# Keep this file secure - it contains sensitive tokens",
        "",
    ]
    for key, value in config.to_document().items():
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        lines.append(f'{key}="{escaped}"')
    return "\n".join(lines) + "\n"


class SetupRequest(BaseModel):
    """Answers gathered by the setup prompts.

    ``account_id`` may be None when the account is not known yet; the
    generated policies then carry the ``<ACCOUNT_ID>`` placeholder for an
    administrator to substitute.
    """

    model_config = ConfigDict(frozen=True)

    company: str
    environment: str
    region: str
    git_pat: str
    git_branch: str = "main"
    account_id: str | None = None
    descope_project_id: str = ""
    anthropic_api_key: str = ""
    slack_webhook: str = ""

    @field_validator("company", "environment", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("company")
    @classmethod
    def _valid_company(cls, value: str) -> str:
        if not COMPANY_PATTERN.match(value):
            raise ValueError(
                "company must be lowercase letters, numbers and hyphens, "
                "starting and ending with a letter or number"
            )
        return value

    @field_validator("environment")
    @classmethod
    def _valid_environment(cls, value: str) -> str:
        if not ENVIRONMENT_PATTERN.match(value):
            raise ValueError("environment must be lowercase letters and numbers only")
        return value

    @field_validator("region")
    @classmethod
    def _known_region(cls, value: str) -> str:
        if value not in REGIONS:
            raise ValueError(f"unknown region {value!r}")
        return value

    @field_validator("account_id")
    @classmethod
    def _valid_account(cls, value: str | None) -> str | None:
        if value and not ACCOUNT_PATTERN.match(value):
            raise ValueError("account id must be exactly 12 digits")
        return value or None

    @model_validator(mode="after")
    def _git_pat_present(self) -> SetupRequest:
        if not self.git_pat:
            raise ValueError("a git access token is required")
        return self

    @property
    def prefix(self) -> str:
        return f"{self.company}-{self.environment}"


class SetupResult(BaseModel):
    """Paths written by one setup run."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    config_path: Path
    token_path: Path
    token_id: str
    policy_paths: list[Path]
    account_placeholder: bool

    @property
    def all_paths(self) -> list[Path]:
        return [*self.policy_paths, self.token_path, self.config_path]


class SetupGenerator:
    """Writes the generated files for one deployment.

    Parameters
    ----------
    directory:
        Output directory, created if missing.
    clock:
        Returns the generation time; stamped into the token record and
        the configuration header.
    """

    def __init__(self, directory: Path, *, clock: Any = None) -> None:
        self.directory = Path(directory)
        self._clock = clock or (lambda: datetime.now().astimezone())

    def generate(self, request: SetupRequest) -> SetupResult:
        self.directory.mkdir(parents=True, exist_ok=True)
        now = self._clock()
        prefix = request.prefix
        names = ResourceNames(prefix=prefix)
        account = request.account_id or ACCOUNT_PLACEHOLDER

        policy_paths = self._write_policies(names, request.region, account)

        token = AdminToken.generate(now=now)
        token_file = token_path(prefix, self.directory)
        self._write_private(token_file, json.dumps(token.to_record(), indent=4) + "\n")
        logger.info("Generated admin token %s", token.id)

        config = DeploymentConfig(
            prefix=prefix,
            region=request.region,
            git_pat=request.git_pat,
            git_branch=request.git_branch or "main",
            god_pat=token.token,
            jwt_secret=secrets.token_hex(32),
            descope_project_id=request.descope_project_id or DESCOPE_NOT_CONFIGURED,
            anthropic_api_key=request.anthropic_api_key or ANTHROPIC_NOT_CONFIGURED,
            slack_webhook=request.slack_webhook,
        )
        config_file = config_path_for(prefix, self.directory)
        self._write_private(config_file, config_file_body(config, now))

        if request.account_id is None:
            logger.warning(
                "Policies contain the %s placeholder; substitute the 12-digit account id",
                ACCOUNT_PLACEHOLDER,
            )
        return SetupResult(
            prefix=prefix,
            config_path=config_file,
            token_path=token_file,
            token_id=token.id,
            policy_paths=policy_paths,
            account_placeholder=request.account_id is None,
        )

    def _write_policies(self, names: ResourceNames, region: str, account: str) -> list[Path]:
        documents: list[tuple[str, dict[str, Any]]] = [
            (f"{names.prefix}-lambda-trust-policy.json", lambda_trust_policy()),
        ]
        for role in FunctionRole:
            documents.append(
                (
                    f"{names.function(role)}-policy.json",
                    execution_policy(names, role, region, account),
                )
            )
        documents.append(
            (f"{names.prefix}-deployer-policy.json", deployer_policy(names, region, account))
        )

        written = []
        for filename, document in documents:
            path = self.directory / filename
            path.write_text(json.dumps(document, indent=4) + "\n", encoding="utf-8")
            logger.info("Created %s", path)
            written.append(path)
        return written

    @staticmethod
    def _write_private(path: Path, text: str) -> None:
        path.write_text(text, encoding="utf-8")
        os.chmod(path, 0o600)
        logger.info("Created %s (permissions: 600)", path)
