"""Deployment configuration model — one document per deployment prefix."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

DESCOPE_NOT_CONFIGURED = "DESCOPE_NOT_CONFIGURED"
ANTHROPIC_NOT_CONFIGURED = "ANTHROPIC_NOT_CONFIGURED"

PREFIX_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")

# Keys of the configuration document, in the order they are written.
CONFIG_KEYS: tuple[str, ...] = (
    "PREFIX",
    "AWS_REGION",
    "GIT_PAT",
    "GIT_BRANCH",
    "GOD_PAT",
    "JWT_SECRET",
    "DESCOPE_PROJECT_ID",
    "ANTHROPIC_API_KEY",
    "SLACK_WEBHOOK",
)
REQUIRED_CONFIG_KEYS: tuple[str, ...] = CONFIG_KEYS[:6]


class DeploymentConfig(BaseModel):
    """Everything one deployment needs beyond the ambient AWS credentials.

    Immutable once loaded. Optional integrations carry a "not configured"
    sentinel rather than an empty value so the document round-trips the
    way the setup flow wrote it.
    """

    model_config = ConfigDict(frozen=True)

    prefix: str
    region: str
    git_pat: str = Field(repr=False)
    git_branch: str = "main"
    god_pat: str = Field(repr=False)
    jwt_secret: str = Field(repr=False)
    descope_project_id: str = DESCOPE_NOT_CONFIGURED
    anthropic_api_key: str = Field(default=ANTHROPIC_NOT_CONFIGURED, repr=False)
    slack_webhook: str = Field(default="", repr=False)

    @field_validator("prefix")
    @classmethod
    def _valid_prefix(cls, value: str) -> str:
        if not PREFIX_PATTERN.match(value):
            raise ValueError(
                f"prefix {value!r} must be lowercase alphanumerics and hyphens, "
                "starting and ending with an alphanumeric"
            )
        return value

    @property
    def environment(self) -> str:
        """Environment tag: everything after the first hyphen of the prefix."""
        _, sep, rest = self.prefix.partition("-")
        return rest if sep else self.prefix

    @property
    def descope_configured(self) -> bool:
        return bool(self.descope_project_id) and self.descope_project_id != DESCOPE_NOT_CONFIGURED

    @property
    def anthropic_configured(self) -> bool:
        return bool(self.anthropic_api_key) and self.anthropic_api_key != ANTHROPIC_NOT_CONFIGURED

    @classmethod
    def from_document(cls, values: dict[str, str | None]) -> DeploymentConfig:
        """Build from the upper-case keys of a configuration document."""
        def _get(key: str, default: str = "") -> str:
            value = values.get(key)
            return value if value else default

        return cls(
            prefix=_get("PREFIX"),
            region=_get("AWS_REGION"),
            git_pat=_get("GIT_PAT"),
            git_branch=_get("GIT_BRANCH", "main"),
            god_pat=_get("GOD_PAT"),
            jwt_secret=_get("JWT_SECRET"),
            descope_project_id=_get("DESCOPE_PROJECT_ID", DESCOPE_NOT_CONFIGURED),
            anthropic_api_key=_get("ANTHROPIC_API_KEY", ANTHROPIC_NOT_CONFIGURED),
            slack_webhook=_get("SLACK_WEBHOOK"),
        )

    def to_document(self) -> dict[str, str]:
        """Inverse of :meth:`from_document`, in document key order."""
        return {
            "PREFIX": self.prefix,
            "AWS_REGION": self.region,
            "GIT_PAT": self.git_pat,
            "GIT_BRANCH": self.git_branch,
            "GOD_PAT": self.god_pat,
            "JWT_SECRET": self.jwt_secret,
            "DESCOPE_PROJECT_ID": self.descope_project_id,
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "SLACK_WEBHOOK": self.slack_webhook,
        }
