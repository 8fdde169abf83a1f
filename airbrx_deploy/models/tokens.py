"""Admin token (the "God PAT") record."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TOKEN_PREFIX = "airbrx_pat_"
ID_PREFIX = "pat_"


def _iso_millis(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{moment.microsecond // 1000:03d}Z"
    )


class AdminToken(BaseModel):
    """Full-access API token, persisted and uploaded verbatim.

    Field aliases match the record layout the admin API reads from
    ``pats/<token>.json``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = "God PAT"
    token: str = Field(repr=False)
    issued_by: str = Field(default="airbrx-deploy", alias="issuedBy")
    created_at: str = Field(alias="createdAt")
    expires_at: str | None = Field(default=None, alias="expiresAt")
    scopes: dict[str, Any] = {}
    tenants: list[str] = ["*"]

    @classmethod
    def generate(cls, issued_by: str = "airbrx-deploy", now: datetime | None = None) -> AdminToken:
        """Mint a new token: 8 random bytes for the id, 32 for the secret."""
        moment = now or datetime.now(timezone.utc)
        return cls(
            id=ID_PREFIX + secrets.token_hex(8),
            token=TOKEN_PREFIX + secrets.token_hex(32),
            issued_by=issued_by,
            created_at=_iso_millis(moment),
        )

    @property
    def object_key(self) -> str:
        """Key of this record in the admin storage bucket."""
        return f"pats/{self.token}.json"

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
