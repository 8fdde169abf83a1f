"""Canonical JSON serialization and hashing.

``canonical_json_bytes`` gives a byte-for-byte stable encoding (sorted
keys, no insignificant whitespace) so that equal documents hash equally.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from airbrx_deploy.models.config import DeploymentConfig


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize *obj* to canonical JSON bytes."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=str,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def config_fingerprint(config: DeploymentConfig) -> str:
    """Fingerprint of the non-secret deployment settings. Secrets never enter it."""
    public = {
        "prefix": config.prefix,
        "region": config.region,
        "git_branch": config.git_branch,
        "descope": config.descope_configured,
        "anthropic": config.anthropic_configured,
        "slack": bool(config.slack_webhook),
    }
    return sha256_hex(canonical_json_bytes(public))[:16]
