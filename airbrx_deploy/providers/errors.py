"""Classification of remote errors by their service error code."""

from __future__ import annotations

from botocore.exceptions import ClientError

NOT_FOUND_CODES: frozenset[str] = frozenset(
    {
        "404",
        "NoSuchBucket",
        "NotFound",
        "NoSuchEntity",
        "ResourceNotFoundException",
        "NoSuchDistribution",
        "NoSuchOriginAccessControl",
        "NoSuchResource",
    }
)

ALREADY_EXISTS_CODES: frozenset[str] = frozenset(
    {
        "BucketAlreadyOwnedByYou",
        "EntityAlreadyExists",
        "ResourceConflictException",
        "OriginAccessControlAlreadyExists",
        "DistributionAlreadyExists",
    }
)

# Deleting a distribution whose disable has not finished propagating.
STILL_PROPAGATING_CODES: frozenset[str] = frozenset(
    {"DistributionNotDisabled", "PreconditionFailed", "InvalidIfMatchVersion"}
)


def error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def is_not_found(error: ClientError) -> bool:
    return error_code(error) in NOT_FOUND_CODES


def is_already_exists(error: ClientError) -> bool:
    return error_code(error) in ALREADY_EXISTS_CODES


def is_still_propagating(error: ClientError) -> bool:
    return error_code(error) in STILL_PROPAGATING_CODES
