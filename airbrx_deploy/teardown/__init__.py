"""Deployment teardown."""

from airbrx_deploy.teardown.teardown import (
    ConfirmationMismatchError,
    Teardown,
    remove_generated_files,
)

__all__ = ["ConfirmationMismatchError", "Teardown", "remove_generated_files"]
