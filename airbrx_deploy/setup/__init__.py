"""Setup: validated inputs in, configuration document and policies out."""

from airbrx_deploy.setup.generator import (
    REGIONS,
    SetupGenerator,
    SetupRequest,
    SetupResult,
    is_generic_name,
    search_regions,
)

__all__ = [
    "REGIONS",
    "SetupGenerator",
    "SetupRequest",
    "SetupResult",
    "is_generic_name",
    "search_regions",
]
