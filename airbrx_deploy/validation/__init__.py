"""Post-deployment validation."""

from airbrx_deploy.validation.health import HealthChecker

__all__ = ["HealthChecker"]
