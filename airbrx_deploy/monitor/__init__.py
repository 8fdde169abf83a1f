"""Read-only status projection and Rich rendering."""

from airbrx_deploy.monitor.projection import StatusProjection
from airbrx_deploy.monitor.renderer import DeploymentRenderer

__all__ = ["DeploymentRenderer", "StatusProjection"]
