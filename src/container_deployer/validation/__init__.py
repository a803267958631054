"""Deployment health checks."""

from .checks import UNREACHABLE_STATUS, DeploymentValidator, ValidationReport

__all__ = ["UNREACHABLE_STATUS", "DeploymentValidator", "ValidationReport"]
