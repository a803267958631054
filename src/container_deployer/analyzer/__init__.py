"""Repository analysis helpers."""

from .scanner import DeploymentMethod, DeploymentMethodDetector, DetectionResult

__all__ = ["DeploymentMethod", "DeploymentMethodDetector", "DetectionResult"]
