"""Build strategy detection for a working copy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..errors import DeploymentMethodError

logger = logging.getLogger(__name__)


class DeploymentMethod(str, Enum):
    """Build strategy selected from the repository contents."""
    SINGLE_CONTAINER = "dockerfile"
    MULTI_CONTAINER = "compose"


@dataclass(frozen=True)
class DetectionResult:
    method: DeploymentMethod
    descriptor: str


class DeploymentMethodDetector:
    """Looks for a build descriptor at the root of the working copy."""

    PRIMARY_DESCRIPTOR = "Dockerfile"
    COMPOSE_DESCRIPTORS = ("docker-compose.yml", "docker-compose.yaml")

    def detect(self, working_copy: Path) -> DetectionResult:
        root = Path(working_copy)
        if (root / self.PRIMARY_DESCRIPTOR).is_file():
            logger.info("%s found", self.PRIMARY_DESCRIPTOR)
            return DetectionResult(DeploymentMethod.SINGLE_CONTAINER, self.PRIMARY_DESCRIPTOR)

        compose = self._find_compose(root)
        if compose:
            logger.info("%s found", compose)
            return DetectionResult(DeploymentMethod.MULTI_CONTAINER, compose)

        raise DeploymentMethodError(
            "No Dockerfile or docker-compose.yml found in repository",
            stage="detect",
        )

    def _find_compose(self, root: Path) -> Optional[str]:
        for name in self.COMPOSE_DESCRIPTORS:
            if (root / name).is_file():
                return name
        return None
