"""Container lifecycle management."""

from .deployer import (
    ContainerDeployer,
    ContainerDeployment,
    container_name,
    image_repository,
    select_stale_images,
)

__all__ = [
    "ContainerDeployer",
    "ContainerDeployment",
    "container_name",
    "image_repository",
    "select_stale_images",
]
