"""Container lifecycle on the remote host."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..analyzer import DeploymentMethod
from ..config import ContainerConfig
from ..errors import RemoteExecutionError, StateConfirmationError
from ..remote.host import RemoteExecutor, check
from ..ssh import SSHCommandResult
from ..utils.polling import wait_until

logger = logging.getLogger(__name__)

STAGE = "containers"

_NOT_FOUND_MARKERS = ("no such container", "no such object")


def container_name(repo_name: str) -> str:
    return f"{repo_name}-container"


def image_repository(repo_name: str) -> str:
    """Docker repository names must be lower case."""
    return repo_name.lower()


def select_stale_images(listing: str, keep: int) -> List[str]:
    """Return image IDs beyond the `keep` most recent.

    `listing` is `docker images` output in `<id> <tag>` form, newest first.
    An image tagged twice (latest plus its generation tag) counts once.
    """
    ordered: List[str] = []
    for line in listing.splitlines():
        parts = line.split()
        if not parts:
            continue
        image_id = parts[0]
        if image_id not in ordered:
            ordered.append(image_id)
    return ordered[keep:]


@dataclass
class ContainerDeployment:
    container: str
    image: str
    removed_images: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class ContainerDeployer:
    """Replaces the previous container generation with a freshly built one."""

    def __init__(
        self,
        remote: RemoteExecutor,
        config: ContainerConfig,
        *,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.remote = remote
        self.config = config
        self.ops = remote.ops
        self._poll_kwargs = {}
        if sleep is not None:
            self._poll_kwargs["sleep"] = sleep
        if clock is not None:
            self._poll_kwargs["clock"] = clock

    def deploy(
        self,
        repo_name: str,
        app_dir: str,
        port: int,
        *,
        generation: str,
        method: DeploymentMethod = DeploymentMethod.SINGLE_CONTAINER,
    ) -> ContainerDeployment:
        name = container_name(repo_name)
        repository = image_repository(repo_name)
        latest = f"{repository}:latest"
        outcome = ContainerDeployment(container=name, image=latest)

        if method is DeploymentMethod.MULTI_CONTAINER:
            message = "Compose descriptor detected; building a single image from the Dockerfile"
            logger.warning(message)
            outcome.warnings.append(message)

        logger.info("Cleaning up old containers...")
        self.retire_container(name)

        logger.info("Building Docker image...")
        check(
            self.remote,
            self.ops.build_image(app_dir, [latest, f"{repository}:{generation}"]),
            stage=STAGE,
            message=f"Failed to build image {latest}",
        )

        outcome.removed_images = self.prune_images(repository, outcome.warnings)

        logger.info("Starting container...")
        check(
            self.remote,
            self.ops.run_container(
                name,
                latest,
                port,
                port_env_var=self.config.port_env_var,
                restart_policy=self.config.restart_policy,
            ),
            stage=STAGE,
            message=f"Failed to start container {name}",
        )

        logger.info("Waiting for container to start...")
        self.confirm_running(name)
        logger.info("Container is running")
        return outcome

    def retire_container(self, name: str) -> None:
        """Stop then remove `name`; a missing container is not an error."""
        for operation in (self.ops.stop_container(name), self.ops.remove_container(name)):
            result = self.remote.execute(operation)
            if result.ok or self._is_not_found(result):
                continue
            raise RemoteExecutionError(
                f"Failed to retire container {name}",
                operation=operation.name,
                exit_status=result.exit_status,
                stage=STAGE,
                command=operation.command,
                output=result.output or None,
            )

    def prune_images(self, repository: str, warnings: List[str]) -> List[str]:
        """Keep the newest `image_retention` generations of `repository`."""
        listing = self.remote.execute(self.ops.list_images(repository))
        if not listing.ok:
            message = f"Could not list images for {repository}; skipping image cleanup"
            logger.warning(message)
            warnings.append(message)
            return []

        stale = select_stale_images(listing.stdout, self.config.image_retention)
        if not stale:
            return []
        logger.info("Removing %d old image(s) of %s", len(stale), repository)
        result = self.remote.execute(self.ops.remove_images(stale))
        if not result.ok:
            message = f"Failed to remove old images: {result.output}"
            logger.warning(message)
            warnings.append(message)
            return []
        return stale

    def is_running(self, name: str) -> bool:
        result = self.remote.execute(self.ops.container_running(name))
        return result.ok and name in result.stdout.split()

    def confirm_running(self, name: str) -> None:
        running = wait_until(
            lambda: self.is_running(name),
            timeout=self.config.start_timeout,
            interval=self.config.poll_interval,
            **self._poll_kwargs,
        )
        if running:
            return
        logs = self.remote.execute(self.ops.container_logs(name, self.config.log_tail))
        logger.error("Container failed to start")
        raise StateConfirmationError(
            f"Container {name} is not running after {self.config.start_timeout:g}s",
            stage=STAGE,
            output=logs.output or None,
        )

    @staticmethod
    def _is_not_found(result: SSHCommandResult) -> bool:
        text = result.output.lower()
        return any(marker in text for marker in _NOT_FOUND_MARKERS)
