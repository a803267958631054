"""Idempotent provisioning of the remote host."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from ..errors import RemoteExecutionError
from .host import RemoteExecutor, check

logger = logging.getLogger(__name__)

STAGE = "bootstrap"


@dataclass
class BootstrapReport:
    """What the bootstrap changed and which versions ended up installed."""

    installed: List[str] = field(default_factory=list)
    versions: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.installed)


class RemoteEnvironmentBootstrapper:
    """Installs docker, the compose tool and nginx only when missing."""

    SERVICES = ("docker", "nginx")

    def __init__(self, remote: RemoteExecutor, username: str) -> None:
        self.remote = remote
        self.username = username
        self.ops = remote.ops

    def run(self) -> BootstrapReport:
        report = BootstrapReport()

        logger.info("Updating system packages...")
        check(self.remote, self.ops.update_package_index(), stage=STAGE,
              message="Failed to update the system package index")

        self._ensure_docker(report)
        self._ensure_compose(report)
        self._ensure_nginx(report)

        for service in self.SERVICES:
            self._enable_and_start(service)

        self._report_versions(report)
        return report

    def _is_available(self, tool: str) -> bool:
        return self.remote.execute(self.ops.command_available(tool)).ok

    def _ensure_docker(self, report: BootstrapReport) -> None:
        if self._is_available("docker"):
            logger.info("Docker already installed")
            return
        logger.info("Installing Docker...")
        check(self.remote, self.ops.install_docker(), stage=STAGE, message="Failed to install Docker")
        check(self.remote, self.ops.add_user_to_group(self.username, "docker"), stage=STAGE,
              message=f"Failed to add {self.username} to the docker group")
        report.installed.append("docker")

    def _ensure_compose(self, report: BootstrapReport) -> None:
        if self.remote.execute(self.ops.compose_available()).ok:
            logger.info("Docker Compose already installed")
            return
        logger.info("Installing Docker Compose...")
        check(self.remote, self.ops.install_package("docker-compose"), stage=STAGE,
              message="Failed to install Docker Compose")
        report.installed.append("docker-compose")

    def _ensure_nginx(self, report: BootstrapReport) -> None:
        if self._is_available("nginx"):
            logger.info("Nginx already installed")
            return
        logger.info("Installing Nginx...")
        check(self.remote, self.ops.install_package("nginx"), stage=STAGE, message="Failed to install Nginx")
        report.installed.append("nginx")

    def _enable_and_start(self, service: str) -> None:
        result = self.remote.execute(self.ops.enable_service(service))
        if not result.ok and not self.remote.execute(self.ops.service_enabled(service)).ok:
            raise RemoteExecutionError(
                f"Failed to enable the {service} service",
                operation="service.enable",
                exit_status=result.exit_status,
                stage=STAGE,
                output=result.output or None,
            )
        check(self.remote, self.ops.start_service(service), stage=STAGE,
              message=f"Failed to start the {service} service")

    def _report_versions(self, report: BootstrapReport) -> None:
        logger.info("=== Installed Versions ===")
        for tool in ("docker", "compose", "nginx"):
            result = self.remote.execute(self.ops.tool_version(tool))
            if result.ok and result.output:
                version = result.output.splitlines()[0].strip()
                report.versions[tool] = version
                logger.info("%s", version)
            else:
                message = f"Could not determine {tool} version"
                report.warnings.append(message)
                logger.warning(message)
