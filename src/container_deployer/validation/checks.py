"""Post-deployment health validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import requests

from ..config import ValidationConfig
from ..errors import StateConfirmationError
from ..remote.host import RemoteExecutor
from ..utils.logging import log_success
from ..utils.polling import wait_until

logger = logging.getLogger(__name__)

STAGE = "validation"

UNREACHABLE_STATUS = "000"


@dataclass
class ValidationReport:
    """Hard checks passed; soft checks may have left warnings."""

    endpoint_ok: bool = False
    proxy_status: str = UNREACHABLE_STATUS
    warnings: List[str] = field(default_factory=list)

    @property
    def proxy_ok(self) -> bool:
        return self.proxy_status == "200"


class DeploymentValidator:
    """Runs the hard service/container checks, then the soft HTTP probes."""

    def __init__(
        self,
        remote: RemoteExecutor,
        config: ValidationConfig,
        *,
        http_get: Callable[..., requests.Response] = requests.get,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.remote = remote
        self.config = config
        self.ops = remote.ops
        self._http_get = http_get
        self._poll_kwargs = {}
        if sleep is not None:
            self._poll_kwargs["sleep"] = sleep
        if clock is not None:
            self._poll_kwargs["clock"] = clock

    def validate(self, server_address: str, container: str, port: int) -> ValidationReport:
        report = ValidationReport()

        logger.info("Checking Docker service...")
        if not self.remote.execute(self.ops.service_active("docker")).ok:
            raise StateConfirmationError("Docker service is not running", stage=STAGE)

        logger.info("Checking container health...")
        running = self.remote.execute(self.ops.container_running(container))
        if not (running.ok and container in running.stdout.split()):
            raise StateConfirmationError(f"Container {container} is not running", stage=STAGE)

        logger.info("Testing application endpoint...")
        report.endpoint_ok = self.probe_endpoint(port)
        if report.endpoint_ok:
            log_success(logger, "Application responding on port %s", port)
        else:
            self._warn(report, f"Application may not be responding correctly on port {port}")

        logger.info("Testing Nginx proxy...")
        report.proxy_status = self.probe_proxy(server_address)
        if report.proxy_ok:
            log_success(logger, "Nginx proxy working correctly (HTTP %s)", report.proxy_status)
        elif report.proxy_status == UNREACHABLE_STATUS:
            self._warn(report, "Could not connect to server. Check firewall/security group settings.")
        else:
            self._warn(report, f"Nginx returned HTTP {report.proxy_status}")

        return report

    def probe_endpoint(self, port: int) -> bool:
        """curl the app on the remote host until it answers or the grace period ends."""
        operation = self.ops.local_http_probe(port)
        return wait_until(
            lambda: self.remote.execute(operation).ok,
            timeout=self.config.endpoint_grace,
            interval=self.config.poll_interval,
            **self._poll_kwargs,
        )

    def probe_proxy(self, server_address: str) -> str:
        """GET http://<address>/ on port 80 and return the status code as text."""
        try:
            response = self._http_get(
                f"http://{server_address}/",
                timeout=self.config.public_probe_timeout,
                allow_redirects=False,
            )
        except requests.RequestException as exc:
            logger.debug("Proxy probe failed: %s", exc)
            return UNREACHABLE_STATUS
        return str(response.status_code)

    @staticmethod
    def _warn(report: ValidationReport, message: str) -> None:
        logger.warning(message)
        report.warnings.append(message)
