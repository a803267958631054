"""Remote connectivity probing."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Callable, Optional

from ..errors import ConnectivityError
from ..ssh import SSHCredentials, SSHSession
from .host import RemoteHost

logger = logging.getLogger(__name__)


class RemoteConnectivityProbe:
    """Confirms the host accepts our key and runs a command without prompting."""

    def __init__(
        self,
        *,
        session_factory: Callable[[SSHCredentials], SSHSession] = SSHSession,
        sudo: str = "sudo -n",
        command_timeout: Optional[int] = None,
    ) -> None:
        self._session_factory = session_factory
        self._sudo = sudo
        self._command_timeout = command_timeout

    @staticmethod
    def restrict_key_permissions(key_path: Path) -> None:
        """chmod 600 on the private key."""
        os.chmod(key_path, stat.S_IRUSR | stat.S_IWUSR)

    def connect(self, credentials: SSHCredentials) -> RemoteHost:
        """Open a session and run one command; no retry on failure."""
        try:
            credentials.validate()
        except ValueError as exc:
            raise ConnectivityError(str(exc), stage="connectivity") from exc
        try:
            self.restrict_key_permissions(Path(credentials.key_path))
        except OSError as exc:
            raise ConnectivityError(
                f"Cannot restrict permissions on SSH key {credentials.key_path}: {exc}",
                stage="connectivity",
            ) from exc
        session = self._session_factory(credentials)
        session.connect()
        host = RemoteHost(session, sudo=self._sudo, command_timeout=self._command_timeout)

        result = host.execute(host.ops.echo())
        if not result.ok:
            host.close()
            raise ConnectivityError(
                f"Failed to establish SSH connection to {credentials.destination}",
                stage="connectivity",
                output=result.output or None,
            )
        logger.debug("Probe output: %s", result.stdout)
        return host
