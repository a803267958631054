"""Remote host handle used by every stage."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from ..errors import RemoteExecutionError
from ..ssh.session import SSHCommandResult, SSHSession, StdinData
from .operations import OperationCatalog, RemoteOperation

logger = logging.getLogger(__name__)


class RemoteExecutor(Protocol):
    """Anything that can run a :class:`RemoteOperation` to completion."""

    ops: OperationCatalog

    def execute(self, operation: RemoteOperation, *, input_data: Optional[StdinData] = None) -> SSHCommandResult:
        ...


def check(
    remote: RemoteExecutor,
    operation: RemoteOperation,
    *,
    stage: str,
    message: Optional[str] = None,
    input_data: Optional[StdinData] = None,
) -> SSHCommandResult:
    """Execute `operation` and raise RemoteExecutionError on non-zero exit."""
    result = remote.execute(operation, input_data=input_data)
    if not result.ok:
        raise RemoteExecutionError(
            message or f"Remote operation '{operation.name}' failed (exit status {result.exit_status})",
            operation=operation.name,
            exit_status=result.exit_status,
            stage=stage,
            command=operation.command,
            output=result.output or None,
        )
    return result


class RemoteHost:
    """Address and credentials behind an SSH session.

    Nothing about the host's state is cached here: installed packages,
    containers and proxy files are re-read from the host whenever a stage
    needs them.
    """

    def __init__(self, session: SSHSession, *, sudo: str = "sudo -n", command_timeout: Optional[int] = None) -> None:
        self.session = session
        self.ops = OperationCatalog(sudo=sudo)
        self.command_timeout = command_timeout

    @property
    def address(self) -> str:
        return self.session.credentials.host

    def execute(self, operation: RemoteOperation, *, input_data: Optional[StdinData] = None) -> SSHCommandResult:
        logger.debug("Running %s: %s", operation.name, operation.command)
        return self.session.run(operation.command, input_data=input_data, timeout=self.command_timeout)

    def close(self) -> None:
        self.session.close()
