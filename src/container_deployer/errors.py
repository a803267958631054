"""Exception hierarchy for deployment failures.

Every fatal condition raised by a stage derives from :class:`DeploymentError`
so the orchestrator can stop the run at the first failure and report which
stage broke. Advisory conditions (endpoint probes) are warnings, not errors.
"""

from __future__ import annotations

from typing import Optional


class DeploymentError(RuntimeError):
    """Base class for fatal deployment failures."""

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        command: Optional[str] = None,
        output: Optional[str] = None,
    ) -> None:
        self.message = message
        self.stage = stage
        self.command = command
        self.output = output
        super().__init__(message)

    def __str__(self) -> str:
        text = self.message
        if self.command:
            text = f"{text} [command: {self.command}]"
        if self.output:
            text = f"{text}\n{self.output}"
        return text


class ParameterValidationError(DeploymentError):
    """Raised when an operator-supplied field is malformed."""

    def __init__(self, field: str, expected: str, value: object = None) -> None:
        self.field = field
        self.expected = expected
        self.value = value
        super().__init__(f"Invalid {field}: expected {expected}", stage="parameters")


class DeploymentMethodError(DeploymentError):
    """Raised when the working copy has no recognised build descriptor."""


class ConnectivityError(DeploymentError):
    """Raised when the remote host is unreachable or refuses our key."""


class RemoteExecutionError(DeploymentError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        exit_status: int,
        stage: Optional[str] = None,
        command: Optional[str] = None,
        output: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.exit_status = exit_status
        super().__init__(message, stage=stage, command=command, output=output)


class StateConfirmationError(DeploymentError):
    """Raised when an expected post-condition does not hold."""
