"""SSH utilities for Container Deployer."""

from .credentials import SSHCredentials
from .session import SSHCommandResult, SSHConnectionError, SSHSession, StdinData

__all__ = [
    "SSHCredentials",
    "SSHCommandResult",
    "SSHConnectionError",
    "SSHSession",
    "StdinData",
]
