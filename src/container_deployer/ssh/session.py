"""SSH session management built on Paramiko."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

import paramiko

from ..errors import ConnectivityError
from .credentials import SSHCredentials

StdinData = Union[bytes, Iterable[bytes]]


class SSHConnectionError(ConnectivityError):
    """Raised when an SSH connection cannot be established or breaks mid-command."""


@dataclass
class SSHCommandResult:
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class SSHSession:
    """High-level wrapper around paramiko.SSHClient."""

    def __init__(
        self,
        credentials: SSHCredentials,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        self.credentials = credentials
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None

    def __enter__(self) -> "SSHSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    @property
    def connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        if self._client:
            return
        client = self._client_factory()
        # Unknown host keys are accepted, as with StrictHostKeyChecking=no
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self.credentials.host,
                port=self.credentials.port,
                username=self.credentials.username,
                key_filename=str(self.credentials.key_path),
                timeout=self.credentials.timeout,
                banner_timeout=self.credentials.timeout,
                auth_timeout=self.credentials.timeout,
                look_for_keys=False,
                allow_agent=False,
            )
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise SSHConnectionError(
                f"Failed to establish SSH connection to {self.credentials.destination}: {exc}",
                stage="connectivity",
            ) from exc
        self._client = client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def run(
        self,
        command: str,
        *,
        input_data: Optional[StdinData] = None,
        timeout: Optional[int] = None,
    ) -> SSHCommandResult:
        """
        Execute a command on the remote server and wait for it to finish.

        Args:
            command: The command to execute
            input_data: Bytes, or an iterable of byte chunks, written to the
                command's stdin, which is then closed
            timeout: Seconds to wait for the command to complete (default: 600)

        Returns:
            SSHCommandResult with captured output and exit status

        Raises:
            SSHConnectionError: if the channel breaks before the command ends
        """
        if not self._client:
            self.connect()
        assert self._client is not None

        if timeout is None:
            timeout = 600

        channel = None
        try:
            stdin, stdout, stderr = self._client.exec_command(command, timeout=timeout)
            channel = stdout.channel
            if input_data is not None:
                chunks = [input_data] if isinstance(input_data, (bytes, bytearray)) else input_data
                for chunk in chunks:
                    stdin.write(chunk)
                stdin.flush()
                stdin.channel.shutdown_write()

            channel.settimeout(float(timeout))
            stdout_text = stdout.read().decode("utf-8", errors="replace")
            stderr_text = stderr.read().decode("utf-8", errors="replace")
            exit_status = channel.recv_exit_status()
        except socket.timeout:
            if channel is not None:
                channel.close()
            return SSHCommandResult(
                command=command,
                stdout="",
                stderr=f"TIMEOUT: Command did not complete within {timeout} seconds.",
                exit_status=-1,
            )
        except (paramiko.SSHException, OSError) as exc:
            raise SSHConnectionError(
                f"SSH channel to {self.credentials.destination} failed: {exc}",
                command=command,
            ) from exc

        return SSHCommandResult(
            command=command,
            stdout=stdout_text.strip(),
            stderr=stderr_text.strip(),
            exit_status=exit_status,
        )
