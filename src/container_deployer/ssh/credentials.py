"""SSH credential helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SSHCredentials:
    """Key-based credential payload for one remote host."""

    host: str
    username: str
    key_path: Path
    port: int = 22
    timeout: int = 10

    @property
    def destination(self) -> str:
        return f"{self.username}@{self.host}"

    def validate(self) -> None:
        if not self.host:
            raise ValueError("No host provided")
        if not self.username:
            raise ValueError("No username provided")
        if not Path(self.key_path).is_file():
            raise ValueError(f"SSH key not found: {self.key_path}")
