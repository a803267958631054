"""Deployment parameter collection and validation."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .errors import DeploymentError, ParameterValidationError
from .interaction import InputType, InteractionRequest, UserInteractionHandler

DEFAULT_BRANCH = "main"
DEFAULT_APP_PORT = 3000

_URL_PATTERN = re.compile(r"^https?://\S+$")
_IPV4_PATTERN = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$", re.ASCII)


@dataclass(frozen=True)
class DeploymentParameters:
    """Validated operator input for one run."""

    repo_url: str
    access_token: str
    branch: str
    ssh_username: str
    server_address: str
    ssh_key_path: Path
    app_port: int = DEFAULT_APP_PORT

    def __repr__(self) -> str:
        # Keep the token out of tracebacks and debug logs
        return (
            f"DeploymentParameters(repo_url={self.repo_url!r}, access_token='***', "
            f"branch={self.branch!r}, ssh_username={self.ssh_username!r}, "
            f"server_address={self.server_address!r}, ssh_key_path={str(self.ssh_key_path)!r}, "
            f"app_port={self.app_port})"
        )


@dataclass(frozen=True)
class HostParameters:
    """The reduced prompt set used by cleanup."""

    server_address: str
    ssh_username: str
    ssh_key_path: Path


def validate_url(value: str) -> str:
    value = value.strip()
    if not _URL_PATTERN.match(value):
        raise ParameterValidationError("repository URL", "an http:// or https:// URL", value)
    return value


def validate_ipv4(value: str) -> str:
    value = value.strip()
    match = _IPV4_PATTERN.match(value)
    if not match or any(int(octet) > 255 for octet in match.groups()):
        raise ParameterValidationError("server address", "a dotted-quad IPv4 address (e.g. 203.0.113.10)", value)
    return value


def validate_port(value: str) -> int:
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()) or not 1 <= int(text) <= 65535:
        raise ParameterValidationError("application port", "an integer between 1 and 65535", value)
    return int(text)


def validate_non_empty(field: str) -> Callable[[str], str]:
    def _validate(value: str) -> str:
        if not value or not value.strip():
            raise ParameterValidationError(field, "a non-empty value", value)
        return value.strip()

    return _validate


def validate_branch(value: str) -> str:
    value = value.strip() or DEFAULT_BRANCH
    if value.startswith("-") or any(ch.isspace() for ch in value):
        raise ParameterValidationError("branch", "a git branch name without spaces", value)
    return value


def validate_key_path(value: str) -> Path:
    """Expand a leading `~`, then require an existing readable file."""
    text = value.strip()
    if not text:
        raise ParameterValidationError("SSH key path", "a path to an existing SSH private key", value)
    path = Path(os.path.expanduser(text))
    if not path.is_file():
        raise ParameterValidationError("SSH key path", f"an existing file (not found: {path})", value)
    if not os.access(path, os.R_OK):
        raise ParameterValidationError("SSH key path", f"a readable file (cannot read: {path})", value)
    return path


# Prompt order is fixed: each answer is validated before the next is asked.
_DEPLOY_PROMPTS: List[Tuple[str, str, InputType, Optional[str], Callable[[str], object]]] = [
    ("repo_url", "Enter Git Repository URL", InputType.TEXT, None, validate_url),
    ("access_token", "Enter Personal Access Token (PAT)", InputType.SECRET, None, validate_non_empty("access token")),
    ("branch", "Enter Branch name", InputType.TEXT, DEFAULT_BRANCH, validate_branch),
    ("ssh_username", "Enter SSH Username", InputType.TEXT, None, validate_non_empty("SSH username")),
    ("server_address", "Enter Server IP address", InputType.TEXT, None, validate_ipv4),
    ("ssh_key_path", "Enter SSH Key Path", InputType.TEXT, None, validate_key_path),
    ("app_port", "Enter Application Port", InputType.TEXT, str(DEFAULT_APP_PORT), validate_port),
]

_CLEANUP_PROMPTS: List[Tuple[str, str, InputType, Optional[str], Callable[[str], object]]] = [
    ("server_address", "Enter Server IP", InputType.TEXT, None, validate_ipv4),
    ("ssh_username", "Enter SSH Username", InputType.TEXT, None, validate_non_empty("SSH username")),
    ("ssh_key_path", "Enter SSH Key Path", InputType.TEXT, None, validate_key_path),
]


class ParameterValidator:
    """Collects operator input and fails on the first invalid field."""

    def validate(self, raw: Dict[str, str]) -> DeploymentParameters:
        """Validate an already-collected mapping of answers."""
        values = self._apply(_DEPLOY_PROMPTS, raw.get)
        return DeploymentParameters(**values)  # type: ignore[arg-type]

    def collect(self, handler: UserInteractionHandler) -> DeploymentParameters:
        values = self._apply(_DEPLOY_PROMPTS, self._asker(handler, _DEPLOY_PROMPTS))
        return DeploymentParameters(**values)  # type: ignore[arg-type]

    def collect_host(self, handler: UserInteractionHandler) -> HostParameters:
        values = self._apply(_CLEANUP_PROMPTS, self._asker(handler, _CLEANUP_PROMPTS))
        return HostParameters(**values)  # type: ignore[arg-type]

    @staticmethod
    def _asker(handler: UserInteractionHandler, prompts) -> Callable[[str], Optional[str]]:
        lookup = {key: (question, input_type, default) for key, question, input_type, default, _ in prompts}

        def ask(key: str) -> Optional[str]:
            question, input_type, default = lookup[key]
            response = handler.ask(
                InteractionRequest(key=key, question=question, input_type=input_type, default=default)
            )
            if response.cancelled:
                raise DeploymentError("Input cancelled by operator", stage="parameters")
            return response.value

        return ask

    @staticmethod
    def _apply(prompts, source: Callable[[str], Optional[str]]) -> Dict[str, object]:
        values: Dict[str, object] = {}
        for key, _question, _input_type, default, validator in prompts:
            raw = source(key)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                raw = default if default is not None else ""
            values[key] = validator(str(raw))
        return values
