"""Configuration loading utilities for Container Deployer."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("config/default_config.json")

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RemoteConfig:
    """Settings for talking to the remote host."""

    app_dir: str = "app"                 # relative to the SSH user's home
    ssh_port: int = 22
    connect_timeout: int = 10
    command_timeout: int = 900
    sudo: str = "sudo -n"


@dataclass(frozen=True)
class ContainerConfig:
    """Container lifecycle settings."""

    start_timeout: float = 10.0
    poll_interval: float = 1.0
    image_retention: int = 2
    port_env_var: str = "PORT"
    restart_policy: str = "unless-stopped"
    log_tail: int = 100


@dataclass(frozen=True)
class ProxyConfig:
    """Nginx site locations."""

    sites_available: str = "/etc/nginx/sites-available"
    sites_enabled: str = "/etc/nginx/sites-enabled"
    site_name: str = "app"
    default_site: str = "default"


@dataclass(frozen=True)
class TransferConfig:
    """Artifact transfer settings."""

    excludes: Tuple[str, ...] = (".git", "node_modules", "__pycache__", "*.log")
    prefer_rsync: bool = True


@dataclass(frozen=True)
class ValidationConfig:
    """Post-deployment health check settings."""

    endpoint_grace: float = 5.0
    poll_interval: float = 1.0
    public_probe_timeout: float = 10.0


@dataclass(frozen=True)
class LoggingConfig:
    """Session log settings."""

    log_dir: str = "."
    file_prefix: str = "deploy_"
    use_color: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration."""

    remote: RemoteConfig = field(default_factory=RemoteConfig)
    container: ContainerConfig = field(default_factory=ContainerConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        sections = {f.name: f for f in fields(cls)}
        unknown = set(payload) - set(sections) - {k for k in payload if k.startswith("_")}
        if unknown:
            raise ValueError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        kwargs = {}
        for name, section_field in sections.items():
            section_payload = payload.get(name, {}) or {}
            # Keys beginning with an underscore are comments
            section_payload = {k: v for k, v in section_payload.items() if not k.startswith("_")}
            section_cls = section_field.default_factory  # type: ignore[misc]
            allowed = {f.name for f in fields(section_cls)}
            bad = set(section_payload) - allowed
            if bad:
                raise ValueError(f"Unknown keys in '{name}' section: {', '.join(sorted(bad))}")
            if "excludes" in section_payload:
                section_payload["excludes"] = tuple(section_payload["excludes"])
            kwargs[name] = section_cls(**section_payload)
        return cls(**kwargs)


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """Apply CONTAINER_DEPLOYER_* environment variables on top of `config`."""
    remote = config.remote
    logging_cfg = config.logging

    env_remote_dir = os.getenv("CONTAINER_DEPLOYER_REMOTE_DIR")
    if env_remote_dir:
        remote = replace(remote, app_dir=env_remote_dir)

    env_port = os.getenv("CONTAINER_DEPLOYER_SSH_PORT")
    if env_port:
        remote = replace(remote, ssh_port=int(env_port))

    env_timeout = os.getenv("CONTAINER_DEPLOYER_CONNECT_TIMEOUT")
    if env_timeout:
        remote = replace(remote, connect_timeout=int(env_timeout))

    env_log_dir = os.getenv("CONTAINER_DEPLOYER_LOG_DIR")
    if env_log_dir:
        logging_cfg = replace(logging_cfg, log_dir=env_log_dir)

    env_no_color = os.getenv("CONTAINER_DEPLOYER_NO_COLOR")
    if env_no_color and env_no_color.strip().lower() in _TRUTHY:
        logging_cfg = replace(logging_cfg, use_color=False)

    return replace(config, remote=remote, logging=logging_cfg)


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    Environment variables (higher priority than config file):
    - CONTAINER_DEPLOYER_REMOTE_DIR: Remote application directory
    - CONTAINER_DEPLOYER_SSH_PORT: SSH port
    - CONTAINER_DEPLOYER_CONNECT_TIMEOUT: SSH connect timeout in seconds
    - CONTAINER_DEPLOYER_LOG_DIR: Directory for session log files
    - CONTAINER_DEPLOYER_NO_COLOR: Disable coloured console output
    """
    if path and not Path(path).is_file():
        raise FileNotFoundError(f"Could not find configuration file: {path}")

    candidate = Path(path) if path else _DEFAULT_CONFIG_PATH
    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        config = AppConfig.from_dict(data)
    else:
        config = AppConfig()

    return _apply_env_overrides(config)
