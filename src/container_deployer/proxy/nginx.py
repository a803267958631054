"""Nginx reverse proxy configuration for the deployed container."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Optional

from ..config import ProxyConfig
from ..errors import RemoteExecutionError
from ..remote.host import RemoteExecutor, check

logger = logging.getLogger(__name__)

STAGE = "proxy"

_SITE_TEMPLATE = """server {{
    listen 80 default_server;
    listen [::]:80 default_server;

    server_name _;

    location / {{
        proxy_pass http://localhost:{port};
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection 'upgrade';
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_cache_bypass $http_upgrade;
    }}
}}
"""


def render_site_config(port: int) -> str:
    """Server block routing every path to the container's port."""
    if not 1 <= int(port) <= 65535:
        raise ValueError(f"Invalid port: {port}")
    return _SITE_TEMPLATE.format(port=int(port))


@dataclass
class _SiteSnapshot:
    """Proxy files as they were before we touched them."""

    site_content: Optional[str]
    site_linked: bool
    default_target: Optional[str]


class ReverseProxyConfigurator:
    """Writes, tests and activates the site; never reloads an invalid config."""

    def __init__(self, remote: RemoteExecutor, config: ProxyConfig) -> None:
        self.remote = remote
        self.config = config
        self.ops = remote.ops

    @property
    def available_path(self) -> str:
        return posixpath.join(self.config.sites_available, self.config.site_name)

    @property
    def enabled_path(self) -> str:
        return posixpath.join(self.config.sites_enabled, self.config.site_name)

    @property
    def default_path(self) -> str:
        return posixpath.join(self.config.sites_enabled, self.config.default_site)

    def configure(self, port: int) -> str:
        content = render_site_config(port)
        snapshot = self._snapshot()

        logger.info("Creating Nginx configuration...")
        try:
            self._activate(content)
            logger.info("Testing Nginx configuration...")
            test = self.remote.execute(self.ops.test_proxy_config())
        except RemoteExecutionError:
            self._restore(snapshot)
            raise

        if not test.ok:
            logger.error("Nginx configuration test failed; restoring previous configuration")
            self._restore(snapshot)
            raise RemoteExecutionError(
                "Nginx configuration test failed",
                operation="proxy.test",
                exit_status=test.exit_status,
                stage=STAGE,
                output=test.output or None,
            )

        logger.info("Reloading Nginx...")
        check(self.remote, self.ops.reload_service("nginx"), stage=STAGE, message="Failed to reload Nginx")
        return content

    def _exists(self, path: str) -> bool:
        return self.remote.execute(self.ops.path_exists(path)).ok

    def _snapshot(self) -> _SiteSnapshot:
        site = self.remote.execute(self.ops.read_file(self.available_path))
        default_target = None
        if self._exists(self.default_path):
            link = self.remote.execute(self.ops.read_link(self.default_path))
            default_target = link.stdout.strip() if link.ok and link.stdout.strip() else (
                posixpath.join(self.config.sites_available, self.config.default_site)
            )
        return _SiteSnapshot(
            site_content=site.stdout + "\n" if site.ok else None,
            site_linked=self._exists(self.enabled_path),
            default_target=default_target,
        )

    def _activate(self, content: str) -> None:
        check(self.remote, self.ops.write_file(self.available_path), stage=STAGE,
              message=f"Failed to write {self.available_path}", input_data=content.encode("utf-8"))
        check(self.remote, self.ops.symlink(self.available_path, self.enabled_path), stage=STAGE,
              message=f"Failed to enable site {self.config.site_name}")
        check(self.remote, self.ops.remove_file(self.default_path), stage=STAGE,
              message="Failed to remove the default site")

    def _restore(self, snapshot: _SiteSnapshot) -> None:
        """Best-effort return to the snapshot; failures are logged."""
        steps = []
        if snapshot.site_content is None:
            steps.append((self.ops.remove_file(self.available_path), None))
        else:
            steps.append((self.ops.write_file(self.available_path), snapshot.site_content.encode("utf-8")))
        if not snapshot.site_linked:
            steps.append((self.ops.remove_file(self.enabled_path), None))
        if snapshot.default_target:
            steps.append((self.ops.symlink(snapshot.default_target, self.default_path), None))

        for operation, payload in steps:
            result = self.remote.execute(operation, input_data=payload)
            if not result.ok:
                logger.warning("Could not restore proxy state (%s): %s", operation.name, result.output)
