"""Tear-down of everything a deployment provisioned on the remote host."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import List

from .config import AppConfig
from .remote.host import RemoteExecutor, check

logger = logging.getLogger(__name__)

STAGE = "cleanup"


@dataclass
class CleanupReport:
    removed_containers: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class CleanupAgent:
    """Stops all containers, prunes images, drops the site and the app dir.

    Irreversible: there is no confirmation beyond invoking it.
    """

    def __init__(self, remote: RemoteExecutor, config: AppConfig) -> None:
        self.remote = remote
        self.config = config
        self.ops = remote.ops

    def run(self) -> CleanupReport:
        report = CleanupReport()
        proxy = self.config.proxy

        listing = check(self.remote, self.ops.list_container_ids(), stage=STAGE,
                        message="Failed to list containers")
        ids = listing.stdout.split()
        if ids:
            logger.info("Stopping and removing %d container(s)...", len(ids))
            check(self.remote, self.ops.stop_containers(ids), stage=STAGE, message="Failed to stop containers")
            check(self.remote, self.ops.remove_containers(ids), stage=STAGE, message="Failed to remove containers")
            report.removed_containers = ids
        else:
            logger.info("No containers to remove")

        logger.info("Pruning unused images...")
        check(self.remote, self.ops.prune_images(), stage=STAGE, message="Failed to prune Docker images")

        logger.info("Removing Nginx site...")
        for path in (
            posixpath.join(proxy.sites_enabled, proxy.site_name),
            posixpath.join(proxy.sites_available, proxy.site_name),
        ):
            check(self.remote, self.ops.remove_file(path), stage=STAGE, message=f"Failed to remove {path}")

        test = self.remote.execute(self.ops.test_proxy_config())
        if test.ok:
            check(self.remote, self.ops.reload_service("nginx"), stage=STAGE, message="Failed to reload Nginx")
        else:
            message = "Nginx configuration test failed after removing the site; Nginx was not reloaded"
            logger.warning(message)
            report.warnings.append(message)

        logger.info("Removing remote application directory...")
        check(self.remote, self.ops.remove_tree(self.config.remote.app_dir), stage=STAGE,
              message="Failed to remove the remote application directory")
        return report
