"""Typed remote operations.

Every command sent to the remote host is built here as a named
:class:`RemoteOperation`. Parameters are kept as structured values and
quoted with :func:`shlex.quote` when the command line is assembled, so
stage code never interpolates operator input into shell text itself.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

DOCKER_INSTALL_SCRIPT_URL = "https://get.docker.com"


@dataclass(frozen=True)
class RemoteOperation:
    """A named remote command with the parameters it was built from."""

    name: str
    command: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.command


def _sh(*parts: object) -> str:
    return " ".join(shlex.quote(str(part)) for part in parts)


class OperationCatalog:
    """Factory for every remote operation the deployer issues."""

    def __init__(self, sudo: str = "sudo -n") -> None:
        self.sudo = sudo.strip()

    def _priv(self, *parts: object) -> str:
        prefix = f"{self.sudo} " if self.sudo else ""
        return prefix + _sh(*parts)

    # -- host probing ---------------------------------------------------

    def echo(self, message: str = "Connection successful") -> RemoteOperation:
        return RemoteOperation("host.echo", _sh("echo", message), {"message": message})

    def command_available(self, tool: str) -> RemoteOperation:
        return RemoteOperation(
            "host.command_available",
            f"command -v {shlex.quote(tool)} >/dev/null 2>&1",
            {"tool": tool},
        )

    # -- packages and services -----------------------------------------

    def update_package_index(self) -> RemoteOperation:
        return RemoteOperation("packages.update", self._priv("apt-get", "update", "-y"))

    def install_package(self, package: str) -> RemoteOperation:
        return RemoteOperation(
            "packages.install",
            self._priv("env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install", "-y", package),
            {"package": package},
        )

    def install_docker(self) -> RemoteOperation:
        script = "/tmp/get-docker.sh"
        command = " && ".join([
            _sh("curl", "-fsSL", DOCKER_INSTALL_SCRIPT_URL, "-o", script),
            self._priv("sh", script),
            _sh("rm", "-f", script),
        ])
        return RemoteOperation("docker.install", command, {"script_url": DOCKER_INSTALL_SCRIPT_URL})

    def add_user_to_group(self, username: str, group: str = "docker") -> RemoteOperation:
        return RemoteOperation(
            "users.add_to_group",
            self._priv("usermod", "-aG", group, username),
            {"username": username, "group": group},
        )

    def compose_available(self) -> RemoteOperation:
        return RemoteOperation(
            "compose.available",
            "docker compose version >/dev/null 2>&1 || command -v docker-compose >/dev/null 2>&1",
        )

    def enable_service(self, service: str) -> RemoteOperation:
        return RemoteOperation("service.enable", self._priv("systemctl", "enable", service), {"service": service})

    def service_enabled(self, service: str) -> RemoteOperation:
        return RemoteOperation(
            "service.is_enabled", _sh("systemctl", "is-enabled", "--quiet", service), {"service": service}
        )

    def start_service(self, service: str) -> RemoteOperation:
        return RemoteOperation("service.start", self._priv("systemctl", "start", service), {"service": service})

    def service_active(self, service: str) -> RemoteOperation:
        return RemoteOperation("service.is_active", _sh("systemctl", "is-active", service), {"service": service})

    def reload_service(self, service: str) -> RemoteOperation:
        return RemoteOperation("service.reload", self._priv("systemctl", "reload", service), {"service": service})

    def tool_version(self, tool: str) -> RemoteOperation:
        commands = {
            "docker": "docker --version",
            "compose": "docker compose version 2>/dev/null || docker-compose --version",
            "nginx": "nginx -v 2>&1",
        }
        return RemoteOperation("tool.version", commands[tool], {"tool": tool})

    # -- files ----------------------------------------------------------

    def unpack_archive(self, app_dir: str) -> RemoteOperation:
        command = " && ".join([
            _sh("rm", "-rf", app_dir),
            _sh("mkdir", "-p", app_dir),
            _sh("tar", "xzf", "-", "-C", app_dir),
        ])
        return RemoteOperation("files.unpack_archive", command, {"app_dir": app_dir})

    def remove_tree(self, path: str) -> RemoteOperation:
        return RemoteOperation("files.remove_tree", _sh("rm", "-rf", path), {"path": path})

    def read_file(self, path: str) -> RemoteOperation:
        return RemoteOperation("files.read", _sh("cat", path), {"path": path})

    def path_exists(self, path: str) -> RemoteOperation:
        # -L so that dangling symlinks still count
        return RemoteOperation("files.exists", f"test -e {shlex.quote(path)} -o -L {shlex.quote(path)}", {"path": path})

    def read_link(self, path: str) -> RemoteOperation:
        return RemoteOperation("files.read_link", _sh("readlink", path), {"path": path})

    def write_file(self, path: str) -> RemoteOperation:
        """Write stdin to `path` as root."""
        return RemoteOperation("files.write", f"{self._priv('tee', path)} >/dev/null", {"path": path})

    def symlink(self, target: str, link: str) -> RemoteOperation:
        return RemoteOperation("files.symlink", self._priv("ln", "-sfn", target, link), {"target": target, "link": link})

    def remove_file(self, path: str) -> RemoteOperation:
        return RemoteOperation("files.remove", self._priv("rm", "-f", path), {"path": path})

    # -- containers -----------------------------------------------------

    def stop_container(self, name: str) -> RemoteOperation:
        return RemoteOperation("container.stop", self._priv("docker", "stop", name), {"name": name})

    def remove_container(self, name: str) -> RemoteOperation:
        return RemoteOperation("container.remove", self._priv("docker", "rm", name), {"name": name})

    def container_running(self, name: str) -> RemoteOperation:
        return RemoteOperation(
            "container.running",
            self._priv(
                "docker", "ps",
                "--filter", f"name=^/{name}$",
                "--filter", "status=running",
                "--format", "{{.Names}}",
            ),
            {"name": name},
        )

    def container_logs(self, name: str, tail: int = 100) -> RemoteOperation:
        return RemoteOperation(
            "container.logs",
            f"{self._priv('docker', 'logs', '--tail', tail, name)} 2>&1",
            {"name": name, "tail": tail},
        )

    def run_container(
        self,
        name: str,
        image: str,
        port: int,
        *,
        port_env_var: str = "PORT",
        restart_policy: str = "unless-stopped",
    ) -> RemoteOperation:
        return RemoteOperation(
            "container.run",
            self._priv(
                "docker", "run", "-d",
                "--name", name,
                "-p", f"{port}:{port}",
                "-e", f"{port_env_var}={port}",
                "--restart", restart_policy,
                image,
            ),
            {"name": name, "image": image, "port": port, "restart_policy": restart_policy},
        )

    def list_container_ids(self) -> RemoteOperation:
        return RemoteOperation("container.list_ids", self._priv("docker", "ps", "-aq"))

    def stop_containers(self, ids: Iterable[str]) -> RemoteOperation:
        ids = list(ids)
        return RemoteOperation("container.stop_many", self._priv("docker", "stop", *ids), {"ids": ids})

    def remove_containers(self, ids: Iterable[str]) -> RemoteOperation:
        ids = list(ids)
        return RemoteOperation("container.remove_many", self._priv("docker", "rm", *ids), {"ids": ids})

    # -- images ---------------------------------------------------------

    def build_image(self, app_dir: str, tags: Iterable[str]) -> RemoteOperation:
        tags = list(tags)
        tag_args = []
        for tag in tags:
            tag_args.extend(["-t", tag])
        command = f"cd {shlex.quote(app_dir)} && {self._priv('docker', 'build', *tag_args, '.')}"
        return RemoteOperation("image.build", command, {"app_dir": app_dir, "tags": tags})

    def list_images(self, repository: str) -> RemoteOperation:
        return RemoteOperation(
            "image.list",
            self._priv("docker", "images", repository, "--format", "{{.ID}} {{.Tag}}"),
            {"repository": repository},
        )

    def remove_images(self, ids: Iterable[str]) -> RemoteOperation:
        ids = list(ids)
        return RemoteOperation("image.remove", self._priv("docker", "rmi", "-f", *ids), {"ids": ids})

    def prune_images(self) -> RemoteOperation:
        return RemoteOperation("image.prune_all", self._priv("docker", "system", "prune", "-af"))

    # -- reverse proxy --------------------------------------------------

    def test_proxy_config(self) -> RemoteOperation:
        return RemoteOperation("proxy.test", f"{self._priv('nginx', '-t')} 2>&1")

    # -- http -----------------------------------------------------------

    def local_http_probe(self, port: int) -> RemoteOperation:
        return RemoteOperation(
            "http.local_probe",
            _sh("curl", "-fsS", "-o", "/dev/null", "--max-time", "5", f"http://localhost:{port}"),
            {"port": port},
        )
