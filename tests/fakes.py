"""In-memory stand-ins for the remote host and paramiko."""

from __future__ import annotations

import io
import posixpath
import tarfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from container_deployer.gitops import GitSyncResult, repository_name
from container_deployer.remote.operations import OperationCatalog, RemoteOperation
from container_deployer.ssh import SSHCommandResult

SITES_AVAILABLE = "/etc/nginx/sites-available"
SITES_ENABLED = "/etc/nginx/sites-enabled"


class FakeRemote:
    """Simulates docker, nginx and the filesystem of a remote host.

    Dispatches on operation names, so tests never parse shell text.
    """

    def __init__(
        self,
        *,
        tools: Tuple[str, ...] = ("docker", "nginx", "rsync"),
        compose: bool = True,
        services_running: bool = True,
    ) -> None:
        self.ops = OperationCatalog()
        self.executed: List[RemoteOperation] = []
        self.chunked_inputs: List[str] = []
        self.tools = set(tools)
        self.compose = compose
        self.installed: List[str] = []
        self.services: Dict[str, Dict[str, bool]] = {
            name: {"enabled": services_running, "active": services_running} for name in ("docker", "nginx")
        }
        self.files: Dict[str, str] = {}
        self.links: Dict[str, str] = {}
        self.trees: Dict[str, List[str]] = {}
        self.containers: Dict[str, Dict[str, object]] = {}
        self.images: List[Dict[str, object]] = []   # newest first
        self.failures: Dict[str, Tuple[int, str]] = {}
        self.nginx_valid = True
        self.container_starts = True
        self.http_ok = True
        self.reloads = 0
        self.loaded_config: Optional[Dict[str, object]] = None
        self.closed = False
        self._counter = 0

    # -- helpers for tests ------------------------------------------------

    def names(self) -> List[str]:
        return [op.name for op in self.executed]

    def running_containers(self) -> List[str]:
        return [name for name, c in self.containers.items() if c["running"]]

    def image_ids(self, repository: str) -> List[str]:
        return [
            img["id"] for img in self.images
            if any(tag.split(":")[0] == repository for tag in img["tags"])  # type: ignore[union-attr]
        ]

    def add_site(self, name: str, content: str) -> None:
        path = posixpath.join(SITES_AVAILABLE, name)
        self.files[path] = content
        self.links[posixpath.join(SITES_ENABLED, name)] = path
        self.loaded_config = self._current_config()

    def close(self) -> None:
        self.closed = True

    # -- RemoteExecutor ---------------------------------------------------

    def execute(self, operation: RemoteOperation, *, input_data=None) -> SSHCommandResult:
        self.executed.append(operation)
        if input_data is not None and not isinstance(input_data, bytes):
            input_data = b"".join(input_data)
            self.chunked_inputs.append(operation.name)
        if operation.name in self.failures:
            status, stderr = self.failures[operation.name]
            return SSHCommandResult(operation.command, "", stderr, status)
        handler = getattr(self, "_op_" + operation.name.replace(".", "_"))
        status, stdout, stderr = handler(dict(operation.params), input_data)
        return SSHCommandResult(operation.command, stdout, stderr, status)

    # -- operation handlers -----------------------------------------------

    def _op_host_echo(self, params, _data):
        return 0, params["message"], ""

    def _op_host_command_available(self, params, _data):
        return (0 if params["tool"] in self.tools else 1), "", ""

    def _op_packages_update(self, _params, _data):
        return 0, "", ""

    def _op_packages_install(self, params, _data):
        package = params["package"]
        self.installed.append(package)
        if package == "docker-compose":
            self.compose = True
        self.tools.add(package)
        return 0, "", ""

    def _op_docker_install(self, _params, _data):
        self.installed.append("docker")
        self.tools.add("docker")
        return 0, "", ""

    def _op_users_add_to_group(self, _params, _data):
        return 0, "", ""

    def _op_compose_available(self, _params, _data):
        return (0 if self.compose else 1), "", ""

    def _op_service_enable(self, params, _data):
        self.services[params["service"]]["enabled"] = True
        return 0, "", ""

    def _op_service_is_enabled(self, params, _data):
        return (0 if self.services[params["service"]]["enabled"] else 1), "", ""

    def _op_service_start(self, params, _data):
        self.services[params["service"]]["active"] = True
        return 0, "", ""

    def _op_service_is_active(self, params, _data):
        active = self.services[params["service"]]["active"]
        return (0 if active else 3), ("active" if active else "inactive"), ""

    def _op_service_reload(self, params, _data):
        if params["service"] == "nginx":
            self.reloads += 1
            self.loaded_config = self._current_config()
        return 0, "", ""

    def _op_tool_version(self, params, _data):
        versions = {
            "docker": "Docker version 27.3.1, build ce12230",
            "compose": "Docker Compose version v2.29.7",
            "nginx": "nginx version: nginx/1.24.0 (Ubuntu)",
        }
        return 0, versions[params["tool"]], ""

    def _op_files_unpack_archive(self, params, data):
        with tarfile.open(fileobj=io.BytesIO(data or b""), mode="r:gz") as archive:
            self.trees[params["app_dir"]] = sorted(archive.getnames())
        return 0, "", ""

    def _op_files_remove_tree(self, params, _data):
        self.trees.pop(params["path"], None)
        return 0, "", ""

    def _op_files_read(self, params, _data):
        path = params["path"]
        if path in self.files:
            return 0, self.files[path].strip(), ""
        return 1, "", f"cat: {path}: No such file or directory"

    def _op_files_exists(self, params, _data):
        path = params["path"]
        return (0 if path in self.files or path in self.links else 1), "", ""

    def _op_files_read_link(self, params, _data):
        path = params["path"]
        if path in self.links:
            return 0, self.links[path], ""
        return 1, "", ""

    def _op_files_write(self, params, data):
        self.files[params["path"]] = (data or b"").decode("utf-8")
        return 0, "", ""

    def _op_files_symlink(self, params, _data):
        self.links[params["link"]] = params["target"]
        return 0, "", ""

    def _op_files_remove(self, params, _data):
        self.files.pop(params["path"], None)
        self.links.pop(params["path"], None)
        return 0, "", ""

    def _op_container_stop(self, params, _data):
        name = params["name"]
        if name not in self.containers:
            return 1, "", f"Error response from daemon: No such container: {name}"
        self.containers[name]["running"] = False
        return 0, name, ""

    def _op_container_remove(self, params, _data):
        name = params["name"]
        if name not in self.containers:
            return 1, "", f"Error response from daemon: No such container: {name}"
        del self.containers[name]
        return 0, name, ""

    def _op_container_running(self, params, _data):
        name = params["name"]
        container = self.containers.get(name)
        return 0, (name if container and container["running"] else ""), ""

    def _op_container_logs(self, params, _data):
        return 0, f"{params['name']}: Error: Cannot find module 'express'", ""

    def _op_container_run(self, params, _data):
        name = params["name"]
        if name in self.containers:
            return 125, "", f'Conflict. The container name "/{name}" is already in use'
        image = next(img for img in self.images if params["image"] in img["tags"])  # type: ignore[operator]
        self._counter += 1
        self.containers[name] = {
            "id": f"c{self._counter:04d}",
            "image": image["id"],
            "running": self.container_starts,
            "port": params["port"],
        }
        return 0, f"c{self._counter:04d}", ""

    def _op_container_list_ids(self, _params, _data):
        return 0, "\n".join(str(c["id"]) for c in self.containers.values()), ""

    def _op_container_stop_many(self, params, _data):
        for container in self.containers.values():
            if container["id"] in params["ids"]:
                container["running"] = False
        return 0, "", ""

    def _op_container_remove_many(self, params, _data):
        self.containers = {n: c for n, c in self.containers.items() if c["id"] not in params["ids"]}
        return 0, "", ""

    def _op_image_build(self, params, _data):
        self._counter += 1
        new_tags = set(params["tags"])
        for image in self.images:
            image["tags"] = set(image["tags"]) - new_tags  # type: ignore[arg-type]
        self.images.insert(0, {"id": f"sha{self._counter:04d}", "tags": new_tags})
        return 0, "Successfully built", ""

    def _op_image_list(self, params, _data):
        repository = params["repository"]
        lines = []
        for image in self.images:
            for tag in sorted(image["tags"]):  # type: ignore[arg-type]
                repo, _, version = tag.partition(":")
                if repo == repository:
                    lines.append(f"{image['id']} {version}")
        return 0, "\n".join(lines), ""

    def _op_image_remove(self, params, _data):
        self.images = [img for img in self.images if img["id"] not in params["ids"]]
        return 0, "", ""

    def _op_image_prune_all(self, _params, _data):
        used = {c["image"] for c in self.containers.values()}
        self.images = [img for img in self.images if img["id"] in used]
        return 0, "", ""

    def _op_proxy_test(self, _params, _data):
        if self.nginx_valid:
            return 0, "nginx: configuration file /etc/nginx/nginx.conf test is successful", ""
        return 1, "", "nginx: [emerg] unexpected end of file in /etc/nginx/sites-enabled/app:17"

    def _op_http_local_probe(self, _params, _data):
        return (0 if self.http_ok else 7), "", ("" if self.http_ok else "curl: (7) Failed to connect")

    # -- internals --------------------------------------------------------

    def _current_config(self) -> Dict[str, object]:
        return {"files": dict(self.files), "links": dict(self.links)}


class StubSynchronizer:
    """Materialises a working copy instead of talking to a git server."""

    files = {"Dockerfile": "FROM node:20-alpine\nCMD [\"node\", \"server.js\"]\n", "server.js": "// app\n"}

    def __init__(self, workspace: Path) -> None:
        self.workspace = Path(workspace)

    def synchronize(self, repo_url: str, branch: str, token=None) -> GitSyncResult:
        target = self.workspace / repository_name(repo_url)
        cloned = not target.exists()
        target.mkdir(parents=True, exist_ok=True)
        for name, content in self.files.items():
            (target / name).write_text(content, encoding="utf-8")
        return GitSyncResult(working_copy=target, commit_sha="0123456789abcdef", cloned=cloned)


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


def fake_http_get(status_code: int = 200):
    calls: List[str] = []

    def _get(url, **kwargs):
        calls.append(url)
        return FakeResponse(status_code)

    _get.calls = calls  # type: ignore[attr-defined]
    return _get


def no_sleep(_seconds: float) -> None:
    return None


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds
