"""Working-copy transfer to the remote application directory.

Two strategies satisfy the same contract: after `synchronize` the remote
directory holds exactly the filtered local tree, with files deleted
locally also gone remotely.
"""

from __future__ import annotations

import fnmatch
import logging
import shlex
import shutil
import subprocess
import tarfile
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, Sequence

from ..errors import RemoteExecutionError
from ..remote.host import RemoteExecutor, check
from ..ssh import SSHCredentials

logger = logging.getLogger(__name__)

STAGE = "transfer"


def is_excluded(relative: PurePosixPath, excludes: Sequence[str]) -> bool:
    """Match any path component against the exclude patterns, as rsync does."""
    return any(fnmatch.fnmatchcase(part, pattern) for part in relative.parts for pattern in excludes)


def iter_transfer_files(root: Path, excludes: Sequence[str]) -> Iterator[PurePosixPath]:
    """Yield relative paths (files, symlinks and directories) that get transferred."""
    root = Path(root)
    for path in sorted(root.rglob("*")):
        relative = PurePosixPath(path.relative_to(root).as_posix())
        if is_excluded(relative, excludes):
            continue
        yield relative


class _ChunkSink:
    """Write-only file object whose contents are drained between tar members."""

    def __init__(self) -> None:
        self._pending = bytearray()

    def write(self, data: bytes) -> int:
        self._pending.extend(data)
        return len(data)

    def drain(self) -> Iterator[bytes]:
        if self._pending:
            chunk = bytes(self._pending)
            self._pending.clear()
            yield chunk


def iter_archive(root: Path, excludes: Sequence[str]) -> Iterator[bytes]:
    """Gzip tarball of the filtered tree, yielded member by member.

    Paths are relative to `root`. At most one file's compressed data is held
    in memory at a time.
    """
    root = Path(root)
    sink = _ChunkSink()
    with tarfile.open(fileobj=sink, mode="w|gz") as archive:
        for relative in iter_transfer_files(root, excludes):
            archive.add(root / relative, arcname=str(relative), recursive=False)
            yield from sink.drain()
    yield from sink.drain()


def build_archive(root: Path, excludes: Sequence[str]) -> bytes:
    """The whole archive from :func:`iter_archive` as one bytes object."""
    return b"".join(iter_archive(root, excludes))


class TransferStrategy(ABC):
    """Mirror a local tree into the remote application directory."""

    name: str = "abstract"

    @abstractmethod
    def synchronize(self, source: Path, remote: RemoteExecutor, app_dir: str) -> None:
        ...


class RsyncTransfer(TransferStrategy):
    """rsync -az --delete --delete-excluded over ssh with the operator's key."""

    name = "rsync"

    def __init__(self, credentials: SSHCredentials, excludes: Sequence[str], rsync_binary: str = "rsync") -> None:
        self.credentials = credentials
        self.excludes = list(excludes)
        self.rsync_binary = rsync_binary

    def build_command(self, source: Path, app_dir: str) -> list[str]:
        # rsync splits -e on whitespace but honours shell-style quotes
        ssh_cmd = shlex.join([
            "ssh",
            "-i", str(self.credentials.key_path),
            "-p", str(self.credentials.port),
            "-o", "StrictHostKeyChecking=no",
            "-o", "BatchMode=yes",
            "-o", f"ConnectTimeout={self.credentials.timeout}",
        ])
        cmd = [self.rsync_binary, "-az", "--delete", "--delete-excluded", "-e", ssh_cmd]
        for pattern in self.excludes:
            cmd.append(f"--exclude={pattern}")
        # Trailing slashes copy the tree's contents into app_dir
        cmd.append(f"{str(source).rstrip('/')}/")
        cmd.append(f"{self.credentials.destination}:{app_dir.rstrip('/')}/")
        return cmd

    def synchronize(self, source: Path, remote: RemoteExecutor, app_dir: str) -> None:
        logger.info("Using rsync for file transfer...")
        cmd = self.build_command(source, app_dir)
        try:
            process = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise RemoteExecutionError(
                "Failed to launch rsync",
                operation="transfer.rsync",
                exit_status=127,
                stage=STAGE,
                command=shlex.join(cmd),
                output=str(exc),
            ) from exc
        if process.returncode != 0:
            raise RemoteExecutionError(
                "Failed to transfer files with rsync",
                operation="transfer.rsync",
                exit_status=process.returncode,
                stage=STAGE,
                command=shlex.join(cmd),
                output=(process.stderr or process.stdout).strip() or None,
            )


class TarStreamTransfer(TransferStrategy):
    """Stream a gzip tarball over the SSH channel and unpack it remotely."""

    name = "tar"

    def __init__(self, excludes: Sequence[str]) -> None:
        self.excludes = list(excludes)

    def synchronize(self, source: Path, remote: RemoteExecutor, app_dir: str) -> None:
        logger.info("rsync not available, using tar+ssh for file transfer...")
        payload = iter_archive(source, self.excludes)
        check(
            remote,
            remote.ops.unpack_archive(app_dir),
            stage=STAGE,
            message="Failed to transfer files with tar",
            input_data=payload,
        )


class ArtifactTransferer:
    """Picks a strategy from a capability probe and runs it."""

    def __init__(
        self,
        remote: RemoteExecutor,
        credentials: SSHCredentials,
        *,
        excludes: Iterable[str],
        prefer_rsync: bool = True,
    ) -> None:
        self.remote = remote
        self.credentials = credentials
        self.excludes = list(excludes)
        self.prefer_rsync = prefer_rsync

    def rsync_available(self) -> bool:
        if shutil.which("rsync") is None:
            return False
        return self.remote.execute(self.remote.ops.command_available("rsync")).ok

    def select_strategy(self) -> TransferStrategy:
        if self.prefer_rsync and self.rsync_available():
            return RsyncTransfer(self.credentials, self.excludes)
        return TarStreamTransfer(self.excludes)

    def transfer(self, source: Path, app_dir: str) -> TransferStrategy:
        strategy = self.select_strategy()
        strategy.synchronize(Path(source), self.remote, app_dir)
        return strategy
