"""Git-based repository synchronization."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ..errors import DeploymentError

logger = logging.getLogger(__name__)


class GitCommandError(DeploymentError):
    """Raised when a git command fails."""

    action = "run git command"

    def __init__(self, command: list[str], exit_code: int, stderr: str) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"Failed to {self.action} (git exited with code {exit_code}): {stderr}",
            stage="repository",
            command=" ".join(command),
        )


class GitCloneError(GitCommandError):
    action = "clone repository"


class GitFetchError(GitCommandError):
    action = "fetch from origin"


class GitCheckoutError(GitCommandError):
    action = "checkout branch"


class GitPullError(GitCommandError):
    action = "pull latest changes"


@dataclass
class GitSyncResult:
    """Details about a completed clone/update."""

    working_copy: Path
    commit_sha: str
    cloned: bool


def repository_name(repo_url: str) -> str:
    """Derive the working-copy directory name from the repository URL."""
    slug = repo_url.rstrip("/").split("/")[-1]
    if slug.endswith(".git"):
        slug = slug[:-4]
    return slug or "repository"


def authenticated_url(repo_url: str, token: Optional[str]) -> str:
    """Embed `token` into the authority of an http(s) URL."""
    if not token:
        return repo_url
    parts = urlsplit(repo_url)
    if parts.scheme not in ("http", "https"):
        return repo_url
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit(parts._replace(netloc=f"{quote(token, safe='')}@{host}"))


class RepositorySynchronizer:
    """Wraps `git` CLI commands for cloning and updating one branch.

    The token only ever appears on git command lines. After a clone the
    origin URL is reset to the plain URL so nothing secret lands in
    `.git/config`.
    """

    def __init__(self, workspace: Path, git_binary: str = "git") -> None:
        self.workspace = Path(workspace)
        self.git_binary = git_binary

    def working_copy_for(self, repo_url: str) -> Path:
        return self.workspace / repository_name(repo_url)

    def synchronize(self, repo_url: str, branch: str, token: Optional[str] = None) -> GitSyncResult:
        target_dir = self.working_copy_for(repo_url)
        auth_url = authenticated_url(repo_url, token)
        secrets = [s for s in (token, quote(token, safe="") if token else None) if s]

        if target_dir.is_dir():
            logger.info("Repository directory exists. Pulling latest changes...")
            self._run(["fetch", "--prune", auth_url, "+refs/heads/*:refs/remotes/origin/*"],
                      cwd=target_dir, error=GitFetchError, secrets=secrets)
            self._run(["checkout", branch], cwd=target_dir, error=GitCheckoutError, secrets=secrets)
            self._run(["pull", "--ff-only", auth_url, branch], cwd=target_dir, error=GitPullError, secrets=secrets)
            cloned = False
        else:
            logger.info("Cloning repository...")
            self.workspace.mkdir(parents=True, exist_ok=True)
            self._run(["clone", "--branch", branch, auth_url, str(target_dir)],
                      error=GitCloneError, secrets=secrets)
            if auth_url != repo_url:
                self._run(["remote", "set-url", "origin", repo_url], cwd=target_dir,
                          error=GitCloneError, secrets=secrets)
            cloned = True

        commit_sha = self._run(["rev-parse", "HEAD"], cwd=target_dir, secrets=secrets).strip()
        return GitSyncResult(working_copy=target_dir, commit_sha=commit_sha, cloned=cloned)

    def _run(
        self,
        args: list[str],
        cwd: Optional[Path] = None,
        *,
        error: type[GitCommandError] = GitCommandError,
        secrets: Optional[list[str]] = None,
    ) -> str:
        command = [self.git_binary] + args
        try:
            process = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=False,
                env=_non_interactive_env(),
            )
        except OSError as exc:
            # 127 is the shell's "command not found" status
            raise error([_redact(part, secrets) for part in command], 127, str(exc)) from exc
        if process.returncode != 0:
            raise error(
                [_redact(part, secrets) for part in command],
                process.returncode,
                _redact(process.stderr.strip(), secrets),
            )
        return process.stdout


def _redact(text: str, secrets: Optional[list[str]]) -> str:
    for secret in secrets or []:
        text = text.replace(secret, "***")
    return text


def _non_interactive_env() -> dict:
    env = dict(os.environ)
    # Fail instead of prompting for credentials on a terminal
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env
