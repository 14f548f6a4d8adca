"""Git-based repository management."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class GitCommandError(RuntimeError):
    """Raised when a git command fails."""

    def __init__(self, command: list[str], exit_code: int, stderr: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Git command {' '.join(command)} failed with code {exit_code}: {stderr}")


@dataclass
class GitCloneResult:
    """Details about a completed clone/update."""

    path: Path
    branch: str
    commit_sha: str
    cloned: bool = False


class GitRepositoryManager:
    """Wraps `git` CLI commands for cloning and updating repositories."""

    def __init__(self, git_binary: str = "git") -> None:
        self.git_binary = git_binary
        self._secrets: list[str] = []

    def clone_or_update(
        self,
        repo_url: str,
        target_dir: Path,
        *,
        branch: str = "main",
        token: Optional[str] = None,
    ) -> GitCloneResult:
        """Leave `target_dir` as a working copy of `branch`.

        An existing clone is fetched and fast-forwarded; anything else at the
        path is replaced by a fresh clone.
        """
        target_dir = target_dir.resolve()
        clone_url = self._with_token(repo_url, token)
        cloned = False
        if (target_dir / ".git").exists():
            self._run(["remote", "set-url", "origin", clone_url], cwd=target_dir)
            self._run(["fetch", "origin", branch], cwd=target_dir)
            self._run(["checkout", branch], cwd=target_dir)
            self._run(["pull", "--ff-only", "origin", branch], cwd=target_dir)
        else:
            if target_dir.exists():
                shutil.rmtree(target_dir, ignore_errors=True)
            target_dir.parent.mkdir(parents=True, exist_ok=True)
            self._run(["clone", "--branch", branch, clone_url, str(target_dir)])
            cloned = True

        commit_sha = self._run(["rev-parse", "HEAD"], cwd=target_dir).strip()
        return GitCloneResult(path=target_dir, branch=branch, commit_sha=commit_sha, cloned=cloned)

    def _with_token(self, repo_url: str, token: Optional[str]) -> str:
        if token and repo_url.startswith("https://"):
            self._secrets.append(token)
            return f"https://{token}@{repo_url[len('https://'):]}"
        return repo_url

    def _redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text

    def _run(self, args: list[str], cwd: Optional[Path] = None) -> str:
        command = [self.git_binary] + args
        try:
            process = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            # 127: same code a shell reports for a missing command
            raise GitCommandError(
                [self._redact(part) for part in command], 127, self._redact(str(exc))
            ) from exc
        if process.returncode != 0:
            raise GitCommandError(
                [self._redact(part) for part in command],
                process.returncode,
                self._redact(process.stderr.strip()),
            )
        return process.stdout
