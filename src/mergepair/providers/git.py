"""Git provider used for checkouts and the shared repository."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from ..commands import CommandRunner

DEFAULT_BRANCH = "master"
DEFAULT_REMOTE = "origin"


@dataclass(slots=True)
class GitProvider:
    """Thin wrapper over the git CLI."""

    runner: CommandRunner
    git_bin: str = "git"

    def clone(self, source: str, target: Path, *, depth: int | None = None) -> None:
        """Clone *source* into *target*, shallow when *depth* is given."""
        args = [self.git_bin, "clone"]
        if depth is not None:
            args.extend(["--depth", str(depth)])
        args.extend([source, str(target)])
        self._git(args)

    def pull(
        self,
        checkout: Path,
        *,
        remote: str = DEFAULT_REMOTE,
        branch: str = DEFAULT_BRANCH,
    ) -> subprocess.CompletedProcess[str]:
        """Pull *branch* from *remote* into *checkout*; return the completed process."""
        return self._git([self.git_bin, "pull", remote, branch], cwd=checkout)

    def init(self, path: Path, *, bare: bool = False, branch: str = DEFAULT_BRANCH) -> None:
        """Create a repository at *path* (a bare one when requested).

        The initial branch is *branch* regardless of ``init.defaultBranch``;
        push and pull name it explicitly.
        """
        args = [self.git_bin, "init"]
        if bare:
            args.append("--bare")
        args.extend([f"--initial-branch={branch}", str(path)])
        self._git(args)

    def remote_add(self, checkout: Path, name: str, url: str) -> None:
        self._git([self.git_bin, "remote", "add", name, url], cwd=checkout)

    def add(self, checkout: Path, paths: Sequence[str] = ("-A",)) -> None:
        self._git([self.git_bin, "add", *paths], cwd=checkout)

    def commit(self, checkout: Path, message: str) -> None:
        self._git([self.git_bin, "commit", "-m", message], cwd=checkout)

    def push(
        self,
        checkout: Path,
        *,
        remote: str = DEFAULT_REMOTE,
        branch: str = DEFAULT_BRANCH,
        set_upstream: bool = False,
    ) -> None:
        args = [self.git_bin, "push"]
        if set_upstream:
            args.append("-u")
        args.extend([remote, branch])
        self._git(args, cwd=checkout)

    def _git(
        self, args: Sequence[str], *, cwd: Path | None = None
    ) -> subprocess.CompletedProcess[str]:
        return self.runner.run(args, cwd=cwd)


__all__ = ["DEFAULT_BRANCH", "DEFAULT_REMOTE", "GitProvider"]
