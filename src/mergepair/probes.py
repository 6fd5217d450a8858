"""Read-only environment probes used to decide whether a step is needed.

Every probe answers a yes/no question about the host without changing it.
Absence is an expected answer, so probes never raise for missing or
unreadable resources; they simply return ``False``.
"""
from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from .aliases import alias_marker


def _command_exists(command: str, search_path: str | None = None) -> bool:
    path = Path(command)
    if path.is_absolute() or (path.parent and str(path.parent) not in {"", "."}):
        return path.exists() and os.access(path, os.X_OK)
    resolved = shutil.which(command, path=search_path)
    return resolved is not None and os.access(resolved, os.X_OK)


@dataclass(slots=True)
class EnvironmentProber:
    """Side-effect-free queries against the filesystem and search path."""

    alias_file: Path
    search_path: str | None = None

    def binary_exists(self, name: str) -> bool:
        """Return True when *name* resolves to an executable."""
        return _command_exists(name, self.search_path)

    def file_exists(self, path: Path) -> bool:
        return path.is_file()

    def directory_exists(self, path: Path) -> bool:
        return path.is_dir()

    def file_contains(self, path: Path, marker: str) -> bool:
        """Return True when *path* is readable and contains *marker*."""
        try:
            return marker in path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False

    def file_matches(self, path: Path, pattern: str) -> bool:
        """Return True when *path* is readable and matches regex *pattern*."""
        return self.first_match(path, pattern) is not None

    def first_match(self, path: Path, pattern: str) -> str | None:
        """Return the first group of *pattern* in *path* (or the whole match)."""
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None
        match = re.search(pattern, content, flags=re.MULTILINE)
        if match is None:
            return None
        return match.group(1) if match.re.groups else match.group(0)

    def alias_registered(self, name: str, alias_file: Path | None = None) -> bool:
        """Return True when alias key *name* is present in the alias group file."""
        return self.file_contains(alias_file or self.alias_file, alias_marker(name))

    def config_export_present(self, path: Path) -> bool:
        """Return True when *path* holds at least one exported ``*.yml`` file."""
        if not path.is_dir():
            return False
        return any(path.glob("*.yml"))

    # Composite probes ----------------------------------------------------
    def git_checkout_exists(self, path: Path) -> bool:
        return (path / ".git").exists()

    def bare_repository_exists(self, path: Path) -> bool:
        return (path / "HEAD").is_file() and (path / "objects").is_dir()

    def git_remote_configured(self, path: Path, remote: str = "origin") -> bool:
        return self.file_contains(path / ".git" / "config", f'[remote "{remote}"]')

    def git_ref(self, git_dir: Path, ref: str) -> str | None:
        """Return the object id *ref* points at in *git_dir*, loose or packed."""
        loose = self.first_match(git_dir / ref, r"^([0-9a-f]{40,64})$")
        if loose is not None:
            return loose
        try:
            packed = (git_dir / "packed-refs").read_text(encoding="utf-8")
        except OSError:
            return None
        for line in packed.splitlines():
            object_id, _, name = line.partition(" ")
            if name == ref:
                return object_id
        return None

    def git_head_unborn(self, path: Path) -> bool:
        """Return True when the checkout at *path* has no commit on its branch."""
        git_dir = path / ".git"
        try:
            head = (git_dir / "HEAD").read_text(encoding="utf-8").strip()
        except OSError:
            return True
        if not head.startswith("ref: "):
            return False
        return self.git_ref(git_dir, head[len("ref: ") :]) is None

    def git_push_pending(self, path: Path, remote: str, branch: str) -> bool:
        """Return True when *branch* has commits its remote-tracking ref lacks."""
        git_dir = path / ".git"
        local = self.git_ref(git_dir, f"refs/heads/{branch}")
        if local is None:
            return False
        return local != self.git_ref(git_dir, f"refs/remotes/{remote}/{branch}")


__all__ = ["EnvironmentProber"]
