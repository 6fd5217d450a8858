"""Composer provider for global tool installation."""
from __future__ import annotations

from dataclasses import dataclass

from ..commands import CommandRunner


@dataclass(slots=True)
class ComposerProvider:
    """Install packages into composer's global vendor directory."""

    runner: CommandRunner
    composer_bin: str = "composer"

    def install_global(self, package: str) -> None:
        """Run ``composer global require`` for *package*."""
        self.runner.run([self.composer_bin, "global", "require", package, "--no-interaction"])


__all__ = ["ComposerProvider"]
