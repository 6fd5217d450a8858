"""Drush provider: site scaffolding, databases and configuration."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from packaging.version import InvalidVersion, Version

from ..commands import CommandError, CommandRunner


class DrushVersionError(CommandError):
    """Raised when the installed drush cannot be identified or is unsupported."""


@dataclass(slots=True)
class DrushProvider:
    """Invoke drush against site aliases."""

    runner: CommandRunner
    drush_bin: str = "drush"

    def version(self) -> Version:
        """Return the installed drush version."""
        raw = self.runner.output([self.drush_bin, "version", "--format=string"])
        text = raw.strip().splitlines()[-1].strip() if raw.strip() else ""
        try:
            return Version(text)
        except InvalidVersion as exc:
            raise DrushVersionError(f"Unable to parse drush version from {raw!r}.") from exc

    def require_version(self, minimum: str, below: str) -> Version:
        """Return the drush version, raising unless ``minimum <= version < below``."""
        current = self.version()
        if current < Version(minimum) or current >= Version(below):
            raise DrushVersionError(
                f"drush {current} is not supported; need at least {minimum} and below {below}."
            )
        return current

    def quick_drupal(
        self,
        site_name: str,
        *,
        root: Path,
        core: str,
        db_url: str,
    ) -> None:
        """Scaffold a Drupal site at *root* with ``drush quick-drupal``."""
        args = [
            self.drush_bin,
            "quick-drupal",
            f"--core={core}",
            f"--root={root}",
            f"--site-name={site_name}",
            f"--db-url={db_url}",
            "--no-server",
            "--yes",
        ]
        self.runner.run(args, cwd=root.parent)

    def sql_create(self, alias: str) -> None:
        self._drush(alias, ["sql-create"])

    def sql_sync(self, source: str, target: str) -> None:
        self.runner.run([self.drush_bin, "sql-sync", source, target, "--yes"])

    def config_export(self, alias: str) -> None:
        self._drush(alias, ["config-export"])

    def config_import(self, alias: str) -> None:
        self._drush(alias, ["config-import"])

    def cache_rebuild(self, alias: str) -> None:
        self._drush(alias, ["cache-rebuild"])

    def _drush(self, alias: str, args: Sequence[str]) -> None:
        self.runner.run([self.drush_bin, alias, *args, "--yes"])


__all__ = ["DrushProvider", "DrushVersionError"]
