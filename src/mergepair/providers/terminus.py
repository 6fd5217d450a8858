"""Terminus provider for the Pantheon-hosted side of a remote clone."""
from __future__ import annotations

from dataclasses import dataclass

from ..commands import CommandError, CommandRunner

GIT_MODE = "git"


class TerminusError(CommandError):
    """Raised when terminus returns something unusable."""


def codeserver_url(site_id: str) -> str:
    """Return the git address of a Pantheon site's dev codeserver."""
    host = f"codeserver.dev.{site_id}"
    return f"ssh://{host}@{host}.drush.in:2222/~/repository.git"


@dataclass(slots=True)
class TerminusProvider:
    """Query and adjust a Pantheon site through terminus."""

    runner: CommandRunner
    terminus_bin: str = "terminus"

    def whoami(self) -> str:
        """Return the authenticated account, or an empty string when logged out."""
        result = self.runner.run([self.terminus_bin, "auth:whoami"], check=False)
        if result.returncode != 0:
            return ""
        return (result.stdout or "").strip()

    def site_id(self, site: str) -> str:
        """Return the UUID of *site*."""
        value = self.runner.output([self.terminus_bin, "site:info", site, "--field=id"])
        if not value:
            raise TerminusError(f"terminus returned no id for site '{site}'.")
        return value

    def connection_mode(self, site: str, env: str) -> str:
        return self.runner.output(
            [self.terminus_bin, "env:info", f"{site}.{env}", "--field=connection_mode"]
        ).lower()

    def set_connection_mode(self, site: str, env: str, mode: str = GIT_MODE) -> None:
        self.runner.run([self.terminus_bin, "connection:set", f"{site}.{env}", mode])

    def refresh_aliases(self) -> None:
        """Regenerate ``pantheon.aliases.drushrc.php``."""
        self.runner.run([self.terminus_bin, "aliases"])


__all__ = ["GIT_MODE", "TerminusError", "TerminusProvider", "codeserver_url"]
