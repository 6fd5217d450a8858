"""MySQL connectivity checks."""
from __future__ import annotations

from dataclasses import dataclass

from ..commands import CommandError, CommandRunner
from ..models import DatabaseCredentials


@dataclass(slots=True)
class DatabaseProvider:
    """Verify that supplied credentials authenticate against the server."""

    runner: CommandRunner
    mysql_bin: str = "mysql"

    def can_connect(self, credentials: DatabaseCredentials) -> bool:
        """Return True when ``SELECT 1`` succeeds with *credentials*."""
        args = [
            self.mysql_bin,
            f"--user={credentials.user}",
            f"--host={credentials.host}",
            f"--port={credentials.port}",
        ]
        if credentials.password:
            args.append(f"--password={credentials.password}")
        args.extend(["--execute", "SELECT 1"])
        try:
            self.runner.run(args)
        except CommandError:
            return False
        return True


__all__ = ["DatabaseProvider"]
