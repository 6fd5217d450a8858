"""Value objects shared across the provisioning workflow."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


class Topology(str, Enum):
    """Supported site-pair layouts."""

    LOCAL_PAIR = "local-pair"
    REMOTE_CLONE = "remote-clone"


@dataclass(frozen=True, slots=True)
class SiteIdentity:
    """Name, environment, root and address of one site instance."""

    name: str
    env: str
    root: Path
    address: str

    @property
    def alias_key(self) -> str:
        """Key under which the site is stored in a drush alias group."""
        return f"{self.name}.{self.env}"

    def alias(self, group: str = "local") -> str:
        """Return the drush alias, e.g. ``@local.demo.dev``."""
        return f"@{group}.{self.alias_key}"

    @property
    def database_name(self) -> str:
        """Database name derived from the alias key, alphanumerics only."""
        return sanitize_database_name(self.alias_key)

    @property
    def settings_dir(self) -> Path:
        return self.root / "sites" / "default"

    @property
    def settings_file(self) -> Path:
        return self.settings_dir / "settings.php"

    @property
    def local_settings_file(self) -> Path:
        return self.settings_dir / "settings.local.php"


@dataclass(frozen=True, slots=True)
class RepositoryReference:
    """Where a checkout comes from and where it should live."""

    source: str
    target: Path

    @property
    def is_network(self) -> bool:
        """True when the source is addressed by a URL rather than a local path."""
        return "://" in self.source


@dataclass(slots=True)
class ProvisioningFlags:
    """Run-scoped switches; each one only ever flips from False to True."""

    copy_database: bool = False
    import_configuration: bool = False
    modified_shell_rc: bool = False

    def request_database_copy(self) -> None:
        self.copy_database = True

    def request_configuration_import(self) -> None:
        self.import_configuration = True

    def mark_shell_rc_modified(self) -> None:
        self.modified_shell_rc = True


@dataclass(frozen=True, slots=True)
class DatabaseCredentials:
    """Connection details used for ``--db-url`` and ``settings.local.php``."""

    user: str
    password: str
    host: str
    port: int

    @property
    def password_suffix(self) -> str:
        # ``user:password@`` when a password is set, ``user@`` otherwise.
        return f":{self.password}" if self.password else ""

    def url(self, database: str) -> str:
        """Return a ``mysql://`` URL for *database*."""
        return f"mysql://{self.user}{self.password_suffix}@{self.host}:{self.port}/{database}"


@dataclass(frozen=True, slots=True)
class ProvisioningInputs:
    """CLI inputs after defaults and config have been applied."""

    topology: Topology
    site: str
    base_dir: Path
    env: str
    port: int
    database: DatabaseCredentials
    revert: bool = False
    force: bool = False


def sanitize_database_name(name: str) -> str:
    """Strip every non-alphanumeric character from *name*."""
    return _NON_ALNUM.sub("", name)


__all__ = [
    "DatabaseCredentials",
    "ProvisioningFlags",
    "ProvisioningInputs",
    "RepositoryReference",
    "SiteIdentity",
    "Topology",
    "sanitize_database_name",
]
