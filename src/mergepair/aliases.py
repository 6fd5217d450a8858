"""Drush alias group file management.

Aliases live in a drush 8 group file such as
``~/.drush/local.aliases.drushrc.php``; a record stored under ``demo.dev`` in
that file is addressed as ``@local.demo.dev``. The file is treated as an
append-only text store: records are only ever appended, and a key that is
already present is never rewritten (first writer wins). Only the key is
unique; two keys may share a root or uri.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .models import SiteIdentity

HEADER = "<?php\n\n// Drush site aliases maintained by mergepair. Records are append-only.\n"

_RECORD_PATTERN = re.compile(
    r"\$aliases\['(?P<key>[^']+)'\]\s*=\s*array\((?P<body>.*?)\);",
    re.DOTALL,
)
_FIELD_PATTERN = re.compile(r"'(?P<field>[^']+)'\s*=>\s*'(?P<value>(?:[^'\\]|\\.)*)'")


class AliasRegistryError(RuntimeError):
    """Raised when the alias file cannot be read or written."""


def alias_marker(key: str) -> str:
    """Return the exact text that marks *key* as registered."""
    return f"$aliases['{key}']"


def _php_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def render_record(key: str, root: Path | str, uri: str) -> str:
    """Return the PHP block appended for one alias."""
    return (
        f"\n{alias_marker(key)} = array(\n"
        f"  'root' => '{_php_string(str(root))}',\n"
        f"  'uri' => '{_php_string(uri)}',\n"
        ");\n"
    )


@dataclass(frozen=True)
class AliasRegistry:
    """Append-only view over a drush alias group file."""

    path: Path

    def __post_init__(self) -> None:
        """Normalise the path after initialisation."""
        object.__setattr__(self, "path", self.path.expanduser())

    @property
    def group(self) -> str:
        """Alias group name derived from the file name (``local`` for local.aliases...)."""
        return self.path.name.split(".", 1)[0]

    def ensure_file(self) -> bool:
        """Create the file with a valid PHP header; return True when created."""
        if self.path.exists():
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(HEADER, encoding="utf-8")
        except OSError as exc:
            raise AliasRegistryError(f"Unable to create alias file {self.path}: {exc}") from exc
        return True

    def contains(self, key: str) -> bool:
        return alias_marker(key) in self._read_text()

    def register(self, key: str, root: Path | str, uri: str) -> bool:
        """Append a record for *key*; return False (no-op) if already present."""
        self.ensure_file()
        if self.contains(key):
            return False
        try:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(render_record(key, root, uri))
        except OSError as exc:
            raise AliasRegistryError(f"Unable to append alias '{key}' to {self.path}: {exc}") from exc
        return True

    def register_site(self, identity: SiteIdentity) -> bool:
        """Register *identity* under its alias key."""
        return self.register(identity.alias_key, identity.root, identity.address)

    def get(self, key: str) -> dict[str, str] | None:
        """Return the ``root``/``uri`` mapping of the first record for *key*."""
        return self.entries().get(key)

    def keys(self) -> list[str]:
        return list(self.entries())

    def entries(self) -> Mapping[str, dict[str, str]]:
        """Parse every record in file order; earlier records win on duplicates."""
        records: dict[str, dict[str, str]] = {}
        for match in _RECORD_PATTERN.finditer(self._read_text()):
            key = match.group("key")
            if key in records:
                continue
            fields = {
                item.group("field"): item.group("value").replace("\\'", "'").replace("\\\\", "\\")
                for item in _FIELD_PATTERN.finditer(match.group("body"))
            }
            records[key] = fields
        return records

    def _read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as exc:
            raise AliasRegistryError(f"Unable to read alias file {self.path}: {exc}") from exc


__all__ = [
    "AliasRegistry",
    "AliasRegistryError",
    "alias_marker",
    "render_record",
]
