"""Tests for the drush alias group file."""
from __future__ import annotations

from pathlib import Path

from mergepair.aliases import HEADER, AliasRegistry, alias_marker, render_record
from mergepair.models import SiteIdentity


def test_register_creates_file_with_header(tmp_path: Path) -> None:
    registry = AliasRegistry(tmp_path / "drush" / "local.aliases.drushrc.php")

    assert registry.register("demo.dev", tmp_path / "demo-dev", "localhost:8778") is True

    text = registry.path.read_text(encoding="utf-8")
    assert text.startswith(HEADER)
    assert alias_marker("demo.dev") in text
    assert registry.group == "local"
    assert registry.get("demo.dev") == {
        "root": str(tmp_path / "demo-dev"),
        "uri": "localhost:8778",
    }


def test_register_is_first_writer_wins(tmp_path: Path) -> None:
    registry = AliasRegistry(tmp_path / "local.aliases.drushrc.php")
    registry.register("demo.dev", "/first", "localhost:8778")

    assert registry.register("demo.dev", "/second", "localhost:9999") is False

    text = registry.path.read_text(encoding="utf-8")
    assert text.count(alias_marker("demo.dev")) == 1
    assert registry.get("demo.dev") == {"root": "/first", "uri": "localhost:8778"}


def test_entries_keep_first_duplicate_and_allow_shared_roots(tmp_path: Path) -> None:
    path = tmp_path / "local.aliases.drushrc.php"
    path.write_text(
        HEADER
        + render_record("demo.dev", "/srv/shared", "localhost:1")
        + render_record("demo.test", "/srv/shared", "localhost:1")
        + render_record("demo.dev", "/srv/other", "localhost:2"),
        encoding="utf-8",
    )
    registry = AliasRegistry(path)

    assert registry.keys() == ["demo.dev", "demo.test"]
    assert registry.get("demo.dev") == {"root": "/srv/shared", "uri": "localhost:1"}
    assert registry.get("demo.test") == {"root": "/srv/shared", "uri": "localhost:1"}


def test_register_site_uses_alias_key(tmp_path: Path) -> None:
    registry = AliasRegistry(tmp_path / "local.aliases.drushrc.php")
    site = SiteIdentity(name="demo", env="test", root=tmp_path / "demo-test", address="localhost:8779")

    registry.register_site(site)

    assert registry.contains("demo.test")
    assert site.alias() == "@local.demo.test"


def test_values_with_quotes_are_escaped(tmp_path: Path) -> None:
    registry = AliasRegistry(tmp_path / "local.aliases.drushrc.php")
    registry.register("odd.dev", "/srv/o'brien", "localhost:8778")

    assert "'/srv/o\\'brien'" in registry.path.read_text(encoding="utf-8")
    assert registry.get("odd.dev") == {"root": "/srv/o'brien", "uri": "localhost:8778"}


def test_missing_file_reads_as_empty(tmp_path: Path) -> None:
    registry = AliasRegistry(tmp_path / "local.aliases.drushrc.php")

    assert registry.keys() == []
    assert registry.contains("demo.dev") is False
    assert registry.ensure_file() is True
    assert registry.ensure_file() is False
