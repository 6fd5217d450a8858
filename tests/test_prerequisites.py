"""Tests for environment validation and prerequisite tooling."""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from mergepair.models import Topology
from mergepair.probes import EnvironmentProber
from mergepair.provision import context as context_module
from mergepair.provision import prerequisites
from mergepair.provision.prerequisites import (
    SHELL_RC_BLOCK,
    check_database_credentials,
    check_tool_versions,
    ensure_prerequisites,
    prepare_environment,
    validate_environment,
)
from mergepair.steps import ProvisioningAborted


@pytest.fixture(autouse=True)
def _regular_user(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(prerequisites, "_is_superuser", lambda: False)


def _with_tools(context, tmp_path: Path, *names: str):
    bin_dir = tmp_path / "fake-bin"
    bin_dir.mkdir(exist_ok=True)
    for name in names:
        tool = bin_dir / name
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)
    context.prober = EnvironmentProber(alias_file=context.config.alias_file, search_path=str(bin_dir))
    return context


def test_validate_environment_passes_with_tools(make_context, tmp_path: Path) -> None:
    context = _with_tools(make_context(), tmp_path, "php", "git", "composer", "meld")

    validate_environment(context)


@pytest.mark.parametrize("missing", ["php", "git", "composer"])
def test_validate_environment_requires_system_tools(
    make_context, tmp_path: Path, missing: str
) -> None:
    tools = {"php", "git", "composer"} - {missing}
    context = _with_tools(make_context(), tmp_path, *tools)

    with pytest.raises(ProvisioningAborted, match=f"'{missing}' was not found"):
        validate_environment(context)


def test_missing_diff_tool_only_warns(
    make_context,
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    context = _with_tools(make_context(), tmp_path, "php", "git", "composer")
    monkeypatch.setattr(logging.getLogger("mergepair"), "propagate", True)
    with caplog.at_level(logging.WARNING, logger="mergepair"):
        validate_environment(context)

    assert "No diff tool found" in caplog.text


def test_root_is_refused(make_context, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(prerequisites, "_is_superuser", lambda: True)
    context = _with_tools(make_context(), tmp_path, "php", "git", "composer")

    with pytest.raises(ProvisioningAborted, match="Refusing to run as root"):
        validate_environment(context)


def test_missing_composer_tools_are_installed(make_context, fake_runner, tmp_path: Path) -> None:
    context = _with_tools(make_context(Topology.REMOTE_CLONE, site="mysite"), tmp_path)

    ensure_prerequisites(context)

    assert [call[3] for call in fake_runner.commands("composer", "global", "require")] == [
        "drush/drush:8.*",
        "pantheon-systems/terminus:^1",
    ]
    assert context.flags.modified_shell_rc is True
    assert context.config.shell_rc.read_text(encoding="utf-8") == SHELL_RC_BLOCK
    assert len(context.ledger) == 3


def test_local_pair_does_not_need_terminus(make_context, fake_runner, tmp_path: Path) -> None:
    context = _with_tools(make_context(), tmp_path, "drush")
    context.config.shell_rc.parent.mkdir(parents=True)
    context.config.shell_rc.write_text('export PATH="$HOME/.composer/vendor/bin:$PATH"\n')

    ensure_prerequisites(context)

    assert fake_runner.commands("composer") == []
    assert context.flags.modified_shell_rc is False
    assert len(context.ledger) == 0


def test_install_failure_aborts(make_context, fake_runner, tmp_path: Path) -> None:
    context = _with_tools(make_context(), tmp_path)
    fake_runner.fail_on("composer")

    with pytest.raises(ProvisioningAborted, match="Unable to install drush/drush:8.\\*"):
        ensure_prerequisites(context)


@pytest.mark.parametrize("version", ["7.4.0", "9.0.0"])
def test_unsupported_drush_version_aborts(make_context, fake_runner, version: str) -> None:
    context = make_context()
    fake_runner.drush_version = version

    with pytest.raises(ProvisioningAborted, match="not supported"):
        check_tool_versions(context)


def test_supported_drush_version_passes(make_context) -> None:
    check_tool_versions(make_context())


def test_bad_database_credentials_abort(make_context, fake_runner) -> None:
    context = make_context()
    fake_runner.fail_on("mysql")

    with pytest.raises(ProvisioningAborted, match="Unable to connect to MySQL as 'drupal'"):
        check_database_credentials(context)


def test_prepare_environment_runs_checks_in_order(make_context, fake_runner, tmp_path: Path) -> None:
    context = _with_tools(make_context(), tmp_path, "php", "git", "composer", "drush", "kdiff3")

    prepare_environment(context)

    tools = [Path(call[0]).name for call in fake_runner.calls]
    assert tools == ["drush", "mysql"]
    assert context.ledger.entries == (
        f"Added composer bin directories to PATH in {prerequisites._display(context.config.shell_rc)}",
    )


def test_search_path_prefers_composer_bin(app_config) -> None:
    path = context_module.search_path_for(app_config, "/usr/bin")

    assert path.split(":")[0] == str(app_config.composer_bin_dir)
    assert path.endswith("/usr/bin")
