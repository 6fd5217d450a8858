"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from mergepair.aliases import AliasRegistry
from mergepair.commands import CommandError, format_command
from mergepair.config import AppConfig, load_config
from mergepair.models import DatabaseCredentials, ProvisioningInputs, SiteIdentity, Topology
from mergepair.provision import ProvisioningContext, build_context

SITE_UUID = "0f3c2a1e-1111-2222-3333-444455556666"

DEFAULT_SETTINGS = """<?php

$databases = array();
$config_directories = array();
# if (file_exists($app_root . '/' . $site_path . '/settings.local.php')) {
#   include $app_root . '/' . $site_path . '/settings.local.php';
# }
$settings['install_profile'] = 'standard';
"""


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip expensive tests during mutation runs."""
    if not os.environ.get("MUTANT_UNDER_TEST"):
        return
    skip_marker = pytest.mark.skip(reason="Skipped during mutation run to avoid timeouts.")
    for item in items:
        if "mutation_timeout" in item.keywords:
            item.add_marker(skip_marker)


def _option(args: Sequence[str], name: str) -> str | None:
    prefix = f"--{name}="
    for arg in args:
        if arg.startswith(prefix):
            return arg[len(prefix) :]
    return None


def _write_site(root: Path) -> None:
    settings_dir = root / "sites" / "default"
    settings_dir.mkdir(parents=True, exist_ok=True)
    (root / "index.php").write_text("<?php\n", encoding="utf-8")
    (settings_dir / "settings.php").write_text(DEFAULT_SETTINGS, encoding="utf-8")


def _read_ref(git_dir: Path, ref: str) -> str | None:
    path = git_dir / ref
    return path.read_text(encoding="utf-8").strip() if path.is_file() else None


def _write_ref(git_dir: Path, ref: str, value: str) -> None:
    path = git_dir / ref
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{value}\n", encoding="utf-8")


class FakeRunner:
    """Scripted stand-in for :class:`mergepair.commands.CommandRunner`.

    Records every command and reproduces the filesystem effects the real
    tools would have, so whole pipelines can run against ``tmp_path``.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.calls: list[list[str]] = []
        self.failures: list[tuple[str, ...]] = []
        self.drush_version = "8.1.17"
        self.terminus_user = "dev@example.com"
        self.connection_mode = "git"
        self.site_id = SITE_UUID
        self.pull_output = "Already up to date.\n"
        self.remotes: dict[Path, str] = {}
        self.published: dict[str, Path] = {}
        self.missing: set[str] = set()
        # Stands in for the user's init.defaultBranch setting.
        self.default_branch = "main"
        self.commit_count = 0

    # Helpers for assertions ------------------------------------------------
    def commands(self, *prefix: str) -> list[list[str]]:
        """Return recorded calls whose tool and leading args match *prefix*."""
        matches = []
        for call in self.calls:
            candidate = [Path(call[0]).name, *call[1:]]
            if candidate[: len(prefix)] == list(prefix):
                matches.append(call)
        return matches

    def fail_on(self, *prefix: str) -> None:
        self.failures.append(prefix)

    # CommandRunner protocol ------------------------------------------------
    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        call = list(args)
        self.calls.append(call)
        candidate = [Path(call[0]).name, *call[1:]]
        if candidate[0] in self.missing:
            raise CommandError(f"{call[0]} not found: [Errno 2] No such file or directory")
        for prefix in self.failures:
            if candidate[: len(prefix)] == list(prefix):
                if check:
                    raise CommandError(
                        f"{format_command(call)} failed (exit 1): boom", returncode=1
                    )
                return subprocess.CompletedProcess(call, 1, stdout="", stderr="boom")
        stdout = self._simulate(candidate[0], candidate[1:], cwd)
        return subprocess.CompletedProcess(call, 0, stdout=stdout, stderr="")

    def output(self, args: Sequence[str], *, cwd: Path | None = None) -> str:
        return (self.run(args, cwd=cwd).stdout or "").strip()

    # Simulation ------------------------------------------------------------
    def _simulate(self, tool: str, args: list[str], cwd: Path | None) -> str:
        handler: Callable[[list[str], Path | None], str] | None = getattr(
            self, f"_{tool}", None
        )
        if handler is None:
            return ""
        return handler(args, cwd)

    def _git(self, args: list[str], cwd: Path | None) -> str:
        command = args[0]
        if command == "clone":
            positional = [arg for arg in args[1:] if not arg.startswith("--") and arg != "1"]
            source, target = positional[0], Path(positional[1])
            if source in self.published:
                shutil.copytree(
                    self.published[source],
                    target,
                    ignore=shutil.ignore_patterns(".git", "settings.local.php"),
                )
            else:
                _write_site(target)
                (target / "sites" / "default" / "config").mkdir(parents=True, exist_ok=True)
            git_dir = target / ".git"
            git_dir.mkdir(parents=True, exist_ok=True)
            (git_dir / "config").write_text(
                f'[core]\n[remote "origin"]\n\turl = {source}\n', encoding="utf-8"
            )
            (git_dir / "HEAD").write_text("ref: refs/heads/master\n", encoding="utf-8")
            if source in self.published:
                head = _read_ref(Path(source), "refs/heads/master")
            else:
                head = self._next_commit()
            if head is not None:
                _write_ref(git_dir, "refs/heads/master", head)
                _write_ref(git_dir, "refs/remotes/origin/master", head)
            self.remotes[target] = source
        elif command == "init":
            path = Path(args[-1])
            branch = _option(args, "initial-branch") or self.default_branch
            if "--bare" in args:
                git_dir = path
                (path / "objects").mkdir(parents=True, exist_ok=True)
            else:
                git_dir = path / ".git"
                git_dir.mkdir(parents=True, exist_ok=True)
                (git_dir / "config").write_text("[core]\n", encoding="utf-8")
            (git_dir / "HEAD").write_text(f"ref: refs/heads/{branch}\n", encoding="utf-8")
        elif command == "remote" and args[1] == "add":
            assert cwd is not None
            with (cwd / ".git" / "config").open("a", encoding="utf-8") as handle:
                handle.write(f'[remote "{args[2]}"]\n\turl = {args[3]}\n')
            self.remotes[cwd] = args[3]
        elif command == "commit":
            assert cwd is not None
            git_dir = cwd / ".git"
            if git_dir.is_dir():
                head = (git_dir / "HEAD").read_text(encoding="utf-8").split(": ", 1)[1].strip()
                _write_ref(git_dir, head, self._next_commit())
        elif command == "push":
            assert cwd is not None
            remote_name, branch = [arg for arg in args[1:] if arg != "-u"]
            git_dir = cwd / ".git"
            if git_dir.is_dir():
                head = _read_ref(git_dir, f"refs/heads/{branch}")
                if head is None:
                    raise CommandError(
                        f"git push failed (exit 1): error: src refspec {branch} does not match any",
                        returncode=1,
                    )
                _write_ref(git_dir, f"refs/remotes/{remote_name}/{branch}", head)
                remote = self.remotes.get(cwd)
                if remote is not None and (Path(remote) / "HEAD").is_file():
                    _write_ref(Path(remote), f"refs/heads/{branch}", head)
            remote = self.remotes.get(cwd)
            if remote is not None and remote not in self.published:
                self.published[remote] = cwd
        elif command == "pull":
            return self.pull_output
        return ""

    def _next_commit(self) -> str:
        self.commit_count += 1
        return f"{self.commit_count:040x}"

    def _drush(self, args: list[str], cwd: Path | None) -> str:
        if args[0] == "version":
            return f"{self.drush_version}\n"
        if args[0] == "quick-drupal":
            root = Path(_option(args, "root") or "")
            _write_site(root)
            return ""
        if args[0].startswith("@local.") and args[1] == "config-export":
            self._export(args[0])
        return ""

    def _export(self, alias: str) -> None:
        entry = AliasRegistry(self.config.alias_file).get(alias[len("@local.") :])
        assert entry is not None, f"alias {alias} not registered"
        root = Path(entry["root"])
        settings = (root / "sites" / "default" / "settings.php").read_text(encoding="utf-8")
        match = re.search(r"\$config_directories\['sync'\] = '([^']+)';", settings)
        export_dir = root / (match.group(1) if match else "sites/default/config")
        export_dir.mkdir(parents=True, exist_ok=True)
        (export_dir / "system.site.yml").write_text("name: exported\n", encoding="utf-8")

    def _terminus(self, args: list[str], cwd: Path | None) -> str:
        command = args[0]
        if command == "auth:whoami":
            return self.terminus_user
        if command == "site:info":
            return self.site_id
        if command == "env:info":
            return self.connection_mode
        if command == "connection:set":
            self.connection_mode = args[2]
        elif command == "aliases":
            alias_file = self.config.pantheon_alias_file
            alias_file.parent.mkdir(parents=True, exist_ok=True)
            alias_file.write_text(
                "<?php\n$aliases['mysite.dev'] = array('uri' => 'dev-mysite.pantheonsite.io');\n",
                encoding="utf-8",
            )
        return ""


@pytest.fixture
def make_site() -> Callable[..., SiteIdentity]:
    """Return a factory writing a freshly scaffolded site and its identity."""

    def _factory(root: Path, *, name: str = "demo", env: str = "dev") -> SiteIdentity:
        _write_site(root)
        return SiteIdentity(name=name, env=env, root=root, address="localhost:8778")

    return _factory


@pytest.fixture
def default_settings() -> str:
    return DEFAULT_SETTINGS


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Configuration with every path redirected under ``tmp_path``."""
    return load_config(
        config_file=tmp_path / "missing.yml",
        env={},
        overrides={
            "base_dir": str(tmp_path / "sites"),
            "drush_dir": str(tmp_path / "drush"),
            "logs_dir": str(tmp_path / "logs"),
            "shell_rc": str(tmp_path / "home" / ".bashrc"),
            "composer_bin_dir": str(tmp_path / "composer" / "bin"),
        },
    )


@pytest.fixture
def fake_runner(app_config: AppConfig) -> FakeRunner:
    return FakeRunner(app_config)


ContextFactory = Callable[..., ProvisioningContext]


@pytest.fixture
def make_context(app_config: AppConfig, fake_runner: FakeRunner) -> ContextFactory:
    """Return a factory building a provisioning context around ``fake_runner``."""

    def _factory(
        topology: Topology = Topology.LOCAL_PAIR,
        *,
        site: str = "demo",
        env: str = "dev",
        revert: bool = False,
        force: bool = False,
        password: str = "secret",
    ) -> ProvisioningContext:
        inputs = ProvisioningInputs(
            topology=topology,
            site=site,
            base_dir=app_config.base_dir,
            env=env,
            port=app_config.default_port,
            database=DatabaseCredentials(
                user="drupal",
                password=password,
                host="127.0.0.1",
                port=3306,
            ),
            revert=revert,
            force=force,
        )
        return build_context(app_config, inputs, runner=fake_runner)  # type: ignore[arg-type]

    return _factory
