"""Machine-local settings and randomized config directories.

``settings.php`` is shared through git; credentials and the hash salt live in
an unversioned ``settings.local.php`` next to it. The include directive and
the local file are gated independently, so a run that stopped between them
only finishes the missing half. Each gate checks the end state of its whole
step, so a step that stopped partway runs again.
"""
from __future__ import annotations

import stat
from pathlib import Path

from ..commands import CommandError
from ..material import generate_config_suffix, generate_hash_salt
from ..models import DatabaseCredentials, SiteIdentity
from ..providers.git import DEFAULT_BRANCH, DEFAULT_REMOTE
from ..steps import ProvisioningError
from .context import ProvisioningContext

# Any uncommented line naming settings.local.php, whether it includes the file
# directly or through a variable. Drupal's default file mentions it only in
# comments.
LOCAL_INCLUDE_PATTERN = r"^(?![ \t]*(?:#|//|/?\*)).*settings\.local\.php"
CONFIG_DIRECTORY_PATTERN = (
    r"^\$config_directories\['active'\]\s*=\s*'[^']*config_([A-Za-z0-9]+)/active'"
)

LOCAL_INCLUDE = """
if (file_exists(__DIR__ . '/settings.local.php')) {
  include __DIR__ . '/settings.local.php';
}
"""

CONFIG_DIRECTORY_ROOT = "sites/default"
REMOTE_EXPORT_DIRECTORY = "sites/default/config"


def _php(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def render_local_settings(
    site: SiteIdentity,
    *,
    hash_salt: str,
    database: DatabaseCredentials,
) -> str:
    """Return the contents of ``settings.local.php`` for *site*."""
    site_name = f"{site.name} {site.env}"
    return f"""<?php

// Machine-local overrides for {site.alias()}. Generated once; not tracked in git.

$config['system.site']['name'] = '{_php(site_name)}';

$settings['hash_salt'] = '{_php(hash_salt)}';

$databases['default']['default'] = array(
  'database' => '{_php(site.database_name)}',
  'username' => '{_php(database.user)}',
  'password' => '{_php(database.password)}',
  'host' => '{_php(database.host)}',
  'port' => '{database.port}',
  'driver' => 'mysql',
  'prefix' => '',
  'namespace' => 'Drupal\\\\Core\\\\Database\\\\Driver\\\\mysql',
);
"""


def render_config_directories(suffix: str) -> str:
    """Return the ``$config_directories`` block for a randomized *suffix*."""
    base = f"{CONFIG_DIRECTORY_ROOT}/config_{suffix}"
    return (
        "\n"
        f"$config_directories['active'] = '{base}/active';\n"
        f"$config_directories['staging'] = '{base}/staging';\n"
        f"$config_directories['sync'] = '{base}/staging';\n"
    )


def config_directories_for(root: Path, suffix: str) -> tuple[Path, Path]:
    """Return the (active, staging) directories for *suffix* under *root*."""
    base = root / CONFIG_DIRECTORY_ROOT / f"config_{suffix}"
    return base / "active", base / "staging"


def _make_writable(path: Path) -> None:
    # Drupal's installer leaves sites/default and settings.php read-only.
    if not path.exists():
        return
    mode = path.stat().st_mode
    if not mode & stat.S_IWUSR:
        path.chmod(mode | stat.S_IWUSR)


def _append(path: Path, text: str) -> str:
    """Append *text* to *path*; return what the file held before."""
    if not path.is_file():
        raise ProvisioningError(f"{path} does not exist")
    _make_writable(path)
    previous = path.read_text(encoding="utf-8")
    with path.open("a", encoding="utf-8") as handle:
        handle.write(text)
    return previous


def ensure_local_overrides(
    context: ProvisioningContext,
    site: SiteIdentity,
    database: DatabaseCredentials,
) -> None:
    """Include ``settings.local.php`` from the shared settings and create it once."""
    prober = context.prober
    git = context.git
    settings_file = site.settings_file
    local_file = site.local_settings_file
    relative_settings = str(settings_file.relative_to(site.root))

    def _include_present() -> bool:
        return prober.file_matches(settings_file, LOCAL_INCLUDE_PATTERN)

    def _include_needed() -> bool:
        return not _include_present() or prober.git_push_pending(
            site.root, DEFAULT_REMOTE, DEFAULT_BRANCH
        )

    def _commit_include() -> None:
        previous = _append(settings_file, LOCAL_INCLUDE)
        try:
            git.add(site.root, [relative_settings])
            git.commit(site.root, "Include settings.local.php for machine-local overrides.")
        except CommandError:
            # The include only stays in the working tree once it is committed.
            settings_file.write_text(previous, encoding="utf-8")
            raise

    def _add_include() -> None:
        if not _include_present():
            _commit_include()
        git.push(site.root)

    context.executor.run(
        "settings.include_local",
        when=_include_needed,
        action=_add_include,
        success=f"Added and pushed the settings.local.php include for {site.alias()}",
        failure=f"Unable to add the settings.local.php include to {settings_file}",
    )

    def _write_local() -> None:
        _make_writable(site.settings_dir)
        local_file.write_text(
            render_local_settings(site, hash_salt=generate_hash_salt(), database=database),
            encoding="utf-8",
        )
        local_file.chmod(0o640)
        try:
            context.drush.sql_create(site.alias())
        except CommandError:
            # sql-create reads its credentials from the new file; the file only
            # stays once the database exists.
            local_file.unlink()
            raise
        context.flags.request_database_copy()

    context.executor.run(
        "settings.write_local",
        when=lambda: not prober.file_exists(local_file),
        action=_write_local,
        success=(
            f"Wrote {local_file} and created database '{site.database_name}' for {site.alias()}"
        ),
        failure=f"Unable to write local settings for {site.alias()}",
    )


def ensure_config_directories(context: ProvisioningContext, site: SiteIdentity) -> None:
    """Declare randomized config directories, create them and export config."""
    prober = context.prober
    settings_file = site.settings_file

    def _configured_suffix() -> str | None:
        return prober.first_match(settings_file, CONFIG_DIRECTORY_PATTERN)

    def _needed() -> bool:
        suffix = _configured_suffix()
        if suffix is None:
            return True
        _, staging = config_directories_for(site.root, suffix)
        return not prober.config_export_present(staging)

    def _configure() -> None:
        suffix = _configured_suffix()
        if suffix is None:
            suffix = generate_config_suffix()
            _make_writable(site.settings_dir)
            _append(settings_file, render_config_directories(suffix))
        for directory in config_directories_for(site.root, suffix):
            directory.mkdir(parents=True, exist_ok=True)
        context.drush.config_export(site.alias())

    context.executor.run(
        "settings.config_directories",
        when=_needed,
        action=_configure,
        success=f"Configured config directories and exported configuration for {site.alias()}",
        failure=f"Unable to configure config directories for {site.alias()}",
    )


__all__ = [
    "CONFIG_DIRECTORY_PATTERN",
    "LOCAL_INCLUDE",
    "LOCAL_INCLUDE_PATTERN",
    "REMOTE_EXPORT_DIRECTORY",
    "config_directories_for",
    "ensure_config_directories",
    "ensure_local_overrides",
    "render_config_directories",
    "render_local_settings",
]
