"""Configuration loader for mergepair.

Configuration values are resolved from several layers, later layers winning:

1. Built-in defaults.
2. ``~/.config/mergepair/config.yml`` (or an override path).
3. Environment variables prefixed with ``MERGEPAIR_``.
4. Explicit overrides supplied programmatically (used for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export MERGEPAIR_DATABASE__USER=drupal
    export MERGEPAIR_BINARIES__DRUSH=/opt/drush/drush

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses``.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load mergepair configuration. Install with "
        "`pip install mergepair` or ensure PyYAML>=6.0 is available."
    ) from exc

from packaging.version import InvalidVersion, Version

ENV_PREFIX = "MERGEPAIR_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class DatabaseConfig:
    """Credentials and endpoint for the local MySQL server."""

    user: str = "root"
    password: str = ""
    host: str = "127.0.0.1"
    port: int = 3306

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation (password redacted)."""
        return {
            "user": self.user,
            "password": "***" if self.password else "",
            "host": self.host,
            "port": self.port,
        }


@dataclass(frozen=True)
class BinariesConfig:
    """Executable names (or absolute paths) for external collaborators."""

    git: str = "git"
    drush: str = "drush"
    terminus: str = "terminus"
    composer: str = "composer"
    php: str = "php"
    mysql: str = "mysql"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "git": self.git,
            "drush": self.drush,
            "terminus": self.terminus,
            "composer": self.composer,
            "php": self.php,
            "mysql": self.mysql,
        }


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for mergepair."""

    config_file: Path
    base_dir: Path
    drush_dir: Path
    logs_dir: Path
    shell_rc: Path
    composer_bin_dir: Path
    core_version: str
    min_drush_version: str
    max_drush_version: str
    default_env: str
    default_port: int
    drush_package: str
    terminus_package: str
    diff_tools: tuple[str, ...]
    database: DatabaseConfig
    binaries: BinariesConfig

    @property
    def alias_file(self) -> Path:
        """Drush alias group file holding the ``@local.*`` aliases."""
        return self.drush_dir / "local.aliases.drushrc.php"

    @property
    def pantheon_alias_file(self) -> Path:
        """Alias file written by ``terminus aliases``."""
        return self.drush_dir / "pantheon.aliases.drushrc.php"

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "base_dir": str(self.base_dir),
            "drush_dir": str(self.drush_dir),
            "logs_dir": str(self.logs_dir),
            "shell_rc": str(self.shell_rc),
            "composer_bin_dir": str(self.composer_bin_dir),
            "core_version": self.core_version,
            "min_drush_version": self.min_drush_version,
            "max_drush_version": self.max_drush_version,
            "default_env": self.default_env,
            "default_port": self.default_port,
            "drush_package": self.drush_package,
            "terminus_package": self.terminus_package,
            "diff_tools": list(self.diff_tools),
            "database": self.database.to_dict(),
            "binaries": self.binaries.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "~/.config/mergepair/config.yml",
    "base_dir": "~/local",
    "drush_dir": "~/.drush",
    "logs_dir": "~/.local/state/mergepair/logs",
    "shell_rc": "~/.bashrc",
    "composer_bin_dir": "~/.composer/vendor/bin",
    "core_version": "drupal-8",
    "min_drush_version": "8.1.0",
    "max_drush_version": "9.0.0",
    "default_env": "dev",
    "default_port": 8778,
    "drush_package": "drush/drush:8.*",
    "terminus_package": "pantheon-systems/terminus:^1",
    "diff_tools": ["kdiff3", "meld", "opendiff"],
    "database": {
        "user": "root",
        "password": "",
        "host": "127.0.0.1",
        "port": 3306,
    },
    "binaries": {
        "git": "git",
        "drush": "drush",
        "terminus": "terminus",
        "composer": "composer",
        "php": "php",
        "mysql": "mysql",
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
_DATABASE_KEYS = {"user", "password", "host", "port"}
_BINARY_KEYS = {"git", "drush", "terminus", "composer", "php", "mysql"}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, _drop_none(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    database = _as_dict(raw.get("database"), "database")
    unknown_db = set(database.keys()) - _DATABASE_KEYS
    if unknown_db:
        raise ConfigError(f"Unknown database keys: {', '.join(sorted(unknown_db))}.")

    binaries = _as_dict(raw.get("binaries"), "binaries")
    unknown_bins = set(binaries.keys()) - _BINARY_KEYS
    if unknown_bins:
        raise ConfigError(f"Unknown binaries keys: {', '.join(sorted(unknown_bins))}.")

    for key in ("min_drush_version", "max_drush_version"):
        value = raw.get(key)
        try:
            Version(str(value))
        except InvalidVersion as exc:
            raise ConfigError(f"{key} must be a version string. Got {value!r}.") from exc


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    database_raw = _as_dict(raw.get("database"), "database")
    database = DatabaseConfig(
        user=_expect_str(_stringify(database_raw.get("user", "root")), "database.user"),
        password=_stringify(database_raw.get("password")) or "",
        host=_expect_str(_stringify(database_raw.get("host", "127.0.0.1")), "database.host"),
        port=_expect_port(database_raw.get("port"), "database.port", default=3306),
    )

    binaries_raw = _as_dict(raw.get("binaries"), "binaries")
    binaries = BinariesConfig(
        **{key: _expect_str(binaries_raw.get(key, key), f"binaries.{key}") for key in _BINARY_KEYS}
    )

    diff_tools = tuple(
        _expect_str(item, "diff_tools") for item in _as_sequence(raw.get("diff_tools"), "diff_tools")
    )

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        base_dir=_to_path(raw.get("base_dir")),
        drush_dir=_to_path(raw.get("drush_dir")),
        logs_dir=_to_path(raw.get("logs_dir")),
        shell_rc=_to_path(raw.get("shell_rc")),
        composer_bin_dir=_to_path(raw.get("composer_bin_dir")),
        core_version=_expect_str(raw.get("core_version"), "core_version"),
        min_drush_version=str(raw.get("min_drush_version")),
        max_drush_version=str(raw.get("max_drush_version")),
        default_env=_expect_str(raw.get("default_env"), "default_env"),
        default_port=_expect_port(raw.get("default_port"), "default_port", default=8778),
        drush_package=_expect_str(raw.get("drush_package"), "drush_package"),
        terminus_package=_expect_str(raw.get("terminus_package"), "terminus_package"),
        diff_tools=diff_tools,
        database=database,
        binaries=binaries,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _drop_none(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            nested = _drop_none(_as_dict(value, f"overrides.{key}"))
            if nested:
                result[key] = nested
            continue
        result[key] = value
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    if not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _stringify(value: object) -> str | None:
    # Numeric passwords such as ``1234`` come back from YAML as integers.
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"Expected a string value. Got boolean {value!r}.")
    return str(value)


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_port(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        port = value
    elif isinstance(value, str):
        try:
            port = int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    else:
        raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")
    if port < 1 or port > 65535:
        raise ConfigError(f"{label} must be between 1 and 65535. Got {port}.")
    return port


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "BinariesConfig",
    "ConfigError",
    "DatabaseConfig",
    "load_config",
]
