"""Topology selection and the two provisioning pipelines.

Both pipelines are fixed, linear sequences of idempotent steps. Nothing is
persisted about progress: a re-run works out what is left by probing the
filesystem, the alias file and the remote.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..commands import CommandError
from ..models import RepositoryReference, SiteIdentity, Topology
from ..providers.terminus import GIT_MODE, codeserver_url
from ..steps import ProvisioningError, always
from .context import ProvisioningContext
from .database import sync_database
from .repository import (
    ensure_checkout,
    ensure_git_history,
    ensure_pushed,
    ensure_shared_repository,
)
from .settings import (
    REMOTE_EXPORT_DIRECTORY,
    ensure_config_directories,
    ensure_local_overrides,
)
from .site import scaffold_site

LOGGER = logging.getLogger(__name__)

LOCAL_HOST = "localhost"
PANTHEON_GROUP = "pantheon"


def resolve_topology(create_local_sites: str | None, remote_site: str | None) -> Topology:
    """Pick the topology from which site inputs were supplied."""
    if create_local_sites and remote_site:
        raise ProvisioningError(
            "Choose either --create-local-sites or a Pantheon site, not both."
        )
    if create_local_sites:
        return Topology.LOCAL_PAIR
    if remote_site:
        return Topology.REMOTE_CLONE
    raise ProvisioningError(
        "Nothing to do: pass --create-local-sites NAME or the name of a Pantheon site."
    )


@dataclass(frozen=True, slots=True)
class LocalPairLayout:
    """Where the two local sites and their shared repository live."""

    dev: SiteIdentity
    test: SiteIdentity
    shared_repository: Path


def local_pair_layout(name: str, base_dir: Path, port: int) -> LocalPairLayout:
    """Return identities for ``NAME.dev`` and ``NAME.test`` under *base_dir*."""
    return LocalPairLayout(
        dev=SiteIdentity(
            name=name,
            env="dev",
            root=base_dir / f"{name}-dev",
            address=f"{LOCAL_HOST}:{port}",
        ),
        test=SiteIdentity(
            name=name,
            env="test",
            root=base_dir / f"{name}-test",
            address=f"{LOCAL_HOST}:{port + 1}",
        ),
        shared_repository=base_dir / f"{name}.git",
    )


def remote_clone_identity(site: str, env: str, base_dir: Path, port: int) -> SiteIdentity:
    """Return the identity of the local copy of a Pantheon environment."""
    return SiteIdentity(name=site, env=env, root=base_dir / site, address=f"{LOCAL_HOST}:{port}")


def register_alias(context: ProvisioningContext, site: SiteIdentity) -> None:
    """Add *site* to the local alias group unless its key is already there."""
    context.executor.run(
        f"aliases.register.{site.alias_key}",
        when=lambda: not context.prober.alias_registered(site.alias_key),
        action=lambda: context.aliases.register_site(site),
        success=f"Created drush alias {site.alias()}",
        failure=f"Unable to register drush alias {site.alias()} in {context.aliases.path}",
    )


def run_local_pair(context: ProvisioningContext) -> LocalPairLayout:
    """Provision ``NAME.test`` from scratch and clone it into ``NAME.dev``."""
    inputs = context.inputs
    layout = local_pair_layout(inputs.site, inputs.base_dir, inputs.port)
    dev, test = layout.dev, layout.test

    register_alias(context, dev)
    register_alias(context, test)

    scaffold_site(
        context,
        test,
        core=context.config.core_version,
        database=inputs.database,
        reset=True,
    )
    ensure_config_directories(context, test)
    ensure_git_history(context, test)
    ensure_shared_repository(context, layout.shared_repository)
    ensure_pushed(context, test, layout.shared_repository)

    ensure_checkout(context, RepositoryReference(str(layout.shared_repository), dev.root))
    ensure_local_overrides(context, dev, inputs.database)

    sync_database(context, test.alias(), dev.alias())
    return layout


def check_terminus_session(context: ProvisioningContext) -> str:
    """Abort unless terminus is logged in; return the account name."""
    try:
        account = context.terminus.whoami()
    except CommandError as exc:
        context.executor.fail(f"Unable to run terminus: {exc}", step="terminus.auth")
    if not account:
        context.executor.fail(
            "terminus is not authenticated; run 'terminus auth:login' and try again.",
            step="terminus.auth",
        )
    LOGGER.info("terminus authenticated as %s", account)
    return account


def ensure_git_connection_mode(context: ProvisioningContext) -> None:
    """Require git connection mode on the remote, switching it with ``--force``."""
    inputs = context.inputs
    target = f"{inputs.site}.{inputs.env}"
    try:
        mode = context.terminus.connection_mode(inputs.site, inputs.env)
    except CommandError as exc:
        context.executor.fail(f"Unable to read the connection mode of {target}: {exc}")
    if mode == GIT_MODE:
        return
    if not inputs.force:
        context.executor.fail(
            f"{target} is in '{mode or 'unknown'}' mode; switch it to git mode "
            "or re-run with --force to switch it automatically.",
            step="terminus.connection_mode",
        )
    context.executor.run(
        "terminus.connection_mode",
        when=always,
        action=lambda: context.terminus.set_connection_mode(inputs.site, inputs.env, GIT_MODE),
        success=f"Switched {target} to git connection mode",
        failure=f"Unable to switch {target} to git connection mode",
    )


def resolve_remote_repository(context: ProvisioningContext) -> str:
    """Return the git address of the remote site's codeserver."""
    site = context.inputs.site
    try:
        site_id = context.terminus.site_id(site)
    except CommandError as exc:
        context.executor.fail(f"Unable to look up Pantheon site '{site}': {exc}", step="terminus.site")
    return codeserver_url(site_id)


def ensure_remote_aliases(context: ProvisioningContext) -> None:
    """Generate ``@pantheon.*`` aliases when the site is not among them."""
    inputs = context.inputs
    key = f"{inputs.site}.{inputs.env}"
    alias_file = context.config.pantheon_alias_file
    context.executor.run(
        "terminus.aliases",
        when=lambda: not context.prober.alias_registered(key, alias_file),
        action=context.terminus.refresh_aliases,
        success=f"Refreshed Pantheon drush aliases in {alias_file}",
        failure="Unable to refresh Pantheon drush aliases with terminus",
    )


def run_remote_clone(context: ProvisioningContext) -> SiteIdentity:
    """Clone a Pantheon site locally and keep its configuration in step."""
    inputs = context.inputs
    flags = context.flags

    check_terminus_session(context)
    ensure_git_connection_mode(context)
    repository = resolve_remote_repository(context)

    local = remote_clone_identity(inputs.site, inputs.env, inputs.base_dir, inputs.port)
    remote_alias = f"@{PANTHEON_GROUP}.{inputs.site}.{inputs.env}"

    register_alias(context, local)
    ensure_remote_aliases(context)
    ensure_checkout(context, RepositoryReference(repository, local.root))
    ensure_local_overrides(context, local, inputs.database)

    if inputs.revert:
        flags.request_database_copy()
        flags.request_configuration_import()

    sync_database(context, remote_alias, local.alias())

    export_directory = local.root / REMOTE_EXPORT_DIRECTORY
    if flags.import_configuration:
        context.executor.run(
            "config.import",
            when=always,
            action=lambda: context.drush.config_import(local.alias()),
            success=f"Re-imported configuration into {local.alias()}",
            failure=f"Unable to import configuration into {local.alias()}",
        )
    else:
        context.executor.run(
            "config.export",
            when=lambda: not context.prober.config_export_present(export_directory),
            action=lambda: context.drush.config_export(local.alias()),
            success=f"Exported configuration of {local.alias()} to {export_directory}",
            failure=f"Unable to export configuration from {local.alias()}",
        )
    return local


def next_steps(context: ProvisioningContext) -> list[str]:
    """Return follow-up instructions for the operator."""
    inputs = context.inputs
    lines: list[str] = []
    if inputs.topology is Topology.LOCAL_PAIR:
        layout = local_pair_layout(inputs.site, inputs.base_dir, inputs.port)
        lines.extend(
            [
                f"Work on the dev site in {layout.dev.root} "
                f"(drush {layout.dev.alias()} runserver {layout.dev.address}).",
                f"Make configuration changes in {layout.test.alias()} as well, "
                "then commit them in each site.",
                f"Merge them with: drush {layout.dev.alias()} config-merge {layout.test.alias()}",
            ]
        )
    else:
        local = remote_clone_identity(inputs.site, inputs.env, inputs.base_dir, inputs.port)
        remote_alias = f"@{PANTHEON_GROUP}.{inputs.site}.{inputs.env}"
        lines.extend(
            [
                f"Work on the local copy in {local.root} "
                f"(drush {local.alias()} runserver {local.address}).",
                f"Merge configuration with: drush {local.alias()} config-merge {remote_alias}",
                "Run again with --revert to reset the local copy from "
                f"{remote_alias}.",
            ]
        )
    if context.flags.modified_shell_rc:
        lines.append(f"Run 'source {context.config.shell_rc}' to pick up the new PATH entries.")
    return lines


def provision(context: ProvisioningContext) -> None:
    """Run the pipeline for the topology recorded in the inputs."""
    if context.inputs.topology is Topology.LOCAL_PAIR:
        run_local_pair(context)
    else:
        run_remote_clone(context)


__all__ = [
    "LocalPairLayout",
    "check_terminus_session",
    "ensure_git_connection_mode",
    "ensure_remote_aliases",
    "local_pair_layout",
    "next_steps",
    "provision",
    "register_alias",
    "remote_clone_identity",
    "resolve_remote_repository",
    "resolve_topology",
    "run_local_pair",
    "run_remote_clone",
]
