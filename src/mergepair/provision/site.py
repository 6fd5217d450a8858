"""Scaffold a fresh Drupal site with ``drush quick-drupal``."""
from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from ..models import DatabaseCredentials, SiteIdentity
from .context import ProvisioningContext

LOGGER = logging.getLogger(__name__)


def _remove_stale_entry(path: Path) -> None:
    # ``exists()`` follows symlinks, so a dangling link reads as missing.
    if not os.path.lexists(path):
        return
    LOGGER.info("Removing stale entry at %s before rebuilding.", path)
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)


def scaffold_site(
    context: ProvisioningContext,
    site: SiteIdentity,
    *,
    core: str,
    database: DatabaseCredentials,
    reset: bool = False,
) -> None:
    """Create *site* unless its root already exists.

    An existing root is taken as already provisioned, with no deeper check.
    With *reset* (scratch test instances only) anything left at the path that
    does not count as existing is cleared first.
    """
    root = site.root

    def _scaffold() -> None:
        if reset:
            _remove_stale_entry(root)
        root.parent.mkdir(parents=True, exist_ok=True)
        context.drush.quick_drupal(
            site.alias_key,
            root=root,
            core=core,
            db_url=database.url(site.database_name),
        )

    context.executor.run(
        "site.scaffold",
        when=lambda: not root.exists(),
        action=_scaffold,
        success=f"Created {core} site {site.alias()} at {root}",
        failure=f"Unable to create the {core} site at {root}",
    )


__all__ = ["scaffold_site"]
