"""Copy one site's database onto another."""
from __future__ import annotations

from .context import ProvisioningContext


def sync_database(context: ProvisioningContext, source: str, target: str) -> None:
    """Replace *target*'s database with *source*'s when a copy was requested.

    The copy is requested only when a fresh database was just created or when
    ``--revert`` asked for the working copy to be reset.
    """
    drush = context.drush

    def _sync() -> None:
        drush.sql_sync(source, target)
        drush.cache_rebuild(target)

    context.executor.run(
        "database.sync",
        when=lambda: context.flags.copy_database,
        action=_sync,
        success=f"Copied the database from {source} to {target}",
        failure=f"Unable to copy the database from {source} to {target}",
    )


__all__ = ["sync_database"]
