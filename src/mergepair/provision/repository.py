"""Repository provisioning: checkouts, local history and the shared remote.

A checkout that already exists is only ever updated with ``git pull``; it is
never re-cloned and its remote is not compared with the requested source, so
history made since the first run is preserved. Fresh network checkouts are
shallow (they seed a working copy); local sources are cloned in full.
"""
from __future__ import annotations

from pathlib import Path

from ..models import RepositoryReference, SiteIdentity
from ..providers.git import DEFAULT_BRANCH, DEFAULT_REMOTE
from ..steps import Outcome, always
from .context import ProvisioningContext

SHALLOW_DEPTH = 1
GITIGNORE = """# Machine-local files; never shared between site copies.
sites/*/settings.local.php
sites/*/files/
"""

_UP_TO_DATE_MARKERS = ("Already up to date", "Already up-to-date")


def ensure_checkout(context: ProvisioningContext, reference: RepositoryReference) -> None:
    """Clone *reference* when its target is missing, otherwise pull."""
    target = reference.target
    git = context.git

    if context.prober.directory_exists(target):

        def _pull() -> Outcome:
            result = git.pull(target)
            output = f"{result.stdout or ''}{result.stderr or ''}"
            if any(marker in output for marker in _UP_TO_DATE_MARKERS):
                return Outcome.UNCHANGED
            return Outcome.CHANGED

        context.executor.run(
            "repository.pull",
            when=always,
            action=_pull,
            success=f"Updated checkout at {target}",
            failure=f"Unable to update the checkout at {target}",
        )
        return

    def _clone() -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        depth = SHALLOW_DEPTH if reference.is_network else None
        git.clone(reference.source, target, depth=depth)

    context.executor.run(
        "repository.clone",
        when=lambda: not context.prober.directory_exists(target),
        action=_clone,
        success=f"Cloned {reference.source} into {target}",
        failure=f"Unable to clone {reference.source} into {target}",
    )


def ensure_git_history(context: ProvisioningContext, site: SiteIdentity) -> None:
    """Put an existing site under version control with an initial commit."""
    root = site.root
    git = context.git
    prober = context.prober

    def _init() -> None:
        gitignore = root / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(GITIGNORE, encoding="utf-8")
        if not prober.git_checkout_exists(root):
            git.init(root)
        git.add(root)
        git.commit(root, f"Initial commit of {site.alias()}.")

    context.executor.run(
        "repository.init",
        when=lambda: not prober.git_checkout_exists(root) or prober.git_head_unborn(root),
        action=_init,
        success=f"Initialized git history for {site.alias()}",
        failure=f"Unable to initialize a git repository in {root}",
    )


def ensure_shared_repository(context: ProvisioningContext, path: Path) -> None:
    """Create the bare repository both local sites push to."""

    def _init_bare() -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        context.git.init(path, bare=True)

    context.executor.run(
        "repository.init_bare",
        when=lambda: not context.prober.bare_repository_exists(path),
        action=_init_bare,
        success=f"Created shared repository at {path}",
        failure=f"Unable to create a bare repository at {path}",
    )


def ensure_pushed(context: ProvisioningContext, site: SiteIdentity, shared: Path) -> None:
    """Point *site* at the shared repository and publish its history."""
    root = site.root
    git = context.git
    prober = context.prober

    def _needed() -> bool:
        return (
            not prober.git_remote_configured(root, DEFAULT_REMOTE)
            or prober.git_ref(shared, f"refs/heads/{DEFAULT_BRANCH}") is None
            or prober.git_push_pending(root, DEFAULT_REMOTE, DEFAULT_BRANCH)
        )

    def _push() -> None:
        if not prober.git_remote_configured(root, DEFAULT_REMOTE):
            git.remote_add(root, DEFAULT_REMOTE, str(shared))
        git.push(root, set_upstream=True)

    context.executor.run(
        "repository.push",
        when=_needed,
        action=_push,
        success=f"Pushed {site.alias()} history to {shared}",
        failure=f"Unable to push {root} to {shared}",
    )


__all__ = [
    "GITIGNORE",
    "SHALLOW_DEPTH",
    "ensure_checkout",
    "ensure_git_history",
    "ensure_pushed",
    "ensure_shared_repository",
]
