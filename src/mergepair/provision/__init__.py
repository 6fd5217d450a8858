"""Provisioning workflow: prerequisites, repositories, sites and settings."""
from __future__ import annotations

from .context import ProvisioningContext, build_context
from .database import sync_database
from .orchestrator import (
    local_pair_layout,
    next_steps,
    provision,
    remote_clone_identity,
    resolve_topology,
    run_local_pair,
    run_remote_clone,
)
from .prerequisites import prepare_environment
from .repository import ensure_checkout
from .settings import ensure_config_directories, ensure_local_overrides
from .site import scaffold_site

__all__ = [
    "ProvisioningContext",
    "build_context",
    "ensure_checkout",
    "ensure_config_directories",
    "ensure_local_overrides",
    "local_pair_layout",
    "next_steps",
    "prepare_environment",
    "provision",
    "remote_clone_identity",
    "resolve_topology",
    "run_local_pair",
    "run_remote_clone",
    "scaffold_site",
    "sync_database",
]
