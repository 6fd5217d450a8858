"""Runtime context shared by every provisioning step."""
from __future__ import annotations

import os
from dataclasses import dataclass

from rich.console import Console

from ..aliases import AliasRegistry
from ..commands import CommandRunner
from ..config import AppConfig
from ..ledger import AccomplishmentLedger
from ..logging import OperationScope
from ..models import ProvisioningFlags, ProvisioningInputs
from ..probes import EnvironmentProber
from ..providers import (
    ComposerProvider,
    DatabaseProvider,
    DrushProvider,
    GitProvider,
    TerminusProvider,
)
from ..steps import StepExecutor


@dataclass
class ProvisioningContext:
    """Aggregated runtime objects threaded through the orchestrator."""

    config: AppConfig
    inputs: ProvisioningInputs
    flags: ProvisioningFlags
    prober: EnvironmentProber
    executor: StepExecutor
    aliases: AliasRegistry
    git: GitProvider
    drush: DrushProvider
    terminus: TerminusProvider
    composer: ComposerProvider
    database: DatabaseProvider

    @property
    def ledger(self) -> AccomplishmentLedger:
        return self.executor.ledger


def search_path_for(config: AppConfig, base: str | None = None) -> str:
    """Return PATH with composer's global bin directory prepended."""
    current = os.environ.get("PATH", "") if base is None else base
    return os.pathsep.join(part for part in (str(config.composer_bin_dir), current) if part)


def build_context(
    config: AppConfig,
    inputs: ProvisioningInputs,
    *,
    runner: CommandRunner | None = None,
    operation: OperationScope | None = None,
    trace: bool = False,
    console: Console | None = None,
) -> ProvisioningContext:
    """Wire providers, prober and executor for one provisioning run."""
    search_path = search_path_for(config)
    if runner is None:
        runner = CommandRunner(trace=trace, console=console, env={"PATH": search_path})
    binaries = config.binaries
    return ProvisioningContext(
        config=config,
        inputs=inputs,
        flags=ProvisioningFlags(),
        prober=EnvironmentProber(alias_file=config.alias_file, search_path=search_path),
        executor=StepExecutor(AccomplishmentLedger(), operation=operation),
        aliases=AliasRegistry(config.alias_file),
        git=GitProvider(runner, git_bin=binaries.git),
        drush=DrushProvider(runner, drush_bin=binaries.drush),
        terminus=TerminusProvider(runner, terminus_bin=binaries.terminus),
        composer=ComposerProvider(runner, composer_bin=binaries.composer),
        database=DatabaseProvider(runner, mysql_bin=binaries.mysql),
    )


__all__ = ["ProvisioningContext", "build_context", "search_path_for"]
