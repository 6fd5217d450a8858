"""Environment validation and prerequisite tooling.

Runs before any provisioning step. System packages (git, PHP, MySQL, a diff
tool) must already be installed; drush and terminus are pulled in through
``composer global require`` when missing, and the shell startup file gains
PATH guards for composer's global bin directory.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

from ..commands import CommandError
from ..models import Topology
from .context import ProvisioningContext

LOGGER = logging.getLogger(__name__)

SHELL_RC_MARKER = ".composer/vendor/bin"
SHELL_RC_BLOCK = """
# Added by mergepair: composer global tools and ~/bin on PATH.
if [ -d "$HOME/.composer/vendor/bin" ] ; then
  export PATH="$HOME/.composer/vendor/bin:$PATH"
fi
if [ -d "$HOME/bin" ] ; then
  export PATH="$HOME/bin:$PATH"
fi
"""


def _is_superuser() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def validate_environment(context: ProvisioningContext) -> None:
    """Abort unless the host can run the workflow at all."""
    executor = context.executor
    binaries = context.config.binaries

    if _is_superuser():
        executor.fail("Refusing to run as root; run mergepair as your regular user.", step="env.user")

    for label, binary in (("PHP", binaries.php), ("git", binaries.git), ("composer", binaries.composer)):
        if not context.prober.binary_exists(binary):
            executor.fail(
                f"{label} is required but '{binary}' was not found on PATH; install it first.",
                step=f"env.{label.lower()}",
            )

    if not any(context.prober.binary_exists(tool) for tool in context.config.diff_tools):
        LOGGER.warning(
            "No diff tool found (looked for %s); config-merge conflicts will need manual resolution.",
            ", ".join(context.config.diff_tools),
        )


def ensure_prerequisites(context: ProvisioningContext) -> None:
    """Install missing composer tools and amend the shell startup file."""
    config = context.config
    binaries = config.binaries
    prober = context.prober

    context.executor.run(
        "prerequisites.drush",
        when=lambda: not prober.binary_exists(binaries.drush),
        action=lambda: context.composer.install_global(config.drush_package),
        success=f"Installed drush ({config.drush_package}) with composer",
        failure=f"Unable to install {config.drush_package} with composer",
    )
    if context.inputs.topology is Topology.REMOTE_CLONE:
        context.executor.run(
            "prerequisites.terminus",
            when=lambda: not prober.binary_exists(binaries.terminus),
            action=lambda: context.composer.install_global(config.terminus_package),
            success=f"Installed terminus ({config.terminus_package}) with composer",
            failure=f"Unable to install {config.terminus_package} with composer",
        )

    ensure_shell_path(context)


def ensure_shell_path(context: ProvisioningContext) -> None:
    """Append the PATH guards to the shell startup file exactly once."""
    shell_rc = context.config.shell_rc

    def _append() -> None:
        shell_rc.parent.mkdir(parents=True, exist_ok=True)
        with shell_rc.open("a", encoding="utf-8") as handle:
            handle.write(SHELL_RC_BLOCK)
        context.flags.mark_shell_rc_modified()

    context.executor.run(
        "prerequisites.shell_rc",
        when=lambda: not context.prober.file_contains(shell_rc, SHELL_RC_MARKER),
        action=_append,
        success=f"Added composer bin directories to PATH in {_display(shell_rc)}",
        failure=f"Unable to update {shell_rc}",
    )


def check_tool_versions(context: ProvisioningContext) -> None:
    """Abort unless drush is within the supported range."""
    config = context.config
    try:
        version = context.drush.require_version(config.min_drush_version, config.max_drush_version)
    except CommandError as exc:
        context.executor.fail(str(exc), step="env.drush_version")
    LOGGER.info("Using drush %s", version)


def check_database_credentials(context: ProvisioningContext) -> None:
    """Abort unless the supplied MySQL credentials authenticate."""
    credentials = context.inputs.database
    if not context.database.can_connect(credentials):
        context.executor.fail(
            f"Unable to connect to MySQL as '{credentials.user}' at "
            f"{credentials.host}:{credentials.port}; check --user and --pw.",
            step="env.database",
        )


def prepare_environment(context: ProvisioningContext) -> None:
    """Run every environment check and prerequisite step in order."""
    validate_environment(context)
    ensure_prerequisites(context)
    check_tool_versions(context)
    check_database_credentials(context)


def _display(path: Path) -> str:
    home = Path.home()
    try:
        return f"~/{path.relative_to(home)}"
    except ValueError:
        return str(path)


__all__ = [
    "SHELL_RC_BLOCK",
    "SHELL_RC_MARKER",
    "check_database_credentials",
    "check_tool_versions",
    "ensure_prerequisites",
    "ensure_shell_path",
    "prepare_environment",
    "validate_environment",
]
