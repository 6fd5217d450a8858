"""Typer-powered command line entry point for ``mergepair``.

One command provisions either a local pair of Drupal sites
(``--create-local-sites NAME``) or a local clone of a Pantheon site (a
positional site name or ``--pantheon NAME``), ready for ``drush config-merge``.
Every step is idempotent; re-running the command finishes whatever is left.
"""
from __future__ import annotations

import textwrap
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .aliases import AliasRegistryError
from .commands import CommandError
from .config import AppConfig, ConfigError, load_config
from .exit_codes import ExitCode
from .logging import (
    OperationScope,
    StructuredLogger,
    Verbosity,
    configure_console_logging,
)
from .models import DatabaseCredentials, ProvisioningInputs, Topology
from .provision import build_context, next_steps, prepare_environment, provision, resolve_topology
from .steps import ProvisioningAborted, ProvisioningError

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Provision a pair of Drupal sites for configuration merging.

        Either create two local sites (--create-local-sites NAME) or clone a
        Pantheon site locally (SITE or --pantheon SITE). Safe to re-run.
        """
    ).strip(),
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"mergepair {__version__}")
        raise typer.Exit(code=ExitCode.OK)


SITE_ARGUMENT = typer.Argument(
    None,
    metavar="[SITE]",
    help="Pantheon site to clone locally.",
    show_default=False,
)
BASE_DIR_ARGUMENT = typer.Argument(
    None,
    metavar="[BASE_DIR]",
    help="Directory that holds the local sites.",
    show_default=False,
)
CREATE_LOCAL_OPTION = typer.Option(
    None,
    "--create-local-sites",
    "-c",
    metavar="NAME",
    help="Create NAME.dev and NAME.test locally instead of cloning a remote site.",
)
PANTHEON_OPTION = typer.Option(
    None,
    "--pantheon",
    metavar="NAME",
    help="Pantheon site to clone (alternative to the positional SITE).",
)
DIR_OPTION = typer.Option(
    None,
    "--dir",
    file_okay=False,
    dir_okay=True,
    help="Override the base install directory.",
)
ENV_OPTION = typer.Option(None, "--env", help="Pantheon environment to clone (default: dev).")
USER_OPTION = typer.Option(None, "--user", help="MySQL user for the local databases.")
PW_OPTION = typer.Option(None, "--pw", help="MySQL password for the local databases.")
PORT_OPTION = typer.Option(
    None,
    "--port",
    min=1,
    max=65535,
    help="Local port for the site address (default: 8778).",
)
REVERT_OPTION = typer.Option(
    False,
    "--revert",
    help="Re-copy the remote database and re-import configuration into the local clone.",
)
FORCE_OPTION = typer.Option(
    False,
    "--force",
    help="Switch the Pantheon environment to git connection mode if needed.",
)
CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to mergepair's YAML config file.",
)


def _command_error(
    op: OperationScope | None,
    message: str,
    *,
    rc: int = ExitCode.FAILURE,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    err_console.print(f"[red]{escape(message)}[/red]")
    if op is not None:
        op.error(message, errors=list(errors or [message]), rc=int(rc))
    raise typer.Exit(code=int(rc))


def _build_inputs(
    config: AppConfig,
    *,
    topology: Topology,
    site: str,
    base_dir: Path | None,
    env: str | None,
    user: str | None,
    pw: str | None,
    port: int | None,
    revert: bool,
    force: bool,
) -> ProvisioningInputs:
    database = DatabaseCredentials(
        user=user if user is not None else config.database.user,
        password=pw if pw is not None else config.database.password,
        host=config.database.host,
        port=config.database.port,
    )
    return ProvisioningInputs(
        topology=topology,
        site=site,
        base_dir=(base_dir or config.base_dir).expanduser(),
        env=env or config.default_env,
        port=port or config.default_port,
        database=database,
        revert=revert,
        force=force,
    )


@app.command()
def setup(
    site: str | None = SITE_ARGUMENT,
    base_dir: Path | None = BASE_DIR_ARGUMENT,
    create_local_sites: str | None = CREATE_LOCAL_OPTION,
    pantheon: str | None = PANTHEON_OPTION,
    directory: Path | None = DIR_OPTION,
    env: str | None = ENV_OPTION,
    user: str | None = USER_OPTION,
    pw: str | None = PW_OPTION,
    port: int | None = PORT_OPTION,
    revert: bool = REVERT_OPTION,
    force: bool = FORCE_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Report each step as it runs."),
    debug: bool = typer.Option(False, "--debug", "-d", help="Include skipped steps and commands."),
    trace: bool = typer.Option(False, "--trace", help="Echo every external command."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report errors."),
    config_file: Path | None = CONFIG_FILE_OPTION,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show the mergepair version and exit.",
    ),
) -> None:
    """Provision a local Drupal site pair, or a local clone of a Pantheon site."""
    verbosity = Verbosity.from_flags(quiet=quiet, verbose=verbose, debug=debug, trace=trace)
    configure_console_logging(verbosity, err_console)

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        _command_error(None, f"Configuration error: {exc}")

    remote_site = pantheon or site
    try:
        topology = resolve_topology(create_local_sites, remote_site)
    except ProvisioningError as exc:
        _command_error(None, str(exc))

    inputs = _build_inputs(
        config,
        topology=topology,
        site=create_local_sites if topology is Topology.LOCAL_PAIR else remote_site,  # type: ignore[arg-type]
        base_dir=directory or base_dir,
        env=env,
        user=user,
        pw=pw,
        port=port,
        revert=revert,
        force=force,
    )

    logger = StructuredLogger(config.logs_dir)
    args = {
        "site": inputs.site,
        "base_dir": inputs.base_dir,
        "env": inputs.env,
        "user": inputs.database.user,
        "port": inputs.port,
        "revert": revert,
        "force": force,
    }
    with logger.operation(
        "setup",
        args=args,
        target={"kind": topology.value, "site": inputs.site},
    ) as op:
        context = build_context(
            config,
            inputs,
            operation=op,
            trace=verbosity >= Verbosity.TRACE,
            console=err_console,
        )
        try:
            prepare_environment(context)
            provision(context)
        except ProvisioningAborted as exc:
            _command_error(op, str(exc))
        except (ProvisioningError, AliasRegistryError, CommandError) as exc:
            _command_error(op, str(exc))

        if verbosity > Verbosity.QUIET:
            context.ledger.render(console)
            console.print()
            console.print("[bold]Next steps:[/bold]")
            for line in next_steps(context):
                console.print(f"  {escape(line)}")

        flags = context.flags
        op.success(
            "Provisioning complete.",
            changed=len(context.ledger),
            context={
                "accomplishments": list(context.ledger.entries),
                "copy_database": flags.copy_database,
                "import_configuration": flags.import_configuration,
                "modified_shell_rc": flags.modified_shell_rc,
            },
        )


def main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "main"]
