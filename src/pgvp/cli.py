"""Main CLI entry point using Typer.

This module defines the root CLI application, its options and the
config command group.
"""

from pathlib import Path
from typing import Optional, Annotated

import typer
from rich.console import Console

from pgvp import __version__
from pgvp.core.context import ExecutionContext, create_context
from pgvp.core.output import console as app_console
from pgvp.core.config import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    get_example_config,
    init_config,
)
from pgvp.core.exceptions import PgvpError
from pgvp.core.validation import is_open_cidr


# Create the main Typer app
app = typer.Typer(
    name="pgvp",
    help="PostgreSQL + pgvector host provisioner.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Configuration management.",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")


# Type aliases for common options
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Preview changes without executing. Shows what would happen.",
        is_flag=True,
    ),
]

ForceOption = Annotated[
    bool,
    typer.Option(
        "--force",
        "-f",
        help="Overwrite an existing file.",
        is_flag=True,
    ),
]

YesOption = Annotated[
    bool,
    typer.Option(
        "--yes",
        "-y",
        help="Skip confirmation prompts.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Suppress non-essential output. The connection report is always shown.",
        is_flag=True,
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Disable colored output.",
        is_flag=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"Path to configuration file. Default: {DEFAULT_CONFIG_PATH}",
        exists=False,
        file_okay=True,
        dir_okay=False,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console = Console()
        console.print(f"pgvp version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """PostgreSQL + pgvector host provisioner.

    Installs PostgreSQL and pgvector on an EL8-family host, tunes it for
    the detected hardware, and creates an application role and database.

    [bold]Examples:[/bold]
        pgvp plan --show
        pgvp provision --dry-run
        sudo pgvp provision
        pgvp config init
    """
    pass


def get_context(
    dry_run: bool = False,
    yes: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config: Optional[Path] = None,
) -> ExecutionContext:
    """Create execution context from CLI options."""
    return create_context(
        dry_run=dry_run,
        yes=yes,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )


def handle_error(error: PgvpError) -> None:
    """Handle a PgvpError by printing formatted error and exiting."""
    app_console.error(error.message)

    if error.details:
        for detail in error.details:
            app_console.print(f"  [dim]{detail}[/dim]")

    if error.hint:
        app_console.hint(error.hint)

    raise typer.Exit(error.exit_code)


# ============================================================================
# Provisioning commands
# ============================================================================

@app.command("provision")
def provision_cmd(
    skip_install: Annotated[
        bool,
        typer.Option(
            "--skip-install",
            help="Skip package installation (PostgreSQL and pgvector already installed).",
        ),
    ] = False,
    reuse_existing: Annotated[
        bool,
        typer.Option(
            "--reuse-existing",
            help="Reset the password of an existing role and keep an existing database.",
        ),
    ] = False,
    dry_run: DryRunOption = False,
    yes: YesOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Install, tune and provision PostgreSQL with pgvector.

    [bold]Steps:[/bold]
    - Installs PostgreSQL and pgvector from the PGDG repository
    - Writes postgresql.conf sized to this host's RAM and CPU cores
    - Writes pg_hba.conf (peer locally, scram-sha-256 over TCP)
    - Creates the application role, database and vector extension

    The generated password is printed once at the end and stored nowhere.

    [bold]Examples:[/bold]

        # Preview every command and file write
        pgvp provision --dry-run

        # Provision without prompting
        sudo pgvp provision -y

        # Packages already installed; reuse an existing role
        sudo pgvp provision --skip-install --reuse-existing
    """
    from pgvp.commands.provision import run_provision

    ctx = get_context(
        dry_run=dry_run,
        yes=yes,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )

    try:
        app_config = ctx.config
    except PgvpError as e:
        handle_error(e)
        return

    pg = app_config.postgres
    ctx.console.print()
    ctx.console.print("[bold]Provisioning Configuration[/bold]")
    ctx.console.print(f"  PostgreSQL version:  {pg.version}")
    ctx.console.print(f"  Data directory:      {pg.resolved_data_dir}")
    ctx.console.print(f"  Port:                {pg.port}")
    ctx.console.print(f"  Application role:    {app_config.application.user}")
    ctx.console.print(f"  Application DB:      {app_config.application.database}")
    ctx.console.print(f"  Remote access from:  {app_config.access.external_cidr}")
    ctx.console.print()

    if is_open_cidr(app_config.access.external_cidr):
        ctx.console.warn(
            "Remote password logins will be accepted from any address. "
            "Set access.external_cidr to restrict them."
        )

    if ctx.should_confirm and not dry_run:
        if not ctx.console.confirm("Proceed with provisioning?"):
            ctx.console.warn("Operation cancelled")
            raise typer.Exit(0)

    try:
        run_provision(ctx, skip_install=skip_install, reuse_existing=reuse_existing)
    except PgvpError as e:
        handle_error(e)


@app.command("plan")
def plan_cmd(
    show: Annotated[
        bool,
        typer.Option(
            "--show",
            help="Also print the rendered postgresql.conf and pg_hba.conf.",
        ),
    ] = False,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Show the settings derived from this host's hardware.

    Read-only: nothing is installed or written.
    """
    from pgvp.commands.provision import show_plan

    ctx = get_context(verbose=verbose, no_color=no_color, config=config)

    try:
        show_plan(ctx, show_files=show)
    except PgvpError as e:
        handle_error(e)


# ============================================================================
# Config commands
# ============================================================================

@config_app.command("show")
def config_show(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Show current configuration.

    Displays the loaded configuration with environment overrides applied.
    """
    ctx = get_context(verbose=verbose, no_color=no_color, config=config)

    try:
        app_config = ctx.config

        ctx.console.print()
        ctx.console.print(f"[bold]Configuration file:[/bold] {ctx.config_path}")
        ctx.console.print(f"[bold]File exists:[/bold] {ctx.config_path.exists()}")
        ctx.console.print()

        ctx.console.yaml(app_config.config.to_yaml(), title="Configuration")

    except PgvpError as e:
        handle_error(e)


@config_app.command("init")
def config_init(
    config: ConfigOption = None,
    force: ForceOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Initialize a new configuration file.

    Creates a configuration file with defaults and comments.
    """
    ctx = get_context(no_color=no_color, config=config)
    config_path = ctx.config_path

    try:
        init_config(config_path, force=force)
        ctx.console.success(f"Configuration file created: {config_path}")
        ctx.console.info("Edit the file to customize settings, then run: pgvp provision")
    except PgvpError as e:
        handle_error(e)


@config_app.command("validate")
def config_validate(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Validate configuration file.

    Checks that the configuration file exists, is valid YAML,
    and all values pass validation.
    """
    ctx = get_context(verbose=verbose, no_color=no_color, config=config)

    try:
        if not ctx.config_path.exists():
            ctx.console.warn(f"No configuration file at {ctx.config_path}; defaults apply")

        # This will raise ConfigurationError if invalid
        app_config = AppConfig(config_path=ctx.config_path)

        ctx.console.success(f"Configuration is valid: {ctx.config_path}")

        if ctx.is_verbose:
            ctx.console.yaml(app_config.config.to_yaml())

        if is_open_cidr(app_config.access.external_cidr):
            ctx.console.print()
            ctx.console.warn(
                f"access.external_cidr is {app_config.access.external_cidr}; "
                "restrict it before production use"
            )

    except PgvpError as e:
        handle_error(e)


@config_app.command("example")
def config_example(no_color: NoColorOption = False) -> None:
    """Print example configuration file.

    Outputs a complete example configuration with comments.
    """
    ctx = get_context(no_color=no_color)
    ctx.console.print(get_example_config(), markup=False, highlight=False)


# Entry point
if __name__ == "__main__":
    app()
