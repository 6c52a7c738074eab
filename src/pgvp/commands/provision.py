"""Provisioning command.

Runs the whole host setup in one linear pass:

1. Pre-flight checks
2. Detect RAM and CPU cores, derive the tuning profile
3. Install PostgreSQL and pgvector from PGDG, initialize the cluster
4. Enable the unit, stop it, write postgresql.conf and pg_hba.conf
5. Start it again and wait until it accepts connections
6. Create the application role, database and vector extension
7. Print the connection report (the password is shown only here)

Any step failing raises a PgvpError; later steps never run.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rich import box
from rich.table import Table

from pgvp.core import (
    AppConfig,
    AuditEventType,
    ExecutionContext,
    PgvpError,
    PrivilegedExecutor,
    get_audit_logger,
    run_preflight_checks,
)
from pgvp.services.credentials import (
    AppCredential,
    CredentialProvisioner,
    detect_host_address,
    generate_credential,
)
from pgvp.services.packages import PackageInstaller
from pgvp.services.pgconfig import (
    ConfigWriter,
    build_access_rules,
    build_config_document,
    render_pg_hba,
    render_postgresql_conf,
)
from pgvp.services.postgresql import PostgreSQLService
from pgvp.services.report import print_connection_report
from pgvp.services.systemd import SystemdService
from pgvp.services.tuning import (
    HostResources,
    ResourceDetector,
    TuningProfile,
    calculate_profile,
)


@dataclass
class ProvisionResult:
    """Outcome of a provisioning run."""

    resources: HostResources
    profile: TuningProfile
    backups: list[Path] = field(default_factory=list)
    # None in dry-run mode
    credential: Optional[AppCredential] = None


def _display_profile(ctx: ExecutionContext, resources: HostResources, profile: TuningProfile) -> None:
    """Display detected resources and the derived settings."""
    console = ctx.console
    console.print()
    console.print("[bold]System Detection[/bold]")
    console.print(f"  RAM:        {resources.total_memory_gb} GB")
    console.print(f"  CPU Cores:  {resources.cpu_core_count}")
    console.print()

    table = Table(
        title="Derived Settings",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold",
    )
    table.add_column("Parameter", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Reasoning", style="dim")

    for param in profile.parameters:
        table.add_row(param.name, param.conf_value, param.reason)

    console.print(table)


def _detect(ctx: ExecutionContext) -> tuple[HostResources, TuningProfile]:
    ctx.console.step("Detecting system resources")
    resources = ResourceDetector(ctx).detect()
    profile = calculate_profile(resources)
    _display_profile(ctx, resources, profile)
    return resources, profile


def show_plan(ctx: ExecutionContext, *, show_files: bool = False) -> TuningProfile:
    """Print the derived settings without touching the host.

    Args:
        ctx: Execution context
        show_files: Also print the rendered postgresql.conf and pg_hba.conf

    Raises:
        DetectionError: If host resources cannot be read
    """
    app_config = ctx.config
    _, profile = _detect(ctx)

    if show_files:
        document = build_config_document(profile, app_config.postgres)
        rules = build_access_rules(app_config.access.external_cidr)
        data_dir = app_config.postgres.resolved_data_dir

        ctx.console.print()
        ctx.console.config_file(
            render_postgresql_conf(document),
            title=str(data_dir / "postgresql.conf"),
        )
        ctx.console.config_file(
            render_pg_hba(rules),
            title=str(data_dir / "pg_hba.conf"),
        )

    return profile


def run_provision(
    ctx: ExecutionContext,
    *,
    skip_install: bool = False,
    reuse_existing: bool = False,
) -> ProvisionResult:
    """Provision PostgreSQL with pgvector on this host.

    Args:
        ctx: Execution context
        skip_install: Assume the packages are installed and the cluster initialized
        reuse_existing: Reset the password of an existing role and keep an
            existing database instead of failing

    Returns:
        ProvisionResult; credential is None in dry-run mode

    Raises:
        PgvpError: Subclass matching the step that failed
    """
    app_config = ctx.config
    pg_config = app_config.postgres
    service = pg_config.service_name
    audit = get_audit_logger()

    audit.log_session_start("provision", {
        "dry_run": ctx.dry_run,
        "skip_install": skip_install,
        "reuse_existing": reuse_existing,
        "postgres_version": pg_config.version,
        "app_user": app_config.application.user,
        "app_database": app_config.application.database,
    })

    try:
        result = _provision(ctx, app_config, skip_install, reuse_existing)
    except PgvpError as e:
        audit.log_failure(AuditEventType.PROVISION, "service", service, str(e))
        audit.log_session_end(e.exit_code)
        raise

    audit.log_session_end(0)
    return result


def _provision(
    ctx: ExecutionContext,
    app_config: AppConfig,
    skip_install: bool,
    reuse_existing: bool,
) -> ProvisionResult:
    pg_config = app_config.postgres
    service = pg_config.service_name
    data_dir = pg_config.resolved_data_dir
    audit = get_audit_logger()

    def record(event: AuditEventType, target_type: str, target: str, message: str) -> None:
        if ctx.dry_run:
            audit.log_dry_run(event, target_type, target, message)
        else:
            audit.log_success(event, target_type, target, message)

    run_preflight_checks(dry_run=ctx.dry_run, verbose=ctx.is_verbose)

    executor = PrivilegedExecutor(ctx)
    systemd = SystemdService(ctx, executor)

    resources, profile = _detect(ctx)

    # Packages and cluster
    if skip_install:
        ctx.console.info("Skipping package installation (--skip-install)")
    else:
        PackageInstaller(ctx, executor, pg_config).install_all()
        record(AuditEventType.PACKAGE_INSTALL, "package", f"postgresql{pg_config.version}",
               "PostgreSQL server, contrib and pgvector installed")

    systemd.enable(service, start=True)
    record(AuditEventType.SERVICE_ENABLE, "service", service, "Enabled and started")

    # Configuration is written with the server stopped
    systemd.stop(service)
    record(AuditEventType.SERVICE_STOP, "service", service, "Stopped for configuration")

    backups = ConfigWriter(ctx, executor).write(
        data_dir, profile, pg_config, app_config.access,
    )
    for backup in backups:
        record(AuditEventType.CONFIG_BACKUP, "file", str(backup), "Previous configuration saved")
    record(AuditEventType.CONFIG_WRITE, "directory", str(data_dir),
           "postgresql.conf and pg_hba.conf written")

    systemd.start(service)
    systemd.wait_until_ready(
        service,
        bin_dir=pg_config.bin_dir,
        port=pg_config.port,
        wait=pg_config.startup_wait,
    )
    record(AuditEventType.SERVICE_START, "service", service, "Accepting connections")

    if ctx.dry_run:
        ctx.console.print()
        ctx.console.dry_run_msg(
            f"Create role '{app_config.application.user}' and database "
            f"'{app_config.application.database}' with extension "
            f"'{app_config.application.extension}'"
        )
        return ProvisionResult(resources=resources, profile=profile, backups=backups)

    # Role, database, extension
    host = app_config.config.hostname or detect_host_address(executor)
    credential = generate_credential(
        app_config.application,
        host=host,
        port=pg_config.port,
    )

    pg = PostgreSQLService(ctx, executor, port=pg_config.port)
    CredentialProvisioner(
        ctx, pg, extension=app_config.application.extension,
    ).apply(credential, reuse_existing=reuse_existing)

    audit.log_success(AuditEventType.USER_CREATE, "role", credential.username,
                      "Application role provisioned")
    audit.log_success(AuditEventType.DATABASE_CREATE, "database", credential.database,
                      "Application database provisioned")
    audit.log_success(AuditEventType.EXTENSION_ENABLE, "extension",
                      app_config.application.extension,
                      f"Enabled in {credential.database}")
    audit.log_success(AuditEventType.PROVISION, "service", service, "Provisioning complete")

    print_connection_report(ctx.console, credential, app_config.access)

    return ProvisionResult(
        resources=resources,
        profile=profile,
        backups=backups,
        credential=credential,
    )
