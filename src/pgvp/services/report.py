"""Final connection report."""

from pgvp.core.config import AccessConfig
from pgvp.core.output import Console
from pgvp.core.validation import is_open_cidr
from pgvp.services.credentials import AppCredential


def print_connection_report(
    console: Console,
    credential: AppCredential,
    access: AccessConfig,
) -> None:
    """Print connection details, including the one-time password.

    The report is printed even in quiet mode: it is the only place the
    password ever appears.
    """
    console.print()
    console.summary("PostgreSQL + pgvector ready", {
        "Host": credential.host,
        "Port": credential.port,
        "User": credential.username,
        "Password": credential.password,
        "Database": credential.database,
    })
    console.print(f"[bold]DSN:[/bold] {credential.dsn}", soft_wrap=True)
    console.print()
    console.print(
        "[bold yellow]Save the password now; it will not be shown again.[/bold yellow]"
    )

    if is_open_cidr(access.external_cidr):
        console.print(
            f"[yellow]pg_hba.conf allows password logins from "
            f"{access.external_cidr}. Restrict access.external_cidr "
            f"before exposing this server.[/yellow]"
        )
