"""Privileged command execution.

The PrivilegedExecutor is the only object that touches the host: it runs
commands, executes SQL through psql, and writes files. Services receive it
at construction, so tests can hand them a mock instead of a root shell.

Provides:
- Command execution with output capture
- SQL execution via psql as the postgres OS user
- Atomic file writes and dated backups
- Dry-run mode support
"""

import grp
import os
import pwd
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from pgvp.core.context import ExecutionContext
from pgvp.core.exceptions import ConfigWriteError, ExecutionError
from pgvp.core.files import AtomicFileWriter


# Backups are stamped per day: a second run on the same day replaces it
BACKUP_DATE_FORMAT = "%Y-%m-%d"


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: list[str]
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.return_code == 0


class PrivilegedExecutor:
    """Command execution with root privileges, dry-run support and capture.

    Features:
    - Dry-run mode shows what would happen
    - User switching (sudo -u) for psql
    - Sensitive command masking
    - SQL passed on stdin, never on the command line
    """

    def __init__(self, ctx: ExecutionContext) -> None:
        self.ctx = ctx

    def run(
        self,
        command: list[str],
        *,
        description: Optional[str] = None,
        check: bool = True,
        capture: bool = True,
        as_user: Optional[str] = None,
        sensitive: bool = False,
        timeout: Optional[int] = None,
        env: Optional[dict[str, str]] = None,
        input_text: Optional[str] = None,
    ) -> CommandResult:
        """Execute a command.

        Args:
            command: Command as list of strings
            description: Human-readable description for logging
            check: Raise exception on non-zero exit
            capture: Capture stdout/stderr
            as_user: Run as different user (via sudo -u)
            sensitive: Don't log the actual command
            timeout: Command timeout in seconds
            env: Additional environment variables
            input_text: Data written to the command's stdin

        Returns:
            CommandResult with output

        Raises:
            ExecutionError: If command fails and check=True
        """
        if as_user:
            command = ["sudo", "-u", as_user] + command

        if description:
            self.ctx.console.step(description)

        cmd_display = "<sensitive command>" if sensitive else shlex.join(command)
        self.ctx.console.debug(f"Running: {cmd_display}")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Run: {cmd_display}")
            return CommandResult(command=command, return_code=0, stdout="", stderr="")

        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)

        try:
            result = subprocess.run(
                command,
                capture_output=capture,
                text=True,
                timeout=timeout,
                env=run_env,
                input=input_text,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError(
                f"Command timed out after {timeout}s: {description or cmd_display}",
                command=cmd_display,
            )
        except FileNotFoundError as e:
            raise ExecutionError(
                f"Command not found: {command[0]}",
                command=cmd_display,
                details=[str(e)],
            ) from e

        cmd_result = CommandResult(
            command=command,
            return_code=result.returncode,
            stdout=result.stdout if capture else "",
            stderr=result.stderr if capture else "",
        )

        if check and result.returncode != 0:
            raise ExecutionError(
                f"Command failed: {description or cmd_display}",
                command=cmd_display,
                return_code=result.returncode,
                stderr=result.stderr if capture else None,
            )

        return cmd_result

    def run_sql(
        self,
        sql: str,
        *,
        database: str = "postgres",
        as_user: str = "postgres",
        description: Optional[str] = None,
        check: bool = True,
        port: Optional[int] = None,
    ) -> str:
        """Execute SQL via psql on the local socket.

        The statement is fed on stdin so passwords never show up in the
        process list.

        Returns:
            Query output (tuples only, unaligned)

        Raises:
            ExecutionError: If the statement fails and check=True
        """
        command = [
            "psql",
            "-X",  # Ignore ~/.psqlrc
            "-v", "ON_ERROR_STOP=1",
            "-d", database,
            "-t",  # Tuples only
            "-A",  # Unaligned output
        ]
        if port is not None:
            command.extend(["-p", str(port)])

        if description:
            self.ctx.console.step(description)

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Execute SQL on '{database}'")
            return ""

        result = self.run(
            command,
            as_user=as_user,
            check=check,
            sensitive=True,
            input_text=sql,
        )

        return result.stdout.strip()

    def write_file(
        self,
        path: Path,
        content: str,
        *,
        description: Optional[str] = None,
        permissions: int = 0o644,
        owner: Optional[str] = None,
        group: Optional[str] = None,
    ) -> None:
        """Write content to a file atomically.

        Raises:
            ConfigWriteError: If the file cannot be written
        """
        self.ctx.console.step(description or f"Write {path}")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Write {len(content)} bytes to {path}")
            if self.ctx.is_verbose:
                self.ctx.console.config_file(content, title=str(path))
            return

        try:
            uid = pwd.getpwnam(owner).pw_uid if owner else None
            gid = grp.getgrnam(group).gr_gid if group else None
        except KeyError as e:
            raise ConfigWriteError(
                f"Unknown owner for {path}: {e}",
                path=str(path),
                hint="Is the PostgreSQL server package installed?",
            ) from e

        try:
            with AtomicFileWriter(
                path,
                permissions=permissions,
                owner_uid=uid,
                owner_gid=gid,
            ).open() as f:
                f.write(content)
        except OSError as e:
            raise ConfigWriteError(
                f"Cannot write {path}",
                path=str(path),
                details=[str(e)],
                hint=f"Check that {path.parent} exists and is writable",
            ) from e

    def backup_file(self, path: Path, *, today: Optional[date] = None) -> Optional[Path]:
        """Copy a file to <name>.backup.<YYYY-MM-DD> next to it.

        Returns:
            Path to backup file, or None if the original doesn't exist

        Raises:
            ConfigWriteError: If the copy fails
        """
        stamp = (today or date.today()).strftime(BACKUP_DATE_FORMAT)
        backup_path = path.with_name(f"{path.name}.backup.{stamp}")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Backup {path} to {backup_path}")
            return backup_path

        if not path.exists():
            return None

        try:
            shutil.copy2(path, backup_path)
        except OSError as e:
            raise ConfigWriteError(
                f"Cannot back up {path}",
                path=str(path),
                details=[str(e)],
            ) from e

        self.ctx.console.debug(f"Backed up {path} to {backup_path}")
        return backup_path
