"""Atomic file writes.

Configuration files are written to a temp file in the same directory and
renamed over the target, so a reader never sees a half-written file.
"""

import contextlib
import os
import secrets
from pathlib import Path
from typing import Generator, Optional


SECURE_FILE_PERMS = 0o600


class AtomicFileWriter:
    """Atomic file writer using temp file and rename.

    Usage:
        with AtomicFileWriter(path).open() as f:
            f.write("content")
        # File is atomically replaced here
    """

    def __init__(
        self,
        target_path: Path,
        permissions: int = SECURE_FILE_PERMS,
        owner_uid: Optional[int] = None,
        owner_gid: Optional[int] = None,
    ) -> None:
        self.target_path = Path(target_path)
        self.permissions = permissions
        self.owner_uid = owner_uid
        self.owner_gid = owner_gid

    @contextlib.contextmanager
    def open(self, mode: str = "w") -> Generator:
        """Open the temp file for writing; rename into place on clean exit."""
        tmp_path = self.target_path.with_name(
            f".{self.target_path.name}.tmp_{secrets.token_hex(8)}"
        )

        success = False
        fd = None

        try:
            fd = os.open(
                tmp_path,
                os.O_WRONLY | os.O_CREAT | os.O_EXCL,
                self.permissions,
            )

            with os.fdopen(fd, mode) as f:
                fd = None  # fdopen takes ownership
                yield f
                f.flush()
                os.fsync(f.fileno())

            # umask may have masked bits off at creation
            os.chmod(tmp_path, self.permissions)

            if self.owner_uid is not None:
                os.chown(
                    tmp_path,
                    self.owner_uid,
                    self.owner_gid if self.owner_gid is not None else -1,
                )

            os.replace(tmp_path, self.target_path)
            success = True

        finally:
            if fd is not None:
                os.close(fd)
            if not success and tmp_path.exists():
                tmp_path.unlink()
