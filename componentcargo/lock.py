"""Advisory locking of the component lock file."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import IO

import portalocker

LOCK_FILE_NAME = "Cargo-component.lock"

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, str], object]


class LockFileError(RuntimeError):
    """Raised when the lock file may not be updated."""


class FileLock:
    """An open lock file holding a shared or exclusive advisory lock."""

    def __init__(self, path: Path, file: IO[bytes]) -> None:
        self.path = path
        self.file = file

    @classmethod
    def _open(cls, path: Path, *, write: bool, blocking: bool) -> FileLock | None:
        if write:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
            file = os.fdopen(fd, "r+b")
            flags = portalocker.LOCK_EX
        else:
            file = open(path, "rb")
            flags = portalocker.LOCK_SH
        if not blocking:
            flags |= portalocker.LOCK_NB
        try:
            portalocker.lock(file, flags)
        except portalocker.exceptions.LockException:
            file.close()
            if blocking:
                raise
            return None
        except BaseException:
            file.close()
            raise
        return cls(path, file)

    def close(self) -> None:
        """Release the lock and close the file."""
        if self.file.closed:
            return
        try:
            portalocker.unlock(self.file)
        finally:
            self.file.close()

    def __enter__(self) -> FileLock:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _acquire(path: Path, write: bool, status: StatusCallback | None) -> FileLock:
    lock = FileLock._open(path, write=write, blocking=False)
    if lock is not None:
        return lock
    if status is not None:
        status("Blocking", f"on access to lock file `{path}`")
    lock = FileLock._open(path, write=write, blocking=True)
    assert lock is not None
    return lock


def acquire_lock_file_ro(
    workspace_root: str | os.PathLike[str], status: StatusCallback | None = None
) -> FileLock | None:
    """Open the workspace lock file for reading, or return None if it is absent.

    ``status`` is called with a label and a message before blocking.
    """
    path = Path(workspace_root) / LOCK_FILE_NAME
    if not path.exists():
        return None
    logger.info("opening lock file `%s`", path)
    return _acquire(path, False, status)


def acquire_lock_file_rw(
    workspace_root: str | os.PathLike[str],
    lock_update_allowed: bool,
    locked: bool,
    status: StatusCallback | None = None,
) -> FileLock:
    """Open (creating if needed) the workspace lock file for writing."""
    path = Path(workspace_root) / LOCK_FILE_NAME
    if not lock_update_allowed:
        flag = "--locked" if locked else "--frozen"
        raise LockFileError(
            f"the lock file {path} needs to be updated but {flag} was passed to prevent this\n"
            "If you want to try to generate the lock file without accessing the network, "
            f"remove the {flag} flag and use --offline instead."
        )
    logger.info("creating lock file `%s`", path)
    return _acquire(path, True, status)