"""Advisory lock serializing modkeeper runs against one repository."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from filelock import FileLock, Timeout

from modkeeper.errors import LockError

logger = logging.getLogger(__name__)


@contextmanager
def repository_lock(lock_path: Path, timeout: float = 10.0) -> Iterator[FileLock]:
    """Hold the lock at ``lock_path`` for the duration of the block.

    Usage::

        with repository_lock(superproject.lock_path):
            # reconcile

    A negative ``timeout`` waits forever.

    Raises:
        LockError: If another process keeps the lock past ``timeout``.
    """
    lock = FileLock(str(lock_path), timeout=timeout)
    try:
        lock.acquire()
    except Timeout as e:
        raise LockError(
            f"another modkeeper process holds {lock_path}; "
            "wait for it to finish and run the command again"
        ) from e
    logger.debug("Acquired lock %s", lock_path)
    try:
        yield lock
    finally:
        lock.release()
        logger.debug("Released lock %s", lock_path)
