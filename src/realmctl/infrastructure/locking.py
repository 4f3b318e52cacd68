"""Exclusive advisory file locks with a bounded wait.

The lock lives in a sidecar ``.lock`` file so the config itself can be
replaced atomically while the lock is held. ``flock`` locks belong to the
open file description, so two threads of one process contend just like two
processes do. A timed-out acquisition leaves no lock state behind.
"""

from __future__ import annotations

import fcntl
import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from realmctl.errors import LockTimeout

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


def lock_path_for(path: Path) -> Path:
    """Return the sidecar lock file for *path* (``dir/.name.lock``)."""
    return path.with_name(f".{path.name}.lock")


@contextmanager
def exclusive_lock(path: Path, *, timeout: float) -> Iterator[None]:
    """Hold an exclusive lock on *path* for the duration of the block.

    Raises:
        LockTimeout: If the lock is not acquired within *timeout* seconds.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    with path.open("a") as fh:
        while True:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise LockTimeout(path.name, timeout) from None
                time.sleep(POLL_INTERVAL)
        logger.debug("Acquired lock %s", path)
        try:
            yield
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
            logger.debug("Released lock %s", path)
