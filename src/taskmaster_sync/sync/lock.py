"""Advisory lock file guarding the sync state against concurrent runs.

The lock is a sibling file ``<state>.lock`` created with ``O_EXCL`` so that
exactly one process can hold it. It records the owner's pid, a random token
and the creation time as JSON. A lock older than ``STALE_AFTER_SECONDS`` is
considered abandoned and broken.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path

from taskmaster_sync.errors import LockTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
POLL_INTERVAL_SECONDS = 0.1
STALE_AFTER_SECONDS = 5 * 60


def lock_path_for(state_path: str | Path) -> Path:
    """Return the lock file path for *state_path*."""
    state_path = Path(state_path)
    return state_path.with_name(state_path.name + ".lock")


class FileLock:
    """Exclusive lock on a state file.

    Args:
        state_path: Path of the file being protected. The lock itself lives
            at ``<state_path>.lock``.
        timeout: Seconds to wait for a held lock before giving up.
        poll_interval: Seconds between acquisition attempts.
        stale_after: Age in seconds after which a lock is broken.

    Example:
        with FileLock(".taskmaster/sync-state.json"):
            ...
    """

    def __init__(
        self,
        state_path: str | Path,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        stale_after: float = STALE_AFTER_SECONDS,
    ) -> None:
        self.path = lock_path_for(state_path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.stale_after = stale_after
        self.token: str | None = None

    @property
    def is_held(self) -> bool:
        return self.token is not None

    def acquire(self) -> str:
        """Acquire the lock, polling until ``timeout``.

        Returns:
            The token identifying this holder.

        Raises:
            LockTimeoutError: If the lock is still held when the timeout
                elapses.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        token = secrets.token_hex(16)
        deadline = time.monotonic() + self.timeout

        while True:
            if self._try_create(token):
                self.token = token
                logger.debug("Acquired lock %s", self.path)
                return token

            if self._is_stale():
                logger.warning("Breaking stale lock %s", self.path)
                self._unlink()
                continue

            if time.monotonic() >= deadline:
                raise LockTimeoutError(str(self.path), self.timeout)
            time.sleep(self.poll_interval)

    def release(self, token: str | None = None) -> None:
        """Release the lock.

        With a *token*, the lock file is removed only if it still carries
        that token; a mismatch means another process owns the lock now and
        is logged and ignored.
        """
        token = token or self.token
        if token is not None:
            owner = self._read_info().get("token")
            if owner is not None and owner != token:
                logger.warning(
                    "Lock %s is owned by another holder, not releasing",
                    self.path,
                )
                self.token = None
                return
        self._unlink()
        self.token = None
        logger.debug("Released lock %s", self.path)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _try_create(self, token: str) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        info = {
            "pid": os.getpid(),
            "token": token,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(info, fh)
        return True

    def _read_info(self) -> dict:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def _is_stale(self) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            # released between our attempt and now; just retry
            return False
        if age > self.stale_after:
            return True

        created_at = self._read_info().get("created_at")
        if created_at:
            try:
                created = datetime.fromisoformat(created_at)
            except ValueError:
                return False
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            elapsed = (datetime.now(timezone.utc) - created).total_seconds()
            return elapsed > self.stale_after
        return False

    def _unlink(self) -> None:
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
