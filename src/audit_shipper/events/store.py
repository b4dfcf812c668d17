"""Local key-value byte stores backing the offline queue."""

from pathlib import Path
from typing import Protocol
import logging
import os
import re
import sys

# Cross-platform file locking
if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _lock_file(file_handle) -> None:
    """Acquire exclusive lock on file (cross-platform)."""
    if sys.platform == "win32":
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_LOCK, 1)
    else:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_EX)


def _unlock_file(file_handle) -> None:
    """Release lock on file (cross-platform)."""
    if sys.platform == "win32":
        msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)


class DurableStore(Protocol):
    """Key-value byte storage that survives process restarts."""

    def put(self, key: str, value: bytes) -> None:
        ...

    def get(self, key: str) -> bytes | None:
        ...

    def delete(self, key: str) -> None:
        ...


class FileKeyValueStore:
    """
    One file per key under a state directory.

    Writes go to a temp file that is fsynced and renamed over the target, so a
    crash mid-write leaves either the old value or the new one. Writers hold
    an exclusive lock on ``<key>.lock`` for the whole write. Files are
    created with mode 0600 (owner read/write only).
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """Get path of the file holding ``key``."""
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.root / f"{key}.json"

    def put(self, key: str, value: bytes) -> None:
        """
        Write ``value`` under ``key`` (atomic replace).

        Raises:
            PermissionError: If the state directory or file is not writable
        """
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionError(
                f"Cannot create state directory {path.parent}. "
                f"Check permissions on the audit shipper state directory. Error: {e}"
            ) from e

        temp_path = path.with_suffix(".tmp")
        # Writers serialize on a stable sidecar; the temp file is truncated on open
        with open(path.with_suffix(".lock"), "a") as lock:
            _lock_file(lock)
            try:
                with open(temp_path, "wb") as f:
                    f.write(value)
                    f.flush()
                    os.fsync(f.fileno())

                try:
                    temp_path.chmod(0o600)
                except PermissionError:
                    logger.warning("Could not set permissions on %s (continuing)", temp_path)

                temp_path.replace(path)
            finally:
                _unlock_file(lock)

    def get(self, key: str) -> bytes | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        with open(path, "rb") as f:
            return f.read()

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class MemoryKeyValueStore:
    """Process-local store. Survives service instances, not process restarts."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def put(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data
