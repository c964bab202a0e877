"""Key-value store backends.

The credential layer only needs four operations from persistence: get, put,
conditional update and a first-match query on a secondary attribute. This
module defines that contract and ships two implementations:

- InMemoryStore: a dict, used by tests and one-shot CLI runs.
- JsonFileStore: a single JSON document on disk, written atomically under an
  fcntl lock so that concurrent CLI invocations do not corrupt it.

Records are plain dicts whose primary key is the ``id`` attribute.
"""

from __future__ import annotations

import asyncio
import copy
import fcntl
import json
import logging
import os
import tempfile
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from alexa_velux.core.exceptions import ConditionalCheckFailedError, PersistenceError

logger = logging.getLogger(__name__)

KEY_ATTRIBUTE = "id"
DEFAULT_LOCK_TIMEOUT = 5.0  # seconds


# =============================================================================
# Store Interface
# =============================================================================


class KeyValueStore(ABC):
    """Async contract for the persistent key-value store."""

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the record stored under ``key``, or None if absent."""
        raise NotImplementedError

    @abstractmethod
    async def put(self, item: dict[str, Any]) -> None:
        """Insert or replace ``item``, keyed by its ``id`` attribute."""
        raise NotImplementedError

    @abstractmethod
    async def update(
        self, key: str, fields: dict[str, Any], must_exist: bool = False
    ) -> dict[str, Any]:
        """Merge ``fields`` into the record stored under ``key``.

        Args:
            key: Primary key of the record.
            fields: Attributes to set on the record.
            must_exist: If True, fail instead of creating a missing record.

        Returns:
            The record after the update.

        Raises:
            ConditionalCheckFailedError: If must_exist is set and the record is absent.
        """
        raise NotImplementedError

    @abstractmethod
    async def query(self, index: str, attribute: str, value: Any) -> str | None:
        """Return the key of the first record whose ``attribute`` equals ``value``."""
        raise NotImplementedError


def _require_key(item: dict[str, Any]) -> str:
    key = item.get(KEY_ATTRIBUTE)
    if not isinstance(key, str) or not key:
        raise PersistenceError(
            "Record has no primary key",
            details=f"Every record needs a non-empty '{KEY_ATTRIBUTE}' attribute.",
        )
    return key


def _merge(
    records: dict[str, dict[str, Any]], key: str, fields: dict[str, Any], must_exist: bool
) -> dict[str, Any]:
    existing = records.get(key)
    if existing is None:
        if must_exist:
            raise ConditionalCheckFailedError(key)
        existing = {KEY_ATTRIBUTE: key}
    updated = {**existing, **fields, KEY_ATTRIBUTE: key}
    records[key] = updated
    return copy.deepcopy(updated)


def _first_match(records: dict[str, dict[str, Any]], attribute: str, value: Any) -> str | None:
    for key, record in records.items():
        if record.get(attribute) == value:
            return key
    return None


# =============================================================================
# In-Memory Store
# =============================================================================


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Returned records are copies."""

    def __init__(self, records: dict[str, dict[str, Any]] | None = None):
        self._records: dict[str, dict[str, Any]] = copy.deepcopy(records or {})

    async def get(self, key: str) -> dict[str, Any] | None:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, item: dict[str, Any]) -> None:
        key = _require_key(item)
        self._records[key] = copy.deepcopy(item)

    async def update(
        self, key: str, fields: dict[str, Any], must_exist: bool = False
    ) -> dict[str, Any]:
        return _merge(self._records, key, copy.deepcopy(fields), must_exist)

    async def query(self, index: str, attribute: str, value: Any) -> str | None:
        return _first_match(self._records, attribute, value)

    def __len__(self) -> int:
        return len(self._records)


# =============================================================================
# File Lock Context Manager
# =============================================================================


@contextmanager
def file_lock(
    lock_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT, exclusive: bool = True
) -> Generator[IO[str], None, None]:
    """Context manager for file locking with timeout.

    Args:
        lock_path: Path to the lock file (will be created if it doesn't exist).
        timeout: Maximum time to wait for lock acquisition.
        exclusive: If True, acquire exclusive lock; otherwise shared lock.

    Yields:
        The file handle for the lock file.

    Raises:
        PersistenceError: If the lock file cannot be opened or the lock cannot
            be acquired within the timeout.
    """
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(lock_path, "w")
    except OSError as e:
        raise PersistenceError(f"Could not open lock file {lock_path}", original_error=e) from e
    start_time = time.time()

    try:
        lock_type = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH

        while True:
            try:
                fcntl.flock(lock_file.fileno(), lock_type | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.time() - start_time > timeout:
                    raise PersistenceError(
                        f"Could not acquire lock on {lock_path}",
                        details=f"Store in use by another process, timed out after {timeout}s",
                    ) from None
                time.sleep(0.1)

        yield lock_file
    finally:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass  # closing the file releases the lock anyway
        lock_file.close()


# =============================================================================
# JSON File Store
# =============================================================================


class JsonFileStore(KeyValueStore):
    """Store persisted as one JSON object mapping keys to records.

    Every operation re-reads the file, so several processes can share it.
    Blocking file I/O runs in a worker thread.
    """

    def __init__(self, path: Path, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        self._lock_file = self.path.with_name(f".{self.path.name}.lock")

    async def get(self, key: str) -> dict[str, Any] | None:
        records = await asyncio.to_thread(self._read_locked)
        return records.get(key)

    async def put(self, item: dict[str, Any]) -> None:
        key = _require_key(item)

        def _put(records: dict[str, dict[str, Any]]) -> None:
            records[key] = dict(item)

        await asyncio.to_thread(self._modify, _put)

    async def update(
        self, key: str, fields: dict[str, Any], must_exist: bool = False
    ) -> dict[str, Any]:
        return await asyncio.to_thread(
            self._modify, lambda records: _merge(records, key, dict(fields), must_exist)
        )

    async def query(self, index: str, attribute: str, value: Any) -> str | None:
        records = await asyncio.to_thread(self._read_locked)
        return _first_match(records, attribute, value)

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def _read_locked(self) -> dict[str, dict[str, Any]]:
        with file_lock(self._lock_file, timeout=self.lock_timeout, exclusive=False):
            return self._read()

    def _modify(self, mutate: Callable[[dict[str, dict[str, Any]]], Any]) -> Any:
        with file_lock(self._lock_file, timeout=self.lock_timeout):
            records = self._read()
            result = mutate(records)
            self._atomic_write_json(records)
            return result

    def _read(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                try:
                    data = json.load(f)
                except json.JSONDecodeError as e:
                    raise PersistenceError(
                        f"Store file at {self.path} is corrupted",
                        details=f"JSON parse error at line {e.lineno}, column {e.colno}: {e.msg}",
                    ) from e
        except OSError as e:
            raise PersistenceError(
                f"Could not read store file at {self.path}", original_error=e
            ) from e

        if not isinstance(data, dict):
            raise PersistenceError(
                f"Store file at {self.path} is corrupted",
                details=f"Expected a JSON object, got {type(data).__name__}",
            )
        return data

    def _atomic_write_json(self, records: dict[str, dict[str, Any]]) -> None:
        """Write records to a temp file in the same directory, then rename."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".tmp_", suffix=".json")
        except OSError as e:
            raise PersistenceError(
                f"Could not write store file at {self.path}", original_error=e
            ) from e

        try:
            with open(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(temp_path, self.path)
        except OSError as e:
            Path(temp_path).unlink(missing_ok=True)
            logger.error("Failed to write store file %s: %s", self.path, e)
            raise PersistenceError(
                f"Could not write store file at {self.path}", original_error=e
            ) from e

    def __repr__(self) -> str:
        return f"JsonFileStore(path={str(self.path)!r})"
