"""Persistence for job statuses and latest release tags.

Two key spaces share one key-value store: job statuses are saved under the
raw job id and tags under ``tag:<release_id>``. Job ids are uuid hex strings,
so they never contain the ``:`` separator.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, Protocol, Union

from pydantic import ValidationError

from hodor.core.exceptions import NotFoundError, PersistenceError
from hodor.deploy.models import UNKNOWN_TAG, JobStatus


TAG_PREFIX = "tag:"


class Serde(Protocol):
    """Encodes values before they are written to the store."""

    def dumps(self, value: Dict[str, Any]) -> str:
        ...

    def loads(self, data: str) -> Dict[str, Any]:
        ...


class JSONSerde:
    def dumps(self, value: Dict[str, Any]) -> str:
        return json.dumps(value, separators=(",", ":"))

    def loads(self, data: str) -> Dict[str, Any]:
        return json.loads(data)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str:
        """Return the value for ``key`` or raise :class:`NotFoundError`."""
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def close(self) -> None:
        ...


class MemoryStore:
    """Dict-backed store, mostly for tests."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str:
        with self._lock:
            try:
                return self._data[key]
            except KeyError:
                raise NotFoundError(f"key {key!r} not found") from None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def close(self) -> None:
        pass


class SqliteStore:
    """Key-value store in a single sqlite table.

    Every call runs in its own transaction. The connection is shared by the
    request threads and the worker thread, so calls are serialized.
    """

    def __init__(self, path: Union[str, Path] = ":memory:"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
            with self.conn:
                self.conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"failed to open database {self.path}: {exc}") from exc

    def get(self, key: str) -> str:
        with self._lock:
            try:
                row = self.conn.execute("SELECT value FROM kv WHERE key=?", (key,)).fetchone()
            except sqlite3.Error as exc:
                raise PersistenceError(f"failed to read {key!r}: {exc}") from exc
        if row is None:
            raise NotFoundError(f"key {key!r} not found")
        return row[0]

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute("INSERT OR REPLACE INTO kv VALUES (?, ?)", (key, value))
            except sqlite3.Error as exc:
                raise PersistenceError(f"failed to write {key!r}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self.conn.close()


class JobStore:
    """Typed access to job statuses and tags on top of a key-value store."""

    def __init__(self, store: KeyValueStore, serde: Serde | None = None):
        self.store = store
        self.serde = serde or JSONSerde()

    def save_status(self, job_id: str, status: str, message: str) -> None:
        job_status = JobStatus(status=status, message=message)
        try:
            data = self.serde.dumps(job_status.model_dump())
        except Exception as exc:
            raise PersistenceError(f"failed to marshal status: {exc}") from exc

        try:
            self.store.set(job_id, data)
        except PersistenceError as exc:
            raise PersistenceError(f"failed to save status: {exc}") from exc

    def get_status(self, job_id: str) -> JobStatus:
        try:
            data = self.store.get(job_id)
        except NotFoundError:
            raise NotFoundError(f"key {job_id!r} not found") from None
        except PersistenceError as exc:
            raise PersistenceError(f"failed to get status: {exc}") from exc

        try:
            return JobStatus.model_validate(self.serde.loads(data))
        except (ValueError, TypeError, ValidationError) as exc:
            raise PersistenceError(f"failed to unmarshal job status: {exc}") from exc

    def save_tag(self, release_id: str, tag: str) -> None:
        try:
            self.store.set(TAG_PREFIX + release_id, tag)
        except PersistenceError as exc:
            raise PersistenceError(f"failed to save tag: {exc}") from exc

    def get_latest_tag(self, release_id: str) -> str:
        try:
            return self.store.get(TAG_PREFIX + release_id)
        except NotFoundError:
            return UNKNOWN_TAG
        except PersistenceError as exc:
            raise PersistenceError(f"failed to get tag: {exc}") from exc

    def close(self) -> None:
        self.store.close()
