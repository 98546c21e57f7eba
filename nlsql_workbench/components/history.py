"""Bounded, persisted query history and the key-value storage it persists to"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
import json
import logging
import os
import tempfile

from nlsql_workbench.components.errors import PersistenceError
from nlsql_workbench.components.models import QueryRecord

logger = logging.getLogger(__name__)

HISTORY_KEY = "nlsql_history"
HISTORY_LIMIT = 10


class KeyValueStore(ABC):
    """Abstract durable string storage, keyed by namespace strings"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent"""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the key. Deleting a missing key is not an error."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store; survives for the lifetime of the object"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JSONFileKeyValueStore(KeyValueStore):
    """Stores all keys in one JSON object on disk.

    Writes go to a temporary file that replaces the original, so an abrupt
    exit never leaves a half-written file behind. OS and decoding failures are
    raised as ``PersistenceError``.
    """

    def __init__(self, path: str):
        self.path = Path(os.path.expanduser(path))

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise PersistenceError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not hold a JSON object")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except PersistenceError:
            logger.warning("Overwriting unreadable storage file %s", self.path)
            data = {}
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        try:
            data = self._read_all()
        except PersistenceError:
            data = {}
        if key in data:
            del data[key]
            self._write_all(data)


class HistoryStore:
    """Most-recent-first log of successful queries, capped at ``limit`` entries.

    Every mutation re-persists the full log. Storage failures are logged and
    otherwise ignored: the in-memory log stays authoritative.
    """

    def __init__(self, storage: KeyValueStore, key: str = HISTORY_KEY, limit: int = HISTORY_LIMIT):
        self.storage = storage
        self.key = key
        self.limit = limit
        self._records: List[QueryRecord] = []
        self.loaded = False

    @property
    def records(self) -> List[QueryRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def load(self) -> List[QueryRecord]:
        """Read the persisted log. Absent or malformed state yields an empty log."""
        self._records = []
        self.loaded = True
        try:
            raw = self.storage.get(self.key)
        except PersistenceError as e:
            logger.warning("History storage unavailable, starting empty: %s", e)
            return self.records
        if raw is None:
            return self.records

        try:
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise TypeError("history must be a JSON array")
            records = [QueryRecord.from_dict(entry) for entry in entries]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding malformed query history: %s", e)
            return self.records

        self._records = records[: self.limit]
        logger.debug("Loaded %d history entries", len(self._records))
        return self.records

    def append(self, record: QueryRecord) -> None:
        """Prepend a record, evict the oldest beyond the limit, persist."""
        self._records = [record] + self._records[: self.limit - 1]
        self._persist()

    def clear(self) -> None:
        self._records = []
        try:
            self.storage.delete(self.key)
        except PersistenceError as e:
            logger.warning("Could not erase persisted history: %s", e)

    def _persist(self) -> None:
        payload = json.dumps([r.to_dict() for r in self._records])
        try:
            self.storage.set(self.key, payload)
        except PersistenceError as e:
            logger.warning("Could not persist query history: %s", e)
