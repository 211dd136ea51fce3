"""State Store capability and its in-memory and JSON-file implementations."""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any
from pydantic import ValidationError as PydanticValidationError
from .models import StateRecord
from ..utils.errors import StateError
from ..utils.logging import get_logger

logger = get_logger("state.store")

STATE_FORMAT_VERSION = 1


class StateStore(ABC):
    """
    Persistent store of the last-known topology.

    Every write is scoped to a single record and must be atomic: a crash
    leaves either the old or the new version of that record, never a mix.
    """

    @abstractmethod
    def load(self) -> Dict[str, StateRecord]:
        """
        Load all records.

        Returns:
            Mapping of address -> StateRecord
        """
        pass

    @abstractmethod
    def save(self, record: StateRecord) -> None:
        """Insert or replace the record for record.address."""
        pass

    @abstractmethod
    def remove(self, address: str) -> None:
        """Remove the record for address (no-op if absent)."""
        pass


class InMemoryStateStore(StateStore):
    """Process-local store for tests and dry runs."""

    def __init__(self, records: Dict[str, StateRecord] = None):
        self._records: Dict[str, StateRecord] = {}
        self._lock = threading.Lock()
        for record in (records or {}).values():
            self._records[record.address] = record.model_copy(deep=True)

    def load(self) -> Dict[str, StateRecord]:
        with self._lock:
            return {a: r.model_copy(deep=True) for a, r in self._records.items()}

    def save(self, record: StateRecord) -> None:
        with self._lock:
            self._records[record.address] = record.model_copy(deep=True)

    def remove(self, address: str) -> None:
        with self._lock:
            self._records.pop(address, None)


class JsonFileStateStore(StateStore):
    """
    State kept in one JSON document.

    Each save/remove rewrites the document to a temporary file in the same
    directory and renames it over the original, under a lock.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> Dict[str, StateRecord]:
        with self._lock:
            return self._read()

    def save(self, record: StateRecord) -> None:
        with self._lock:
            records = self._read()
            records[record.address] = record
            self._write(records)
        logger.debug(f"Saved state for {record.address}")

    def remove(self, address: str) -> None:
        with self._lock:
            records = self._read()
            if records.pop(address, None) is None:
                return
            self._write(records)
        logger.debug(f"Removed state for {address}")

    def _read(self) -> Dict[str, StateRecord]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"State file {self.path} is not valid JSON: {e}")
        except OSError as e:
            raise StateError(f"Error reading state file {self.path}: {e}")

        if not isinstance(document, dict) or "resources" not in document:
            raise StateError(f"State file {self.path} has no 'resources' section")

        version = document.get("version")
        if version != STATE_FORMAT_VERSION:
            raise StateError(f"Unsupported state format version {version!r} in {self.path}")

        records = {}
        for address, data in document["resources"].items():
            try:
                records[address] = StateRecord.model_validate(data)
            except PydanticValidationError as e:
                raise StateError(f"Invalid state record: {e}", address=address)
        return records

    def _write(self, records: Dict[str, StateRecord]) -> None:
        document: Dict[str, Any] = {
            "version": STATE_FORMAT_VERSION,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "resources": {a: r.model_dump() for a, r in sorted(records.items())},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(document, f, indent=2, default=str)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StateError(f"Failed to write state file {self.path}: {e}")
