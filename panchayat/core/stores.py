"""
Record stores - interchangeable backends behind the record repository.

SqliteRecordStore is the durable store. InMemoryRecordStore is the transient
fallback used while the durable store is unreachable; it lives for the process
lifetime only.
"""

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from .db import get_db, init_db
from .errors import StoreUnavailable, ValidationError
from .kinds import RecordKind
from .schema import ApplicationRecord, ApplicationStatus


class RecordStore(ABC):
    """Abstract interface for application record storage."""

    name = "abstract"

    @abstractmethod
    def get(self, record_id: str) -> Optional[ApplicationRecord]:
        """Return a record by id, or None if it is genuinely absent."""
        pass

    @abstractmethod
    def insert(self, record: ApplicationRecord) -> None:
        """Store a new record."""
        pass

    @abstractmethod
    def save(self, record: ApplicationRecord) -> None:
        """Replace an existing record."""
        pass

    @abstractmethod
    def list(self, citizen_id: str = None) -> List[ApplicationRecord]:
        """List records, newest first, optionally for one citizen."""
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Check whether the store can currently serve requests."""
        pass


class SqliteRecordStore(RecordStore):
    """Durable record store: one SQLite table per kind.

    Any sqlite3 error other than a constraint violation is reported as
    StoreUnavailable so the repository can fail over.
    """

    name = "durable"

    def __init__(self, kind: RecordKind, db_path: str = None, enabled: bool = True):
        self.kind = kind
        self.db_path = db_path
        self.enabled = enabled
        self._schema_ready = False

    @contextmanager
    def _connect(self):
        if not self.enabled:
            raise StoreUnavailable("durable store disabled by configuration")
        try:
            if not self._schema_ready:
                init_db([self.kind.collection], self.db_path)
                self._schema_ready = True
            with get_db(self.db_path) as conn:
                yield conn
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Record conflicts with an existing entry: {e}") from e
        except sqlite3.Error as e:
            raise StoreUnavailable(f"{self.kind.collection}: {e}") from e

    def _row_to_record(self, row) -> ApplicationRecord:
        record_id, citizen_id, status, fields, created_at, updated_at = row
        return ApplicationRecord(
            id=record_id,
            kind=self.kind.name,
            citizen_id=citizen_id,
            status=ApplicationStatus(status),
            fields=json.loads(fields),
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(updated_at),
        )

    def get(self, record_id: str) -> Optional[ApplicationRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT id, citizen_id, status, fields, created_at, updated_at FROM {self.kind.collection} WHERE id = ?",
                (record_id,)
            )
            row = cursor.fetchone()
        return self._row_to_record(row) if row else None

    def insert(self, record: ApplicationRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO {self.kind.collection} (id, citizen_id, status, fields, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                (record.id, record.citizen_id, record.status.value, json.dumps(record.fields),
                 record.created_at.isoformat(), record.updated_at.isoformat())
            )
            conn.commit()

    def save(self, record: ApplicationRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {self.kind.collection} (id, citizen_id, status, fields, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
                (record.id, record.citizen_id, record.status.value, json.dumps(record.fields),
                 record.created_at.isoformat(), record.updated_at.isoformat())
            )
            conn.commit()

    def list(self, citizen_id: str = None) -> List[ApplicationRecord]:
        query = f"SELECT id, citizen_id, status, fields, created_at, updated_at FROM {self.kind.collection}"
        params = ()
        if citizen_id is not None:
            query += " WHERE citizen_id = ?"
            params = (citizen_id,)
        query += " ORDER BY created_at DESC"

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    def ping(self) -> bool:
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1")
            return True
        except StoreUnavailable:
            return False


class InMemoryRecordStore(RecordStore):
    """Transient record store: an id -> record map guarded by a lock."""

    name = "transient"

    def __init__(self):
        self._records: Dict[str, ApplicationRecord] = {}
        self._lock = threading.Lock()

    def get(self, record_id: str) -> Optional[ApplicationRecord]:
        with self._lock:
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record else None

    def insert(self, record: ApplicationRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise ValidationError(f"Record conflicts with an existing entry: {record.id}")
            self._records[record.id] = copy.deepcopy(record)

    def save(self, record: ApplicationRecord) -> None:
        with self._lock:
            self._records[record.id] = copy.deepcopy(record)

    def list(self, citizen_id: str = None) -> List[ApplicationRecord]:
        with self._lock:
            records = [
                copy.deepcopy(record) for record in self._records.values()
                if citizen_id is None or record.citizen_id == citizen_id
            ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def ping(self) -> bool:
        return True

    def __len__(self):
        with self._lock:
            return len(self._records)
