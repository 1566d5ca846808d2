"""
infrastructure.py

In-memory implementation of the repository interfaces and the Unit of Work.

This is a self-contained, zero-dependency backend that stores everything in
plain Python dicts keyed by UUID.  It is intentionally simple — suitable for
local development, demos, and integration testing without needing a real
database.

To swap in a real database later, implement the same Abstract* interfaces
from application.py and override get_uow() in api.py:

    app.dependency_overrides[get_uow] = lambda: SqlUnitOfWork(session)

Nothing in service.py, application.py, or api.py needs to change.
"""

from __future__ import annotations

import threading
import uuid

from application import (
    AbstractDocumentRecordRepository,
    AbstractRevisionEventRepository,
    AbstractUnitOfWork,
)
from model import DocumentRecord, RevisionEvent


# ---------------------------------------------------------------------------
# Generic in-memory store
# ---------------------------------------------------------------------------

class _Store(dict):
    """A plain dict with typed get/save helpers."""

    def fetch(self, key: uuid.UUID):
        return self.get(key)

    def put(self, obj) -> None:
        self[obj.id] = obj

    def all(self) -> list:
        return list(self.values())


class _EventLogStore:
    """Append-only list of events; appends are serialised by a lock."""

    def __init__(self):
        self._events: list = []
        self._lock = threading.Lock()

    def append(self, event: RevisionEvent) -> None:
        with self._lock:
            self._events.append(event)

    def all(self) -> list:
        with self._lock:
            return list(self._events)


# ---------------------------------------------------------------------------
# Shared in-memory database (module-level singleton)
# Persists for the lifetime of the process — restarting uvicorn resets it.
# ---------------------------------------------------------------------------

class InMemoryDatabase:
    def __init__(self):
        self.records:         _Store = _Store()
        self.revision_events: _EventLogStore = _EventLogStore()


# Module-level singleton — shared across all requests
_db = InMemoryDatabase()


# ---------------------------------------------------------------------------
# Repository implementations
# ---------------------------------------------------------------------------

class InMemoryDocumentRecordRepository(AbstractDocumentRecordRepository):
    def __init__(self, store: _Store): self._s = store
    def get(self, record_id):         return self._s.fetch(record_id)
    def list_for_project(self, project_id):
        return [r for r in self._s.all() if r.project_id == project_id]
    def save(self, record: DocumentRecord): self._s.put(record)


class InMemoryRevisionEventRepository(AbstractRevisionEventRepository):
    def __init__(self, store: _EventLogStore): self._s = store
    def append(self, event):          self._s.append(event)
    def list_for_record(self, record_id):
        return [e for e in self._s.all() if e.record_id == record_id]


# ---------------------------------------------------------------------------
# Unit of Work
# ---------------------------------------------------------------------------

class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Wraps the in-memory repositories.  commit() and rollback() are no-ops
    because mutations are immediate — there is no transaction to manage.
    In a real SQL implementation, commit() would call session.commit().
    """

    def __init__(self, db: InMemoryDatabase = _db):
        self.records         = InMemoryDocumentRecordRepository(db.records)
        self.revision_events = InMemoryRevisionEventRepository(db.revision_events)

    def commit(self)   -> None: pass   # no-op for in-memory
    def rollback(self) -> None: pass   # no-op for in-memory
