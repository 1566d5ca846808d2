# tests/conftest.py
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src/ to PYTHONPATH
SRC_ROOT = Path(__file__).resolve().parent.parent / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from model import EventType, RevisionEvent  # noqa: E402

RECORD_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")


def ts(value: str) -> datetime:
    """'2024-01-10' or '2024-01-10T12:00' as an aware UTC datetime."""
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def submitted(when: str, estimate: str = None, revision: str = "Rev-01", **kwargs) -> RevisionEvent:
    return RevisionEvent(
        record_id=kwargs.pop("record_id", RECORD_ID),
        event_type=EventType.SUBMITTED,
        revision_label=revision,
        event_timestamp=ts(when),
        estimated_return_timestamp=ts(estimate) if estimate else None,
        **kwargs,
    )


def received(when: str, revision: str = "Rev-01", **kwargs) -> RevisionEvent:
    return RevisionEvent(
        record_id=kwargs.pop("record_id", RECORD_ID),
        event_type=EventType.RECEIVED,
        revision_label=revision,
        event_timestamp=ts(when),
        **kwargs,
    )


@pytest.fixture
def record_id():
    return RECORD_ID


@pytest.fixture
def uow():
    """A unit of work over a fresh, private in-memory database."""
    from infrastructure import InMemoryDatabase, InMemoryUnitOfWork
    return InMemoryUnitOfWork(InMemoryDatabase())


@pytest.fixture
def fixed_now():
    return ts("2024-02-01")


@pytest.fixture
def client(fixed_now):
    """TestClient on a fresh database with the request clock pinned."""
    from fastapi.testclient import TestClient
    from api import app, get_now, get_uow
    from infrastructure import InMemoryDatabase, InMemoryUnitOfWork

    db = InMemoryDatabase()
    app.dependency_overrides[get_uow] = lambda: InMemoryUnitOfWork(db)
    app.dependency_overrides[get_now] = lambda: fixed_now
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
