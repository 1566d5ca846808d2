"""
Write-side service tests: document records and event recording.
"""
import logging
import uuid
from datetime import date

import pytest

from conftest import received, submitted, ts
from model import Actor, DocumentRecord, EventType
from service import DocumentRecordService, RevisionEventService


@pytest.fixture
def record():
    return DocumentRecord(project_id=uuid.uuid4(), document_name="GA Drawing", revision="Rev-02")


@pytest.fixture
def svc():
    return RevisionEventService()


# ---------------------------------------------------------------------------
# DocumentRecordService
# ---------------------------------------------------------------------------

def test_create_record_strips_fields():
    rec = DocumentRecordService().create_record(uuid.uuid4(), "  Datasheet ", " Rev-00 ")
    assert rec.document_name == "Datasheet"
    assert rec.revision == "Rev-00"


@pytest.mark.parametrize("name, revision", [("", "Rev-00"), ("Datasheet", "  ")])
def test_create_record_rejects_blank_fields(name, revision):
    with pytest.raises(ValueError):
        DocumentRecordService().create_record(uuid.uuid4(), name, revision)


def test_update_revision(record):
    updated = DocumentRecordService().update_revision(record, "Rev-03")
    assert updated.revision == "Rev-03"
    with pytest.raises(ValueError):
        DocumentRecordService().update_revision(record, "")


# ---------------------------------------------------------------------------
# RevisionEventService
# ---------------------------------------------------------------------------

def test_record_event_defaults(record, svc):
    now = ts("2024-01-01T10:00")
    event = svc.record_event(record, EventType.SUBMITTED, [], now=now)
    assert event.record_id == record.id
    assert event.event_type is EventType.SUBMITTED
    assert event.revision_label == "Rev-02"
    assert event.event_timestamp == now
    assert event.estimated_return_timestamp is None
    assert event.notes is None


def test_record_event_estimate_date_is_start_of_day(record, svc):
    event = svc.record_event(
        record, EventType.SUBMITTED, [], now=ts("2024-01-01"),
        estimated_return=date(2024, 1, 8),
    )
    assert event.estimated_return_timestamp == ts("2024-01-08")


def test_record_event_estimate_datetime_is_truncated(record, svc):
    event = svc.record_event(
        record, EventType.SUBMITTED, [], now=ts("2024-01-01"),
        estimated_return=ts("2024-01-08T17:45"),
    )
    assert event.estimated_return_timestamp == ts("2024-01-08")


def test_record_event_drops_estimate_on_receipt(record, svc):
    existing = [submitted("2024-01-01", record_id=record.id)]
    event = svc.record_event(
        record, EventType.RECEIVED, existing, now=ts("2024-01-10"),
        estimated_return=date(2024, 1, 20),
    )
    assert event.estimated_return_timestamp is None


def test_record_event_explicit_fields(record, svc):
    actor = Actor(full_name="Priya N.", email="priya@example.com")
    event = svc.record_event(
        record, "received", [], now=ts("2024-01-10"),
        revision_label=" Rev-05 ",
        event_timestamp=ts("2024-01-09"),
        notes="  Comments attached ",
        actor=actor,
    )
    assert event.event_type is EventType.RECEIVED
    assert event.revision_label == "Rev-05"
    assert event.event_timestamp == ts("2024-01-09")
    assert event.notes == "Comments attached"
    assert event.actor.display_name == "Priya N."


def test_record_event_blank_notes_become_none(record, svc):
    event = svc.record_event(record, EventType.SUBMITTED, [], now=ts("2024-01-01"), notes="   ")
    assert event.notes is None


def test_record_event_rejects_unknown_type(record, svc):
    with pytest.raises(ValueError):
        svc.record_event(record, "approved", [], now=ts("2024-01-01"))


def test_receipt_without_pending_submission_is_logged(record, svc, caplog):
    existing = [submitted("2024-01-01", record_id=record.id), received("2024-01-05", record_id=record.id)]
    with caplog.at_level(logging.WARNING, logger="service"):
        event = svc.record_event(record, EventType.RECEIVED, existing, now=ts("2024-01-10"))
    assert event.event_type is EventType.RECEIVED
    assert "no submission pending" in caplog.text


def test_receipt_closing_submission_is_not_flagged(record, svc, caplog):
    existing = [submitted("2024-01-01", record_id=record.id)]
    with caplog.at_level(logging.WARNING, logger="service"):
        svc.record_event(record, EventType.RECEIVED, existing, now=ts("2024-01-10"))
    assert "no submission pending" not in caplog.text


def test_actor_display_name_fallbacks():
    assert Actor(email="qa@example.com").display_name == "qa@example.com"
    assert Actor().display_name == "Unknown"
