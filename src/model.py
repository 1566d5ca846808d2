"""
model.py

Domain models for the Vendor Document Control Register (VDCR)
revision-turnaround tracker.

Entities
--------
- Actor
- DocumentRecord
- RevisionEvent

Derived values (computed on every read, never persisted)
--------------------------------------------------------
- DerivedCycle
- EstimateComparison
- TimelineStatistics
- RecordStatus
- LastEventInfo
- TimelineEntry

All models use Python dataclasses for clean, framework-agnostic definitions.
UUID primary keys are used throughout for portability.
Timestamps are always stored in UTC.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    """
    Direction of a revision event.

    SUBMITTED – Document sent to the client for review.
    RECEIVED  – Document returned by the client.
    """
    SUBMITTED = "submitted"
    RECEIVED = "received"

    @property
    def label(self) -> str:
        return "Submitted" if self is EventType.SUBMITTED else "Received"


class StatusLabel(str, Enum):
    """Short display status of a document record in list views."""
    NO_EVENTS = "No events"
    WITH_CLIENT = "With Client"
    RECEIVED = "Received"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class Actor:
    """Who recorded an event.  Opaque; used for display only."""
    id: Optional[uuid.UUID] = None
    full_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or "Unknown"


@dataclass
class DocumentRecord:
    """
    A controlled document in a project's register.

    Only the fields the revision tracker needs are modelled here; the
    register itself (equipment tags, codes, uploaded files) lives elsewhere.
    `revision` is the record's currently-known revision label and is used
    as the fallback label when an event carries none.
    """
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    project_id: uuid.UUID = field(default_factory=uuid.uuid4)
    document_name: str = ""
    revision: str = ""

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class RevisionEvent:
    """
    One append-only entry in a record's revision log.

    Events are never edited or deleted; corrections are new events.
    `estimated_return_timestamp` is only meaningful on SUBMITTED events.
    """
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    record_id: Optional[uuid.UUID] = None        # FK → DocumentRecord.id
    event_type: Optional[EventType] = None
    revision_label: str = ""
    event_timestamp: Optional[datetime] = None
    estimated_return_timestamp: Optional[datetime] = None
    notes: Optional[str] = None
    actor: Optional[Actor] = None


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EstimateComparison:
    """How an actual return compares with the estimate given at submission."""
    delta_days: int
    is_before_estimate: bool


@dataclass(frozen=True)
class DerivedCycle:
    """
    One submitted → received round-trip.

    closed           – submitted_at and received_at both known
    open             – submitted_at only; still with the client
    unresolved       – submitted_at only, superseded by a later submission
    orphan receipt   – received_at only; no submission was pending
    """
    submitted_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    elapsed_days: Optional[int] = None
    estimated_return_at: Optional[datetime] = None
    estimate: Optional[EstimateComparison] = None
    superseded: bool = False

    submission_id: Optional[uuid.UUID] = None
    receipt_id: Optional[uuid.UUID] = None

    @property
    def is_closed(self) -> bool:
        return self.submitted_at is not None and self.received_at is not None

    @property
    def is_open(self) -> bool:
        return self.received_at is None and not self.superseded

    @property
    def is_unresolved(self) -> bool:
        return self.superseded

    @property
    def is_orphan_receipt(self) -> bool:
        return self.submitted_at is None and self.received_at is not None


@dataclass(frozen=True)
class TimelineStatistics:
    days_with_client: int = 0
    days_worked: int = 0
    submission_count: int = 0
    receipt_count: int = 0
    pending_with_client: bool = False
    last_submission_at: Optional[datetime] = None


@dataclass(frozen=True)
class RecordStatus:
    label: StatusLabel = StatusLabel.NO_EVENTS
    days_since_last_event: Optional[int] = None
    days_since_last_submission: Optional[int] = None
    days_with_client: Optional[int] = None


@dataclass(frozen=True)
class LastEventInfo:
    event: RevisionEvent
    event_type_label: str
    revision_label: Optional[str]
    days_since_last_event: int


@dataclass(frozen=True)
class TimelineEntry:
    """A single row of a record's revision history, newest first."""
    event: RevisionEvent
    event_type_label: str
    days_with_client: Optional[int] = None      # SUBMITTED rows
    is_ongoing: bool = False
    days_since_submission: Optional[int] = None  # RECEIVED rows
    estimate: Optional[EstimateComparison] = None
