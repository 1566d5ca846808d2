"""
application.py

Application layer for the VDCR revision-turnaround tracker.

Overview
--------
The application layer sits between the presentation layer (API / UI) and the
domain / service layer.  It is responsible for:

  1. Defining clean output DTOs (dataclasses) that carry only the data the
     presentation layer needs — no raw domain objects are leaked upward.
  2. Declaring abstract Repository interfaces so that the application layer
     remains fully persistence-agnostic (implementations live in
     infrastructure.py).
  3. Declaring the UnitOfWork abstraction so that the reads and writes of a
     single use case share one transactional boundary.
  4. Implementing Use Case handlers — one class per user-facing operation.

Structure
---------
DTOs
    ActorDTO, DocumentRecordDTO, RevisionEventDTO
    EstimateComparisonDTO, CycleDTO, TimelineStatisticsDTO
    RecordStatusDTO, LastEventDTO, TimelineEntryDTO
    RegisterRowDTO, RevisionHistoryDTO

Repository interfaces
    AbstractDocumentRecordRepository
    AbstractRevisionEventRepository   (append + list only; the log is immutable)

Unit of Work
    AbstractUnitOfWork

Use Cases
    --- Document records ---
    CreateDocumentRecordUseCase
    GetDocumentRecordUseCase
    UpdateDocumentRevisionUseCase
    ListDocumentRegisterUseCase

    --- Revision events ---
    RecordRevisionEventUseCase
    ListRevisionEventsUseCase
    GetRevisionHistoryUseCase

Design notes
------------
- Read use cases take `now` explicitly; the caller samples the clock once so
  every derived view in one request uses the same instant.
- All timestamps flowing out are ISO-8601 strings (UTC) for easy JSON
  serialisation.
- Errors bubble up as ApplicationError (business) or NotFoundError.
"""

from __future__ import annotations

import abc
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from model import (
    Actor,
    DerivedCycle,
    DocumentRecord,
    EstimateComparison,
    EventType,
    LastEventInfo,
    RecordStatus,
    RevisionEvent,
    TimelineEntry,
    TimelineStatistics,
)
from service import (
    DocumentRecordService,
    RevisionEventService,
    RevisionTimeline,
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ApplicationError(Exception):
    """Raised when a use case cannot complete due to a business rule violation."""


class NotFoundError(ApplicationError):
    """Raised when a requested entity does not exist."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fmt(dt: Optional[datetime]) -> Optional[str]:
    """Convert a datetime to an ISO-8601 UTC string, or None."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


# ===========================================================================
# DTO DEFINITIONS
# ===========================================================================

# ---------------------------------------------------------------------------
# Record & event DTOs
# ---------------------------------------------------------------------------

@dataclass
class ActorDTO:
    id: Optional[str]
    display_name: str
    email: Optional[str]


@dataclass
class DocumentRecordDTO:
    id: str
    project_id: str
    document_name: str
    revision: str
    created_at: str
    updated_at: str


@dataclass
class RevisionEventDTO:
    id: str
    record_id: str
    event_type: str
    revision_label: str
    event_timestamp: str
    estimated_return_timestamp: Optional[str]
    notes: Optional[str]
    actor: Optional[ActorDTO]


# ---------------------------------------------------------------------------
# Turnaround DTOs
# ---------------------------------------------------------------------------

@dataclass
class EstimateComparisonDTO:
    delta_days: int
    is_before_estimate: bool


@dataclass
class CycleDTO:
    submitted_at: Optional[str]
    received_at: Optional[str]
    elapsed_days: Optional[int]
    estimated_return_at: Optional[str]
    estimate: Optional[EstimateComparisonDTO]
    state: str      # closed | open | unresolved | orphan_receipt


@dataclass
class TimelineStatisticsDTO:
    days_with_client: int
    days_worked: int
    submission_count: int
    receipt_count: int
    pending_with_client: bool
    last_submission_at: Optional[str]


@dataclass
class RecordStatusDTO:
    label: str
    days_since_last_event: Optional[int]
    days_since_last_submission: Optional[int]
    days_with_client: Optional[int]


@dataclass
class LastEventDTO:
    event: RevisionEventDTO
    event_type_label: str
    revision_label: Optional[str]
    days_since_last_event: int


@dataclass
class TimelineEntryDTO:
    event: RevisionEventDTO
    event_type_label: str
    days_with_client: Optional[int]
    is_ongoing: bool
    days_since_submission: Optional[int]
    estimate: Optional[EstimateComparisonDTO]


# ---------------------------------------------------------------------------
# View DTOs
# ---------------------------------------------------------------------------

@dataclass
class RegisterRowDTO:
    """One row of the document register list."""
    record: DocumentRecordDTO
    status: RecordStatusDTO
    last_event: Optional[LastEventDTO]


@dataclass
class RevisionHistoryDTO:
    """Everything the revision history view shows for one record."""
    record: DocumentRecordDTO
    evaluated_at: str
    last_event: Optional[LastEventDTO]
    statistics: TimelineStatisticsDTO
    cycles: List[CycleDTO]
    entries: List[TimelineEntryDTO]


# ===========================================================================
# DTO ASSEMBLERS
# ===========================================================================

class _Assembler:
    """Converts domain model instances into DTOs."""

    @staticmethod
    def actor(a: Optional[Actor]) -> Optional[ActorDTO]:
        if a is None:
            return None
        return ActorDTO(
            id=str(a.id) if a.id else None,
            display_name=a.display_name,
            email=a.email,
        )

    @staticmethod
    def record(r: DocumentRecord) -> DocumentRecordDTO:
        return DocumentRecordDTO(
            id=str(r.id),
            project_id=str(r.project_id),
            document_name=r.document_name,
            revision=r.revision,
            created_at=_fmt(r.created_at),
            updated_at=_fmt(r.updated_at),
        )

    @staticmethod
    def event(e: RevisionEvent) -> RevisionEventDTO:
        return RevisionEventDTO(
            id=str(e.id),
            record_id=str(e.record_id),
            event_type=e.event_type.value,
            revision_label=e.revision_label,
            event_timestamp=_fmt(e.event_timestamp),
            estimated_return_timestamp=_fmt(e.estimated_return_timestamp),
            notes=e.notes,
            actor=_Assembler.actor(e.actor),
        )

    @staticmethod
    def estimate(c: Optional[EstimateComparison]) -> Optional[EstimateComparisonDTO]:
        if c is None:
            return None
        return EstimateComparisonDTO(delta_days=c.delta_days, is_before_estimate=c.is_before_estimate)

    @staticmethod
    def cycle(c: DerivedCycle) -> CycleDTO:
        if c.is_closed:
            state = "closed"
        elif c.is_orphan_receipt:
            state = "orphan_receipt"
        elif c.is_unresolved:
            state = "unresolved"
        else:
            state = "open"
        return CycleDTO(
            submitted_at=_fmt(c.submitted_at),
            received_at=_fmt(c.received_at),
            elapsed_days=c.elapsed_days,
            estimated_return_at=_fmt(c.estimated_return_at),
            estimate=_Assembler.estimate(c.estimate),
            state=state,
        )

    @staticmethod
    def statistics(s: TimelineStatistics) -> TimelineStatisticsDTO:
        return TimelineStatisticsDTO(
            days_with_client=s.days_with_client,
            days_worked=s.days_worked,
            submission_count=s.submission_count,
            receipt_count=s.receipt_count,
            pending_with_client=s.pending_with_client,
            last_submission_at=_fmt(s.last_submission_at),
        )

    @staticmethod
    def status(s: RecordStatus) -> RecordStatusDTO:
        return RecordStatusDTO(
            label=s.label.value,
            days_since_last_event=s.days_since_last_event,
            days_since_last_submission=s.days_since_last_submission,
            days_with_client=s.days_with_client,
        )

    @staticmethod
    def last_event(info: Optional[LastEventInfo]) -> Optional[LastEventDTO]:
        if info is None:
            return None
        return LastEventDTO(
            event=_Assembler.event(info.event),
            event_type_label=info.event_type_label,
            revision_label=info.revision_label,
            days_since_last_event=info.days_since_last_event,
        )

    @staticmethod
    def entry(t: TimelineEntry) -> TimelineEntryDTO:
        return TimelineEntryDTO(
            event=_Assembler.event(t.event),
            event_type_label=t.event_type_label,
            days_with_client=t.days_with_client,
            is_ongoing=t.is_ongoing,
            days_since_submission=t.days_since_submission,
            estimate=_Assembler.estimate(t.estimate),
        )


# ===========================================================================
# REPOSITORY INTERFACES
# ===========================================================================

class AbstractDocumentRecordRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, record_id: uuid.UUID) -> Optional[DocumentRecord]: ...
    @abc.abstractmethod
    def list_for_project(self, project_id: uuid.UUID) -> List[DocumentRecord]: ...
    @abc.abstractmethod
    def save(self, record: DocumentRecord) -> None: ...


class AbstractRevisionEventRepository(abc.ABC):
    """
    The revision log is append-only: no update, no delete.
    list_for_record returns events in no particular order.
    """
    @abc.abstractmethod
    def append(self, event: RevisionEvent) -> None: ...
    @abc.abstractmethod
    def list_for_record(self, record_id: uuid.UUID) -> List[RevisionEvent]: ...


# ===========================================================================
# UNIT OF WORK
# ===========================================================================

class AbstractUnitOfWork(abc.ABC):
    """
    Groups all repositories under a single transactional boundary.
    Use as a context manager:

        with uow:
            uow.revision_events.append(event)
            uow.commit()
    """
    records: AbstractDocumentRecordRepository
    revision_events: AbstractRevisionEventRepository

    def __enter__(self) -> "AbstractUnitOfWork":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        else:
            self.commit()

    @abc.abstractmethod
    def commit(self) -> None: ...

    @abc.abstractmethod
    def rollback(self) -> None: ...


# ===========================================================================
# SERVICE SINGLETONS (shared across use cases)
# ===========================================================================

_record_svc = DocumentRecordService()
_event_svc = RevisionEventService()


# ===========================================================================
# USE CASE HELPERS
# ===========================================================================

def _get_record_or_raise(uow: AbstractUnitOfWork, record_id: uuid.UUID) -> DocumentRecord:
    record = uow.records.get(record_id)
    if record is None:
        raise NotFoundError(f"Document record {record_id} not found.")
    return record


def _timeline_for(uow: AbstractUnitOfWork, record: DocumentRecord) -> RevisionTimeline:
    return RevisionTimeline(uow.revision_events.list_for_record(record.id), record.id)


# ===========================================================================
# USE CASES — DOCUMENT RECORDS
# ===========================================================================

@dataclass
class CreateDocumentRecordCommand:
    project_id: uuid.UUID
    document_name: str
    revision: str


class CreateDocumentRecordUseCase:
    def execute(self, cmd: CreateDocumentRecordCommand, uow: AbstractUnitOfWork) -> DocumentRecordDTO:
        with uow:
            try:
                record = _record_svc.create_record(
                    project_id=cmd.project_id,
                    document_name=cmd.document_name,
                    revision=cmd.revision,
                )
            except ValueError as exc:
                raise ApplicationError(str(exc)) from exc
            uow.records.save(record)
            uow.commit()
            return _Assembler.record(record)


class GetDocumentRecordUseCase:
    def execute(self, record_id: uuid.UUID, uow: AbstractUnitOfWork) -> DocumentRecordDTO:
        with uow:
            return _Assembler.record(_get_record_or_raise(uow, record_id))


@dataclass
class UpdateDocumentRevisionCommand:
    record_id: uuid.UUID
    revision: str


class UpdateDocumentRevisionUseCase:
    """
    Change the record's current revision label.  Existing events keep the
    label they were recorded with.
    """

    def execute(self, cmd: UpdateDocumentRevisionCommand, uow: AbstractUnitOfWork) -> DocumentRecordDTO:
        with uow:
            record = _get_record_or_raise(uow, cmd.record_id)
            try:
                record = _record_svc.update_revision(record, cmd.revision)
            except ValueError as exc:
                raise ApplicationError(str(exc)) from exc
            uow.records.save(record)
            uow.commit()
            return _Assembler.record(record)


class ListDocumentRegisterUseCase:
    """The compact register view: each record with its status and last event."""

    def execute(
        self, project_id: uuid.UUID, now: datetime, uow: AbstractUnitOfWork
    ) -> List[RegisterRowDTO]:
        with uow:
            rows = []
            records = sorted(uow.records.list_for_project(project_id), key=lambda r: r.created_at)
            for record in records:
                timeline = _timeline_for(uow, record)
                rows.append(RegisterRowDTO(
                    record=_Assembler.record(record),
                    status=_Assembler.status(timeline.status(now)),
                    last_event=_Assembler.last_event(timeline.last_event(now, record.revision)),
                ))
            return rows


# ===========================================================================
# USE CASES — REVISION EVENTS
# ===========================================================================

@dataclass
class RecordRevisionEventCommand:
    record_id: uuid.UUID
    event_type: EventType
    now: datetime
    revision_label: Optional[str] = None
    event_timestamp: Optional[datetime] = None
    estimated_return: Optional[Union[date, datetime]] = None
    notes: Optional[str] = None
    actor: Optional[Actor] = None


class RecordRevisionEventUseCase:
    """
    Append a "submitted to client" or "received back" event to a record's
    log.  Nothing already in the log is touched.
    """

    def execute(self, cmd: RecordRevisionEventCommand, uow: AbstractUnitOfWork) -> RevisionEventDTO:
        with uow:
            record = _get_record_or_raise(uow, cmd.record_id)
            existing = uow.revision_events.list_for_record(record.id)
            try:
                event = _event_svc.record_event(
                    record=record,
                    event_type=cmd.event_type,
                    existing_events=existing,
                    now=cmd.now,
                    revision_label=cmd.revision_label,
                    event_timestamp=cmd.event_timestamp,
                    estimated_return=cmd.estimated_return,
                    notes=cmd.notes,
                    actor=cmd.actor,
                )
            except ValueError as exc:
                raise ApplicationError(str(exc)) from exc
            uow.revision_events.append(event)
            uow.commit()
            return _Assembler.event(event)


class ListRevisionEventsUseCase:
    def execute(self, record_id: uuid.UUID, uow: AbstractUnitOfWork) -> List[RevisionEventDTO]:
        """Valid events for the record, newest first."""
        with uow:
            record = _get_record_or_raise(uow, record_id)
            timeline = _timeline_for(uow, record)
            return [_Assembler.event(e) for e in reversed(timeline.events)]


class GetRevisionHistoryUseCase:
    """Last event, statistics, cycles and per-event rows for one record."""

    def execute(
        self, record_id: uuid.UUID, now: datetime, uow: AbstractUnitOfWork
    ) -> RevisionHistoryDTO:
        with uow:
            record = _get_record_or_raise(uow, record_id)
            timeline = _timeline_for(uow, record)
            return RevisionHistoryDTO(
                record=_Assembler.record(record),
                evaluated_at=_fmt(now),
                last_event=_Assembler.last_event(timeline.last_event(now, record.revision)),
                statistics=_Assembler.statistics(timeline.statistics(now)),
                cycles=[_Assembler.cycle(c) for c in timeline.cycles],
                entries=[_Assembler.entry(t) for t in timeline.history(now)],
            )
