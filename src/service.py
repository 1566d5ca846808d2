"""
service.py

Service layer for the VDCR revision-turnaround tracker.

Responsibilities
----------------
The core of this module is the turnaround engine: given the append-only
log of "submitted to client" / "received back" events for one document
record, it derives how long the document has spent with the client, how
many round-trips occurred, whether it is currently outstanding and how
actual returns compared with the estimates.

Engine components (pure; no I/O, no clock, inputs never mutated)
----------------------------------------------------------------
- EventLog           – validation and stable chronological ordering
- CycleMatcher       – pairs submissions with the next receipt
- TimelineAnalyzer   – aggregate statistics over matched cycles
- StatusProjector    – compact status for list views
- LastEventResolver  – most recent event and its revision label
- HistoryBuilder     – per-event rows for the history view
- RevisionTimeline   – one normalize + match pass shared by every view

Write-side services
-------------------
- DocumentRecordService  – document record creation / revision updates
- RevisionEventService   – builds new (unsaved) revision events

Design notes
------------
- `now` is always an explicit argument.  Nothing in the engine samples a
  clock, so every view computed for the same (events, now) is identical.
- Malformed events are dropped at the EventLog boundary; the engine never
  raises for data it cannot fully interpret.
- Day counts between two instants always go through day_ceil().
- Business rule violations in the write-side services raise ValueError.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from model import (
    Actor,
    DerivedCycle,
    DocumentRecord,
    EstimateComparison,
    EventType,
    LastEventInfo,
    RecordStatus,
    RevisionEvent,
    StatusLabel,
    TimelineEntry,
    TimelineStatistics,
)

logger = logging.getLogger(__name__)

_ONE_MS = timedelta(milliseconds=1)
_MS_PER_DAY = 86_400_000


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def day_ceil(delta: timedelta) -> int:
    """
    Whole days in a time difference, rounding partial days up.

    The sign of the difference is ignored.  Precision is milliseconds, so
    exactly 24h is one day and 24h + 1ms is two.
    """
    ms = abs(delta) // _ONE_MS
    return -(-ms // _MS_PER_DAY)


def days_between(start: datetime, end: datetime) -> int:
    return day_ceil(_as_utc(end) - _as_utc(start))


def compare_to_estimate(received_at: datetime, estimated_return_at: datetime) -> EstimateComparison:
    """Compare an actual return with the estimate given at submission."""
    return EstimateComparison(
        delta_days=days_between(estimated_return_at, received_at),
        is_before_estimate=_as_utc(received_at) < _as_utc(estimated_return_at),
    )


# ---------------------------------------------------------------------------
# EventLog
# ---------------------------------------------------------------------------

class EventLog:
    """
    Turns the raw, possibly unordered set of events for a record into a
    validated, chronologically ordered list.
    """

    def normalize(
        self,
        events: Optional[Iterable[RevisionEvent]],
        record_id: Optional[uuid.UUID] = None,
    ) -> List[RevisionEvent]:
        """
        Drop invalid events and sort the rest by event_timestamp.

        An event is invalid when it has no timestamp, no record_id, or an
        event_type other than submitted/received.  When `record_id` is
        given, events belonging to other records are dropped too; record
        ids are compared in string form, so a UUID and its str match.
        Received events never carry an estimate.  Ties keep their input
        order.
        """
        valid: List[RevisionEvent] = []
        for event in events or ():
            cleaned = self._clean(event)
            if cleaned is None:
                logger.debug("Dropping malformed revision event %r", getattr(event, "id", None))
                continue
            if record_id is not None and str(cleaned.record_id) != str(record_id):
                logger.debug(
                    "Dropping revision event %s for record %s (expected %s)",
                    cleaned.id, cleaned.record_id, record_id,
                )
                continue
            valid.append(cleaned)
        return sorted(valid, key=lambda e: e.event_timestamp)

    @staticmethod
    def _clean(event: RevisionEvent) -> Optional[RevisionEvent]:
        """Return a valid (possibly coerced) copy of the event, or None."""
        if event is None or getattr(event, "record_id", None) is None:
            return None
        timestamp = getattr(event, "event_timestamp", None)
        if not isinstance(timestamp, datetime):
            return None
        event_type = _coerce_event_type(getattr(event, "event_type", None))
        if event_type is None:
            return None

        estimate = event.estimated_return_timestamp
        clean_estimate = _as_utc(estimate) if isinstance(estimate, datetime) else None
        if event_type is EventType.RECEIVED:
            clean_estimate = None

        changes = {}
        if event_type is not event.event_type:
            changes["event_type"] = event_type
        if timestamp.tzinfo is None:
            changes["event_timestamp"] = _as_utc(timestamp)
        if clean_estimate is not estimate:
            changes["estimated_return_timestamp"] = clean_estimate
        if not changes:
            return event
        return dataclasses.replace(event, **changes)


def _coerce_event_type(value) -> Optional[EventType]:
    if isinstance(value, EventType):
        return value
    if isinstance(value, str):
        try:
            return EventType(value.strip().lower())
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------------
# CycleMatcher
# ---------------------------------------------------------------------------

class CycleMatcher:
    """
    Pairs each submission with the next chronological receipt.

    Single forward scan holding at most one open submission:

    - A submission while another is open supersedes it; the earlier one is
      emitted as an unresolved cycle with no elapsed time.
    - A receipt closes the open submission.  With nothing open it becomes
      an orphan-receipt cycle (received_at only).
    - A submission still open after the scan is the trailing open cycle.
    """

    def match_cycles(self, sorted_events: List[RevisionEvent]) -> List[DerivedCycle]:
        cycles: List[DerivedCycle] = []
        open_submission: Optional[RevisionEvent] = None

        for event in sorted_events:
            if event.event_type == EventType.SUBMITTED:
                if open_submission is not None:
                    cycles.append(self._submission_cycle(open_submission, superseded=True))
                open_submission = event
            elif event.event_type == EventType.RECEIVED:
                if open_submission is not None:
                    cycles.append(self._closed_cycle(open_submission, event))
                    open_submission = None
                else:
                    cycles.append(
                        DerivedCycle(received_at=event.event_timestamp, receipt_id=event.id)
                    )

        if open_submission is not None:
            cycles.append(self._submission_cycle(open_submission, superseded=False))
        return cycles

    @staticmethod
    def _submission_cycle(submission: RevisionEvent, superseded: bool) -> DerivedCycle:
        return DerivedCycle(
            submitted_at=submission.event_timestamp,
            estimated_return_at=submission.estimated_return_timestamp,
            superseded=superseded,
            submission_id=submission.id,
        )

    @staticmethod
    def _closed_cycle(submission: RevisionEvent, receipt: RevisionEvent) -> DerivedCycle:
        estimated = submission.estimated_return_timestamp
        return DerivedCycle(
            submitted_at=submission.event_timestamp,
            received_at=receipt.event_timestamp,
            elapsed_days=days_between(submission.event_timestamp, receipt.event_timestamp),
            estimated_return_at=estimated,
            estimate=compare_to_estimate(receipt.event_timestamp, estimated) if estimated else None,
            submission_id=submission.id,
            receipt_id=receipt.id,
        )


# ---------------------------------------------------------------------------
# TimelineAnalyzer
# ---------------------------------------------------------------------------

class TimelineAnalyzer:
    """Folds matched cycles into aggregate turnaround statistics."""

    def analyze(self, cycles: List[DerivedCycle], now: datetime) -> TimelineStatistics:
        """
        Every submission and every receipt lands in exactly one cycle, so
        the counts taken from cycle endpoints equal the raw event counts,
        unresolved and orphan cycles included.
        """
        if not cycles:
            return TimelineStatistics()

        days_with_client = sum(c.elapsed_days for c in cycles if c.elapsed_days is not None)
        last = cycles[-1]
        pending = last.is_open
        if pending:
            days_with_client += days_between(last.submitted_at, now)

        # Receipt → next submission: time the document was back in-house.
        days_worked = sum(
            days_between(prev.received_at, cur.submitted_at)
            for prev, cur in zip(cycles, cycles[1:])
            if prev.received_at is not None and cur.submitted_at is not None
        )

        return TimelineStatistics(
            days_with_client=days_with_client,
            days_worked=days_worked,
            submission_count=sum(1 for c in cycles if c.submitted_at is not None),
            receipt_count=sum(1 for c in cycles if c.received_at is not None),
            pending_with_client=pending,
            last_submission_at=next(
                (c.submitted_at for c in reversed(cycles) if c.submitted_at is not None),
                None,
            ),
        )


# ---------------------------------------------------------------------------
# StatusProjector
# ---------------------------------------------------------------------------

class StatusProjector:
    """Short display status for compact list views."""

    def project_status(self, sorted_events: List[RevisionEvent], now: datetime) -> RecordStatus:
        if not sorted_events:
            return RecordStatus()

        last_event = sorted_events[-1]
        last_submission = next(
            (e for e in reversed(sorted_events) if e.event_type == EventType.SUBMITTED),
            None,
        )
        days_since_last_event = days_between(last_event.event_timestamp, now)
        days_since_last_submission = (
            days_between(last_submission.event_timestamp, now) if last_submission else None
        )

        if last_event.event_type == EventType.SUBMITTED:
            return RecordStatus(
                label=StatusLabel.WITH_CLIENT,
                days_since_last_event=days_since_last_event,
                days_since_last_submission=days_since_last_submission,
                days_with_client=days_since_last_event,
            )
        return RecordStatus(
            label=StatusLabel.RECEIVED,
            days_since_last_event=days_since_last_event,
            days_since_last_submission=days_since_last_submission,
        )


# ---------------------------------------------------------------------------
# LastEventResolver
# ---------------------------------------------------------------------------

class LastEventResolver:

    def resolve_last_event(
        self,
        sorted_events: List[RevisionEvent],
        fallback_revision_label: Optional[str] = None,
        *,
        now: datetime,
    ) -> Optional[LastEventInfo]:
        """
        Most recent event, or None for an empty log.  The event's own
        revision label wins; the record's current revision is the fallback.
        """
        if not sorted_events:
            return None
        event = sorted_events[-1]
        return LastEventInfo(
            event=event,
            event_type_label=event.event_type.label,
            revision_label=event.revision_label or fallback_revision_label or None,
            days_since_last_event=days_between(event.event_timestamp, now),
        )


# ---------------------------------------------------------------------------
# HistoryBuilder
# ---------------------------------------------------------------------------

class HistoryBuilder:
    """Per-event rows for the revision history view, newest first."""

    def build_history(
        self,
        sorted_events: List[RevisionEvent],
        cycles: List[DerivedCycle],
        now: datetime,
    ) -> List[TimelineEntry]:
        submissions: Dict[uuid.UUID, Tuple[Optional[int], bool]] = {}
        receipts: Dict[uuid.UUID, DerivedCycle] = {}
        for cycle in cycles:
            if cycle.submission_id is not None:
                if cycle.is_closed:
                    submissions[cycle.submission_id] = (cycle.elapsed_days, False)
                elif cycle.is_open:
                    submissions[cycle.submission_id] = (days_between(cycle.submitted_at, now), True)
                else:
                    submissions[cycle.submission_id] = (None, False)
            if cycle.receipt_id is not None:
                receipts[cycle.receipt_id] = cycle

        entries: List[TimelineEntry] = []
        for event in reversed(sorted_events):
            if event.event_type == EventType.SUBMITTED:
                days, ongoing = submissions.get(event.id, (None, False))
                entries.append(TimelineEntry(
                    event=event,
                    event_type_label=event.event_type.label,
                    days_with_client=days,
                    is_ongoing=ongoing,
                ))
            else:
                cycle = receipts.get(event.id)
                entries.append(TimelineEntry(
                    event=event,
                    event_type_label=event.event_type.label,
                    days_since_submission=cycle.elapsed_days if cycle else None,
                    estimate=cycle.estimate if cycle else None,
                ))
        return entries


# ---------------------------------------------------------------------------
# Module-level entry points (shared stateless instances)
# ---------------------------------------------------------------------------

_event_log = EventLog()
_matcher = CycleMatcher()
_analyzer = TimelineAnalyzer()
_projector = StatusProjector()
_resolver = LastEventResolver()
_history = HistoryBuilder()

normalize = _event_log.normalize
match_cycles = _matcher.match_cycles
analyze = _analyzer.analyze
project_status = _projector.project_status
resolve_last_event = _resolver.resolve_last_event


def build_history(sorted_events: List[RevisionEvent], now: datetime) -> List[TimelineEntry]:
    return _history.build_history(sorted_events, match_cycles(sorted_events), now)


def summarize(events: Iterable[RevisionEvent], now: datetime) -> TimelineStatistics:
    """normalize → match_cycles → analyze in one call."""
    return analyze(match_cycles(normalize(events)), now)


class RevisionTimeline:
    """
    One normalize + match pass over a record's log, shared by every
    derived view so they cannot drift apart.
    """

    def __init__(self, events: Iterable[RevisionEvent], record_id: Optional[uuid.UUID] = None):
        self.events: List[RevisionEvent] = normalize(events, record_id)
        self.cycles: List[DerivedCycle] = match_cycles(self.events)

    def statistics(self, now: datetime) -> TimelineStatistics:
        return analyze(self.cycles, now)

    def status(self, now: datetime) -> RecordStatus:
        return project_status(self.events, now)

    def last_event(self, now: datetime, fallback_revision_label: Optional[str] = None) -> Optional[LastEventInfo]:
        return resolve_last_event(self.events, fallback_revision_label, now=now)

    def history(self, now: datetime) -> List[TimelineEntry]:
        return _history.build_history(self.events, self.cycles, now)


# ---------------------------------------------------------------------------
# DocumentRecordService
# ---------------------------------------------------------------------------

class DocumentRecordService:
    """
    Manages the slice of a document record the revision tracker needs.
    """

    def create_record(
        self,
        project_id: uuid.UUID,
        document_name: str,
        revision: str,
    ) -> DocumentRecord:
        """Create and return a new DocumentRecord (unsaved)."""
        if not document_name or not document_name.strip():
            raise ValueError("document_name must not be blank.")
        if not revision or not revision.strip():
            raise ValueError("revision must not be blank.")
        now = _utcnow()
        return DocumentRecord(
            project_id=project_id,
            document_name=document_name.strip(),
            revision=revision.strip(),
            created_at=now,
            updated_at=now,
        )

    def update_revision(self, record: DocumentRecord, revision: str) -> DocumentRecord:
        if not revision or not revision.strip():
            raise ValueError("revision must not be blank.")
        record.revision = revision.strip()
        record.updated_at = _utcnow()
        return record


# ---------------------------------------------------------------------------
# RevisionEventService
# ---------------------------------------------------------------------------

class RevisionEventService:
    """
    Builds the events appended by the "submit to client" and
    "received back" actions.  Existing events are never modified.
    """

    def record_event(
        self,
        record: DocumentRecord,
        event_type: EventType,
        existing_events: List[RevisionEvent],
        now: datetime,
        revision_label: Optional[str] = None,
        event_timestamp: Optional[datetime] = None,
        estimated_return: Optional[Union[date, datetime]] = None,
        notes: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> RevisionEvent:
        """
        Create and return a new RevisionEvent (unsaved).

        Business rules enforced:
        - revision_label defaults to the record's current revision.
        - event_timestamp defaults to `now`.
        - An estimated return is kept for SUBMITTED events only; a bare
          date means the start of that day (UTC).
        - Blank notes are stored as None.
        """
        event_type = _coerce_event_type(event_type)
        if event_type is None:
            raise ValueError("event_type must be one of: ['received', 'submitted']")

        timestamp = _as_utc(event_timestamp or now)
        estimate = None
        if event_type is EventType.SUBMITTED and estimated_return is not None:
            estimate = _start_of_day(estimated_return)
        elif estimated_return is not None:
            logger.debug("Ignoring estimated return on received event for record %s", record.id)

        if event_type is EventType.RECEIVED:
            status = project_status(normalize(existing_events, record.id), now)
            if status.label is not StatusLabel.WITH_CLIENT:
                logger.warning(
                    "Record %s marked received with no submission pending", record.id
                )

        event = RevisionEvent(
            record_id=record.id,
            event_type=event_type,
            revision_label=(revision_label or "").strip() or record.revision,
            event_timestamp=timestamp,
            estimated_return_timestamp=estimate,
            notes=notes.strip() if notes and notes.strip() else None,
            actor=actor,
        )
        logger.info(
            "Recorded %s event %s for record %s (rev %s)",
            event_type.value, event.id, record.id, event.revision_label,
        )
        return event


def _start_of_day(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        value = _as_utc(value).date()
    return datetime.combine(value, time.min, tzinfo=timezone.utc)
