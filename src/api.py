"""
api.py

REST API layer for the VDCR revision-turnaround tracker.

Framework : FastAPI
Clock     : every request samples the clock once through the get_now
            dependency (or takes an explicit `now` query parameter), so all
            views returned by one request are computed for the same instant.

Structure
---------
  Routers (all prefixed under /api/v1)
  ├── /document-records                          — register a controlled document
  │   └── /{record_id}
  │       ├── /revision                          — change the current revision label
  │       ├── /revision-events                   — append-only event log
  │       │   ├── /submit                        — "submitted to client"
  │       │   └── /receive                       — "received back"
  │       └── /revision-history                  — statistics, cycles, timeline rows
  └── /projects/{project_id}/document-records    — register with status per record

Error handling
--------------
  NotFoundError      → 404
  ApplicationError   → 422
  ValueError         → 422
  Unhandled          → 500 (FastAPI default)

Response envelope
-----------------
  Success  : { "data": <payload> }
  Error    : { "detail": "<message>" }

Running
-------
  uvicorn main:app --reload
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Path, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field

from application import (
    # Exceptions
    ApplicationError,
    NotFoundError,
    # Commands
    CreateDocumentRecordCommand,
    RecordRevisionEventCommand,
    UpdateDocumentRevisionCommand,
    # Use-case classes
    CreateDocumentRecordUseCase,
    GetDocumentRecordUseCase,
    GetRevisionHistoryUseCase,
    ListDocumentRegisterUseCase,
    ListRevisionEventsUseCase,
    RecordRevisionEventUseCase,
    UpdateDocumentRevisionUseCase,
    AbstractUnitOfWork,
)
from config import settings
from infrastructure import InMemoryUnitOfWork
from model import Actor, EventType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# App bootstrap
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        logger.info("Stopping %s", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description=(
        "Tracks controlled documents sent to and received back from the client: "
        "days with client, days worked, review round-trips, pending status and "
        "actual-versus-estimated return dates."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Global exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_uow() -> AbstractUnitOfWork:
    """Returns the in-memory Unit of Work (no database required)."""
    return InMemoryUnitOfWork()


def get_now() -> datetime:
    """The single clock reading used for everything derived in a request."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Envelope helper
# ---------------------------------------------------------------------------

def _ok(data: Any) -> Dict:
    """Wrap a DTO or list of DTOs in the standard success envelope."""
    if dataclasses.is_dataclass(data):
        return {"data": dataclasses.asdict(data)}
    if isinstance(data, list):
        return {
            "data": [
                dataclasses.asdict(item) if dataclasses.is_dataclass(item) else item
                for item in data
            ]
        }
    return {"data": data}


# ===========================================================================
# REQUEST BODY SCHEMAS  (Pydantic v2)
# ===========================================================================

# ---------------------------------------------------------------------------
# Document record schemas
# ---------------------------------------------------------------------------

class CreateDocumentRecordRequest(BaseModel):
    project_id: uuid.UUID
    document_name: str = Field(..., min_length=1, max_length=300)
    revision: str = Field(..., min_length=1, max_length=50)


class UpdateRevisionRequest(BaseModel):
    revision: str = Field(..., min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Revision event schemas
# ---------------------------------------------------------------------------

class ActorRequest(BaseModel):
    id: Optional[uuid.UUID] = None
    full_name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[EmailStr] = None

    def to_actor(self) -> Actor:
        return Actor(
            id=self.id,
            full_name=self.full_name,
            email=str(self.email) if self.email else None,
        )


class _RevisionEventRequest(BaseModel):
    revision_label: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Defaults to the record's current revision.",
    )
    event_timestamp: Optional[datetime] = Field(
        default=None, description="Defaults to the time of the request."
    )
    notes: Optional[str] = Field(default=None, max_length=2000)
    actor: Optional[ActorRequest] = None


class SubmitRevisionRequest(_RevisionEventRequest):
    estimated_return_date: Optional[date] = Field(
        default=None, description="When the client is expected to return the document."
    )


class ReceiveRevisionRequest(_RevisionEventRequest):
    pass


# ===========================================================================
# ROUTERS
# ===========================================================================

api_v1 = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Document records
# ---------------------------------------------------------------------------

record_router = APIRouter(prefix="/document-records", tags=["Document Records"])


@record_router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Register a controlled document",
)
def create_document_record(
    body: CreateDocumentRecordRequest,
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = CreateDocumentRecordCommand(
        project_id=body.project_id,
        document_name=body.document_name,
        revision=body.revision,
    )
    result = CreateDocumentRecordUseCase().execute(cmd, uow)
    return _ok(result)


@record_router.get(
    "/{record_id}",
    summary="Get a document record by ID",
)
def get_document_record(
    record_id: uuid.UUID = Path(...),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetDocumentRecordUseCase().execute(record_id, uow)
    return _ok(result)


@record_router.patch(
    "/{record_id}/revision",
    summary="Change the record's current revision label",
)
def update_document_revision(
    body: UpdateRevisionRequest,
    record_id: uuid.UUID = Path(...),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = UpdateDocumentRevisionCommand(record_id=record_id, revision=body.revision)
    result = UpdateDocumentRevisionUseCase().execute(cmd, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Project register
# ---------------------------------------------------------------------------

register_router = APIRouter(
    prefix="/projects/{project_id}/document-records",
    tags=["Document Register"],
)


@register_router.get(
    "",
    summary="List a project's documents with their turnaround status",
)
def list_document_register(
    project_id: uuid.UUID = Path(...),
    as_of: Optional[datetime] = Query(
        default=None,
        alias="now",
        description="Evaluate as of this instant instead of the request time.",
    ),
    now: datetime = Depends(get_now),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """
    One row per document: "With Client" / "Received" / "No events",
    days since the last event and submission, and the last event itself.
    """
    result = ListDocumentRegisterUseCase().execute(project_id, as_of or now, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Revision events
# ---------------------------------------------------------------------------

event_router = APIRouter(
    prefix="/document-records/{record_id}",
    tags=["Revision Events"],
)


def _record_event(
    record_id: uuid.UUID,
    event_type: EventType,
    body: _RevisionEventRequest,
    now: datetime,
    uow: AbstractUnitOfWork,
    estimated_return: Optional[date] = None,
):
    cmd = RecordRevisionEventCommand(
        record_id=record_id,
        event_type=event_type,
        now=now,
        revision_label=body.revision_label,
        event_timestamp=body.event_timestamp,
        estimated_return=estimated_return,
        notes=body.notes,
        actor=body.actor.to_actor() if body.actor else None,
    )
    return RecordRevisionEventUseCase().execute(cmd, uow)


@event_router.post(
    "/revision-events/submit",
    status_code=status.HTTP_201_CREATED,
    summary="Record that the document was submitted to the client",
)
def submit_to_client(
    body: SubmitRevisionRequest,
    record_id: uuid.UUID = Path(...),
    now: datetime = Depends(get_now),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = _record_event(
        record_id, EventType.SUBMITTED, body, now, uow,
        estimated_return=body.estimated_return_date,
    )
    return _ok(result)


@event_router.post(
    "/revision-events/receive",
    status_code=status.HTTP_201_CREATED,
    summary="Record that the document was received back from the client",
)
def receive_from_client(
    body: ReceiveRevisionRequest,
    record_id: uuid.UUID = Path(...),
    now: datetime = Depends(get_now),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = _record_event(record_id, EventType.RECEIVED, body, now, uow)
    return _ok(result)


@event_router.get(
    "/revision-events",
    summary="List a record's revision events, newest first",
)
def list_revision_events(
    record_id: uuid.UUID = Path(...),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = ListRevisionEventsUseCase().execute(record_id, uow)
    return _ok(result)


@event_router.get(
    "/revision-history",
    summary="Turnaround statistics, cycles and timeline for a record",
)
def get_revision_history(
    record_id: uuid.UUID = Path(...),
    as_of: Optional[datetime] = Query(
        default=None,
        alias="now",
        description="Evaluate as of this instant instead of the request time.",
    ),
    now: datetime = Depends(get_now),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetRevisionHistoryUseCase().execute(record_id, as_of or now, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"], summary="Liveness check")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Register routers
# ---------------------------------------------------------------------------

api_v1.include_router(record_router)
api_v1.include_router(register_router)
api_v1.include_router(event_router)
app.include_router(api_v1)


# ---------------------------------------------------------------------------
# OpenAPI tag metadata (shown in /docs)
# ---------------------------------------------------------------------------

tags_metadata = [
    {
        "name": "Document Records",
        "description": (
            "Controlled documents whose client review round-trips are tracked.  "
            "The record's current revision is used as the label for events "
            "recorded without one."
        ),
    },
    {
        "name": "Document Register",
        "description": (
            "Compact per-project list: current status, days since the last "
            "event and submission, and the last event."
        ),
    },
    {
        "name": "Revision Events",
        "description": (
            "Append-only log of submissions to and receipts from the client, "
            "and the turnaround history derived from it.  Events are never "
            "edited or deleted; corrections are recorded as new events."
        ),
    },
    {
        "name": "Health",
        "description": "Liveness check.",
    },
]

app.openapi_tags = tags_metadata
