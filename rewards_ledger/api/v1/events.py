"""POST /v1/ledger/events - inbound mutation events from external producers"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from rewards_ledger.api.dependencies import get_delta_applier, get_request_id
from rewards_ledger.api.v1.errors import http_error_for
from rewards_ledger.api.v1.schemas import (
    EventResponse,
    LedgerEntrySchema,
    LedgerEventRequest,
    ReportCreatedEvent,
    ReportDeletedEvent,
    ReportPointsEditedEvent,
    ResolverAddedEvent,
    ResolverRemovedEvent,
)
from rewards_ledger.domain.exceptions import DomainException
from rewards_ledger.domain.models import (
    LedgerEntry,
    LedgerEvent,
    ReportCreated,
    ReportDeleted,
    ReportPointsEdited,
    ResolverAdded,
    ResolverCredit,
    ResolverRemoved,
    ResolverReplaced,
)
from rewards_ledger.infrastructure.database.session import get_db
from rewards_ledger.services.delta_applier import DeltaApplier

router = APIRouter()


def to_entry_schema(entry: LedgerEntry) -> LedgerEntrySchema:
    return LedgerEntrySchema(
        employee_id=entry.employee_id,
        year=entry.year,
        month=entry.month,
        reporter_points=entry.reporter_points,
        resolver_points=entry.resolver_points,
        total_points=entry.total_points,
        report_count=entry.report_count,
        resolved_count=entry.resolved_count,
    )


def to_domain_event(body, idempotency_key: Optional[str]) -> LedgerEvent:
    """Map a validated request body onto the domain event it describes"""
    common = dict(
        report_id=body.report_id,
        author_id=body.author_id,
        report_created_at=body.report_created_at,
        idempotency_key=idempotency_key,
    )
    if isinstance(body, ReportCreatedEvent):
        return ReportCreated(points_awarded=body.points_awarded, **common)
    if isinstance(body, ReportPointsEditedEvent):
        return ReportPointsEdited(old_points=body.old_points, new_points=body.new_points, **common)
    if isinstance(body, ReportDeletedEvent):
        return ReportDeleted(
            points_awarded=body.points_awarded,
            resolvers=[ResolverCredit(r.resolver_id, r.points_awarded) for r in body.resolvers],
            **common,
        )
    if isinstance(body, ResolverAddedEvent):
        return ResolverAdded(resolver_id=body.resolver_id, points_awarded=body.points_awarded, **common)
    if isinstance(body, ResolverRemovedEvent):
        return ResolverRemoved(resolver_id=body.resolver_id, points_awarded=body.points_awarded, **common)
    return ResolverReplaced(
        old_resolver_id=body.old_resolver_id,
        old_points_awarded=body.old_points_awarded,
        new_resolver_id=body.new_resolver_id,
        new_points_awarded=body.new_points_awarded,
        **common,
    )


@router.post("/ledger/events", response_model=EventResponse)
def ingest_event(
    request: Request,
    body: LedgerEventRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    applier: DeltaApplier = Depends(get_delta_applier),
):
    """
    Apply one report-lifecycle event to the ledger.

    Producers that retry should send an Idempotency-Key header; a replayed
    key returns applied=false and leaves the ledger unchanged. 503 responses
    are safe to retry.
    """
    request_id = get_request_id(request)
    try:
        result = applier.apply_event(to_domain_event(body, idempotency_key))
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error_for(e, request_id)
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return EventResponse(
        event_type=result.event_type,
        applied=result.applied,
        entries=[to_entry_schema(e) for e in result.entries],
        clamped=result.clamped,
    )
