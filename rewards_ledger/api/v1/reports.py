"""Report lifecycle endpoints - every write also applies its ledger event"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from rewards_ledger.api.dependencies import get_report_service, get_request_id
from rewards_ledger.api.v1.errors import http_error_for
from rewards_ledger.api.v1.schemas import (
    PointsUpdateRequest,
    ReportCreateRequest,
    ReportResponse,
    ResolverRequest,
    ResolverSchema,
    StatusUpdateRequest,
)
from rewards_ledger.domain.exceptions import DomainException
from rewards_ledger.infrastructure.database.models import SafetyReport
from rewards_ledger.infrastructure.database.session import get_db
from rewards_ledger.services.reports import ReportLifecycleService

router = APIRouter()


def _to_response(report: SafetyReport) -> ReportResponse:
    return ReportResponse(
        report_id=report.id,
        author_id=report.author_id,
        report_number=report.report_number,
        status=report.status,
        points_awarded=report.points_awarded,
        created_at=report.created_at.isoformat(),
        resolvers=[
            ResolverSchema(
                resolver_id=r.resolver_id,
                points_awarded=r.points_awarded,
                created_at=r.created_at.isoformat(),
            )
            for r in report.resolvers
        ],
    )


def _run(db: Session, request: Request, action):
    """Run one report mutation as a single transaction"""
    request_id = get_request_id(request)
    try:
        result = action()
        response = _to_response(result) if isinstance(result, SafetyReport) else None
        db.commit()
        return response
    except DomainException as e:
        db.rollback()
        raise http_error_for(e, request_id)
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reports", response_model=ReportResponse, status_code=201)
def create_report(
    body: ReportCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: ReportLifecycleService = Depends(get_report_service),
):
    """Create a report and credit its author for the report's month"""
    return _run(
        db,
        request,
        lambda: service.create_report(
            author_id=body.author_id,
            points_awarded=body.points_awarded,
            created_at=body.created_at,
            report_number=body.report_number,
        ),
    )


@router.patch("/reports/{report_id}/points", response_model=ReportResponse)
def update_points(
    report_id: str,
    body: PointsUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: ReportLifecycleService = Depends(get_report_service),
):
    """Admin edit of the report's point value; the author's ledger moves by new - old"""
    return _run(db, request, lambda: service.set_points(report_id, body.points_awarded))


@router.patch("/reports/{report_id}/status", response_model=ReportResponse)
def update_status(
    report_id: str,
    body: StatusUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: ReportLifecycleService = Depends(get_report_service),
):
    return _run(db, request, lambda: service.set_status(report_id, body.status))


@router.delete("/reports/{report_id}", status_code=204)
def delete_report(
    report_id: str,
    request: Request,
    db: Session = Depends(get_db),
    service: ReportLifecycleService = Depends(get_report_service),
):
    """Delete a report, retracting author and resolver credits from its month"""
    _run(db, request, lambda: service.delete_report(report_id))
    return Response(status_code=204)


def _add_resolver(service: ReportLifecycleService, report_id: str, resolver_id: str) -> SafetyReport:
    assignment = service.add_resolver(report_id, resolver_id)
    return assignment.report


def _replace_resolver(service: ReportLifecycleService, report_id: str, old_id: str, new_id: str) -> SafetyReport:
    assignment = service.replace_resolver(report_id, old_id, new_id)
    return assignment.report


def _remove_resolver(service: ReportLifecycleService, report_id: str, resolver_id: str) -> SafetyReport:
    service.remove_resolver(report_id, resolver_id)
    return service.reports.get_report(report_id)


@router.post("/reports/{report_id}/resolvers", response_model=ReportResponse, status_code=201)
def add_resolver(
    report_id: str,
    body: ResolverRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: ReportLifecycleService = Depends(get_report_service),
):
    """Credit an employee for resolving the report (bonus frozen now)"""
    return _run(db, request, lambda: _add_resolver(service, report_id, body.resolver_id))


@router.put("/reports/{report_id}/resolvers/{old_resolver_id}", response_model=ReportResponse)
def replace_resolver(
    report_id: str,
    old_resolver_id: str,
    body: ResolverRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: ReportLifecycleService = Depends(get_report_service),
):
    """Move the resolver credit from one employee to another"""
    return _run(db, request, lambda: _replace_resolver(service, report_id, old_resolver_id, body.resolver_id))


@router.delete("/reports/{report_id}/resolvers/{resolver_id}", response_model=ReportResponse)
def remove_resolver(
    report_id: str,
    resolver_id: str,
    request: Request,
    db: Session = Depends(get_db),
    service: ReportLifecycleService = Depends(get_report_service),
):
    return _run(db, request, lambda: _remove_resolver(service, report_id, resolver_id))
