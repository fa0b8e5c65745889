"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from rewards_ledger.infrastructure.database.session import get_db
from rewards_ledger.services.delta_applier import DeltaApplier
from rewards_ledger.services.queries import LedgerQueries
from rewards_ledger.services.reports import ReportLifecycleService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_delta_applier(db: Session = Depends(get_db)) -> DeltaApplier:
    """Provide a delta applier bound to the request session"""
    return DeltaApplier(db)


def get_report_service(db: Session = Depends(get_db)) -> ReportLifecycleService:
    """Provide the report lifecycle service bound to the request session"""
    return ReportLifecycleService(db)


def get_ledger_queries(db: Session = Depends(get_db)) -> LedgerQueries:
    """Provide read-only ledger queries"""
    return LedgerQueries(db)
