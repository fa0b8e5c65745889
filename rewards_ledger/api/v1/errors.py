"""Mapping of domain exceptions to HTTP errors"""

import logging
from fastapi import HTTPException

from rewards_ledger.domain.exceptions import (
    DomainException,
    InvariantViolation,
    ReportNotFoundError,
    ResolverAlreadyAssignedError,
    ResolverNotAssignedError,
    TransientStoreError,
    ValidationError,
)


def http_error_for(exc: DomainException, request_id: str) -> HTTPException:
    """Log a domain failure and build the HTTPException returned to the caller"""
    if isinstance(exc, ValidationError):
        logging.warning(f"Validation failed: {exc}", extra={"request_id": request_id})
        return HTTPException(status_code=422, detail=str(exc))

    if isinstance(exc, (ReportNotFoundError, ResolverNotAssignedError)):
        return HTTPException(status_code=404, detail=str(exc))

    if isinstance(exc, ResolverAlreadyAssignedError):
        return HTTPException(status_code=409, detail=str(exc))

    if isinstance(exc, TransientStoreError):
        logging.warning(f"Transient store error: {exc}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail="Ledger store busy, retry the request")

    if isinstance(exc, InvariantViolation):
        logging.error(f"Ledger invariant violated: {exc}", extra={"request_id": request_id})
        return HTTPException(status_code=409, detail=str(exc))

    logging.error(f"Unhandled domain error: {exc}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
