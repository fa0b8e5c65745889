"""GET endpoints for ledger entries, personal history and rankings"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query

from rewards_ledger.api.dependencies import get_ledger_queries
from rewards_ledger.api.v1.events import to_entry_schema
from rewards_ledger.api.v1.schemas import (
    EmployeeHistoryResponse,
    LedgerEntrySchema,
    RankingItem,
    RankingResponse,
)
from rewards_ledger.config import settings
from rewards_ledger.services.queries import LedgerQueries

router = APIRouter()


@router.get("/ledger/{employee_id}/{year}/{month}", response_model=LedgerEntrySchema)
def get_employee_month(
    employee_id: str,
    year: int,
    month: int = Path(..., ge=1, le=12),
    queries: LedgerQueries = Depends(get_ledger_queries),
):
    """Ledger entry for one employee and month (all zeros when nothing was recorded)"""
    return to_entry_schema(queries.get_employee_month(employee_id, year, month))


@router.get("/ledger/{employee_id}/{year}", response_model=EmployeeHistoryResponse)
def get_employee_history(
    employee_id: str,
    year: int,
    queries: LedgerQueries = Depends(get_ledger_queries),
):
    """
    Monthly points history for one employee.

    Returns:
        Entries newest month first, plus totals for the year
    """
    history = queries.get_employee_history(employee_id, year)
    return EmployeeHistoryResponse(
        employee_id=history.employee_id,
        year=history.year,
        total_points=history.total_points,
        report_count=history.report_count,
        resolved_count=history.resolved_count,
        months=[to_entry_schema(m) for m in history.months],
    )


@router.get("/rankings/{year}", response_model=RankingResponse)
def get_period_ranking(
    year: int,
    month: Optional[int] = Query(None, ge=1, le=12, description="Omit for the whole year"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    queries: LedgerQueries = Depends(get_ledger_queries),
):
    """Leaderboard ordered by total points, then report count, then employee id"""
    rows = queries.get_period_ranking(year, month, limit=limit or settings.ranking_default_limit)
    return RankingResponse(
        year=year,
        month=month,
        rankings=[
            RankingItem(
                rank=r.rank,
                employee_id=r.employee_id,
                total_points=r.total_points,
                report_count=r.report_count,
            )
            for r in rows
        ],
    )
