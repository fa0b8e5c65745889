"""Read-only query surface for leaderboards and personal dashboards"""

from typing import List, Optional
from sqlalchemy.orm import Session

from rewards_ledger.config import settings
from rewards_ledger.domain.models import EmployeeYearHistory, LedgerEntry, LedgerKey, RankingRow
from rewards_ledger.infrastructure.database.repositories import LedgerRepository


class LedgerQueries:
    """Read-only access to the ledger; never creates rows"""

    def __init__(self, db: Session):
        self.ledger = LedgerRepository(db)

    def get_employee_month(self, employee_id: str, year: int, month: int) -> LedgerEntry:
        """Entry for the key, or an all-zero entry if none exists"""
        key = LedgerKey(employee_id, year, month)
        return self.ledger.get_entry(key) or LedgerEntry.zero(key)

    def get_period_ranking(
        self,
        year: int,
        month: Optional[int] = None,
        limit: Optional[int] = None,
        include_inactive: Optional[bool] = None,
    ) -> List[RankingRow]:
        """
        Leaderboard for a month, or for the whole year when month is None.

        Ordered by total_points desc, then report_count desc, then
        employee_id asc so identical inputs always rank identically.
        """
        if include_inactive is None:
            include_inactive = settings.ranking_include_inactive

        totals = self.ledger.get_period_totals(year, month, include_inactive=include_inactive, limit=limit)
        return [
            RankingRow(rank=index, employee_id=employee_id, total_points=points, report_count=count)
            for index, (employee_id, points, count) in enumerate(totals, start=1)
        ]

    def get_employee_history(self, employee_id: str, year: int) -> EmployeeYearHistory:
        return EmployeeYearHistory(
            employee_id=employee_id,
            year=year,
            months=self.ledger.get_employee_year(employee_id, year),
        )
