"""Data access layer for reports, resolver assignments and the monthly ledger"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy import func, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from rewards_ledger.domain.deltas import apply_floor
from rewards_ledger.domain.models import (
    LEDGER_FIELDS,
    LedgerDelta,
    LedgerEntry,
    LedgerKey,
    ReportRecord,
    ResolverAssignment,
)
from rewards_ledger.infrastructure.database.models import (
    MonthlyEmployeePoints,
    ProcessedLedgerEvent,
    ReportResolver,
    SafetyReport,
)


def _dialect_insert(db: Session, table):
    """INSERT construct supporting ON CONFLICT for the bound dialect"""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)


def to_entry(row: MonthlyEmployeePoints) -> LedgerEntry:
    return LedgerEntry(
        employee_id=row.employee_id,
        year=row.year,
        month=row.month,
        reporter_points=row.reporter_points,
        resolver_points=row.resolver_points,
        report_count=row.report_count,
        resolved_count=row.resolved_count,
    )


class LedgerRepository:
    """Ledger store: one row per (employee, year, month), mutated only through adjust()"""

    def __init__(self, db: Session):
        self.db = db

    def _ensure_row(self, key: LedgerKey) -> None:
        """Create the all-zero row for a first-touch key; no-op if it exists"""
        stmt = (
            _dialect_insert(self.db, MonthlyEmployeePoints.__table__)
            .values(
                employee_id=key.employee_id,
                year=key.year,
                month=key.month,
                reporter_points=0,
                resolver_points=0,
                report_count=0,
                resolved_count=0,
            )
            .on_conflict_do_nothing(index_elements=["employee_id", "year", "month"])
        )
        self.db.execute(stmt)

    def _lock_row(self, key: LedgerKey) -> MonthlyEmployeePoints:
        """Row-level lock on a single key; other keys are never blocked"""
        return (
            self.db.query(MonthlyEmployeePoints)
            .filter(
                MonthlyEmployeePoints.employee_id == key.employee_id,
                MonthlyEmployeePoints.year == key.year,
                MonthlyEmployeePoints.month == key.month,
            )
            .with_for_update()
            .populate_existing()
            .one()
        )

    def adjust(self, key: LedgerKey, delta: LedgerDelta) -> Tuple[LedgerEntry, List[str]]:
        """
        Atomic read-modify-write of one ledger row with a zero floor.

        Runs inside the caller's transaction: the row stays locked until the
        caller commits or rolls back.

        Returns:
            The entry after the delta and the names of any fields clamped at zero
        """
        self._ensure_row(key)
        row = self._lock_row(key)
        updated, clamped = apply_floor(to_entry(row), delta)
        for name in LEDGER_FIELDS:
            setattr(row, name, getattr(updated, name))
        self.db.flush()
        return updated, clamped

    def get_entry(self, key: LedgerKey) -> Optional[LedgerEntry]:
        row = (
            self.db.query(MonthlyEmployeePoints)
            .filter(
                MonthlyEmployeePoints.employee_id == key.employee_id,
                MonthlyEmployeePoints.year == key.year,
                MonthlyEmployeePoints.month == key.month,
            )
            .first()
        )
        return to_entry(row) if row else None

    def get_employee_year(self, employee_id: str, year: int) -> List[LedgerEntry]:
        """Monthly entries for one employee and year, newest month first"""
        rows = (
            self.db.query(MonthlyEmployeePoints)
            .filter(MonthlyEmployeePoints.employee_id == employee_id, MonthlyEmployeePoints.year == year)
            .order_by(MonthlyEmployeePoints.month.desc())
            .all()
        )
        return [to_entry(r) for r in rows]

    def get_period_totals(
        self,
        year: int,
        month: Optional[int] = None,
        include_inactive: bool = False,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, int, int]]:
        """
        (employee_id, total_points, report_count) for a month, or summed over
        the whole year when month is None.

        Ordered by total_points desc, report_count desc, employee_id asc.
        """
        total = func.sum(MonthlyEmployeePoints.reporter_points + MonthlyEmployeePoints.resolver_points)
        reports = func.sum(MonthlyEmployeePoints.report_count)

        query = self.db.query(MonthlyEmployeePoints.employee_id, total.label("total_points"), reports.label("report_count"))
        query = query.filter(MonthlyEmployeePoints.year == year)
        if month is not None:
            query = query.filter(MonthlyEmployeePoints.month == month)
        query = query.group_by(MonthlyEmployeePoints.employee_id)
        if not include_inactive:
            query = query.having((total > 0) | (reports > 0))
        query = query.order_by(total.desc(), reports.desc(), MonthlyEmployeePoints.employee_id.asc())
        if limit is not None:
            query = query.limit(limit)

        return [(employee_id, int(points or 0), int(count or 0)) for employee_id, points, count in query.all()]

    def snapshot(self) -> Dict[LedgerKey, LedgerEntry]:
        """Every ledger row keyed by (employee, year, month)"""
        return {entry.key: entry for entry in (to_entry(r) for r in self.db.query(MonthlyEmployeePoints).all())}

    def lock_for_rebuild(self) -> None:
        """
        Hold off live delta application until the caller's transaction ends.

        Must be taken before history is read, so no delta can commit between
        the read and the swap. On PostgreSQL the table is locked in EXCLUSIVE
        mode and concurrent readers keep seeing the old contents until commit.
        """
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text("LOCK TABLE monthly_employee_points IN EXCLUSIVE MODE"))
        else:
            # SQLite: any write statement takes the database-wide write lock
            self.db.execute(text("UPDATE monthly_employee_points SET month = month WHERE 1 = 0"))

    def replace_all(self, entries: Iterable[LedgerEntry]) -> int:
        """
        Clear the ledger and write the given entries in the caller's transaction.

        Callers take lock_for_rebuild() first, in the same transaction.
        """
        self.db.query(MonthlyEmployeePoints).delete(synchronize_session=False)

        rows = [
            MonthlyEmployeePoints(
                employee_id=e.employee_id,
                year=e.year,
                month=e.month,
                reporter_points=max(0, e.reporter_points),
                resolver_points=max(0, e.resolver_points),
                report_count=max(0, e.report_count),
                resolved_count=max(0, e.resolved_count),
            )
            for e in entries
        ]
        self.db.add_all(rows)
        self.db.flush()
        return len(rows)


class ProcessedEventRepository:
    """Idempotency keys of events already applied"""

    def __init__(self, db: Session):
        self.db = db

    def claim(self, idempotency_key: str, event_type: str) -> bool:
        """
        Record a key as processed. Returns False if it was already claimed.

        A concurrent claim of the same key waits on the first transaction and
        then conflicts, so exactly one of them applies the event.
        """
        stmt = (
            _dialect_insert(self.db, ProcessedLedgerEvent.__table__)
            .values(idempotency_key=idempotency_key, event_type=event_type)
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def purge_before(self, cutoff: datetime) -> int:
        """Delete keys processed before the cutoff; returns how many were removed"""
        return (
            self.db.query(ProcessedLedgerEvent)
            .filter(ProcessedLedgerEvent.processed_at < cutoff)
            .delete(synchronize_session=False)
        )


class ReportRepository:
    """Repository for safety reports"""

    def __init__(self, db: Session):
        self.db = db

    def create_report(
        self,
        author_id: str,
        points_awarded: int,
        created_at: datetime,
        report_number: Optional[str] = None,
    ) -> SafetyReport:
        db_report = SafetyReport(
            author_id=author_id,
            points_awarded=points_awarded,
            created_at=created_at,
            report_number=report_number,
        )
        self.db.add(db_report)
        self.db.flush()  # Get ID without committing
        return db_report

    def get_report(self, report_id: str, for_update: bool = False) -> Optional[SafetyReport]:
        query = self.db.query(SafetyReport).filter(SafetyReport.id == report_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def delete_report(self, report: SafetyReport) -> None:
        self.db.delete(report)
        self.db.flush()

    def list_records(self) -> List[ReportRecord]:
        return [
            ReportRecord(
                id=r.id,
                author_id=r.author_id,
                created_at=r.created_at,
                points_awarded=r.points_awarded,
                status=r.status,
            )
            for r in self.db.query(SafetyReport).order_by(SafetyReport.created_at).all()
        ]


class ResolverRepository:
    """Repository for resolver assignments"""

    def __init__(self, db: Session):
        self.db = db

    def add_resolver(self, report: SafetyReport, resolver_id: str, points_awarded: int) -> ReportResolver:
        """Attach through the relationship so the report's collection stays current"""
        db_resolver = ReportResolver(report=report, resolver_id=resolver_id, points_awarded=points_awarded)
        self.db.add(db_resolver)
        self.db.flush()
        return db_resolver

    def get_resolver(self, report_id: str, resolver_id: str) -> Optional[ReportResolver]:
        return (
            self.db.query(ReportResolver)
            .filter(ReportResolver.report_id == report_id, ReportResolver.resolver_id == resolver_id)
            .first()
        )

    def get_resolvers_for_report(self, report_id: str) -> List[ReportResolver]:
        return (
            self.db.query(ReportResolver)
            .filter(ReportResolver.report_id == report_id)
            .order_by(ReportResolver.created_at)
            .all()
        )

    def remove_resolver(self, report: SafetyReport, resolver: ReportResolver) -> None:
        # delete-orphan removes the row on flush
        report.resolvers.remove(resolver)
        self.db.flush()

    def list_assignments(self) -> List[ResolverAssignment]:
        return [
            ResolverAssignment(
                report_id=r.report_id,
                resolver_id=r.resolver_id,
                points_awarded=r.points_awarded,
                created_at=r.created_at,
            )
            for r in self.db.query(ReportResolver).order_by(ReportResolver.created_at).all()
        ]
