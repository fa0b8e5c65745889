"""Report lifecycle hook - report-store writes paired with their ledger events"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rewards_ledger.domain.exceptions import (
    ReportNotFoundError,
    ResolverAlreadyAssignedError,
    ResolverNotAssignedError,
    ValidationError,
)
from rewards_ledger.domain.models import (
    ReportCreated,
    ReportDeleted,
    ReportPointsEdited,
    ResolverAdded,
    ResolverCredit,
    ResolverRemoved,
    ResolverReplaced,
)
from rewards_ledger.domain.policy import is_valid_report_points, resolver_bonus
from rewards_ledger.infrastructure.database.models import ReportResolver, SafetyReport
from rewards_ledger.infrastructure.database.repositories import ReportRepository, ResolverRepository
from rewards_ledger.services.delta_applier import DeltaApplier
from rewards_ledger.utils.date_utils import to_utc, utc_now

REPORT_STATUSES = ("pending", "in_progress", "closed")


class ReportLifecycleService:
    """
    Performs each report mutation and, in the same session, applies the
    matching ledger event. The caller owns the transaction: commit publishes
    the report change and its ledger deltas together.
    """

    def __init__(self, db: Session, applier: Optional[DeltaApplier] = None):
        self.db = db
        self.reports = ReportRepository(db)
        self.resolvers = ResolverRepository(db)
        self.applier = applier or DeltaApplier(db)

    def create_report(
        self,
        author_id: str,
        points_awarded: int = 0,
        created_at: Optional[datetime] = None,
        report_number: Optional[str] = None,
    ) -> SafetyReport:
        """
        Create a report and credit its author.

        created_at may be supplied for reports captured offline and synced
        later; the ledger month is always that original timestamp.
        """
        if not author_id:
            raise ValidationError("author_id is required")
        _check_points(points_awarded)

        created_at = to_utc(created_at) if created_at else utc_now()
        report = self.reports.create_report(author_id, points_awarded, created_at, report_number)
        self.applier.apply_event(
            ReportCreated(
                report_id=report.id,
                author_id=report.author_id,
                report_created_at=created_at,
                points_awarded=points_awarded,
            )
        )
        return report

    def set_points(self, report_id: str, points_awarded: int) -> SafetyReport:
        _check_points(points_awarded)
        report = self._get_report(report_id)

        old_points = report.points_awarded
        if old_points == points_awarded:
            return report

        report.points_awarded = points_awarded
        self.db.flush()
        self.applier.apply_event(
            ReportPointsEdited(
                report_id=report.id,
                author_id=report.author_id,
                report_created_at=report.created_at,
                old_points=old_points,
                new_points=points_awarded,
            )
        )
        return report

    def set_status(self, report_id: str, status: str) -> SafetyReport:
        """Status changes carry no ledger effect"""
        if status not in REPORT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(REPORT_STATUSES)}")
        report = self._get_report(report_id)
        report.status = status
        self.db.flush()
        return report

    def delete_report(self, report_id: str) -> None:
        """
        Delete a report and retract everything it contributed.

        The creation month and the frozen resolver credits are captured before
        the resolver rows cascade away with the report.
        """
        report = self._get_report(report_id)
        event = ReportDeleted(
            report_id=report.id,
            author_id=report.author_id,
            report_created_at=report.created_at,
            points_awarded=report.points_awarded,
            resolvers=[ResolverCredit(r.resolver_id, r.points_awarded) for r in report.resolvers],
        )
        self.reports.delete_report(report)
        self.applier.apply_event(event)

    def add_resolver(self, report_id: str, resolver_id: str) -> ReportResolver:
        """Credit a resolver; the bonus is computed now and frozen on the assignment"""
        if not resolver_id:
            raise ValidationError("resolver_id is required")
        report = self._get_report(report_id)
        if self.resolvers.get_resolver(report.id, resolver_id):
            raise ResolverAlreadyAssignedError(f"{resolver_id} already resolves report {report.id}")

        bonus = resolver_bonus(resolver_id, report.author_id)
        assignment = self._insert_assignment(report, resolver_id, bonus)
        self.applier.apply_event(
            ResolverAdded(
                report_id=report.id,
                author_id=report.author_id,
                report_created_at=report.created_at,
                resolver_id=resolver_id,
                points_awarded=bonus,
            )
        )
        return assignment

    def remove_resolver(self, report_id: str, resolver_id: str) -> None:
        """Retract a resolver credit using its frozen bonus"""
        report = self._get_report(report_id)
        assignment = self._get_assignment(report.id, resolver_id)

        frozen = assignment.points_awarded
        self.resolvers.remove_resolver(report, assignment)
        self.applier.apply_event(
            ResolverRemoved(
                report_id=report.id,
                author_id=report.author_id,
                report_created_at=report.created_at,
                resolver_id=resolver_id,
                points_awarded=frozen,
            )
        )

    def replace_resolver(self, report_id: str, old_resolver_id: str, new_resolver_id: str) -> ReportResolver:
        """Swap one resolver for another: retract the old credit, then grant the new one"""
        if not new_resolver_id:
            raise ValidationError("new resolver_id is required")
        report = self._get_report(report_id)
        old_assignment = self._get_assignment(report.id, old_resolver_id)
        if old_resolver_id == new_resolver_id:
            return old_assignment
        if self.resolvers.get_resolver(report.id, new_resolver_id):
            raise ResolverAlreadyAssignedError(f"{new_resolver_id} already resolves report {report.id}")

        old_bonus = old_assignment.points_awarded
        new_bonus = resolver_bonus(new_resolver_id, report.author_id)
        self.resolvers.remove_resolver(report, old_assignment)
        assignment = self._insert_assignment(report, new_resolver_id, new_bonus)
        self.applier.apply_event(
            ResolverReplaced(
                report_id=report.id,
                author_id=report.author_id,
                report_created_at=report.created_at,
                old_resolver_id=old_resolver_id,
                old_points_awarded=old_bonus,
                new_resolver_id=new_resolver_id,
                new_points_awarded=new_bonus,
            )
        )
        return assignment

    def get_resolvers(self, report_id: str) -> List[ReportResolver]:
        report = self._get_report(report_id)
        return self.resolvers.get_resolvers_for_report(report.id)

    def _get_report(self, report_id: str) -> SafetyReport:
        report = self.reports.get_report(report_id, for_update=True)
        if not report:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return report

    def _get_assignment(self, report_id: str, resolver_id: str) -> ReportResolver:
        assignment = self.resolvers.get_resolver(report_id, resolver_id)
        if not assignment:
            raise ResolverNotAssignedError(f"{resolver_id} does not resolve report {report_id}")
        return assignment

    def _insert_assignment(self, report: SafetyReport, resolver_id: str, bonus: int) -> ReportResolver:
        try:
            return self.resolvers.add_resolver(report, resolver_id, bonus)
        except IntegrityError as e:
            # Concurrent assignment of the same pair won the unique constraint
            raise ResolverAlreadyAssignedError(f"{resolver_id} already resolves report {report.id}") from e


def _check_points(points_awarded: int) -> None:
    if not is_valid_report_points(points_awarded):
        raise ValidationError(f"points_awarded must be an integer between 0 and 3, got {points_awarded!r}")
