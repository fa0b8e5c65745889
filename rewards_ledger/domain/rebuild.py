"""Full recomputation of the rewards ledger from raw report history"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from rewards_ledger.domain.models import (
    LedgerKey,
    LedgerEntry,
    ReportRecord,
    ResolverAssignment,
    SkippedRow,
)
from rewards_ledger.domain.policy import is_valid_report_points, is_valid_resolver_bonus
from rewards_ledger.utils.date_utils import ledger_period


def _report_problem(report: ReportRecord) -> Optional[str]:
    if not report.author_id:
        return "missing author"
    if not isinstance(report.created_at, datetime):
        return "missing created_at"
    if not is_valid_report_points(report.points_awarded):
        return f"points_awarded out of range: {report.points_awarded!r}"
    return None


def _assignment_problem(assignment: ResolverAssignment, parents: Dict[str, Tuple[int, int]]) -> Optional[str]:
    if not assignment.resolver_id:
        return "missing resolver"
    if assignment.report_id not in parents:
        return "parent report missing or excluded"
    if not is_valid_resolver_bonus(assignment.points_awarded):
        return f"frozen bonus out of range: {assignment.points_awarded!r}"
    return None


def _skip(skipped: List[SkippedRow], kind: str, row_id: str, reason: str) -> None:
    logging.warning("Backfill row skipped", extra={"kind": kind, "row_id": row_id, "reason": reason})
    skipped.append(SkippedRow(kind=kind, row_id=row_id, reason=reason))


def aggregate_history(
    reports: Iterable[ReportRecord],
    assignments: Iterable[ResolverAssignment],
) -> Tuple[Dict[LedgerKey, LedgerEntry], List[SkippedRow]]:
    """
    Recompute every ledger entry from scratch.

    Algorithm:
    1. Group reports by (author, report year, report month): sum points_awarded
       into reporter_points and count rows into report_count
    2. Group resolver assignments by (resolver, parent report year/month): sum
       frozen bonuses into resolver_points and count rows into resolved_count
    3. Merge per key (all sums are non-negative, so the zero floor holds)

    Rows that cannot be attributed are excluded and returned as skipped rather
    than aborting the rebuild.
    """
    entries: Dict[LedgerKey, LedgerEntry] = {}
    skipped: List[SkippedRow] = []
    parents: Dict[str, Tuple[int, int]] = {}

    def entry_for(key: LedgerKey) -> LedgerEntry:
        if key not in entries:
            entries[key] = LedgerEntry.zero(key)
        return entries[key]

    for report in reports:
        problem = _report_problem(report)
        if problem:
            _skip(skipped, "report", str(report.id), problem)
            continue

        year, month = ledger_period(report.created_at)
        parents[report.id] = (year, month)

        entry = entry_for(LedgerKey(report.author_id, year, month))
        entry.reporter_points += report.points_awarded
        entry.report_count += 1

    for assignment in assignments:
        row_id = f"{assignment.report_id}:{assignment.resolver_id}"
        problem = _assignment_problem(assignment, parents)
        if problem:
            _skip(skipped, "resolver", row_id, problem)
            continue

        year, month = parents[assignment.report_id]
        entry = entry_for(LedgerKey(assignment.resolver_id, year, month))
        entry.resolver_points += assignment.points_awarded
        entry.resolved_count += 1

    return entries, skipped
