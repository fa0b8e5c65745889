"""Backfill / rebuild - recompute the whole ledger from report history"""

import logging
import time
from datetime import timedelta
from sqlalchemy.orm import Session

from rewards_ledger.domain.models import RebuildReport
from rewards_ledger.domain.rebuild import aggregate_history
from rewards_ledger.infrastructure.database.repositories import (
    LedgerRepository,
    ProcessedEventRepository,
    ReportRepository,
    ResolverRepository,
)
from rewards_ledger.infrastructure.observability.metrics import (
    rebuild_drifted_keys_gauge,
    rebuild_duration_histogram,
    rebuild_skipped_rows_counter,
)
from rewards_ledger.utils.date_utils import utc_now


class LedgerRebuilder:
    """
    Replaces the ledger contents wholesale from raw reports and resolver rows.

    Not on any request-serving path. The swap happens in the caller's
    transaction, so committing publishes the new table atomically and an
    aborted run leaves the old one in place. Safe to re-run.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerRepository(db)
        self.reports = ReportRepository(db)
        self.resolvers = ResolverRepository(db)

    def rebuild(self, dry_run: bool = False) -> RebuildReport:
        start_time = time.time()

        # History is read under the lock; live deltas wait until commit
        if not dry_run:
            self.ledger.lock_for_rebuild()

        reports = self.reports.list_records()
        assignments = self.resolvers.list_assignments()
        entries, skipped = aggregate_history(reports, assignments)

        current = self.ledger.snapshot()
        drifted = _count_drift(current, entries)

        written = 0
        if not dry_run:
            written = self.ledger.replace_all(entries.values())

        duration = time.time() - start_time
        rebuild_duration_histogram.observe(duration)
        rebuild_drifted_keys_gauge.set(drifted)
        for row in skipped:
            rebuild_skipped_rows_counter.labels(kind=row.kind).inc()

        report = RebuildReport(
            entries_written=written,
            reports_seen=len(reports),
            assignments_seen=len(assignments),
            skipped=skipped,
            drifted_keys=drifted,
            dry_run=dry_run,
            duration_ms=duration * 1000,
        )
        logging.info(
            "Ledger rebuild completed",
            extra={
                "step": "ledger_rebuild",
                "entries_written": written,
                "rows_skipped": len(skipped),
                "drifted_keys": drifted,
                "duration_ms": report.duration_ms,
                "dry_run": dry_run,
            },
        )
        return report


def _count_drift(current, recomputed) -> int:
    """Keys whose stored counters differ from the recomputed ones (missing rows count as zero)"""
    drifted = 0
    for key in set(current) | set(recomputed):
        stored = current[key].counters() if key in current else (0, 0, 0, 0)
        expected = recomputed[key].counters() if key in recomputed else (0, 0, 0, 0)
        if stored != expected:
            drifted += 1
    return drifted


def purge_idempotency_keys(db: Session, retention_days: int) -> int:
    """
    Forget idempotency keys processed more than retention_days ago.

    A producer retry arriving after the window is applied again, so the
    window must exceed the longest producer retry horizon.
    """
    cutoff = utc_now() - timedelta(days=retention_days)
    purged = ProcessedEventRepository(db).purge_before(cutoff)
    logging.info(
        "Idempotency keys purged",
        extra={"step": "idempotency_purge", "purged": purged, "retention_days": retention_days},
    )
    return purged
