"""Out-of-band ledger rebuild for initial deployment and repair.

Usage:
    python -m rewards_ledger.jobs.backfill            # recompute and swap
    python -m rewards_ledger.jobs.backfill --dry-run  # report drift only

A non-dry run also purges idempotency keys older than the retention window
(IDEMPOTENCY_RETENTION_DAYS, or --retention-days).
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from rewards_ledger.config import settings
from rewards_ledger.infrastructure.database.session import session_scope
from rewards_ledger.infrastructure.observability.logging import setup_logging
from rewards_ledger.services.backfill import LedgerRebuilder, purge_idempotency_keys


def run(dry_run: bool = False, retention_days: Optional[int] = None) -> dict:
    """Rebuild inside one transaction; an aborted run leaves the old ledger untouched"""
    if retention_days is None:
        retention_days = settings.idempotency_retention_days

    with session_scope() as db:
        report = LedgerRebuilder(db).rebuild(dry_run=dry_run)
        purged = 0 if dry_run else purge_idempotency_keys(db, retention_days)

    return {
        "dry_run": report.dry_run,
        "entries_written": report.entries_written,
        "reports_seen": report.reports_seen,
        "assignments_seen": report.assignments_seen,
        "rows_skipped": len(report.skipped),
        "drifted_keys": report.drifted_keys,
        "idempotency_keys_purged": purged,
        "duration_ms": round(report.duration_ms, 1),
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Rebuild the monthly rewards ledger from report history")
    parser.add_argument("--dry-run", action="store_true", help="Compute and report drift without writing.")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Purge idempotency keys older than this many days (default from settings).",
    )
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    try:
        summary = run(dry_run=args.dry_run, retention_days=args.retention_days)
    except Exception:
        logging.exception("Ledger rebuild failed")
        return 1

    print(json.dumps(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
