"""Delta applier - turns mutation events into atomic ledger adjustments"""

import logging
import time
from typing import List, Optional, Tuple
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from rewards_ledger.config import settings
from rewards_ledger.domain.deltas import deltas_for_event
from rewards_ledger.domain.exceptions import InvariantViolation, TransientStoreError, ValidationError
from rewards_ledger.domain.models import (
    ApplyResult,
    LedgerDelta,
    LedgerEntry,
    LedgerEvent,
    LedgerKey,
)
from rewards_ledger.infrastructure.database.repositories import LedgerRepository, ProcessedEventRepository
from rewards_ledger.infrastructure.observability.logging import log_clamped, log_event_applied
from rewards_ledger.infrastructure.observability.metrics import (
    record_clamped,
    record_event,
    transient_errors_counter,
)


def _format_key(key: LedgerKey) -> str:
    return f"{key.employee_id}/{key.year}-{key.month:02d}"


class DeltaApplier:
    """
    Applies signed deltas to the ledger store inside the caller's transaction.

    One event is one unit of work: the caller commits after apply_event()
    returns, or rolls back if it raises, so an event is never half-applied.
    """

    def __init__(self, db: Session, strict: Optional[bool] = None):
        self.db = db
        self.ledger = LedgerRepository(db)
        self.processed = ProcessedEventRepository(db)
        self.strict = settings.ledger_strict_invariants if strict is None else strict

    def apply_delta(
        self,
        employee_id: str,
        year: int,
        month: int,
        reporter_points: int = 0,
        resolver_points: int = 0,
        report_count: int = 0,
        resolved_count: int = 0,
    ) -> LedgerEntry:
        """Read-or-create the entry for the key, add the deltas, clamp at zero, write back"""
        if not employee_id:
            raise ValidationError("employee_id is required")
        if not 1 <= month <= 12:
            raise ValidationError(f"month must be between 1 and 12, got {month}")

        delta = LedgerDelta(
            reporter_points=reporter_points,
            resolver_points=resolver_points,
            report_count=report_count,
            resolved_count=resolved_count,
        )
        entry, _ = self._adjust(LedgerKey(employee_id, year, month), delta)
        return entry

    def apply_event(self, event: LedgerEvent) -> ApplyResult:
        """
        Apply every delta implied by one event.

        Raises:
            ValidationError: event is malformed (ledger untouched)
            TransientStoreError: store contention; the whole event may be retried
            InvariantViolation: strict mode only, a field would go negative
        """
        start_time = time.time()
        try:
            keyed_deltas = deltas_for_event(event)
        except ValidationError as e:
            record_event(event.event_type, "rejected")
            logging.warning(f"Event rejected: {e}", extra={"event_type": event.event_type})
            raise

        if event.idempotency_key:
            if not self._claim(event):
                record_event(event.event_type, "duplicate")
                logging.info(
                    "Duplicate ledger event skipped",
                    extra={"event_type": event.event_type, "idempotency_key": event.idempotency_key},
                )
                return ApplyResult(event_type=event.event_type, applied=False)

        # Row locks are taken in key order so multi-key events cannot deadlock;
        # the sort is stable, keeping same-key deltas in event order
        ordered = sorted((kd for kd in keyed_deltas if not kd.delta.is_zero()), key=lambda kd: kd.key)

        result = ApplyResult(event_type=event.event_type, applied=True)
        for keyed in ordered:
            entry, clamped = self._adjust(keyed.key, keyed.delta)
            result.entries.append(entry)
            result.clamped.extend(f"{_format_key(keyed.key)}:{name}" for name in clamped)

        record_event(event.event_type, "applied")
        log_event_applied(
            event.event_type,
            event.report_id,
            [_format_key(kd.key) for kd in ordered],
            (time.time() - start_time) * 1000,
        )
        return result

    def _claim(self, event: LedgerEvent) -> bool:
        try:
            return self.processed.claim(event.idempotency_key, event.event_type)
        except OperationalError as e:
            transient_errors_counter.inc()
            raise TransientStoreError(f"Could not record idempotency key: {e}") from e

    def _adjust(self, key: LedgerKey, delta: LedgerDelta) -> Tuple[LedgerEntry, List[str]]:
        try:
            entry, clamped = self.ledger.adjust(key, delta)
        except OperationalError as e:
            transient_errors_counter.inc()
            raise TransientStoreError(f"Ledger adjust failed for {_format_key(key)}: {e}") from e

        if clamped:
            if self.strict:
                raise InvariantViolation(_format_key(key), clamped)
            record_clamped(clamped)
            log_clamped(_format_key(key), clamped, {name: getattr(delta, name) for name in clamped})

        return entry, clamped
