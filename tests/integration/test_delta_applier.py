"""Integration tests for atomic delta application against the ledger store"""

import pytest
from datetime import datetime, timezone
from rewards_ledger.domain.exceptions import InvariantViolation, ValidationError
from rewards_ledger.domain.models import (
    LedgerKey,
    ReportCreated,
    ReportDeleted,
    ResolverAdded,
    ResolverCredit,
)
from rewards_ledger.infrastructure.database.models import MonthlyEmployeePoints
from rewards_ledger.infrastructure.database.repositories import LedgerRepository
from rewards_ledger.services.delta_applier import DeltaApplier


def _created(report_id: str, author_id: str, at: datetime, points: int, key: str = None) -> ReportCreated:
    return ReportCreated(
        report_id=report_id,
        author_id=author_id,
        report_created_at=at,
        points_awarded=points,
        idempotency_key=key,
    )


def test_first_touch_creates_entry(db, march):
    """Applying to a key with no row creates it from zero"""
    result = DeltaApplier(db).apply_event(_created("r1", "emp-a", march, 2))
    db.commit()

    assert result.applied is True
    entry = LedgerRepository(db).get_entry(LedgerKey("emp-a", 2025, 3))
    assert entry.counters() == (2, 0, 1, 0)
    assert db.query(MonthlyEmployeePoints).count() == 1


def test_apply_delta_accumulates(db):
    applier = DeltaApplier(db)

    applier.apply_delta("emp-a", 2025, 3, reporter_points=2, report_count=1)
    entry = applier.apply_delta("emp-a", 2025, 3, resolver_points=2, resolved_count=1)

    assert entry.counters() == (2, 2, 1, 1)
    assert entry.total_points == 4


def test_apply_delta_rejects_bad_key(db):
    applier = DeltaApplier(db)

    with pytest.raises(ValidationError):
        applier.apply_delta("", 2025, 3, reporter_points=1)
    with pytest.raises(ValidationError):
        applier.apply_delta("emp-a", 2025, 13, reporter_points=1)


def test_duplicate_idempotency_key_applies_once(db, march):
    applier = DeltaApplier(db)

    first = applier.apply_event(_created("r1", "emp-a", march, 3, key="evt-1"))
    second = applier.apply_event(_created("r1", "emp-a", march, 3, key="evt-1"))
    db.commit()

    assert first.applied is True
    assert second.applied is False
    assert second.entries == []
    assert LedgerRepository(db).get_entry(LedgerKey("emp-a", 2025, 3)).counters() == (3, 0, 1, 0)


def test_events_without_key_are_not_deduplicated(db, march):
    """Replaying without an idempotency key double-counts; producers must send one"""
    applier = DeltaApplier(db)

    applier.apply_event(_created("r1", "emp-a", march, 3))
    applier.apply_event(_created("r1", "emp-a", march, 3))

    assert LedgerRepository(db).get_entry(LedgerKey("emp-a", 2025, 3)).counters() == (6, 0, 2, 0)


def test_negative_delta_clamps_at_zero(db, march):
    """Delete arriving before its create leaves zeros, not negatives"""
    applier = DeltaApplier(db, strict=False)
    event = ReportDeleted(
        report_id="r1",
        author_id="emp-a",
        report_created_at=march,
        points_awarded=2,
        resolvers=[ResolverCredit("emp-b", 2)],
    )

    result = applier.apply_event(event)

    assert result.applied is True
    assert sorted(result.clamped) == [
        "emp-a/2025-03:report_count",
        "emp-a/2025-03:reporter_points",
        "emp-b/2025-03:resolved_count",
        "emp-b/2025-03:resolver_points",
    ]
    repo = LedgerRepository(db)
    assert repo.get_entry(LedgerKey("emp-a", 2025, 3)).counters() == (0, 0, 0, 0)
    assert repo.get_entry(LedgerKey("emp-b", 2025, 3)).counters() == (0, 0, 0, 0)


def test_strict_mode_raises_on_clamp(db, march):
    applier = DeltaApplier(db, strict=True)
    applier.apply_event(_created("r1", "emp-a", march, 1))
    db.commit()

    event = ReportDeleted(report_id="r1", author_id="emp-a", report_created_at=march, points_awarded=3)
    with pytest.raises(InvariantViolation) as exc_info:
        applier.apply_event(event)
    db.rollback()

    assert exc_info.value.fields == ["reporter_points"]
    assert LedgerRepository(db).get_entry(LedgerKey("emp-a", 2025, 3)).counters() == (1, 0, 1, 0)


def test_rejected_event_leaves_ledger_untouched(db, march):
    applier = DeltaApplier(db)

    with pytest.raises(ValidationError):
        applier.apply_event(_created("r1", "", march, 1))

    assert db.query(MonthlyEmployeePoints).count() == 0


def test_disjoint_keys_are_order_independent(db):
    """Two events touching different keys give the same state in either order"""
    jan = datetime(2025, 1, 5, tzinfo=timezone.utc)
    feb = datetime(2025, 2, 5, tzinfo=timezone.utc)
    a = _created("r1", "emp-a", jan, 2)
    b = ResolverAdded(report_id="r2", author_id="emp-c", report_created_at=feb, resolver_id="emp-b")

    applier = DeltaApplier(db)
    applier.apply_event(a)
    applier.apply_event(b)
    forward = LedgerRepository(db).snapshot()
    db.rollback()

    applier.apply_event(b)
    applier.apply_event(a)
    backward = LedgerRepository(db).snapshot()

    assert {k: e.counters() for k, e in forward.items()} == {k: e.counters() for k, e in backward.items()}


def test_resolver_credit_leaves_author_entry_alone(db, march):
    applier = DeltaApplier(db)
    applier.apply_event(_created("r1", "emp-b", march, 1))

    result = applier.apply_event(
        ResolverAdded(report_id="r1", author_id="emp-b", report_created_at=march, resolver_id="emp-a")
    )

    assert [e.employee_id for e in result.entries] == ["emp-a"]
    repo = LedgerRepository(db)
    assert repo.get_entry(LedgerKey("emp-a", 2025, 3)).counters() == (0, 2, 0, 1)
    assert repo.get_entry(LedgerKey("emp-b", 2025, 3)).counters() == (1, 0, 1, 0)
