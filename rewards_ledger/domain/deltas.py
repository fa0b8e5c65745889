"""Event to delta mapping and clamp-at-zero arithmetic for the rewards ledger"""

from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Tuple

from rewards_ledger.domain.exceptions import ValidationError
from rewards_ledger.domain.models import (
    LEDGER_FIELDS,
    KeyedDelta,
    LedgerDelta,
    LedgerEntry,
    LedgerEvent,
    LedgerKey,
    ReportCreated,
    ReportDeleted,
    ReportPointsEdited,
    ResolverAdded,
    ResolverRemoved,
    ResolverReplaced,
)
from rewards_ledger.domain.policy import (
    is_valid_report_points,
    is_valid_resolver_bonus,
    resolver_bonus,
)
from rewards_ledger.utils.date_utils import ledger_period


def _require_id(value, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")


def _require_points(value, name: str) -> None:
    if not is_valid_report_points(value):
        raise ValidationError(f"{name} must be an integer between 0 and 3, got {value!r}")


def _check_bonus(value: Optional[int], name: str) -> None:
    if value is not None and not is_valid_resolver_bonus(value):
        raise ValidationError(f"{name} must be 1 or 2, got {value!r}")


def _require_frozen_bonus(value: Optional[int], name: str) -> None:
    if value is None:
        raise ValidationError(f"{name} is required: retractions use the bonus frozen at assignment")
    _check_bonus(value, name)


def validate_event(event: LedgerEvent) -> None:
    """
    Reject malformed events before any store access.

    Raises:
        ValidationError: missing ids or timestamp, out-of-range points,
            or a retraction without its frozen value
    """
    _require_id(event.report_id, "report_id")
    _require_id(event.author_id, "author_id")
    if not isinstance(event.report_created_at, datetime):
        raise ValidationError("report_created_at is required")

    if isinstance(event, ReportCreated):
        _require_points(event.points_awarded, "points_awarded")
    elif isinstance(event, ReportPointsEdited):
        _require_points(event.old_points, "old_points")
        _require_points(event.new_points, "new_points")
    elif isinstance(event, ReportDeleted):
        _require_points(event.points_awarded, "points_awarded")
        for credit in event.resolvers:
            _require_id(credit.resolver_id, "resolver_id")
            _require_frozen_bonus(credit.points_awarded, "resolver points_awarded")
    elif isinstance(event, ResolverAdded):
        _require_id(event.resolver_id, "resolver_id")
        _check_bonus(event.points_awarded, "points_awarded")
    elif isinstance(event, ResolverRemoved):
        _require_id(event.resolver_id, "resolver_id")
        _require_frozen_bonus(event.points_awarded, "points_awarded")
    elif isinstance(event, ResolverReplaced):
        _require_id(event.old_resolver_id, "old_resolver_id")
        _require_id(event.new_resolver_id, "new_resolver_id")
        _require_frozen_bonus(event.old_points_awarded, "old_points_awarded")
        _check_bonus(event.new_points_awarded, "new_points_awarded")
    else:
        raise ValidationError(f"Unsupported event type: {type(event).__name__}")


def _resolver_removed(key_for, resolver_id: str, bonus: int) -> KeyedDelta:
    return KeyedDelta(key_for(resolver_id), LedgerDelta(resolver_points=-bonus, resolved_count=-1))


def _resolver_added(key_for, resolver_id: str, bonus: int) -> KeyedDelta:
    return KeyedDelta(key_for(resolver_id), LedgerDelta(resolver_points=bonus, resolved_count=1))


def deltas_for_event(event: LedgerEvent) -> List[KeyedDelta]:
    """
    Translate one mutation event into the signed deltas it implies.

    All deltas are keyed by the report's creation (year, month), including
    resolver events dated later. Order matters for replacements: the old
    resolver is retracted before the new one is credited.
    """
    validate_event(event)
    year, month = ledger_period(event.report_created_at)

    def key_for(employee_id: str) -> LedgerKey:
        return LedgerKey(employee_id, year, month)

    if isinstance(event, ReportCreated):
        return [KeyedDelta(key_for(event.author_id), LedgerDelta(reporter_points=event.points_awarded, report_count=1))]

    if isinstance(event, ReportPointsEdited):
        if event.old_points == event.new_points:
            return []
        return [KeyedDelta(key_for(event.author_id), LedgerDelta(reporter_points=event.new_points - event.old_points))]

    if isinstance(event, ReportDeleted):
        deltas = [KeyedDelta(key_for(event.author_id), LedgerDelta(reporter_points=-event.points_awarded, report_count=-1))]
        for credit in event.resolvers:
            deltas.append(_resolver_removed(key_for, credit.resolver_id, credit.points_awarded))
        return deltas

    if isinstance(event, ResolverAdded):
        bonus = event.points_awarded
        if bonus is None:
            bonus = resolver_bonus(event.resolver_id, event.author_id)
        return [_resolver_added(key_for, event.resolver_id, bonus)]

    if isinstance(event, ResolverRemoved):
        return [_resolver_removed(key_for, event.resolver_id, event.points_awarded)]

    # ResolverReplaced
    old_bonus = event.old_points_awarded
    new_bonus = event.new_points_awarded
    if new_bonus is None:
        new_bonus = resolver_bonus(event.new_resolver_id, event.author_id)
    return [
        _resolver_removed(key_for, event.old_resolver_id, old_bonus),
        _resolver_added(key_for, event.new_resolver_id, new_bonus),
    ]


def apply_floor(entry: LedgerEntry, delta: LedgerDelta) -> Tuple[LedgerEntry, List[str]]:
    """
    Add a delta to an entry, clamping every field at zero.

    Returns the new entry and the names of the fields that had to be clamped.
    """
    updated = {}
    clamped = []
    for name in LEDGER_FIELDS:
        value = getattr(entry, name) + getattr(delta, name)
        if value < 0:
            clamped.append(name)
            value = 0
        updated[name] = value
    return replace(entry, **updated), clamped
