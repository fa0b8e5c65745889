"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

# Stored counters of a ledger entry, in persisted order
LEDGER_FIELDS = ("reporter_points", "resolver_points", "report_count", "resolved_count")


@dataclass(frozen=True, order=True)
class LedgerKey:
    """Identity of one ledger row: an employee in a calendar month"""

    employee_id: str
    year: int
    month: int


@dataclass
class LedgerEntry:
    """Per-employee, per-month aggregate of points and counts"""

    employee_id: str
    year: int
    month: int
    reporter_points: int = 0
    resolver_points: int = 0
    report_count: int = 0
    resolved_count: int = 0

    @property
    def total_points(self) -> int:
        # Derived on every read, never stored
        return self.reporter_points + self.resolver_points

    @property
    def key(self) -> LedgerKey:
        return LedgerKey(self.employee_id, self.year, self.month)

    @classmethod
    def zero(cls, key: LedgerKey) -> "LedgerEntry":
        return cls(employee_id=key.employee_id, year=key.year, month=key.month)

    def counters(self) -> tuple:
        return tuple(getattr(self, name) for name in LEDGER_FIELDS)


@dataclass(frozen=True)
class LedgerDelta:
    """Signed adjustment to the counters of one ledger entry"""

    reporter_points: int = 0
    resolver_points: int = 0
    report_count: int = 0
    resolved_count: int = 0

    def is_zero(self) -> bool:
        return not any(getattr(self, name) for name in LEDGER_FIELDS)


@dataclass(frozen=True)
class KeyedDelta:
    key: LedgerKey
    delta: LedgerDelta


@dataclass
class ReportRecord:
    """Report row as seen by the ledger"""

    id: str
    author_id: str
    created_at: datetime
    points_awarded: int = 0
    status: str = "pending"


@dataclass
class ResolverAssignment:
    """Resolver credited on a report, with the bonus frozen at assignment time"""

    report_id: str
    resolver_id: str
    points_awarded: int
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ResolverCredit:
    """Frozen resolver credit captured from a report before it is removed"""

    resolver_id: str
    points_awarded: int


# Inbound mutation events. Every event is bucketed by the report's creation month.


@dataclass
class LedgerEvent:
    report_id: str
    author_id: str
    report_created_at: datetime
    idempotency_key: Optional[str] = field(default=None, kw_only=True)

    event_type = "ledger_event"


@dataclass
class ReportCreated(LedgerEvent):
    points_awarded: int = 0

    event_type = "report_created"


@dataclass
class ReportPointsEdited(LedgerEvent):
    old_points: int = 0
    new_points: int = 0

    event_type = "report_points_edited"


@dataclass
class ReportDeleted(LedgerEvent):
    points_awarded: Optional[int] = None  # Points the report carried when deleted; required
    resolvers: List[ResolverCredit] = field(default_factory=list)

    event_type = "report_deleted"


@dataclass
class ResolverAdded(LedgerEvent):
    resolver_id: str = ""
    points_awarded: Optional[int] = None  # Computed by the point policy when omitted

    event_type = "resolver_added"


@dataclass
class ResolverRemoved(LedgerEvent):
    resolver_id: str = ""
    points_awarded: Optional[int] = None  # Frozen bonus of the assignment being removed; required

    event_type = "resolver_removed"


@dataclass
class ResolverReplaced(LedgerEvent):
    old_resolver_id: str = ""
    old_points_awarded: Optional[int] = None  # Frozen bonus of the old assignment; required
    new_resolver_id: str = ""
    new_points_awarded: Optional[int] = None

    event_type = "resolver_replaced"


@dataclass
class ApplyResult:
    """Outcome of applying one event to the ledger"""

    event_type: str
    applied: bool
    entries: List[LedgerEntry] = field(default_factory=list)
    clamped: List[str] = field(default_factory=list)


@dataclass
class RankingRow:
    rank: int
    employee_id: str
    total_points: int
    report_count: int


@dataclass
class EmployeeYearHistory:
    """One employee's monthly ledger entries for a year, newest month first"""

    employee_id: str
    year: int
    months: List[LedgerEntry]

    @property
    def total_points(self) -> int:
        return sum(m.total_points for m in self.months)

    @property
    def report_count(self) -> int:
        return sum(m.report_count for m in self.months)

    @property
    def resolved_count(self) -> int:
        return sum(m.resolved_count for m in self.months)


@dataclass
class SkippedRow:
    kind: str  # "report" | "resolver"
    row_id: str
    reason: str


@dataclass
class RebuildReport:
    """Summary of one backfill run"""

    entries_written: int
    reports_seen: int
    assignments_seen: int
    skipped: List[SkippedRow] = field(default_factory=list)
    drifted_keys: int = 0
    dry_run: bool = False
    duration_ms: float = 0.0
