"""SQLAlchemy ORM models for reports, resolver assignments and the monthly ledger"""

import uuid
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from rewards_ledger.utils.date_utils import utc_now

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class SafetyReport(Base):
    """Report authored by an employee; its creation month buckets every ledger effect"""

    __tablename__ = "safety_reports"
    __table_args__ = (
        CheckConstraint("points_awarded >= 0 AND points_awarded <= 3", name="ck_safety_reports_points"),
        CheckConstraint("status IN ('pending', 'in_progress', 'closed')", name="ck_safety_reports_status"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    report_number = Column(Text, nullable=True)
    author_id = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default="pending")
    points_awarded = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    resolvers = relationship("ReportResolver", back_populates="report", cascade="all, delete-orphan")


class ReportResolver(Base):
    """Resolver credited on a report; points_awarded is frozen at creation"""

    __tablename__ = "report_resolvers"
    __table_args__ = (UniqueConstraint("report_id", "resolver_id", name="uq_report_resolvers_pair"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    report_id = Column(String(36), ForeignKey("safety_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    resolver_id = Column(Text, nullable=False, index=True)
    points_awarded = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    report = relationship("SafetyReport", back_populates="resolvers")


class MonthlyEmployeePoints(Base):
    """Ledger entry: one row per (employee, year, month). total_points is never stored."""

    __tablename__ = "monthly_employee_points"
    __table_args__ = (
        UniqueConstraint("employee_id", "year", "month", name="uq_monthly_points_key"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_monthly_points_month"),
        CheckConstraint(
            "reporter_points >= 0 AND resolver_points >= 0 AND report_count >= 0 AND resolved_count >= 0",
            name="ck_monthly_points_non_negative",
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    employee_id = Column(Text, nullable=False, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    reporter_points = Column(Integer, nullable=False, default=0)
    resolver_points = Column(Integer, nullable=False, default=0)
    report_count = Column(Integer, nullable=False, default=0)
    resolved_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class ProcessedLedgerEvent(Base):
    """Idempotency keys of producer events already applied to the ledger"""

    __tablename__ = "processed_ledger_events"

    idempotency_key = Column(Text, primary_key=True)
    event_type = Column(Text, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
