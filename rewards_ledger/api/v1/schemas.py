"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


# Report lifecycle


class ReportCreateRequest(BaseModel):
    """Request body for POST /v1/reports"""

    author_id: str = Field(..., min_length=1, description="Employee who filed the report")
    points_awarded: int = Field(0, ge=0, le=3, description="Admin-assigned quality score")
    created_at: Optional[datetime] = Field(None, description="Original capture time for offline-synced reports")
    report_number: Optional[str] = None


class PointsUpdateRequest(BaseModel):
    """Request body for PATCH /v1/reports/{report_id}/points"""

    points_awarded: int = Field(..., ge=0, le=3)


class StatusUpdateRequest(BaseModel):
    """Request body for PATCH /v1/reports/{report_id}/status"""

    status: Literal["pending", "in_progress", "closed"]


class ResolverRequest(BaseModel):
    """Request body for resolver assignment endpoints"""

    resolver_id: str = Field(..., min_length=1)


class ResolverSchema(BaseModel):
    resolver_id: str
    points_awarded: int
    created_at: str


class ReportResponse(BaseModel):
    report_id: str
    author_id: str
    report_number: Optional[str] = None
    status: str
    points_awarded: int
    created_at: str
    resolvers: List[ResolverSchema] = []


# Raw inbound events from external producers


class _EventBase(BaseModel):
    report_id: str
    author_id: str
    report_created_at: datetime


class ReportCreatedEvent(_EventBase):
    event_type: Literal["report_created"]
    points_awarded: int = 0


class ReportPointsEditedEvent(_EventBase):
    event_type: Literal["report_points_edited"]
    old_points: int
    new_points: int


class ResolverCreditSchema(BaseModel):
    resolver_id: str
    points_awarded: int


class ReportDeletedEvent(_EventBase):
    event_type: Literal["report_deleted"]
    points_awarded: int = Field(..., description="Points the report carried when deleted")
    resolvers: List[ResolverCreditSchema] = []


class ResolverAddedEvent(_EventBase):
    event_type: Literal["resolver_added"]
    resolver_id: str
    points_awarded: Optional[int] = None


class ResolverRemovedEvent(_EventBase):
    event_type: Literal["resolver_removed"]
    resolver_id: str
    points_awarded: int = Field(..., description="Bonus frozen on the assignment being removed")


class ResolverReplacedEvent(_EventBase):
    event_type: Literal["resolver_replaced"]
    old_resolver_id: str
    old_points_awarded: int = Field(..., description="Bonus frozen on the assignment being replaced")
    new_resolver_id: str
    new_points_awarded: Optional[int] = None


LedgerEventRequest = Annotated[
    Union[
        ReportCreatedEvent,
        ReportPointsEditedEvent,
        ReportDeletedEvent,
        ResolverAddedEvent,
        ResolverRemovedEvent,
        ResolverReplacedEvent,
    ],
    Field(discriminator="event_type"),
]


# Ledger reads


class LedgerEntrySchema(BaseModel):
    """One (employee, year, month) ledger entry; total_points is computed on read"""

    employee_id: str
    year: int
    month: int
    reporter_points: int
    resolver_points: int
    total_points: int
    report_count: int
    resolved_count: int


class EventResponse(BaseModel):
    """Response for POST /v1/ledger/events"""

    event_type: str
    applied: bool
    entries: List[LedgerEntrySchema]
    clamped: List[str]


class EmployeeHistoryResponse(BaseModel):
    """Response for GET /v1/ledger/{employee_id}/{year}"""

    employee_id: str
    year: int
    total_points: int
    report_count: int
    resolved_count: int
    months: List[LedgerEntrySchema]


class RankingItem(BaseModel):
    rank: int
    employee_id: str
    total_points: int
    report_count: int


class RankingResponse(BaseModel):
    """Response for GET /v1/rankings/{year}"""

    year: int
    month: Optional[int] = None
    rankings: List[RankingItem]
