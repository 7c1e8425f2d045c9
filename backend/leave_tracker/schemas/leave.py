from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from leave_tracker.models.leave_request import LeaveStatus, LeaveType


class LeaveRequestCreate(BaseModel):
    student_id: UUID
    leave_type: LeaveType
    start_date: date
    duration_days: int = Field(default=1, ge=1)
    reason: Optional[str] = Field(None, max_length=1000)
    late: bool = False  # notice for an absence that already started


class LeaveExtensionCreate(BaseModel):
    duration_days: int = Field(default=1, ge=1)
    reason: Optional[str] = Field(None, max_length=1000)


class LeaveRequestResponse(BaseModel):
    id: UUID
    student_id: UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    status: LeaveStatus
    reason: Optional[str] = None
    document_url: Optional[str] = None
    parent_leave_id: Optional[UUID] = None
    created_by_user_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class LeaveActionResponse(BaseModel):
    """A transition result plus any non-fatal document warnings."""

    leave: Optional[LeaveRequestResponse] = None
    warnings: list[str] = []


class DateRangeResponse(BaseModel):
    start_date: date
    end_date: date


class ChainSummaryResponse(BaseModel):
    root_id: UUID
    leaf_id: UUID
    leave_type: LeaveType
    final_status: LeaveStatus
    total_duration_days: int
    combined_range: DateRangeResponse
    is_extended: bool
    segment_count: int


class ChainResponse(BaseModel):
    summary: ChainSummaryResponse
    nodes: list[LeaveRequestResponse]


class AnomalyResponse(BaseModel):
    kind: str
    leave_id: UUID
    parent_leave_id: Optional[UUID] = None
    detail: str


class ChainListResponse(BaseModel):
    chains: list[ChainResponse]
    anomalies: list[AnomalyResponse]


class TypeStatsResponse(BaseModel):
    count: int
    total_days: int


class PeriodStatsResponse(BaseModel):
    period_id: UUID
    period_name: str
    academic_year: str
    start_date: date
    end_date: date
    sick: TypeStatsResponse
    permission: TypeStatsResponse
    total: TypeStatsResponse


class HistoryStatsResponse(BaseModel):
    total: int
    active: int
    completed: int
    cancelled: int
    sick: int
    permission: int


class HistoryResponse(BaseModel):
    items: list[LeaveRequestResponse]
    stats: HistoryStatsResponse


class NoticeResponse(BaseModel):
    kind: str
    message: str
    share_url: str


class SweepResponse(BaseModel):
    completed: int
