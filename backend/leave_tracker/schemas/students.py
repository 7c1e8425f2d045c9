from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from leave_tracker.schemas.leave import ChainResponse, LeaveRequestResponse


class StudentResponse(BaseModel):
    id: UUID
    full_name: str
    class_id: Optional[UUID] = None
    class_name: Optional[str] = None

    model_config = {"from_attributes": True}


class AcademicPeriodResponse(BaseModel):
    id: UUID
    period_name: str
    academic_year: str
    start_date: date
    end_date: date

    model_config = {"from_attributes": True}


class StudentOverviewResponse(BaseModel):
    student: StudentResponse
    chains: list[ChainResponse]
    anomaly_count: int
    active_chain: Optional[ChainResponse] = None
    extendable_chain: Optional[ChainResponse] = None
    can_complete: bool
    can_cancel: bool


class HomeroomLeaveResponse(BaseModel):
    """A leave currently running for a student of the teacher's class."""

    student: StudentResponse
    leave: LeaveRequestResponse
