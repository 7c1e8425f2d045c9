"""Student dashboards: chains, period totals and leave history."""

from dataclasses import asdict
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.api.v1.periods import find_current_period
from leave_tracker.core.dependencies import (
    get_current_user,
    get_db,
    get_leave_service,
    get_today,
)
from leave_tracker.core.errors import NotFoundError
from leave_tracker.core.security import require_role
from leave_tracker.models.academic_period import AcademicPeriod
from leave_tracker.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from leave_tracker.models.user import User
from leave_tracker.schemas.leave import (
    AnomalyResponse,
    ChainListResponse,
    ChainResponse,
    ChainSummaryResponse,
    HistoryResponse,
    HistoryStatsResponse,
    LeaveRequestResponse,
    PeriodStatsResponse,
    TypeStatsResponse,
)
from leave_tracker.schemas.students import (
    HomeroomLeaveResponse,
    StudentOverviewResponse,
    StudentResponse,
)
from leave_tracker.services.access import accessible_students, ensure_student_access
from leave_tracker.services.leave import LeaveService
from leave_tracker.services.leave.chains import Chain, summarize

router = APIRouter(prefix="/students", tags=["students"])


def chain_response(chain: Chain) -> ChainResponse:
    return ChainResponse(
        summary=ChainSummaryResponse(**asdict(summarize(chain))),
        nodes=[LeaveRequestResponse.model_validate(node) for node in chain.nodes],
    )


@router.get("", response_model=list[StudentResponse])
async def list_students(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Students visible to the current user: own children, homeroom class, or all for admins."""
    return await accessible_students(db, current_user)


@router.get("/homeroom/leaves", response_model=list[HomeroomLeaveResponse])
async def list_homeroom_leaves(
    current_user: User = Depends(require_role("teacher", "admin")),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Leaves still running for the students a teacher looks after."""
    students = await accessible_students(db, current_user)
    items = []
    for student in students:
        await service.auto_complete_expired(student.id)
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.student_id == student.id,
                LeaveRequest.status == LeaveStatus.ACTIVE.value,
            )
            .order_by(LeaveRequest.start_date)
        )
        for leave in result.scalars().all():
            items.append(HomeroomLeaveResponse(
                student=StudentResponse.model_validate(student),
                leave=LeaveRequestResponse.model_validate(leave),
            ))
    return items


@router.get("/{student_id}/overview", response_model=StudentOverviewResponse)
async def get_student_overview(
    student_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Dashboard state for one student. Expired leaves are completed first."""
    await ensure_student_access(db, current_user, student_id)
    overview = await service.overview(student_id)
    return StudentOverviewResponse(
        student=StudentResponse.model_validate(overview.student),
        chains=[chain_response(c) for c in overview.chains.chains],
        anomaly_count=len(overview.chains.anomalies),
        active_chain=chain_response(overview.active_chain) if overview.active_chain else None,
        extendable_chain=(
            chain_response(overview.extendable_chain) if overview.extendable_chain else None
        ),
        can_complete=overview.can_complete,
        can_cancel=overview.can_cancel,
    )


@router.get("/{student_id}/chains", response_model=ChainListResponse)
async def list_student_chains(
    student_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    await ensure_student_access(db, current_user, student_id)
    result = await service.chains_for(student_id)
    return ChainListResponse(
        chains=[chain_response(c) for c in result.chains],
        anomalies=[AnomalyResponse(**asdict(a)) for a in result.anomalies],
    )


@router.get("/{student_id}/stats", response_model=PeriodStatsResponse)
async def get_student_stats(
    student_id: UUID,
    period_id: Optional[UUID] = None,
    leave_type: Optional[LeaveType] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
    today: date = Depends(get_today),
):
    """Absence counts and days per leave type for an academic period (current by default)."""
    await ensure_student_access(db, current_user, student_id)
    if period_id is not None:
        result = await db.execute(
            select(AcademicPeriod).where(AcademicPeriod.id == period_id)
        )
        period = result.scalar_one_or_none()
    else:
        period = await find_current_period(db, today)
    if period is None:
        raise NotFoundError("Academic period not found")

    stats = await service.period_stats(student_id, period, leave_type)
    return PeriodStatsResponse(
        period_id=period.id,
        period_name=period.period_name,
        academic_year=period.academic_year,
        start_date=period.start_date,
        end_date=period.end_date,
        sick=TypeStatsResponse(**asdict(stats.by_type[LeaveType.SICK])),
        permission=TypeStatsResponse(**asdict(stats.by_type[LeaveType.PERMISSION])),
        total=TypeStatsResponse(**asdict(stats.total)),
    )


@router.get("/{student_id}/history", response_model=HistoryResponse)
async def get_student_history(
    student_id: UUID,
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    leave_type: Optional[LeaveType] = None,
    search: Optional[str] = Query(None, max_length=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Every leave record of the student, newest first, with record counters."""
    await ensure_student_access(db, current_user, student_id)
    items, stats = await service.history(student_id, status_filter, leave_type, search)
    return HistoryResponse(
        items=[LeaveRequestResponse.model_validate(r) for r in items],
        stats=HistoryStatsResponse(**asdict(stats)),
    )
