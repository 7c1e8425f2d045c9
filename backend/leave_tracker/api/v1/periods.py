from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.core.dependencies import get_current_user, get_db, get_today
from leave_tracker.core.errors import NotFoundError
from leave_tracker.models.academic_period import AcademicPeriod
from leave_tracker.schemas.students import AcademicPeriodResponse

router = APIRouter(prefix="/periods", tags=["periods"])


async def find_current_period(db: AsyncSession, today: date) -> Optional[AcademicPeriod]:
    """The period containing today, falling back to the most recent one."""
    result = await db.execute(
        select(AcademicPeriod).where(
            AcademicPeriod.start_date <= today,
            AcademicPeriod.end_date >= today,
        )
    )
    period = result.scalars().first()
    if period is not None:
        return period

    result = await db.execute(
        select(AcademicPeriod).order_by(AcademicPeriod.start_date.desc()).limit(1)
    )
    return result.scalar_one_or_none()


@router.get("", response_model=list[AcademicPeriodResponse])
async def list_periods(
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(AcademicPeriod).order_by(AcademicPeriod.start_date.desc())
    )
    return result.scalars().all()


@router.get("/current", response_model=AcademicPeriodResponse)
async def get_current_period(
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    today: date = Depends(get_today),
):
    period = await find_current_period(db, today)
    if period is None:
        raise NotFoundError("No academic period configured")
    return period
