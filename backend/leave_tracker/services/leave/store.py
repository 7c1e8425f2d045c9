"""Leave record store.

Provides an abstract base class for the record operations the leave
workflow consumes, and the SQLAlchemy implementation used by the API and
the sweep scheduler.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.models.leave_request import LeaveRequest, LeaveStatus
from leave_tracker.models.student import Student


class LeaveStoreBase(ABC):
    """Abstract base class for leave record persistence."""

    @abstractmethod
    async def insert(self, record: LeaveRequest) -> LeaveRequest:
        ...

    @abstractmethod
    async def update(self, leave_id: UUID, patch: dict[str, Any]) -> LeaveRequest:
        ...

    @abstractmethod
    async def delete(self, leave_id: UUID) -> None:
        ...

    @abstractmethod
    async def select_by_student(self, student_id: UUID) -> list[LeaveRequest]:
        ...

    @abstractmethod
    async def select_by_id(self, leave_id: UUID) -> Optional[LeaveRequest]:
        ...

    @abstractmethod
    async def select_expired_active(
        self, today: date, student_id: Optional[UUID] = None
    ) -> list[LeaveRequest]:
        ...

    @abstractmethod
    async def get_student(self, student_id: UUID) -> Optional[Student]:
        ...


class SqlLeaveStore(LeaveStoreBase):
    """Implementation that uses the local database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, record: LeaveRequest) -> LeaveRequest:
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def update(self, leave_id: UUID, patch: dict[str, Any]) -> LeaveRequest:
        record = await self.select_by_id(leave_id)
        if record is None:
            raise LookupError(f"Leave request {leave_id} does not exist")
        for column, value in patch.items():
            setattr(record, column, value)
        await self.db.flush()
        return record

    async def delete(self, leave_id: UUID) -> None:
        record = await self.select_by_id(leave_id)
        if record is not None:
            await self.db.delete(record)
            await self.db.flush()

    async def select_by_student(self, student_id: UUID) -> list[LeaveRequest]:
        result = await self.db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.student_id == student_id)
            .order_by(LeaveRequest.start_date, LeaveRequest.created_at)
        )
        return list(result.scalars().all())

    async def select_by_id(self, leave_id: UUID) -> Optional[LeaveRequest]:
        result = await self.db.execute(
            select(LeaveRequest).where(LeaveRequest.id == leave_id)
        )
        return result.scalar_one_or_none()

    async def select_expired_active(
        self, today: date, student_id: Optional[UUID] = None
    ) -> list[LeaveRequest]:
        query = select(LeaveRequest).where(
            LeaveRequest.status == LeaveStatus.ACTIVE.value,
            LeaveRequest.end_date < today,
        )
        if student_id is not None:
            query = query.where(LeaveRequest.student_id == student_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_student(self, student_id: UUID) -> Optional[Student]:
        result = await self.db.execute(select(Student).where(Student.id == student_id))
        return result.scalar_one_or_none()
