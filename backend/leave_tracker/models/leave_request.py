import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from leave_tracker.core.database import Base


class LeaveType(str, enum.Enum):
    SICK = "sick"
    PERMISSION = "permission"

    @property
    def label(self) -> str:
        """Name used on notices sent to the school."""
        return "Sakit" if self is LeaveType.SICK else "Izin"


class LeaveStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (CheckConstraint("start_date <= end_date", name="date_range"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id"), nullable=False, index=True
    )
    leave_type: Mapped[str] = mapped_column(String(20), nullable=False)  # sick, permission
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LeaveStatus.ACTIVE.value
    )  # active, completed, cancelled
    document_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    parent_leave_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("leave_requests.id"), nullable=True, index=True
    )
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
