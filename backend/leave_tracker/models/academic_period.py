import uuid
from datetime import date

from sqlalchemy import Date, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from leave_tracker.core.database import Base


class AcademicPeriod(Base):
    __tablename__ = "academic_periods"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    period_name: Mapped[str] = mapped_column(String(100), nullable=False)  # e.g. Semester Ganjil
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)  # e.g. 2024/2025
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
