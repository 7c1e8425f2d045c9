import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("JWT_SECRET", "test-secret")

from dataclasses import dataclass, field  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from typing import Any, Optional  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from leave_tracker.core.database import Base  # noqa: E402
from leave_tracker.core.dependencies import get_db, get_document_store, get_today  # noqa: E402
from leave_tracker.core.errors import StorageSideEffectError  # noqa: E402
from leave_tracker.core.security import create_access_token, hash_password  # noqa: E402
from leave_tracker.main import app  # noqa: E402
from leave_tracker.models import (  # noqa: E402
    AcademicPeriod,
    LeaveRequest,
    SchoolClass,
    Student,
    StudentParent,
    User,
)
from leave_tracker.services.leave.store import LeaveStoreBase  # noqa: E402
from leave_tracker.services.storage import DocumentStoreBase, LocalDocumentStore  # noqa: E402

TODAY = date(2024, 8, 20)
PASSWORD = "rahasia123"


# ── In-memory collaborators for service tests ────────────────────────────────


class InMemoryLeaveStore(LeaveStoreBase):
    def __init__(self, students: Optional[list[Student]] = None):
        self.records: dict[UUID, LeaveRequest] = {}
        self.students = {s.id: s for s in students or []}
        self.updates: list[tuple[UUID, dict[str, Any]]] = []

    async def insert(self, record: LeaveRequest) -> LeaveRequest:
        if record.id is None:
            record.id = uuid4()
        if record.created_at is None:
            record.created_at = datetime.now(timezone.utc)
        self.records[record.id] = record
        return record

    async def update(self, leave_id: UUID, patch: dict[str, Any]) -> LeaveRequest:
        if leave_id not in self.records:
            raise LookupError(leave_id)
        record = self.records[leave_id]
        for column, value in patch.items():
            setattr(record, column, value)
        self.updates.append((leave_id, patch))
        return record

    async def delete(self, leave_id: UUID) -> None:
        self.records.pop(leave_id, None)

    async def select_by_student(self, student_id: UUID) -> list[LeaveRequest]:
        return [r for r in self.records.values() if r.student_id == student_id]

    async def select_by_id(self, leave_id: UUID) -> Optional[LeaveRequest]:
        return self.records.get(leave_id)

    async def select_expired_active(
        self, today: date, student_id: Optional[UUID] = None
    ) -> list[LeaveRequest]:
        return [
            r for r in self.records.values()
            if r.status == "active"
            and r.end_date < today
            and (student_id is None or r.student_id == student_id)
        ]

    async def get_student(self, student_id: UUID) -> Optional[Student]:
        return self.students.get(student_id)


@dataclass
class FakeDocumentStore(DocumentStoreBase):
    fail_remove: bool = False
    fail_upload: bool = False
    uploaded: dict[str, bytes] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)

    prefix = "https://files.test/dokumen_izin/"

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        if self.fail_upload:
            raise StorageSideEffectError("upload failed")
        self.uploaded[path] = content
        return self.get_public_url(path)

    async def remove(self, path: str) -> None:
        if self.fail_remove:
            raise StorageSideEffectError("bucket unavailable")
        self.removed.append(path)

    def get_public_url(self, path: str) -> str:
        return self.prefix + path

    def path_from_url(self, url: str) -> Optional[str]:
        return url[len(self.prefix):] if url.startswith(self.prefix) else None


@pytest.fixture
def student():
    s = Student(id=uuid4(), full_name="Muhammad Rizky")
    s.school_class = SchoolClass(id=uuid4(), class_name="7A")
    return s


@pytest.fixture
def store(student):
    return InMemoryLeaveStore([student])


@pytest.fixture
def documents():
    return FakeDocumentStore()


# ── Database and HTTP client for API tests ───────────────────────────────────


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@dataclass
class SchoolData:
    admin: User
    teacher: User
    parent: User
    other_parent: User
    student: Student
    period: AcademicPeriod

    def token(self, user: User) -> dict[str, str]:
        access = create_access_token({"sub": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {access}"}


@pytest.fixture
async def school(session_factory) -> SchoolData:
    hashed = hash_password(PASSWORD)
    async with session_factory() as db:
        admin = User(email="admin@sekolah.sch.id", hashed_password=hashed, role="admin", full_name="Admin")
        teacher = User(email="wali@sekolah.sch.id", hashed_password=hashed, role="teacher", full_name="Siti")
        parent = User(
            email="ortu@example.com",
            phone="+6281234567890",
            hashed_password=hashed,
            role="parent",
            full_name="Ahmad",
        )
        other_parent = User(email="lain@example.com", hashed_password=hashed, role="parent", full_name="Dewi")
        db.add_all([admin, teacher, parent, other_parent])
        await db.flush()

        school_class = SchoolClass(class_name="7A", homeroom_teacher_id=teacher.id)
        db.add(school_class)
        await db.flush()

        student = Student(full_name="Muhammad Rizky", class_id=school_class.id)
        db.add(student)
        await db.flush()
        db.add(StudentParent(student_id=student.id, parent_user_id=parent.id))

        period = AcademicPeriod(
            period_name="Semester Ganjil",
            academic_year="2024/2025",
            start_date=date(2024, 7, 15),
            end_date=date(2024, 12, 20),
        )
        db.add(period)
        await db.commit()
        return SchoolData(admin, teacher, parent, other_parent, student, period)


@pytest.fixture
def clock():
    return {"today": TODAY}


@pytest.fixture
async def client(session_factory, clock, tmp_path):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    local_store = LocalDocumentStore(str(tmp_path), "http://testserver/files", "dokumen_izin")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: clock["today"]
    app.dependency_overrides[get_document_store] = lambda: local_store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
