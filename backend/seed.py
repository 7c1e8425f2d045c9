"""Seed script for the student leave tracker.

Populates the database with sample school data for local testing:
- 1 admin, 2 homeroom teachers, 3 parents
- 2 classes with 4 students
- 2 academic periods (semesters of 2024/2025)
- a few past leave chains, one of them extended

Usage:
    cd backend && alembic upgrade head && python seed.py
"""

import asyncio
import os
import sys
from datetime import date, timedelta

from sqlalchemy import select

# Ensure the backend directory is on the path when running from backend/
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from leave_tracker.core.database import async_session_factory
from leave_tracker.core.security import hash_password
from leave_tracker.models import (
    AcademicPeriod,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    SchoolClass,
    Student,
    StudentParent,
    User,
)
from leave_tracker.services.notifications.phone import normalize_phone_number


# ── Seed Data Definitions ────────────────────────────────────────────────────

USERS_DATA = [
    {"key": "admin", "role": "admin", "name": "Admin Sekolah",
     "email": "admin@sekolah.sch.id", "phone": None},
    {"key": "wali_7a", "role": "teacher", "name": "Siti Rahmawati",
     "email": "siti.rahmawati@sekolah.sch.id", "phone": "081200000001"},
    {"key": "wali_7b", "role": "teacher", "name": "Budi Santoso",
     "email": "budi.santoso@sekolah.sch.id", "phone": "081200000002"},
    {"key": "ortu_1", "role": "parent", "name": "Ahmad Fauzi",
     "email": "ahmad.fauzi@example.com", "phone": "081234567890"},
    {"key": "ortu_2", "role": "parent", "name": "Dewi Lestari",
     "email": "dewi.lestari@example.com", "phone": "081298765432"},
    {"key": "ortu_3", "role": "parent", "name": "Rina Marlina",
     "email": "rina.marlina@example.com", "phone": "085711112222"},
]

CLASSES_DATA = [
    {"name": "7A", "teacher": "wali_7a"},
    {"name": "7B", "teacher": "wali_7b"},
]

STUDENTS_DATA = [
    {"name": "Muhammad Rizky", "class": "7A", "parent": "ortu_1"},
    {"name": "Aisyah Putri", "class": "7A", "parent": "ortu_1"},
    {"name": "Nadia Salsabila", "class": "7B", "parent": "ortu_2"},
    {"name": "Fajar Nugroho", "class": "7B", "parent": "ortu_3"},
]

PERIODS_DATA = [
    {"name": "Semester Ganjil", "year": "2024/2025",
     "start": date(2024, 7, 15), "end": date(2024, 12, 20)},
    {"name": "Semester Genap", "year": "2024/2025",
     "start": date(2025, 1, 6), "end": date(2025, 6, 20)},
]

# (student index, leave type, start, days, reason, extension days)
LEAVES_DATA = [
    (0, LeaveType.SICK, date(2024, 8, 20), 2, "Demam", 2),
    (0, LeaveType.PERMISSION, date(2024, 9, 10), 1, "Acara keluarga", 0),
    (2, LeaveType.SICK, date(2024, 10, 1), 3, "Tipes", 0),
    (3, LeaveType.PERMISSION, date(2025, 2, 3), 1, "Lomba", 0),
]


# ── Main Seed Function ────────────────────────────────────────────────────────

async def seed():
    """Seed the database with sample school data."""
    async with async_session_factory() as db:
        # 1. Check idempotency
        result = await db.execute(select(User).where(User.email == USERS_DATA[0]["email"]))
        if result.scalar_one_or_none():
            print("⚠️  Seed data already exists. Skipping seed.")
            return

        print("🌱 Starting database seed...\n")

        # 2. Users
        print("👥 Creating users...")
        hashed_pw = hash_password("password123")
        users: dict[str, User] = {}
        for data in USERS_DATA:
            user = User(
                email=data["email"],
                phone=normalize_phone_number(data["phone"]) if data["phone"] else None,
                hashed_password=hashed_pw,
                role=data["role"],
                full_name=data["name"],
            )
            db.add(user)
            users[data["key"]] = user
            print(f"   ✅ {data['name']} ({data['role']})")
        await db.flush()

        # 3. Classes and students
        print("\n🏫 Creating classes and students...")
        classes: dict[str, SchoolClass] = {}
        for data in CLASSES_DATA:
            school_class = SchoolClass(
                class_name=data["name"],
                homeroom_teacher_id=users[data["teacher"]].id,
            )
            db.add(school_class)
            classes[data["name"]] = school_class
        await db.flush()

        students: list[Student] = []
        for data in STUDENTS_DATA:
            student = Student(full_name=data["name"], class_id=classes[data["class"]].id)
            db.add(student)
            await db.flush()
            db.add(StudentParent(student_id=student.id, parent_user_id=users[data["parent"]].id))
            students.append(student)
            print(f"   ✅ {data['name']} ({data['class']})")
        await db.flush()

        # 4. Academic periods
        print("\n📅 Creating academic periods...")
        for data in PERIODS_DATA:
            db.add(AcademicPeriod(
                period_name=data["name"],
                academic_year=data["year"],
                start_date=data["start"],
                end_date=data["end"],
            ))
            print(f"   ✅ {data['name']} {data['year']}")
        await db.flush()

        # 5. Past leave chains
        print("\n📝 Creating leave requests...")
        leave_count = 0
        for student_idx, leave_type, start, days, reason, extra_days in LEAVES_DATA:
            student = students[student_idx]
            parent_id = users[STUDENTS_DATA[student_idx]["parent"]].id
            root = LeaveRequest(
                student_id=student.id,
                leave_type=leave_type.value,
                start_date=start,
                end_date=start + timedelta(days=days - 1),
                reason=reason,
                status=LeaveStatus.COMPLETED.value,
                created_by_user_id=parent_id,
            )
            db.add(root)
            await db.flush()
            leave_count += 1
            if extra_days:
                ext_start = root.end_date + timedelta(days=1)
                db.add(LeaveRequest(
                    student_id=student.id,
                    leave_type=leave_type.value,
                    start_date=ext_start,
                    end_date=ext_start + timedelta(days=extra_days - 1),
                    reason=reason,
                    status=LeaveStatus.COMPLETED.value,
                    parent_leave_id=root.id,
                    created_by_user_id=parent_id,
                ))
                leave_count += 1
        await db.flush()
        print(f"   ✅ {leave_count} leave requests created")

        # 6. Commit everything
        await db.commit()
        print("\n" + "=" * 60)
        print("✅ Database seeding complete!")
        print("=" * 60)
        print(f"\n🔑 Login Credentials (all use password: password123):")
        print(f"   {'Email':<35} {'Phone':<15} {'Role'}")
        print(f"   {'-'*35} {'-'*15} {'-'*10}")
        for data in USERS_DATA:
            print(f"   {data['email']:<35} {data['phone'] or '-':<15} {data['role']}")
        print()


# ── Entry Point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    print("=" * 60)
    print("🌱 Student Leave Tracker Seed Script")
    print("=" * 60)
    print()
    asyncio.run(seed())
