"""Who may see and act on which student.

Admins see and act on every student. Parents act on the students linked to
them. Homeroom teachers see the students of their class but cannot change
leave records.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.core.errors import ForbiddenError, NotFoundError
from leave_tracker.models.student import SchoolClass, Student, StudentParent
from leave_tracker.models.user import User


async def accessible_students(db: AsyncSession, user: User) -> list[Student]:
    query = select(Student).order_by(Student.full_name)
    if user.role == "parent":
        query = query.join(StudentParent, StudentParent.student_id == Student.id).where(
            StudentParent.parent_user_id == user.id
        )
    elif user.role == "teacher":
        query = query.join(SchoolClass, SchoolClass.id == Student.class_id).where(
            SchoolClass.homeroom_teacher_id == user.id
        )
    elif user.role != "admin":
        return []
    result = await db.execute(query)
    return list(result.scalars().all())


async def ensure_student_access(
    db: AsyncSession, user: User, student_id: UUID, write: bool = False
) -> Student:
    """Return the student if the user may read it (or change its leaves when write=True)."""
    student = (
        await db.execute(select(Student).where(Student.id == student_id))
    ).scalar_one_or_none()
    if student is None:
        raise NotFoundError("Student not found")

    if user.role == "admin":
        return student

    if user.role == "parent":
        link = await db.execute(
            select(StudentParent).where(
                StudentParent.student_id == student_id,
                StudentParent.parent_user_id == user.id,
            )
        )
        if link.scalar_one_or_none() is not None:
            return student

    if user.role == "teacher" and not write and student.school_class is not None:
        if student.school_class.homeroom_teacher_id == user.id:
            return student

    if write and user.role == "teacher":
        raise ForbiddenError("Teachers can view leave notices but not change them")
    raise ForbiddenError("You do not have access to this student")
