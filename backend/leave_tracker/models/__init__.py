from leave_tracker.models.user import User
from leave_tracker.models.student import SchoolClass, Student, StudentParent
from leave_tracker.models.academic_period import AcademicPeriod
from leave_tracker.models.leave_request import LeaveRequest, LeaveStatus, LeaveType

__all__ = [
    "User",
    "SchoolClass",
    "Student",
    "StudentParent",
    "AcademicPeriod",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
]
