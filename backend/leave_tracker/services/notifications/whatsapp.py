"""WhatsApp notice text for homeroom teachers.

Nothing is sent from the server: the composed text is shared through a
pre-filled https://wa.me/ link that the parent opens on their phone.
"""

import enum
from datetime import date
from typing import Optional
from urllib.parse import quote

from leave_tracker.models.leave_request import LeaveType
from leave_tracker.services.notifications.phone import phone_for_whatsapp

WA_ME_URL = "https://wa.me/"

DAY_NAMES = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]
MONTH_NAMES = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]

GREETING = "Assalamu'alaikum Wr. Wb."
CLOSING = (
    "Atas perhatian Bapak/Ibu Guru, kami ucapkan terima kasih.\n"
    "Wassalamu'alaikum Wr. Wb."
)
LATE_APOLOGY = "Mohon maaf atas keterlambatan pemberitahuan ini. "
DEFAULT_CLASS_NAME = "kelasnya"


class NoticeKind(str, enum.Enum):
    NEW = "new"
    LATE = "late"
    EXTENSION = "extension"
    LATE_EXTENSION = "late_extension"


def format_long_date(day: date) -> str:
    """Indonesian long date, e.g. ``Selasa, 20 Agustus 2024``."""
    return f"{DAY_NAMES[day.weekday()]}, {day.day} {MONTH_NAMES[day.month - 1]} {day.year}"


def compose_leave_message(
    student_name: str,
    class_name: Optional[str],
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    reason: Optional[str] = None,
    kind: NoticeKind = NoticeKind.NEW,
    today: Optional[date] = None,
) -> str:
    class_name = class_name or DEFAULT_CLASS_NAME
    cause = LeaveType(leave_type).label.lower()
    days = (end_date - start_date).days + 1
    start_text = format_long_date(start_date)

    if days == 1:
        when = f"pada hari {start_text}"
        if kind is NoticeKind.NEW and start_date == today:
            when = f"pada hari ini, {start_text}"
    else:
        when = f"selama {days} hari, dari tanggal {start_text} s.d. {format_long_date(end_date)}"

    if kind is NoticeKind.NEW:
        body = (
            f"Dengan ini kami beritahukan bahwa ananda {student_name} "
            f"tidak dapat masuk sekolah {when} dikarenakan {cause}."
        )
    elif kind is NoticeKind.LATE:
        body = (
            f"Dengan ini kami memberitahukan bahwa ananda {student_name} "
            f"tidak masuk sekolah {when} dikarenakan {cause}."
        )
    elif kind is NoticeKind.EXTENSION:
        body = f"Dengan ini kami memperpanjang izin ananda {student_name} {when} dikarenakan {cause}."
    else:
        body = (
            f"Dengan ini kami memperpanjang izin (susulan) ananda {student_name} "
            f"{when} dikarenakan {cause}."
        )

    message = f"{GREETING}\n\nYth. Bapak/Ibu Wali Kelas {class_name}\n\n{body}"
    if reason:
        message += f"\nKeterangan: {reason}"

    apology = LATE_APOLOGY if kind in (NoticeKind.LATE, NoticeKind.LATE_EXTENSION) else ""
    return f"{message}\n\n{apology}{CLOSING}"


def share_url(message: str, phone: Optional[str] = None) -> str:
    """wa.me link with the message pre-filled; without a phone WhatsApp asks for a chat."""
    target = phone_for_whatsapp(phone) if phone else ""
    return f"{WA_ME_URL}{target}?text={quote(message, safe='')}"
