"""Status transition rules for individual leave records.

Each rule checks eligibility against the record's chain and returns the
patch to apply; nothing here touches storage. Rules raise
``ValidationError`` when a transition is not allowed, ``ConflictError`` when
it would clash with another leave of the student.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable, Optional

from leave_tracker.core.errors import ConflictError, ValidationError
from leave_tracker.models.leave_request import LeaveStatus
from leave_tracker.services.leave.chains import Chain, DateRange

ONE_DAY = timedelta(days=1)


def validate_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValidationError(
            f"start_date ({start_date}) must not be after end_date ({end_date})"
        )


def _validate_duration(duration_days: int, max_days: int) -> None:
    if duration_days < 1 or duration_days > max_days:
        raise ValidationError(f"Duration must be between 1 and {max_days} days")


def new_leave_dates(
    start_date: date,
    duration_days: int,
    today: date,
    late: bool,
    max_days: int,
) -> DateRange:
    """Dates of a new root notice.

    Regular notices start today or later. Late notices report an absence
    that already began and must start before today.
    """
    _validate_duration(duration_days, max_days)
    if late and start_date >= today:
        raise ValidationError("A late notice must start before today")
    if not late and start_date < today:
        raise ValidationError(
            "start_date is in the past; submit a late notice for absences that already happened"
        )
    end_date = start_date + timedelta(days=duration_days - 1)
    validate_range(start_date, end_date)
    return DateRange(start_date, end_date)


def active_leaf(chain: Chain) -> Optional[Any]:
    """The chain's leaf when it still carries the active status."""
    leaf = chain.leaf
    return leaf if leaf.status == LeaveStatus.ACTIVE else None


def _require_active_leaf(chain: Chain, record: Any, action: str) -> None:
    leaf = active_leaf(chain)
    if leaf is None or leaf.id != record.id:
        raise ValidationError(
            f"Only the active last leave of a chain can be {action}"
        )


def can_complete(chain: Chain, today: date) -> bool:
    leaf = active_leaf(chain)
    return leaf is not None and today > leaf.start_date


def completion_patch(chain: Chain, record: Any, today: date) -> dict[str, Any]:
    """Mark a leave as returned.

    The end date is pulled back to yesterday when the student returns
    before the scheduled end, so no absence day is claimed for today.
    """
    _require_active_leaf(chain, record, "completed")
    end_date = min(record.end_date, today - ONE_DAY)
    if end_date < record.start_date:
        raise ValidationError(
            "The student is back before this leave's first day was over; cancel it instead"
        )
    return {"status": LeaveStatus.COMPLETED.value, "end_date": end_date}


def expiry_patch(record: Any, today: date) -> Optional[dict[str, Any]]:
    """Patch for the auto-complete sweep, or None when the record is not expired."""
    if record.status == LeaveStatus.ACTIVE and record.end_date < today:
        return {"status": LeaveStatus.COMPLETED.value}
    return None


def can_extend(chain: Chain, today: date) -> bool:
    leaf = chain.leaf
    if leaf.status == LeaveStatus.CANCELLED:
        return False
    return leaf.end_date in (today, today - ONE_DAY)


def is_late_extension(chain: Chain, today: date) -> bool:
    return chain.leaf.end_date < today


def extension_dates(
    chain: Chain, duration_days: int, today: date, max_days: int
) -> DateRange:
    """Dates of an extension continuing the chain right after its leaf."""
    _validate_duration(duration_days, max_days)
    if not can_extend(chain, today):
        raise ValidationError(
            "A leave can only be extended on its last day or the day after it ended"
        )
    start_date = chain.leaf.end_date + ONE_DAY
    return DateRange(start_date, start_date + timedelta(days=duration_days - 1))


def ensure_extension_is_free(
    chains: Iterable[Chain], chain: Chain, dates: DateRange
) -> None:
    """Reject an extension that would run alongside another chain of the student."""
    for other in chains:
        if other.root.id == chain.root.id:
            continue
        for node in other.nodes:
            if node.status == LeaveStatus.ACTIVE:
                raise ConflictError(
                    "The student already has a newer active leave; extend that one instead"
                )
            if (
                node.status != LeaveStatus.CANCELLED
                and node.start_date <= dates.end_date
                and node.end_date >= dates.start_date
            ):
                raise ConflictError(
                    f"The extension would overlap the leave of {node.start_date}..{node.end_date}"
                )


def superseded_leaf_patch(chain: Chain) -> Optional[dict[str, Any]]:
    """Close the extended leaf so the chain keeps a single active node."""
    if chain.leaf.status == LeaveStatus.ACTIVE:
        return {"status": LeaveStatus.COMPLETED.value}
    return None


def reinstated_parent_patch(
    chain: Chain, record: Any, today: date
) -> Optional[dict[str, Any]]:
    """Reopen the leave a deleted extension had superseded, if it is still running.

    A completed parent whose end date is today or later can only have been
    closed by its extension; one that already ended stays completed. A
    cancelled extension stays in the chain as its leaf, so its parent is
    left completed.
    """
    if chain.leaf.id != record.id or len(chain.nodes) < 2:
        return None
    parent = chain.nodes[-2]
    if parent.status == LeaveStatus.COMPLETED and parent.end_date >= today:
        return {"status": LeaveStatus.ACTIVE.value}
    return None


def can_cancel(chain: Chain) -> bool:
    return active_leaf(chain) is not None


def cancellation_patch(chain: Chain, record: Any) -> dict[str, Any]:
    _require_active_leaf(chain, record, "cancelled")
    return {"status": LeaveStatus.CANCELLED.value}


def ensure_deletable(chain: Chain, record: Any) -> None:
    """Only a chain's last record may be removed; removing a lone root removes the chain."""
    if chain.leaf.id != record.id:
        raise ValidationError(
            "This leave has been extended; delete its latest extension first"
        )
