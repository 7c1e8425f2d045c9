from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.core.config import settings
from leave_tracker.core.dependencies import get_current_user, get_db, get_leave_service
from leave_tracker.core.errors import ForbiddenError, ValidationError
from leave_tracker.core.security import require_role
from leave_tracker.models.user import User
from leave_tracker.schemas.leave import (
    LeaveActionResponse,
    LeaveExtensionCreate,
    LeaveRequestCreate,
    LeaveRequestResponse,
    NoticeResponse,
    SweepResponse,
)
from leave_tracker.services.access import ensure_student_access
from leave_tracker.services.leave import LeaveOutcome, LeaveService

router = APIRouter(prefix="/leave", tags=["leave"])

MAX_DOCUMENT_BYTES = 5 * 1024 * 1024


def _action_response(outcome: LeaveOutcome) -> LeaveActionResponse:
    leave = LeaveRequestResponse.model_validate(outcome.leave) if outcome.leave else None
    return LeaveActionResponse(leave=leave, warnings=outcome.warnings)


@router.post("/requests", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    data: LeaveRequestCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Submit a new sick or permission notice. Set ``late`` for an absence that already began."""
    await ensure_student_access(db, current_user, data.student_id, write=True)
    return await service.create_leave(
        current_user.id,
        data.student_id,
        data.leave_type,
        data.start_date,
        duration_days=data.duration_days,
        reason=data.reason,
        late=data.late,
    )


@router.get("/requests/{leave_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    leave_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    leave = await service.get_leave(leave_id)
    await ensure_student_access(db, current_user, leave.student_id)
    return leave


@router.post(
    "/requests/{leave_id}/extend",
    response_model=LeaveRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def extend_leave_request(
    leave_id: UUID,
    data: LeaveExtensionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Extend a chain from its last leave, on its last day or the day after."""
    leave = await service.get_leave(leave_id)
    await ensure_student_access(db, current_user, leave.student_id, write=True)
    return await service.extend_leave(
        current_user.id, leave_id, duration_days=data.duration_days, reason=data.reason
    )


@router.post("/requests/{leave_id}/complete", response_model=LeaveRequestResponse)
async def complete_leave_request(
    leave_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Mark the student as back at school."""
    leave = await service.get_leave(leave_id)
    await ensure_student_access(db, current_user, leave.student_id, write=True)
    return await service.complete_leave(current_user.id, leave_id)


@router.post("/requests/{leave_id}/cancel", response_model=LeaveActionResponse)
async def cancel_leave_request(
    leave_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    leave = await service.get_leave(leave_id)
    await ensure_student_access(db, current_user, leave.student_id, write=True)
    return _action_response(await service.cancel_leave(current_user.id, leave_id))


@router.delete("/requests/{leave_id}", response_model=LeaveActionResponse)
async def delete_leave_request(
    leave_id: UUID,
    current_user: User = Depends(require_role("admin")),
    service: LeaveService = Depends(get_leave_service),
):
    """Permanently remove the last leave of a chain (admin only, when enabled)."""
    if not settings.HARD_DELETE_ENABLED:
        raise ForbiddenError("Permanent deletion is disabled; cancel the leave instead")
    return _action_response(await service.delete_leave(current_user.id, leave_id))


@router.post("/requests/{leave_id}/document", response_model=LeaveActionResponse)
async def upload_leave_document(
    leave_id: UUID,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Attach a supporting document, replacing any previous one."""
    leave = await service.get_leave(leave_id)
    await ensure_student_access(db, current_user, leave.student_id, write=True)
    content = await file.read(MAX_DOCUMENT_BYTES + 1)
    if len(content) > MAX_DOCUMENT_BYTES:
        raise ValidationError("The document is larger than 5 MB")
    outcome = await service.attach_document(
        current_user.id,
        leave_id,
        file.filename or "document",
        content,
        file.content_type or "application/octet-stream",
    )
    return _action_response(outcome)


@router.get("/requests/{leave_id}/notification", response_model=NoticeResponse)
async def get_leave_notification(
    leave_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """WhatsApp notice text for the homeroom teacher and its wa.me share link."""
    leave = await service.get_leave(leave_id)
    await ensure_student_access(db, current_user, leave.student_id)
    notice = await service.notice(leave_id)
    return NoticeResponse(kind=notice.kind.value, message=notice.message, share_url=notice.share_url)


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(
    current_user: User = Depends(require_role("admin")),
    service: LeaveService = Depends(get_leave_service),
):
    """Complete every active leave whose end date has passed."""
    return SweepResponse(completed=await service.auto_complete_expired())
