"""Leave workflow.

Orchestrates the chain engine and transition rules against the record and
document stores: creating notices and extensions, marking returns,
cancelling, deleting, attaching documents and the auto-complete sweep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from leave_tracker.core.config import school_now, school_today, settings
from leave_tracker.core.errors import (
    AuthRequiredError,
    ConflictError,
    NotFoundError,
    StorageSideEffectError,
    ValidationError,
)
from leave_tracker.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from leave_tracker.models.student import Student
from leave_tracker.services.leave import transitions
from leave_tracker.services.leave.chains import (
    Chain,
    ChainBuildResult,
    HistoryStats,
    PeriodStats,
    aggregate_for_period,
    build_chains,
    filter_history,
    history_stats,
)
from leave_tracker.services.leave.store import LeaveStoreBase
from leave_tracker.services.notifications.whatsapp import (
    NoticeKind,
    compose_leave_message,
    share_url,
)
from leave_tracker.services.storage import DocumentStoreBase, build_document_path

logger = logging.getLogger(__name__)


@dataclass
class LeaveOutcome:
    """Result of a transition whose document side effect may have failed."""

    leave: Optional[LeaveRequest]
    warnings: list[str] = field(default_factory=list)


@dataclass
class StudentOverview:
    student: Student
    chains: ChainBuildResult
    active_chain: Optional[Chain]
    extendable_chain: Optional[Chain]
    can_complete: bool
    can_cancel: bool


@dataclass
class Notice:
    message: str
    share_url: str
    kind: NoticeKind


class LeaveService:
    def __init__(
        self,
        store: LeaveStoreBase,
        documents: DocumentStoreBase,
        today: Optional[date] = None,
    ):
        self.store = store
        self.documents = documents
        self.today = today or school_today()

    # ── Lookups ──────────────────────────────────────────────────────────────

    async def get_student(self, student_id: UUID) -> Student:
        student = await self.store.get_student(student_id)
        if student is None:
            raise NotFoundError("Student not found")
        return student

    async def get_leave(self, leave_id: UUID) -> LeaveRequest:
        record = await self.store.select_by_id(leave_id)
        if record is None:
            raise NotFoundError("Leave request not found")
        return record

    async def chains_for(self, student_id: UUID) -> ChainBuildResult:
        return build_chains(await self.store.select_by_student(student_id))

    async def _chain_of(self, record: LeaveRequest) -> Chain:
        chain = (await self.chains_for(record.student_id)).chain_for(record.id)
        if chain is None:
            raise ValidationError(
                "This leave is not linked to a valid chain and cannot be changed"
            )
        return chain

    @staticmethod
    def _require_actor(actor_id: Optional[UUID]) -> UUID:
        if actor_id is None:
            raise AuthRequiredError()
        return actor_id

    # ── Creation ─────────────────────────────────────────────────────────────

    async def create_leave(
        self,
        actor_id: Optional[UUID],
        student_id: UUID,
        leave_type: LeaveType,
        start_date: date,
        duration_days: int = 1,
        reason: Optional[str] = None,
        late: bool = False,
    ) -> LeaveRequest:
        """Submit a new notice, the root of a new chain."""
        actor_id = self._require_actor(actor_id)
        await self.get_student(student_id)
        dates = transitions.new_leave_dates(
            start_date, duration_days, self.today, late, settings.MAX_LEAVE_DAYS
        )

        await self.auto_complete_expired(student_id)
        records = await self.store.select_by_student(student_id)
        if any(r.status == LeaveStatus.ACTIVE for r in records):
            raise ConflictError(
                "The student already has an active leave; extend or finish it first"
            )

        record = await self.store.insert(LeaveRequest(
            student_id=student_id,
            leave_type=LeaveType(leave_type).value,
            start_date=dates.start_date,
            end_date=dates.end_date,
            reason=reason or None,
            status=LeaveStatus.ACTIVE.value,
            created_by_user_id=actor_id,
        ))
        logger.info(
            "Leave %s created for student %s (%s, %s..%s)",
            record.id, student_id, record.leave_type, record.start_date, record.end_date,
        )
        return record

    async def extend_leave(
        self,
        actor_id: Optional[UUID],
        leave_id: UUID,
        duration_days: int = 1,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        """Continue a chain with a new segment right after its last leave."""
        actor_id = self._require_actor(actor_id)
        record = await self.get_leave(leave_id)
        await self.auto_complete_expired(record.student_id)
        result = await self.chains_for(record.student_id)
        chain = result.chain_for(record.id)
        if chain is None:
            raise ValidationError(
                "This leave is not linked to a valid chain and cannot be changed"
            )
        if chain.leaf.id != record.id:
            raise ValidationError("Only the latest leave of a chain can be extended")

        dates = transitions.extension_dates(
            chain, duration_days, self.today, settings.MAX_LEAVE_DAYS
        )
        transitions.ensure_extension_is_free(result.chains, chain, dates)
        superseded = transitions.superseded_leaf_patch(chain)
        if superseded:
            await self.store.update(record.id, superseded)

        extension = await self.store.insert(LeaveRequest(
            student_id=record.student_id,
            leave_type=LeaveType(chain.root.leave_type).value,
            start_date=dates.start_date,
            end_date=dates.end_date,
            reason=reason or None,
            status=LeaveStatus.ACTIVE.value,
            parent_leave_id=record.id,
            created_by_user_id=actor_id,
        ))
        logger.info(
            "Leave %s extended by %s (%s..%s)",
            record.id, extension.id, extension.start_date, extension.end_date,
        )
        return extension

    # ── Transitions ──────────────────────────────────────────────────────────

    async def complete_leave(self, actor_id: Optional[UUID], leave_id: UUID) -> LeaveRequest:
        """Mark the student as returned."""
        self._require_actor(actor_id)
        record = await self.get_leave(leave_id)
        chain = await self._chain_of(record)
        patch = transitions.completion_patch(chain, record, self.today)
        record = await self.store.update(record.id, patch)
        logger.info("Leave %s completed, end_date=%s", record.id, record.end_date)
        return record

    async def _remove_document(self, record: LeaveRequest, warnings: list[str]) -> bool:
        """Best-effort removal of the record's document; failures become warnings."""
        if not record.document_url:
            return True
        path = self.documents.path_from_url(record.document_url)
        if path is None:
            logger.warning(
                "Leave %s document URL is not managed by this store: %s",
                record.id, record.document_url,
            )
            warnings.append("The supporting document could not be located for deletion")
            return False
        try:
            await self.documents.remove(path)
        except StorageSideEffectError as e:
            logger.warning("Failed to delete document of leave %s: %s", record.id, e.detail)
            warnings.append(
                "The supporting document could not be deleted; the leave was still updated"
            )
            return False
        return True

    async def cancel_leave(self, actor_id: Optional[UUID], leave_id: UUID) -> LeaveOutcome:
        """Withdraw a notice, keeping the record for history."""
        self._require_actor(actor_id)
        record = await self.get_leave(leave_id)
        chain = await self._chain_of(record)
        patch = transitions.cancellation_patch(chain, record)

        warnings: list[str] = []
        if record.document_url and await self._remove_document(record, warnings):
            patch["document_url"] = None

        record = await self.store.update(record.id, patch)
        logger.info("Leave %s cancelled", record.id)
        return LeaveOutcome(leave=record, warnings=warnings)

    async def delete_leave(self, actor_id: Optional[UUID], leave_id: UUID) -> LeaveOutcome:
        """Permanently remove the last leave of a chain and its document."""
        self._require_actor(actor_id)
        record = await self.get_leave(leave_id)
        chain = (await self.chains_for(record.student_id)).chain_for(record.id)
        if chain is not None:
            transitions.ensure_deletable(chain, record)

        warnings: list[str] = []
        await self._remove_document(record, warnings)
        await self.store.delete(record.id)
        logger.info("Leave %s deleted", record.id)

        reinstated = chain and transitions.reinstated_parent_patch(chain, record, self.today)
        if reinstated:
            parent = await self.store.update(chain.nodes[-2].id, reinstated)
            logger.info("Leave %s is active again after its extension was deleted", parent.id)
        return LeaveOutcome(leave=None, warnings=warnings)

    async def attach_document(
        self,
        actor_id: Optional[UUID],
        leave_id: UUID,
        filename: str,
        content: bytes,
        content_type: str,
        now: Optional[datetime] = None,
    ) -> LeaveOutcome:
        """Upload a supporting document (e.g. a doctor's note) for a leave."""
        self._require_actor(actor_id)
        record = await self.get_leave(leave_id)
        if record.status == LeaveStatus.CANCELLED:
            raise ValidationError("Cannot attach a document to a cancelled leave")
        if not content:
            raise ValidationError("The uploaded document is empty")

        student = await self.get_student(record.student_id)
        if not student.class_name:
            raise ValidationError("The student has no class; the document cannot be filed")

        path = build_document_path(
            student.class_name, student.full_name, filename, now or school_now()
        )
        url = await self.documents.upload(path, content, content_type)

        warnings: list[str] = []
        if record.document_url:
            await self._remove_document(record, warnings)
        record = await self.store.update(record.id, {"document_url": url})
        return LeaveOutcome(leave=record, warnings=warnings)

    async def auto_complete_expired(self, student_id: Optional[UUID] = None) -> int:
        """Complete active leaves whose end date has passed. Safe to re-run."""
        completed = 0
        for record in await self.store.select_expired_active(self.today, student_id):
            patch = transitions.expiry_patch(record, self.today)
            if patch is None:
                continue
            try:
                await self.store.update(record.id, patch)
            except LookupError:
                logger.warning("Expired leave %s vanished during the sweep", record.id)
                continue
            except Exception:
                logger.exception("Failed to auto-complete expired leave %s", record.id)
                continue
            completed += 1
            logger.info(
                "Auto-completed expired leave %s (ended %s)", record.id, record.end_date
            )
        return completed

    # ── Read side ────────────────────────────────────────────────────────────

    async def overview(self, student_id: UUID) -> StudentOverview:
        student = await self.get_student(student_id)
        await self.auto_complete_expired(student_id)
        result = await self.chains_for(student_id)

        active = next(
            (c for c in result.chains if transitions.active_leaf(c) is not None), None
        )
        extendable = next(
            (c for c in result.chains if transitions.can_extend(c, self.today)), None
        )
        return StudentOverview(
            student=student,
            chains=result,
            active_chain=active,
            extendable_chain=extendable,
            can_complete=active is not None and transitions.can_complete(active, self.today),
            can_cancel=active is not None and transitions.can_cancel(active),
        )

    async def period_stats(
        self, student_id: UUID, period: Any, leave_type: Optional[LeaveType] = None
    ) -> PeriodStats:
        await self.get_student(student_id)
        result = await self.chains_for(student_id)
        return aggregate_for_period(result.chains, period, leave_type)

    async def history(
        self,
        student_id: UUID,
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveType] = None,
        search: Optional[str] = None,
    ) -> tuple[list[LeaveRequest], HistoryStats]:
        await self.get_student(student_id)
        records = await self.store.select_by_student(student_id)
        return filter_history(records, status, leave_type, search), history_stats(records)

    async def notice(self, leave_id: UUID) -> Notice:
        """WhatsApp notice for one leave segment."""
        record = await self.get_leave(leave_id)
        student = await self.get_student(record.student_id)

        filed_on = _filed_on(record)
        if record.parent_leave_id is None:
            kind = NoticeKind.LATE if record.start_date < filed_on else NoticeKind.NEW
        else:
            kind = (
                NoticeKind.LATE_EXTENSION
                if record.start_date <= filed_on
                else NoticeKind.EXTENSION
            )

        message = compose_leave_message(
            student_name=student.full_name,
            class_name=student.class_name,
            leave_type=LeaveType(record.leave_type),
            start_date=record.start_date,
            end_date=record.end_date,
            reason=record.reason,
            kind=kind,
            today=filed_on,
        )
        return Notice(message=message, share_url=share_url(message), kind=kind)


def _filed_on(record: LeaveRequest) -> date:
    created_at = record.created_at
    if created_at is None:
        return school_today()
    if created_at.tzinfo is None:
        # stored as UTC by the column default; some drivers drop the offset
        created_at = created_at.replace(tzinfo=ZoneInfo("UTC"))
    return created_at.astimezone(ZoneInfo(settings.SCHOOL_TIMEZONE)).date()
