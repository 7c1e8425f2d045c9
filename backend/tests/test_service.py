from datetime import date, datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from leave_tracker.core.errors import (
    AuthRequiredError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from leave_tracker.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from leave_tracker.services.leave.service import LeaveService
from leave_tracker.services.notifications.whatsapp import NoticeKind

TODAY = date(2024, 8, 20)
ACTOR = uuid4()


def make_service(store, documents, today=TODAY):
    return LeaveService(store, documents, today=today)


async def test_create_then_fetch_round_trip(store, documents, student):
    service = make_service(store, documents)

    created = await service.create_leave(
        ACTOR, student.id, LeaveType.SICK, TODAY, duration_days=2, reason="Demam"
    )
    fetched = await service.get_leave(created.id)

    assert fetched.leave_type == "sick"
    assert (fetched.start_date, fetched.end_date) == (TODAY, date(2024, 8, 21))
    assert fetched.reason == "Demam"
    assert fetched.status == LeaveStatus.ACTIVE
    assert fetched.parent_leave_id is None
    assert fetched.created_by_user_id == ACTOR


async def test_mutations_require_an_actor(store, documents, student):
    service = make_service(store, documents)

    with pytest.raises(AuthRequiredError):
        await service.create_leave(None, student.id, LeaveType.SICK, TODAY)
    assert store.records == {}


async def test_unknown_student(store, documents):
    with pytest.raises(NotFoundError):
        await make_service(store, documents).create_leave(ACTOR, uuid4(), LeaveType.SICK, TODAY)


async def test_second_active_chain_is_rejected(store, documents, student):
    service = make_service(store, documents)
    await service.create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)

    with pytest.raises(ConflictError):
        await service.create_leave(ACTOR, student.id, LeaveType.PERMISSION, date(2024, 8, 21))


async def test_expired_leave_does_not_block_a_new_one(store, documents, student):
    await make_service(store, documents, today=date(2024, 8, 19)).create_leave(
        ACTOR, student.id, LeaveType.SICK, date(2024, 8, 19)
    )

    service = make_service(store, documents)
    created = await service.create_leave(ACTOR, student.id, LeaveType.PERMISSION, TODAY)

    statuses = sorted(r.status for r in store.records.values())
    assert statuses == ["active", "completed"]
    assert created.status == "active"


async def test_extension_chain(store, documents, student):
    root = await make_service(store, documents).create_leave(
        ACTOR, student.id, LeaveType.SICK, TODAY, duration_days=2
    )
    service = make_service(store, documents, today=date(2024, 8, 21))

    extension = await service.extend_leave(ACTOR, root.id, duration_days=2, reason="Masih demam")

    assert (extension.start_date, extension.end_date) == (date(2024, 8, 22), date(2024, 8, 23))
    assert extension.parent_leave_id == root.id
    assert extension.leave_type == "sick"
    assert root.status == "completed"

    chain = (await service.chains_for(student.id)).chains[0]
    assert [n.id for n in chain.nodes] == [root.id, extension.id]
    assert sum(1 for n in chain.nodes if n.status == LeaveStatus.ACTIVE) == 1

    with pytest.raises(ValidationError):
        await service.extend_leave(ACTOR, root.id)


async def test_extension_too_late_is_rejected(store, documents, student):
    root = await make_service(store, documents).create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)

    with pytest.raises(ValidationError):
        await make_service(store, documents, today=date(2024, 8, 23)).extend_leave(ACTOR, root.id)


async def test_complete_clamps_to_yesterday(store, documents, student):
    root = await make_service(store, documents).create_leave(
        ACTOR, student.id, LeaveType.SICK, TODAY, duration_days=3
    )

    completed = await make_service(store, documents, today=date(2024, 8, 21)).complete_leave(
        ACTOR, root.id
    )

    assert completed.status == "completed"
    assert completed.end_date == TODAY


async def test_complete_on_first_day_is_rejected(store, documents, student):
    service = make_service(store, documents)
    root = await service.create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)

    with pytest.raises(ValidationError):
        await service.complete_leave(ACTOR, root.id)
    assert root.status == "active"
    assert root.end_date >= root.start_date


async def test_cancel_with_failing_document_store_warns(store, documents, student):
    service = make_service(store, documents)
    root = await service.create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)
    await service.attach_document(
        ACTOR, root.id, "surat.pdf", b"%PDF", "application/pdf",
        now=datetime(2024, 8, 20, 7, 30, 15),
    )
    assert root.document_url == documents.prefix + "7A/200824-073015-Muhammad_Rizky.pdf"

    documents.fail_remove = True
    outcome = await service.cancel_leave(ACTOR, root.id)

    assert outcome.leave.status == "cancelled"
    assert len(outcome.warnings) == 1
    assert outcome.leave.document_url is not None


async def test_cancel_removes_document(store, documents, student):
    service = make_service(store, documents)
    root = await service.create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)
    await service.attach_document(ACTOR, root.id, "foto.jpg", b"jpg", "image/jpeg")

    outcome = await service.cancel_leave(ACTOR, root.id)

    assert outcome.warnings == []
    assert outcome.leave.document_url is None
    assert len(documents.removed) == 1


async def test_attach_document_to_cancelled_leave_is_rejected(store, documents, student):
    service = make_service(store, documents)
    root = await service.create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)
    await service.cancel_leave(ACTOR, root.id)

    with pytest.raises(ValidationError):
        await service.attach_document(ACTOR, root.id, "surat.pdf", b"%PDF", "application/pdf")
    assert documents.uploaded == {}


async def test_delete_only_the_leaf(store, documents, student):
    root = await make_service(store, documents).create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)
    service = make_service(store, documents, today=date(2024, 8, 20))
    extension = await service.extend_leave(ACTOR, root.id)

    with pytest.raises(ValidationError):
        await service.delete_leave(ACTOR, root.id)

    outcome = await service.delete_leave(ACTOR, extension.id)
    assert outcome.leave is None
    assert list(store.records) == [root.id]


async def test_sweep_is_idempotent(store, documents, student):
    await make_service(store, documents, today=date(2024, 8, 15)).create_leave(
        ACTOR, student.id, LeaveType.SICK, date(2024, 8, 15), duration_days=2
    )
    service = make_service(store, documents)

    assert await service.auto_complete_expired() == 1
    snapshot = {r.id: (r.status, r.end_date) for r in store.records.values()}
    assert await service.auto_complete_expired() == 0
    assert {r.id: (r.status, r.end_date) for r in store.records.values()} == snapshot
    assert list(snapshot.values()) == [("completed", date(2024, 8, 16))]


async def test_overview_flags(store, documents, student):
    service = make_service(store, documents)
    root = await service.create_leave(ACTOR, student.id, LeaveType.SICK, TODAY, duration_days=2)

    overview = await make_service(store, documents, today=date(2024, 8, 21)).overview(student.id)

    assert overview.active_chain.root.id == root.id
    assert overview.extendable_chain is overview.active_chain
    assert overview.can_complete is True
    assert overview.can_cancel is True


async def test_period_stats_and_history(store, documents, student):
    service = make_service(store, documents)
    root = await service.create_leave(ACTOR, student.id, LeaveType.SICK, TODAY, duration_days=3)
    period = SimpleNamespace(start_date=date(2024, 7, 15), end_date=date(2024, 12, 20))

    stats = await service.period_stats(student.id, period)
    assert (stats.total.count, stats.total.total_days) == (1, 3)

    items, history = await service.history(student.id, status=LeaveStatus.ACTIVE)
    assert [r.id for r in items] == [root.id]
    assert history.sick == 1


async def test_notice_kinds(store, documents, student):
    filed = datetime(2024, 8, 20, 0, 30, tzinfo=timezone.utc)  # 07:30 in Jakarta
    late = LeaveRequest(
        id=uuid4(),
        student_id=student.id,
        leave_type="permission",
        start_date=date(2024, 8, 19),
        end_date=date(2024, 8, 19),
        status="completed",
        created_by_user_id=ACTOR,
        created_at=filed,
    )
    extension = LeaveRequest(
        id=uuid4(),
        student_id=student.id,
        leave_type="permission",
        start_date=date(2024, 8, 21),
        end_date=date(2024, 8, 21),
        status="active",
        parent_leave_id=late.id,
        created_by_user_id=ACTOR,
        created_at=filed,
    )
    await store.insert(late)
    await store.insert(extension)
    service = make_service(store, documents)

    late_notice = await service.notice(late.id)
    assert late_notice.kind is NoticeKind.LATE
    assert "Mohon maaf atas keterlambatan" in late_notice.message
    assert late_notice.share_url.startswith("https://wa.me/?text=")

    ext_notice = await service.notice(extension.id)
    assert ext_notice.kind is NoticeKind.EXTENSION
    assert "memperpanjang izin ananda Muhammad Rizky" in ext_notice.message


async def test_old_chain_cannot_be_extended_alongside_a_newer_leave(store, documents, student):
    first = await make_service(store, documents, today=date(2024, 8, 19)).create_leave(
        ACTOR, student.id, LeaveType.SICK, date(2024, 8, 19)
    )
    service = make_service(store, documents)
    second = await service.create_leave(ACTOR, student.id, LeaveType.PERMISSION, TODAY)

    with pytest.raises(ConflictError):
        await service.extend_leave(ACTOR, first.id)

    assert len(store.records) == 2
    assert [r.id for r in store.records.values() if r.status == "active"] == [second.id]
    period = SimpleNamespace(start_date=date(2024, 7, 15), end_date=date(2024, 12, 20))
    stats = await service.period_stats(student.id, period)
    assert (stats.total.count, stats.total.total_days) == (2, 2)


async def test_cancelling_an_extension_keeps_its_parent_closed(store, documents, student):
    root = await make_service(store, documents).create_leave(
        ACTOR, student.id, LeaveType.SICK, TODAY, duration_days=2
    )
    service = make_service(store, documents, today=date(2024, 8, 21))
    extension = await service.extend_leave(ACTOR, root.id)

    outcome = await service.cancel_leave(ACTOR, extension.id)

    assert outcome.leave.status == "cancelled"
    assert root.status == "completed"
    overview = await service.overview(student.id)
    assert overview.active_chain is None
    assert overview.chains.chains[0].leaf.id == extension.id


async def test_deleting_an_extension_reopens_its_parent(store, documents, student):
    root = await make_service(store, documents).create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)
    service = make_service(store, documents)
    extension = await service.extend_leave(ACTOR, root.id)
    assert root.status == "completed"

    await service.delete_leave(ACTOR, extension.id)

    assert list(store.records) == [root.id]
    assert root.status == "active"
    assert (await service.overview(student.id)).can_cancel is True


async def test_deleting_an_extension_leaves_an_ended_parent_completed(store, documents, student):
    root = await make_service(store, documents).create_leave(ACTOR, student.id, LeaveType.SICK, TODAY)
    service = make_service(store, documents, today=date(2024, 8, 21))
    extension = await service.extend_leave(ACTOR, root.id)

    await service.delete_leave(ACTOR, extension.id)

    assert list(store.records) == [root.id]
    assert root.status == "completed"
    assert all(r.status != "active" for r in store.records.values())


async def test_sweep_continues_past_a_failing_update(store, documents, student, monkeypatch, caplog):
    broken = await store.insert(LeaveRequest(
        student_id=student.id, leave_type="sick", start_date=date(2024, 8, 12),
        end_date=date(2024, 8, 12), status="active", created_by_user_id=ACTOR,
    ))
    healthy = await store.insert(LeaveRequest(
        student_id=student.id, leave_type="sick", start_date=date(2024, 8, 15),
        end_date=date(2024, 8, 16), status="active", created_by_user_id=ACTOR,
    ))
    update = store.update

    async def flaky_update(leave_id, patch):
        if leave_id == broken.id:
            raise RuntimeError("connection reset")
        return await update(leave_id, patch)

    monkeypatch.setattr(store, "update", flaky_update)

    assert await make_service(store, documents).auto_complete_expired() == 1
    assert (broken.status, healthy.status) == ("active", "completed")
    assert f"Failed to auto-complete expired leave {broken.id}" in caplog.text
