"""Leave chain engine.

Groups a student's leave records into chains (a root notice plus its
extensions linked through ``parent_leave_id``) and derives chain summaries
and period-scoped attendance totals.

Everything here is a pure function over an explicit snapshot of records.
Records are duck-typed: ORM ``LeaveRequest`` rows and plain objects with the
same attributes both work.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from leave_tracker.models.leave_request import LeaveStatus, LeaveType

logger = logging.getLogger(__name__)

ORPHANED_EXTENSION = "orphaned_extension"
DUPLICATE_CHILD = "duplicate_child"
DETACHED = "detached"


def inclusive_days(start: date, end: date) -> int:
    """Number of calendar days in [start, end]."""
    return (end - start).days + 1


@dataclass(frozen=True)
class DateRange:
    start_date: date
    end_date: date

    def __contains__(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass
class Chain:
    """A root leave record followed by its extensions, oldest first."""

    nodes: list[Any]

    @property
    def root(self) -> Any:
        return self.nodes[0]

    @property
    def leaf(self) -> Any:
        return self.nodes[-1]

    @property
    def leave_type(self) -> LeaveType:
        return LeaveType(self.root.leave_type)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, record: Any) -> bool:
        return any(node.id == record.id for node in self.nodes)

    def child_of(self, record: Any) -> Optional[Any]:
        for current, following in zip(self.nodes, self.nodes[1:]):
            if current.id == record.id:
                return following
        return None


@dataclass(frozen=True)
class IntegrityAnomaly:
    kind: str  # orphaned_extension, duplicate_child, detached
    leave_id: Any
    parent_leave_id: Any
    detail: str


@dataclass
class ChainBuildResult:
    chains: list[Chain] = field(default_factory=list)
    anomalies: list[IntegrityAnomaly] = field(default_factory=list)

    def chain_for(self, record_id: Any) -> Optional[Chain]:
        for chain in self.chains:
            if any(node.id == record_id for node in chain.nodes):
                return chain
        return None


@dataclass(frozen=True)
class ChainSummary:
    root_id: Any
    leaf_id: Any
    leave_type: LeaveType
    final_status: LeaveStatus
    total_duration_days: int
    combined_range: DateRange
    is_extended: bool
    segment_count: int


@dataclass(frozen=True)
class TypeStats:
    count: int = 0
    total_days: int = 0

    def __add__(self, other: TypeStats) -> TypeStats:
        return TypeStats(self.count + other.count, self.total_days + other.total_days)


@dataclass(frozen=True)
class PeriodStats:
    by_type: dict[LeaveType, TypeStats]
    total: TypeStats


@dataclass(frozen=True)
class HistoryStats:
    total: int
    active: int
    completed: int
    cancelled: int
    sick: int
    permission: int


def _child_order_key(record: Any) -> tuple[float, str]:
    created_at = getattr(record, "created_at", None)
    return (created_at.timestamp() if created_at else float("inf"), str(record.id))


def build_chains(records: Iterable[Any]) -> ChainBuildResult:
    """Partition one student's leave records into chains.

    Builds an id index and a parent -> children index once, then walks each
    root forward through the index. Records that cannot be placed on a chain
    are reported as anomalies and logged, never silently dropped.
    """
    records = list(records)
    by_id = {record.id: record for record in records}
    children: dict[Any, list[Any]] = defaultdict(list)
    roots: list[Any] = []
    anomalies: list[IntegrityAnomaly] = []

    for record in records:
        parent_id = record.parent_leave_id
        if parent_id is None:
            roots.append(record)
        elif parent_id in by_id:
            children[parent_id].append(record)
        else:
            anomalies.append(IntegrityAnomaly(
                kind=ORPHANED_EXTENSION,
                leave_id=record.id,
                parent_leave_id=parent_id,
                detail=f"Extension {record.id} references missing leave {parent_id}",
            ))

    chains: list[Chain] = []
    placed: set[Any] = set()
    for root in roots:
        nodes = [root]
        placed.add(root.id)
        current = root
        while children.get(current.id):
            kids = sorted(children[current.id], key=_child_order_key)
            for extra in kids[1:]:
                anomalies.append(IntegrityAnomaly(
                    kind=DUPLICATE_CHILD,
                    leave_id=extra.id,
                    parent_leave_id=current.id,
                    detail=(
                        f"Leave {current.id} has more than one extension; "
                        f"kept {kids[0].id}, skipped {extra.id}"
                    ),
                ))
            nxt = kids[0]
            if nxt.id in placed:
                break
            nodes.append(nxt)
            placed.add(nxt.id)
            current = nxt
        chains.append(Chain(nodes=nodes))

    flagged = {anomaly.leave_id for anomaly in anomalies}
    for record in records:
        if record.id not in placed and record.id not in flagged:
            anomalies.append(IntegrityAnomaly(
                kind=DETACHED,
                leave_id=record.id,
                parent_leave_id=record.parent_leave_id,
                detail=f"Leave {record.id} is not reachable from any root leave",
            ))

    for anomaly in anomalies:
        logger.warning("Leave chain anomaly (%s): %s", anomaly.kind, anomaly.detail)

    chains.sort(key=lambda c: (c.root.start_date, str(c.root.id)), reverse=True)
    return ChainBuildResult(chains=chains, anomalies=anomalies)


def summarize(chain: Chain) -> ChainSummary:
    root, leaf = chain.root, chain.leaf
    return ChainSummary(
        root_id=root.id,
        leaf_id=leaf.id,
        leave_type=chain.leave_type,
        final_status=LeaveStatus(leaf.status),
        total_duration_days=inclusive_days(root.start_date, leaf.end_date),
        combined_range=DateRange(root.start_date, leaf.end_date),
        is_extended=len(chain) > 1,
        segment_count=len(chain),
    )


def aggregate_for_period(
    chains: Sequence[Chain],
    period: Any,
    type_filter: Optional[LeaveType] = None,
) -> PeriodStats:
    """Count chains and absence days per leave type inside an academic period.

    A chain counts once when at least one of its non-cancelled segments
    starts inside the period; its days are the inclusive spans of those
    segments. Cancelled segments never count.
    """
    window = DateRange(period.start_date, period.end_date)
    by_type = {leave_type: TypeStats() for leave_type in LeaveType}

    for chain in chains:
        leave_type = chain.leave_type
        if type_filter is not None and leave_type != type_filter:
            continue
        segments = [
            node for node in chain.nodes
            if node.status != LeaveStatus.CANCELLED and node.start_date in window
        ]
        if not segments:
            continue
        days = sum(inclusive_days(node.start_date, node.end_date) for node in segments)
        by_type[leave_type] = by_type[leave_type] + TypeStats(1, days)

    total = TypeStats()
    for stats in by_type.values():
        total = total + stats
    return PeriodStats(by_type=by_type, total=total)


def history_stats(records: Iterable[Any]) -> HistoryStats:
    """Record-level counters shown above a student's leave history."""
    records = list(records)
    counted = [r for r in records if r.status != LeaveStatus.CANCELLED]
    return HistoryStats(
        total=len(records),
        active=sum(1 for r in records if r.status == LeaveStatus.ACTIVE),
        completed=sum(1 for r in records if r.status == LeaveStatus.COMPLETED),
        cancelled=len(records) - len(counted),
        sick=sum(1 for r in counted if r.leave_type == LeaveType.SICK),
        permission=sum(1 for r in counted if r.leave_type == LeaveType.PERMISSION),
    )


def filter_history(
    records: Iterable[Any],
    status: Optional[LeaveStatus] = None,
    leave_type: Optional[LeaveType] = None,
    search: Optional[str] = None,
) -> list[Any]:
    term = (search or "").strip().lower()
    result = []
    for record in records:
        if status is not None and record.status != status:
            continue
        if leave_type is not None and record.leave_type != leave_type:
            continue
        if term:
            label = LeaveType(record.leave_type).label.lower()
            if term not in label and term not in (record.reason or "").lower():
                continue
        result.append(record)
    result.sort(key=_child_order_key, reverse=True)
    return result
