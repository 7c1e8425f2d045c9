from leave_tracker.services.leave.chains import (
    Chain,
    ChainBuildResult,
    IntegrityAnomaly,
    aggregate_for_period,
    build_chains,
    summarize,
)
from leave_tracker.services.leave.service import LeaveOutcome, LeaveService
from leave_tracker.services.leave.store import LeaveStoreBase, SqlLeaveStore

__all__ = [
    "Chain",
    "ChainBuildResult",
    "IntegrityAnomaly",
    "aggregate_for_period",
    "build_chains",
    "summarize",
    "LeaveOutcome",
    "LeaveService",
    "LeaveStoreBase",
    "SqlLeaveStore",
]
