"""
Tests for the RealflowService orchestration layer.
"""

from typing import Any, Dict, List

from realflow.domain.models import PLACEHOLDER, JobStatus
from realflow.domain.reconciler import JobReconciler, UnmatchedPolicy
from realflow.services.realflow_service import RealflowService


class StubRepository:
    """Minimal stub matching RealflowRepositoryProtocol."""

    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows
        self.calls: List[bool] = []
        self.closed = False

    def fetch_records(self, ascending: bool = False):
        self.calls.append(ascending)
        return sorted(self._rows, key=lambda r: r["序号"], reverse=not ascending)

    def fetch_record(self, sequence: int):
        return next((r for r in self._rows if r["序号"] == sequence), None)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True


ROWS = [
    {"序号": 2, "开始时间": PLACEHOLDER, "结束时间": "2024-11-25 09:00:00",
     "航次": "V1", "船名": "Ship A"},
    {"序号": 1, "开始时间": "2024-11-25 08:00:00", "结束时间": PLACEHOLDER,
     "航次": "V1", "船名": "Ship A"},
    {"序号": 3, "开始时间": "2024-11-25 10:00:00", "结束时间": PLACEHOLDER,
     "航次": "V2", "船名": "Ship B"},
]


def _build_service(rows=ROWS, policy=UnmatchedPolicy.DROP) -> RealflowService:
    return RealflowService(
        repository=StubRepository(rows),
        reconciler=JobReconciler(unmatched_policy=policy),
    )


def test_list_records_newest_first():
    """Raw listing should come back in descending sequence order."""
    service = _build_service()

    rows = service.list_records()

    assert [r["序号"] for r in rows] == [3, 2, 1]


def test_reconcile_fetches_oldest_first():
    """Reconciliation must see the feed in ascending order to pair correctly."""
    service = _build_service()

    result = service.reconcile_jobs()

    assert service._repository.calls == [True]
    assert result.count == 1
    assert result.jobs[0].sequence == 1
    assert result.jobs[0].status == JobStatus.COMPLETED
    assert result.records_consumed == 3


def test_policy_override_per_call():
    """A per-call policy should not change the configured default."""
    service = _build_service()

    overridden = service.reconcile_jobs(unmatched_policy=UnmatchedPolicy.INCOMPLETE)
    default = service.reconcile_jobs()

    assert [job.status for job in overridden.jobs] == [JobStatus.COMPLETED, JobStatus.INCOMPLETE]
    assert default.count == 1
    assert service.unmatched_policy is UnmatchedPolicy.DROP


def test_get_record_and_close():
    service = _build_service()

    assert service.get_record(3)["船名"] == "Ship B"
    assert service.get_record(99) is None
    assert service.is_database_connected()

    service.close()
    assert service._repository.closed
