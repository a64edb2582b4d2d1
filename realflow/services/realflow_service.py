"""
Application services for reading the realflow feed.

The service coordinates fetching raw rows via a repository adapter and
delegates the pairing of rows into jobs to the domain-level
``JobReconciler``. This keeps the HTTP and CLI layers thin and lets tests
swap the SQL Server repository for the JSON-backed one via a simple protocol.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

from ..domain.models import RawRecord, ReconciliationResult
from ..domain.reconciler import JobReconciler, UnmatchedPolicy

logger = logging.getLogger(__name__)


class RealflowRepositoryProtocol(Protocol):
    """Protocol describing the repository behaviour needed by the service."""

    def fetch_records(self, ascending: bool = False) -> List[Dict[str, Any]]:
        """Return every feed row ordered by sequence number."""

    def fetch_record(self, sequence: int) -> Dict[str, Any] | None:
        """Return one feed row, or None."""

    def ping(self) -> bool:
        """Return True when the backing store is reachable."""

    def close(self) -> None:
        """Release the underlying resources."""


class RealflowService:
    """
    Orchestrates raw-row retrieval and job reconciliation.
    """

    def __init__(
        self,
        repository: RealflowRepositoryProtocol,
        reconciler: JobReconciler,
    ) -> None:
        self._repository = repository
        self._reconciler = reconciler

    @property
    def unmatched_policy(self) -> UnmatchedPolicy:
        return self._reconciler.unmatched_policy

    def list_records(self) -> List[Dict[str, Any]]:
        """Return the raw feed, newest first."""
        rows = self._repository.fetch_records(ascending=False)
        logger.info("Fetched %d raw records", len(rows))
        return rows

    def get_record(self, sequence: int) -> Dict[str, Any] | None:
        """Return a single raw row by sequence number."""
        return self._repository.fetch_record(sequence)

    def reconcile_jobs(
        self,
        *,
        unmatched_policy: UnmatchedPolicy | None = None,
    ) -> ReconciliationResult:
        """
        Fetch the feed oldest-first and pair its rows into jobs.

        Args:
            unmatched_policy: Override the configured policy for this call
        """
        rows = self._repository.fetch_records(ascending=True)
        records = [RawRecord.from_row(row) for row in rows]

        reconciler = self._reconciler
        if unmatched_policy is not None and unmatched_policy != reconciler.unmatched_policy:
            reconciler = JobReconciler(
                unmatched_policy=unmatched_policy,
                timezone=reconciler.timezone,
            )

        result = reconciler.reconcile(records)
        logger.info(
            "Reconciled %d raw records into %d jobs (%d issues)",
            result.records_consumed,
            result.count,
            len(result.issues),
        )
        return result

    def is_database_connected(self) -> bool:
        return self._repository.ping()

    def close(self) -> None:
        """Release the repository."""
        self._repository.close()
