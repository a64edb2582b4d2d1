"""
Core business logic for pairing raw feed records into job records.

This is the heart of the application - pure domain logic without any
external dependencies (no database, no HTTP, no I/O besides logging).
"""

import logging
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Tuple

from .duration import compute_duration
from .exceptions import MalformedTimestampError
from .models import (
    DURATION_UNAVAILABLE,
    IssueKind,
    JobRecord,
    RawRecord,
    ReconciliationIssue,
    ReconciliationResult,
    Timestamp,
)

logger = logging.getLogger(__name__)


class UnmatchedPolicy(str, Enum):
    """What to do with openers still pending when the feed runs out."""
    DROP = "drop"
    INCOMPLETE = "incomplete"


class JobReconciler:
    """
    Reconciles an ordered feed of raw records into job records.

    Algorithm (per record, ascending by sequence number):
    1. Real start, placeholder end: an opener, queued under (voyage, vessel)
    2. Placeholder start, real end: a closer, paired with the oldest queued
       opener of the same key; dropped when there is none
    3. Real start, real end: self-contained, emitted as-is
    4. Placeholder start, placeholder end: anomalous, dropped
    5. Openers left at the end are dropped or emitted as incomplete

    Jobs are emitted in the order their closing record is seen.
    """

    def __init__(
        self,
        unmatched_policy: UnmatchedPolicy = UnmatchedPolicy.DROP,
        timezone: str = "Asia/Shanghai"
    ):
        self.unmatched_policy = UnmatchedPolicy(unmatched_policy)
        self.timezone = timezone

    def reconcile(self, records: Iterable[RawRecord]) -> ReconciliationResult:
        """
        Run one reconciliation pass.

        Args:
            records: Raw records in ascending sequence order

        Returns:
            ReconciliationResult with the emitted jobs, the recoverable
            issues signalled along the way and the number of records consumed
        """
        result = ReconciliationResult()
        # key -> FIFO of (arrival index, opener)
        pending: Dict[Tuple[Any, Any], Deque[Tuple[int, RawRecord]]] = {}

        for index, record in enumerate(records):
            result.records_consumed += 1

            if record.has_start and not record.has_end:
                pending.setdefault(record.job_key, deque()).append((index, record))

            elif record.has_end and not record.has_start:
                self._close(record, pending, result)

            elif record.has_start and record.has_end:
                duration = self._duration(record.start_time, record.end_time, record.sequence, result)
                result.jobs.append(JobRecord.standalone(record, duration))

            else:
                self._signal(
                    result,
                    IssueKind.ANOMALOUS_RECORD,
                    record.sequence,
                    "start and end time are both placeholders; record dropped"
                )

        self._flush_pending(pending, result)

        return result

    def _close(
        self,
        closer: RawRecord,
        pending: Dict[Tuple[Any, Any], Deque[Tuple[int, RawRecord]]],
        result: ReconciliationResult
    ) -> None:
        """Pair a closing record with the oldest open job of the same key."""
        queue = pending.get(closer.job_key)

        if not queue:
            self._signal(
                result,
                IssueKind.ORPHANED_CLOSER,
                closer.sequence,
                f"no open job for voyage={closer.voyage!r} vessel={closer.vessel_name!r}; record dropped"
            )
            return

        _, opener = queue.popleft()
        if not queue:
            del pending[closer.job_key]

        duration = self._duration(opener.start_time, closer.end_time, opener.sequence, result)
        result.jobs.append(JobRecord.paired(opener, closer, duration))

    def _flush_pending(
        self,
        pending: Dict[Tuple[Any, Any], Deque[Tuple[int, RawRecord]]],
        result: ReconciliationResult
    ) -> None:
        """Apply the unmatched policy to openers that never closed."""
        leftovers = sorted(
            (entry for queue in pending.values() for entry in queue),
            key=lambda entry: entry[0]
        )

        for _, opener in leftovers:
            if self.unmatched_policy is UnmatchedPolicy.INCOMPLETE:
                result.jobs.append(JobRecord.unfinished(opener))
                action = "emitted as incomplete"
            else:
                action = "dropped"

            self._signal(
                result,
                IssueKind.UNMATCHED_OPENER,
                opener.sequence,
                f"job never closed; {action}"
            )

    def _duration(
        self,
        start: Timestamp,
        end: Timestamp,
        sequence: int,
        result: ReconciliationResult
    ) -> str:
        try:
            return compute_duration(start, end, self.timezone)
        except MalformedTimestampError as exc:
            self._signal(result, IssueKind.MALFORMED_TIMESTAMP, sequence, str(exc))
            return DURATION_UNAVAILABLE

    @staticmethod
    def _signal(
        result: ReconciliationResult,
        kind: IssueKind,
        sequence: int | None,
        message: str
    ) -> None:
        issue = ReconciliationIssue(kind=kind, sequence=sequence, message=message)
        result.issues.append(issue)
        logger.warning("Reconciliation issue %s", issue)
