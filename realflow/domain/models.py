"""
Domain models for raw feed records and reconciled job records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple, Union

# Placeholder written by the flow computer while a timestamp is still unknown
PLACEHOLDER = "-" * 10

# Explicit duration value used when a timestamp could not be parsed
DURATION_UNAVAILABLE = "unavailable"

Timestamp = Union[datetime, str, None]

# Attribute name -> column name in dbo.realflow5m
COLUMNS: Dict[str, str] = {
    "sequence": "序号",
    "start_time": "开始时间",
    "end_time": "结束时间",
    "save_time": "存盘时间",
    "voyage": "航次",
    "vessel_name": "船名",
    "call_sign": "呼号",
    "product_name": "油品名",
    "temperature": "温度",
    "density": "密度",
    "instant_flow": "瞬时流量",
    "instant_mass": "瞬时质量",
    "cumulative_flow": "累计流量",
    "cumulative_mass": "累计质量",
}

MEASUREMENT_FIELDS = (
    "call_sign",
    "product_name",
    "temperature",
    "density",
    "instant_flow",
    "instant_mass",
    "cumulative_flow",
    "cumulative_mass",
)


def is_placeholder(value: Timestamp) -> bool:
    """Check whether a timestamp field holds "no value recorded"."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return stripped == "" or stripped == PLACEHOLDER
    return False


class JobStatus(str, Enum):
    """
    Status tag attached to a job record.

    STARTED names an opener still waiting in the pending set; it is never
    attached to an emitted job.
    """
    STARTED = "started"
    COMPLETED = "completed"
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class RawRecord:
    """
    One row of the source feed.

    Timestamps are kept exactly as the driver returned them, either as
    ``datetime`` objects or strings (possibly the placeholder).
    """
    sequence: int
    start_time: Timestamp = None
    end_time: Timestamp = None
    save_time: Timestamp = None
    voyage: Any = None
    vessel_name: Any = None
    call_sign: Any = None
    product_name: Any = None
    temperature: Any = None
    density: Any = None
    instant_flow: Any = None
    instant_mass: Any = None
    cumulative_flow: Any = None
    cumulative_mass: Any = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RawRecord":
        """Build a record from a database row keyed by column name."""
        values = {attr: row.get(column) for attr, column in COLUMNS.items()}
        return cls(**values)

    @property
    def has_start(self) -> bool:
        return not is_placeholder(self.start_time)

    @property
    def has_end(self) -> bool:
        return not is_placeholder(self.end_time)

    @property
    def job_key(self) -> Tuple[Any, Any]:
        """Identity used to pair an opener with its closer."""
        return (_normalize_key_part(self.voyage), _normalize_key_part(self.vessel_name))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the source column names."""
        return {column: getattr(self, attr) for attr, column in COLUMNS.items()}


def _normalize_key_part(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


@dataclass(frozen=True)
class JobRecord:
    """
    One resolved work interval.

    ``duration`` is an ``HH:MM:SS`` string, ``DURATION_UNAVAILABLE`` when a
    timestamp could not be parsed, or ``None`` for incomplete jobs.
    """
    sequence: int
    start_time: Timestamp
    end_time: Timestamp
    save_time: Timestamp
    voyage: Any
    vessel_name: Any
    call_sign: Any
    product_name: Any
    temperature: Any
    density: Any
    instant_flow: Any
    instant_mass: Any
    cumulative_flow: Any
    cumulative_mass: Any
    status: JobStatus
    duration: str | None

    @classmethod
    def paired(cls, opener: RawRecord, closer: RawRecord, duration: str) -> "JobRecord":
        """Combine an opener with its closer into a completed job."""
        measurements = {name: getattr(closer, name) for name in MEASUREMENT_FIELDS}
        return cls(
            sequence=opener.sequence,
            start_time=opener.start_time,
            end_time=closer.end_time,
            save_time=closer.save_time,
            voyage=closer.voyage,
            vessel_name=closer.vessel_name,
            status=JobStatus.COMPLETED,
            duration=duration,
            **measurements,
        )

    @classmethod
    def standalone(cls, record: RawRecord, duration: str) -> "JobRecord":
        """Wrap a record that carries both of its own timestamps."""
        return cls._from_record(record, status=JobStatus.COMPLETE, duration=duration)

    @classmethod
    def unfinished(cls, opener: RawRecord) -> "JobRecord":
        """Represent an opener that never saw its closer."""
        return cls._from_record(opener, status=JobStatus.INCOMPLETE, duration=None, end_time=None)

    @classmethod
    def _from_record(
        cls,
        record: RawRecord,
        status: JobStatus,
        duration: str | None,
        **overrides: Any
    ) -> "JobRecord":
        values = {attr: getattr(record, attr) for attr in COLUMNS}
        values.update(overrides)
        return cls(status=status, duration=duration, **values)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize for the HTTP layer.

        Pass-through attributes use the source column names; ``status`` and
        ``duration`` are added.
        """
        data = {column: getattr(self, attr) for attr, column in COLUMNS.items()}
        data["status"] = self.status.value
        data["duration"] = self.duration
        return data


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass."""
    jobs: List[JobRecord] = field(default_factory=list)
    issues: List["ReconciliationIssue"] = field(default_factory=list)
    records_consumed: int = 0

    @property
    def count(self) -> int:
        return len(self.jobs)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [job.to_dict() for job in self.jobs]


class IssueKind(str, Enum):
    """Recoverable conditions signalled during a pass."""
    MALFORMED_TIMESTAMP = "malformed_timestamp"
    ORPHANED_CLOSER = "orphaned_closer"
    ANOMALOUS_RECORD = "anomalous_record"
    UNMATCHED_OPENER = "unmatched_opener"


@dataclass(frozen=True)
class ReconciliationIssue:
    """A recoverable warning raised for a single record."""
    kind: IssueKind
    sequence: int | None
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] #{self.sequence}: {self.message}"
