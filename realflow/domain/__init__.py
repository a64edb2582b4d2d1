"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    DURATION_UNAVAILABLE,
    PLACEHOLDER,
    IssueKind,
    JobRecord,
    JobStatus,
    RawRecord,
    ReconciliationIssue,
    ReconciliationResult,
)
from .duration import compute_duration
from .reconciler import JobReconciler, UnmatchedPolicy

__all__ = [
    "DURATION_UNAVAILABLE",
    "PLACEHOLDER",
    "IssueKind",
    "JobRecord",
    "JobStatus",
    "RawRecord",
    "ReconciliationIssue",
    "ReconciliationResult",
    "compute_duration",
    "JobReconciler",
    "UnmatchedPolicy",
]
