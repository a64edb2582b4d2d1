"""
Mock realflow repository for running without a SQL Server instance.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from ..domain.models import COLUMNS

SEQUENCE_COLUMN = COLUMNS["sequence"]


class MockRealflowRepository:
    """
    Repository that serves rows from a JSON file instead of SQL Server.

    Rows are loaded from mock_realflow_data.json by default. Each row may
    carry a ``COMID`` key; rows of other feeds are filtered out just like
    the real query does.
    """

    def __init__(self, data_file: Path | None = None, comid: int = 98):
        """
        Initialize the mock repository.

        Args:
            data_file: Optional JSON file with a list of rows
            comid: Feed identifier used to filter rows
        """
        self.data_file = data_file or Path(__file__).parent / "mock_realflow_data.json"
        self.comid = comid
        self.closed = False
        self._load_rows()

    def _load_rows(self) -> None:
        """Load mock rows from the JSON file."""
        if self.data_file.exists():
            with open(self.data_file, "r", encoding="utf-8") as f:
                self.rows: List[Dict[str, Any]] = json.load(f)
        else:
            self.rows = []

    def _feed_rows(self) -> List[Dict[str, Any]]:
        return [
            {column: row.get(column) for column in COLUMNS.values()}
            for row in self.rows
            if row.get("COMID", self.comid) == self.comid
        ]

    def fetch_records(self, ascending: bool = False) -> List[Dict[str, Any]]:
        """Return the feed rows ordered by sequence number."""
        return sorted(
            self._feed_rows(),
            key=lambda row: row[SEQUENCE_COLUMN],
            reverse=not ascending
        )

    def fetch_record(self, sequence: int) -> Dict[str, Any] | None:
        """Return a single row by sequence number, or None."""
        for row in self._feed_rows():
            if row[SEQUENCE_COLUMN] == sequence:
                return row
        return None

    def ping(self) -> bool:
        return not self.closed

    def close(self) -> None:
        """Mark the repository closed (nothing to release)."""
        self.closed = True
