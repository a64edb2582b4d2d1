"""
Tests for domain models.
"""

from datetime import datetime

import pytest

from realflow.domain.models import (
    PLACEHOLDER,
    JobRecord,
    JobStatus,
    RawRecord,
    is_placeholder,
)


def _row(**overrides):
    row = {
        "序号": 1001,
        "开始时间": "2024-11-25 08:00:00",
        "结束时间": PLACEHOLDER,
        "存盘时间": "2024-11-25 08:05:00",
        "航次": "V2411A",
        "船名": "海洋之星",
        "呼号": "BQKA",
        "油品名": "0#柴油",
        "温度": 18.6,
        "密度": 836.2,
        "瞬时流量": 412.5,
        "瞬时质量": 344.9,
        "累计流量": 0.0,
        "累计质量": 0.0,
    }
    row.update(overrides)
    return row


class TestPlaceholder:
    """Tests for the placeholder rule."""

    @pytest.mark.parametrize("value", [None, "", "   ", PLACEHOLDER, f" {PLACEHOLDER} "])
    def test_placeholders(self, value):
        assert is_placeholder(value)

    @pytest.mark.parametrize("value", [
        "2024-11-25 08:00:00",
        datetime(2024, 11, 25, 8, 0),
        "-----",  # not the fixed-width sentinel
        "garbage",
    ])
    def test_real_values(self, value):
        assert not is_placeholder(value)


class TestRawRecord:
    """Tests for RawRecord."""

    def test_from_row_maps_columns(self):
        """Test building a record from a database row."""
        record = RawRecord.from_row(_row())

        assert record.sequence == 1001
        assert record.start_time == "2024-11-25 08:00:00"
        assert record.end_time == PLACEHOLDER
        assert record.voyage == "V2411A"
        assert record.vessel_name == "海洋之星"
        assert record.density == 836.2
        assert record.has_start
        assert not record.has_end

    def test_from_row_missing_columns(self):
        """Test that absent columns become None (and count as placeholders)."""
        record = RawRecord.from_row({"序号": 5})

        assert record.sequence == 5
        assert record.start_time is None
        assert not record.has_start
        assert not record.has_end

    def test_to_dict_round_trips_column_names(self):
        row = _row()

        assert RawRecord.from_row(row).to_dict() == row

    def test_job_key(self):
        record = RawRecord(sequence=1, voyage=" V1 ", vessel_name="Ship A")

        assert record.job_key == ("V1", "Ship A")


class TestJobRecord:
    """Tests for JobRecord."""

    def test_paired_takes_measurements_from_closer(self):
        opener = RawRecord.from_row(_row())
        closer = RawRecord.from_row(_row(**{
            "序号": 1003,
            "开始时间": PLACEHOLDER,
            "结束时间": "2024-11-25 10:15:30",
            "存盘时间": "2024-11-25 10:20:00",
            "温度": 19.1,
            "累计质量": 1273.3,
        }))

        job = JobRecord.paired(opener, closer, "02:15:30")

        assert job.sequence == 1001
        assert job.start_time == "2024-11-25 08:00:00"
        assert job.end_time == "2024-11-25 10:15:30"
        assert job.save_time == "2024-11-25 10:20:00"
        assert job.temperature == 19.1
        assert job.cumulative_mass == 1273.3
        assert job.status == JobStatus.COMPLETED

    def test_unfinished_has_no_end(self):
        job = JobRecord.unfinished(RawRecord.from_row(_row()))

        assert job.status == JobStatus.INCOMPLETE
        assert job.end_time is None
        assert job.duration is None
        assert job.save_time == "2024-11-25 08:05:00"

    def test_to_dict_uses_source_column_names(self):
        """Test serialization mirrors raw field names plus status and duration."""
        job = JobRecord.standalone(
            RawRecord.from_row(_row(**{"结束时间": "2024-11-25 09:00:00"})),
            "01:00:00"
        )

        data = job.to_dict()

        assert data["序号"] == 1001
        assert data["开始时间"] == "2024-11-25 08:00:00"
        assert data["结束时间"] == "2024-11-25 09:00:00"
        assert data["船名"] == "海洋之星"
        assert data["status"] == "complete"
        assert data["duration"] == "01:00:00"
        assert set(data) == set(_row()) | {"status", "duration"}
