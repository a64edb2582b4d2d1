"""
Tests for the SQL repository, run against an in-memory SQLite database.
"""

from urllib.parse import unquote_plus

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from realflow.adapters.sqlserver_client import SqlServerRealflowRepository, build_sqlalchemy_url
from realflow.config import DatabaseConfig
from realflow.domain.exceptions import RepositoryError
from realflow.domain.models import COLUMNS, PLACEHOLDER


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    columns = ", ".join(f"[{column}]" for column in COLUMNS.values())
    with engine.begin() as conn:
        conn.execute(text(f"CREATE TABLE [realflow5m] ([COMID] INTEGER, {columns})"))
        insert = text(
            "INSERT INTO [realflow5m] ([COMID], [序号], [开始时间], [结束时间], [航次], [船名]) "
            "VALUES (:comid, :seq, :start, :end, :voyage, :vessel)"
        )
        conn.execute(insert, [
            {"comid": 98, "seq": 1, "start": "2024-11-25 08:00:00", "end": PLACEHOLDER,
             "voyage": "V1", "vessel": "Ship A"},
            {"comid": 98, "seq": 2, "start": PLACEHOLDER, "end": "2024-11-25 09:00:00",
             "voyage": "V1", "vessel": "Ship A"},
            {"comid": 97, "seq": 3, "start": "2024-11-25 08:00:00", "end": PLACEHOLDER,
             "voyage": "V9", "vessel": "Other"},
        ])
    yield engine
    engine.dispose()


@pytest.fixture
def repository(engine):
    return SqlServerRealflowRepository(engine, comid=98, table="[realflow5m]")


class TestSqlServerRealflowRepository:
    """Tests for SqlServerRealflowRepository."""

    def test_fetch_records_descending_by_default(self, repository):
        rows = repository.fetch_records()

        assert [row["序号"] for row in rows] == [2, 1]
        assert set(rows[0]) == set(COLUMNS.values())

    def test_fetch_records_ascending(self, repository):
        rows = repository.fetch_records(ascending=True)

        assert [row["序号"] for row in rows] == [1, 2]
        assert rows[0]["船名"] == "Ship A"

    def test_fetch_record_filters_by_feed(self, repository):
        assert repository.fetch_record(2)["结束时间"] == "2024-11-25 09:00:00"
        # Exists, but belongs to another COMID
        assert repository.fetch_record(3) is None
        assert repository.fetch_record(42) is None

    def test_ping(self, repository):
        assert repository.ping() is True

    def test_query_failure_raises_repository_error(self, engine):
        repository = SqlServerRealflowRepository(engine, table="[missing_table]")

        with pytest.raises(RepositoryError, match="Failed to query realflow records"):
            repository.fetch_records()

        with pytest.raises(RepositoryError):
            repository.fetch_record(1)


class TestBuildUrl:
    """Tests for build_sqlalchemy_url."""

    def test_odbc_connect_string(self):
        config = DatabaseConfig(
            server="db.local",
            port=1433,
            database="realflow",
            user="sa",
            password="p@ss;word",
            encrypt=True,
            trust_server_certificate=False,
        )

        url = build_sqlalchemy_url(config)

        assert url.startswith("mssql+pyodbc:///?odbc_connect=")
        odbc = unquote_plus(url.split("=", 1)[1])
        assert "DRIVER={ODBC Driver 17 for SQL Server};" in odbc
        assert "SERVER=db.local,1433;" in odbc
        assert "PWD={p@ss;word};" in odbc
        assert "Encrypt=yes;" in odbc
        assert "TrustServerCertificate=no;" in odbc
