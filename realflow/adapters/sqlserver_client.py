"""
SQL Server repository for the realflow5m feed.
"""

import logging
from typing import Any, Dict, List
from urllib.parse import quote_plus

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import DatabaseConfig
from ..domain.exceptions import RepositoryError
from ..domain.models import COLUMNS

logger = logging.getLogger(__name__)


def _odbc_value(value: str) -> str:
    """Brace-quote an ODBC attribute value when it contains separators."""
    if any(ch in value for ch in ";{}") or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def build_sqlalchemy_url(config: DatabaseConfig) -> str:
    """
    Build an ``mssql+pyodbc`` URL using the ``odbc_connect`` form.

    This copes with passwords containing special characters and driver names
    with spaces.
    """
    odbc_str = (
        f"DRIVER={{{config.driver}}};"
        f"SERVER={config.server},{config.port};"
        f"DATABASE={config.database};"
        f"UID={_odbc_value(config.user)};"
        f"PWD={_odbc_value(config.password)};"
        f"Encrypt={'yes' if config.encrypt else 'no'};"
        f"TrustServerCertificate={'yes' if config.trust_server_certificate else 'no'};"
    )

    return f"mssql+pyodbc:///?odbc_connect={quote_plus(odbc_str)}"


def build_engine(config: DatabaseConfig) -> Engine:
    """Create a pooled engine. No connection is opened until first use."""
    logger.info("Creating SQL Server engine for %s", config.connection_string())

    return create_engine(
        build_sqlalchemy_url(config),
        pool_pre_ping=True,
        pool_size=config.pool_max,
        max_overflow=0,
        pool_recycle=config.idle_timeout,
    )


class SqlServerRealflowRepository:
    """
    Reads raw rows of one feed (``COMID``) from the realflow table.

    The repository owns its engine; call ``close()`` to release the pool.
    """

    def __init__(self, engine: Engine, comid: int = 98, table: str = "[dbo].[realflow5m]"):
        """
        Initialize the repository.

        Args:
            engine: SQLAlchemy engine bound to the SQL Server database
            comid: Feed identifier used to filter rows
            table: Fully quoted table name
        """
        self.engine = engine
        self.comid = comid
        self.table = table

    @classmethod
    def from_config(cls, config: DatabaseConfig, comid: int = 98) -> "SqlServerRealflowRepository":
        return cls(build_engine(config), comid=comid, table=config.table)

    def _select(self) -> str:
        columns = ",\n    ".join(f"[{column}]" for column in COLUMNS.values())
        return f"SELECT\n    {columns}\nFROM {self.table}"

    def fetch_records(self, ascending: bool = False) -> List[Dict[str, Any]]:
        """
        Fetch every row of the feed ordered by sequence number.

        Args:
            ascending: Oldest first when True (reconciliation order),
                newest first otherwise

        Raises:
            RepositoryError: If the query fails
        """
        direction = "ASC" if ascending else "DESC"
        query = text(
            f"{self._select()}\nWHERE [COMID] = :comid\nORDER BY [{COLUMNS['sequence']}] {direction}"
        )

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query, {"comid": self.comid}).mappings().all()
        except SQLAlchemyError as exc:
            logger.exception("Fetching realflow records failed")
            raise RepositoryError(f"Failed to query realflow records: {exc}") from exc

        return [dict(row) for row in rows]

    def fetch_record(self, sequence: int) -> Dict[str, Any] | None:
        """
        Fetch a single row by sequence number.

        Returns:
            The row, or None if the feed has no such record

        Raises:
            RepositoryError: If the query fails
        """
        query = text(
            f"{self._select()}\nWHERE [{COLUMNS['sequence']}] = :sequence AND [COMID] = :comid"
        )

        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    query, {"sequence": sequence, "comid": self.comid}
                ).mappings().first()
        except SQLAlchemyError as exc:
            logger.exception("Fetching realflow record %s failed", sequence)
            raise RepositoryError(f"Failed to query realflow record {sequence}: {exc}") from exc

        return dict(row) if row is not None else None

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
        logger.info("Database connection pool closed")
