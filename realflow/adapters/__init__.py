"""
Adapters layer - External integrations (SQL Server feed storage).
"""

from .sqlserver_client import SqlServerRealflowRepository, build_engine, build_sqlalchemy_url
from .mock_realflow_client import MockRealflowRepository

__all__ = [
    "SqlServerRealflowRepository",
    "MockRealflowRepository",
    "build_engine",
    "build_sqlalchemy_url",
]
