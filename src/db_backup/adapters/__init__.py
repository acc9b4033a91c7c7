"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the async PostgreSQL read
adapter used to collect snapshots.

Usage:
    from db_backup.adapters import DatabaseClient, AsyncPostgresAdapter
"""

from db_backup.adapters.base import DatabaseClient
from db_backup.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "AsyncPostgresAdapter",
]
