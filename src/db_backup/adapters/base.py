"""Data-access protocol used by the snapshot collector.

Defines the ``DatabaseClient`` Protocol that adapters must implement.
Backups only read, so the protocol is ``select`` plus ``close``.
All methods are ``async def``.

Usage:
    from db_backup.adapters.base import DatabaseClient

    async def count_users(client: DatabaseClient) -> int:
        rows = await client.select("users", "*")
        return len(rows)
"""

from typing import Protocol


class DatabaseClient(Protocol):
    """Read interface that all adapters must implement.

    Records are returned as dicts of column name to scalar value
    (None, bool, int, float, Decimal, str, datetime, date).
    """

    async def select(self, table: str, columns: str = "*") -> list[dict]:
        """Select every row of a table.

        Args:
            table: Table name.
            columns: Comma-separated column names, or ``"*"``.

        Returns:
            List of dicts, one per row.  Empty list for an empty table.

        Example:
            rows = await client.select("users")
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
