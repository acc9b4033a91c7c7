"""Snapshot collection across every registered table.

Reads each table through the ``DatabaseClient`` protocol, one task per
table with bounded parallelism, and assembles the results in registry
order (parents before children) regardless of which read finished
first.  The first failed read cancels the remaining reads; a partial
snapshot is never returned.

Usage:
    from db_backup.backup.collector import SnapshotCollector
    from db_backup.backup.sanitize import Sanitizer
    from db_backup.backup.tables import DEFAULT_REGISTRY

    collector = SnapshotCollector(adapter, DEFAULT_REGISTRY, Sanitizer())
    data = await collector.collect(sanitize=True)
"""

import asyncio
import time

from loguru import logger

from db_backup.adapters.base import DatabaseClient
from db_backup.backup.models import Record
from db_backup.backup.registry import TableRegistry
from db_backup.backup.sanitize import Sanitizer
from db_backup.errors import DataRetrievalError


class SnapshotCollector:
    """Collect all registered tables into one ordered data block.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        registry: Tables to read, in dependency order.
        sanitizer: Applied per table when ``collect(sanitize=True)``.
        max_concurrency: Upper bound on simultaneous table reads.
    """

    def __init__(
        self,
        adapter: DatabaseClient | None,
        registry: TableRegistry,
        sanitizer: Sanitizer | None = None,
        max_concurrency: int = 8,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.adapter = adapter
        self.registry = registry
        self.sanitizer = sanitizer or Sanitizer()
        self.max_concurrency = max_concurrency

    async def _read_table(self, table: str, semaphore: asyncio.Semaphore) -> list[Record]:
        async with semaphore:
            try:
                rows = await self.adapter.select(table, "*")
            except Exception as e:
                raise DataRetrievalError(
                    f"Failed to read table '{table}': {type(e).__name__}",
                    table=table,
                ) from e
        return list(rows)

    async def collect(self, sanitize: bool = True) -> dict[str, list[Record]]:
        """Read every registered table.

        Args:
            sanitize: Pass each table through the sanitizer.

        Returns:
            Dict of table name -> records, in registry order.

        Raises:
            DataRetrievalError: If any table read fails.  ``table`` names
                the first table that failed.
        """
        start = time.monotonic()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        names = self.registry.names()

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = {
                    name: tg.create_task(self._read_table(name, semaphore))
                    for name in names
                }
        except ExceptionGroup as eg:
            first = eg.exceptions[0]
            logger.bind(
                operation="collect",
                table=getattr(first, "table", None),
                duration_ms=int((time.monotonic() - start) * 1000),
            ).error(f"Snapshot collection aborted: {first}")
            raise first

        data: dict[str, list[Record]] = {}
        for name in names:
            rows = tasks[name].result()
            data[name] = self.sanitizer.apply(name, rows) if sanitize else rows

        logger.bind(
            operation="collect",
            table_count=len(data),
            total_records=sum(len(r) for r in data.values()),
            duration_ms=int((time.monotonic() - start) * 1000),
        ).info("Snapshot collected")
        return data
