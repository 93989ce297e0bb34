# app/services/executor.py
"""
Runs report queries against the store.

- `fetch_all()` executes one statement on its own pooled session and returns
  plain dict rows. SELECT statements read through the QueryCache.
- `fetch_page()` fans out the count and data statements concurrently and
  returns (total, rows) once both have finished.

Any SQLAlchemy failure (rejected SQL, lost connection, pool timeout) is logged
here with full detail and re-raised as StoreError. Nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import Select
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import Executable

from app.core.errors import StoreError
from app.services.cache import CacheKey, QueryCache, Rows
from app.services.query_builder import QueryPlans

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryExecutor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: Optional[QueryCache] = None,
        dialect: Optional[Dialect] = None,
    ) -> None:
        self._session_factory = session_factory
        self.cache = cache
        self._dialect = dialect or session_factory.kw["bind"].dialect
        # Statements actually sent to the store (cache hits excluded).
        self.round_trips = 0

    def cache_key(self, stmt: Executable) -> CacheKey:
        """(SQL text as the store will see it, bound values in statement order)."""
        compiled = stmt.compile(dialect=self._dialect)
        return str(compiled), tuple(compiled.params.values())

    async def _run(self, stmt: Executable) -> Rows:
        t0 = time.perf_counter()
        self.round_trips += 1
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows: List[Dict[str, Any]] = [dict(m) for m in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.exception("Query failed: %s", e.__class__.__name__)
            raise StoreError("query failed") from e
        logger.debug("query_ms=%.2f rows=%d", (time.perf_counter() - t0) * 1000, len(rows))
        return rows

    async def fetch_all(self, stmt: Executable) -> Rows:
        """Rows for `stmt`. Only SELECTs are cached; anything else bypasses the cache."""
        if self.cache is None or not isinstance(stmt, Select):
            return await self._run(stmt)

        key = self.cache_key(stmt)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        rows = await self._run(stmt)
        self.cache.put(key, rows)
        return rows

    async def run_sync(self, fn: Callable[[Connection], T]) -> T:
        """Run a synchronous callable (e.g. schema inspection) on a pooled connection. Never cached."""
        self.round_trips += 1
        try:
            async with self._session_factory() as session:
                conn = await session.connection()
                return await conn.run_sync(fn)
        except SQLAlchemyError as e:
            logger.exception("Store call failed: %s", e.__class__.__name__)
            raise StoreError("store call failed") from e

    async def fetch_page(self, plans: QueryPlans) -> Tuple[int, Rows]:
        """Run count and data concurrently; returns (total, rows)."""
        count_rows, data_rows = await asyncio.gather(
            self.fetch_all(plans.count),
            self.fetch_all(plans.data),
        )
        total = int(count_rows[0]["total"] or 0) if count_rows else 0
        return total, data_rows
