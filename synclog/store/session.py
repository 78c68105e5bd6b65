from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import text
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction
from sqlalchemy.sql import TextClause


class AsyncDbSession:
    """
    One connection and one transaction from an AsyncEngine, for the span of
    an ``async with`` block: committed when the block completes, rolled back
    when it raises. A session cannot be re-entered while open.

        async with AsyncDbSession(engine) as session:
            await session.execute("UPDATE ...", {...})
            rows = await session.fetch_all("SELECT ...")
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._conn: AsyncConnection | None = None
        self._tx: AsyncTransaction | None = None

    async def __aenter__(self) -> "AsyncDbSession":
        if self._conn is not None:
            raise RuntimeError("AsyncDbSession is already active; nested sessions are not allowed")
        self._conn = await self.engine.connect()
        self._tx = await self._conn.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        conn, tx = self._conn, self._tx
        self._conn = self._tx = None
        try:
            if tx is not None:
                await (tx.rollback() if exc_type else tx.commit())
        finally:
            if conn is not None:
                await conn.close()
        return False

    async def _run(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None,
    ) -> CursorResult:
        if self._conn is None:
            raise RuntimeError("AsyncDbSession is not active; use within an async context manager")
        stmt = text(sql) if isinstance(sql, str) else sql
        return await self._conn.execute(stmt, params or {})

    async def execute(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Run a non-SELECT statement; returns the affected row count."""
        result = await self._run(sql, params)
        if result.rowcount is None:
            raise RuntimeError(f"No rowcount reported for statement: {result!r}")
        return int(result.rowcount)

    async def fetch_one(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Run a SELECT matching at most one row; more than one raises."""
        row = (await self._run(sql, params)).mappings().one_or_none()
        return dict(row) if row is not None else None

    async def fetch_all(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        return [dict(row) for row in (await self._run(sql, params)).mappings()]
