"""Daily cost ledger persisted in SQLite.

One row per (date, backend). Rows only grow: every record() adds its
token and cost deltas and bumps execution_count by one.
"""

from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path
from typing import Callable

import aiosqlite
from loguru import logger

from clawless_router.models import CostRecord

SCHEMA = """
CREATE TABLE IF NOT EXISTS cost_tracking (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  date DATE NOT NULL,
  backend TEXT NOT NULL,
  tokens_input INTEGER DEFAULT 0,
  tokens_output INTEGER DEFAULT 0,
  cost REAL DEFAULT 0,
  execution_count INTEGER DEFAULT 0,
  UNIQUE(date, backend)
);
CREATE INDEX IF NOT EXISTS idx_cost_tracking_date ON cost_tracking(date);
"""

_UPSERT = """
INSERT INTO cost_tracking (date, backend, tokens_input, tokens_output, cost, execution_count)
VALUES (?, ?, ?, ?, ?, 1)
ON CONFLICT(date, backend) DO UPDATE SET
  tokens_input = tokens_input + excluded.tokens_input,
  tokens_output = tokens_output + excluded.tokens_output,
  cost = cost + excluded.cost,
  execution_count = execution_count + 1
"""

_SELECT = (
    "SELECT date, backend, tokens_input, tokens_output, cost, execution_count FROM cost_tracking"
)


def _row_to_record(row) -> CostRecord:
    day, backend, tokens_in, tokens_out, cost, count = row
    return CostRecord(
        date=date.fromisoformat(day),
        backend=backend,
        tokens_in=tokens_in,
        tokens_out=tokens_out,
        cost_usd=cost,
        execution_count=count,
    )


class CostLedger:
    """Concurrency-safe daily usage aggregation.

    Usage:
        async with CostLedger("data/state.db") as ledger:
            await ledger.record("remote", 120, 480, 0.0076)
    """

    def __init__(self, db_path: str | Path, today: Callable[[], date] = date.today):
        self.db_path = str(db_path)
        self._today = today
        self._db: aiosqlite.Connection | None = None
        self._key_locks: dict[str, asyncio.Lock] = {}

    async def connect(self) -> None:
        if self._db is not None:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.executescript(SCHEMA)
        await self._db.commit()
        logger.debug(f"CostLedger: opened {self.db_path}")

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> CostLedger:
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("CostLedger is not connected; call connect() first")
        return self._db

    def current_date(self) -> date:
        """Date new records are filed under."""
        return self._today()

    def _lock_for(self, backend: str) -> asyncio.Lock:
        # One lock per backend covers every date it writes.
        lock = self._key_locks.get(backend)
        if lock is None:
            lock = self._key_locks[backend] = asyncio.Lock()
        return lock

    async def record(self, backend: str, tokens_in: int, tokens_out: int, cost_usd: float) -> None:
        """Add one successful execution to today's row for ``backend``."""
        if tokens_in < 0 or tokens_out < 0 or cost_usd < 0:
            raise ValueError("Cost ledger deltas cannot be negative")
        db = self._conn()
        day = self.current_date().isoformat()
        async with self._lock_for(backend):
            await db.execute(_UPSERT, (day, backend, tokens_in, tokens_out, cost_usd))
            await db.commit()

    async def get(self, day: date, backend: str) -> CostRecord | None:
        cur = await self._conn().execute(
            f"{_SELECT} WHERE date = ? AND backend = ?", (day.isoformat(), backend),
        )
        row = await cur.fetchone()
        return _row_to_record(row) if row else None

    async def records_for(self, day: date) -> list[CostRecord]:
        cur = await self._conn().execute(
            f"{_SELECT} WHERE date = ? ORDER BY backend", (day.isoformat(),),
        )
        return [_row_to_record(row) for row in await cur.fetchall()]

    async def total_cost(self, start: date, end: date | None = None) -> float:
        """Summed cost over ``start``..``end`` inclusive (a single day by default)."""
        end = end or start
        cur = await self._conn().execute(
            "SELECT COALESCE(SUM(cost), 0) FROM cost_tracking WHERE date BETWEEN ? AND ?",
            (start.isoformat(), end.isoformat()),
        )
        row = await cur.fetchone()
        return float(row[0])
