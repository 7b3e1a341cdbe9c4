"""Tests for the SQLite cost ledger."""

import asyncio
from datetime import date, timedelta

import pytest

from clawless_router.ledger import CostLedger
from conftest import TODAY


@pytest.mark.asyncio
async def test_first_record_creates_row(ledger):
    await ledger.record("local", 10, 20, 0.0)
    rec = await ledger.get(TODAY, "local")
    assert rec.date == TODAY
    assert rec.backend == "local"
    assert (rec.tokens_in, rec.tokens_out, rec.cost_usd, rec.execution_count) == (10, 20, 0.0, 1)


@pytest.mark.asyncio
async def test_records_accumulate(ledger):
    await ledger.record("remote", 100, 200, 0.5)
    await ledger.record("remote", 1, 2, 0.25)
    rec = await ledger.get(TODAY, "remote")
    assert rec.tokens_in == 101
    assert rec.tokens_out == 202
    assert rec.cost_usd == pytest.approx(0.75)
    assert rec.execution_count == 2


@pytest.mark.asyncio
async def test_backends_are_separate_rows(ledger):
    await ledger.record("local", 5, 5, 0.0)
    await ledger.record("remote", 7, 7, 0.1)
    records = await ledger.records_for(TODAY)
    assert [r.backend for r in records] == ["local", "remote"]
    assert all(r.execution_count == 1 for r in records)


@pytest.mark.asyncio
async def test_missing_row_is_none(ledger):
    assert await ledger.get(TODAY, "remote") is None


@pytest.mark.asyncio
async def test_concurrent_records_sum_exactly(ledger):
    deltas = [(i, 2 * i + 1, i / 1000) for i in range(1, 51)]
    await asyncio.gather(*(ledger.record("remote", *d) for d in deltas))

    rec = await ledger.get(TODAY, "remote")
    assert rec.execution_count == len(deltas)
    assert rec.tokens_in == sum(d[0] for d in deltas)
    assert rec.tokens_out == sum(d[1] for d in deltas)
    assert rec.cost_usd == pytest.approx(sum(d[2] for d in deltas))


@pytest.mark.asyncio
async def test_concurrent_records_across_keys(ledger):
    await asyncio.gather(*(
        ledger.record("local" if i % 2 else "remote", 1, 1, 0.0) for i in range(20)
    ))
    local = await ledger.get(TODAY, "local")
    remote = await ledger.get(TODAY, "remote")
    assert local.execution_count == remote.execution_count == 10


@pytest.mark.asyncio
async def test_negative_delta_rejected(ledger):
    with pytest.raises(ValueError):
        await ledger.record("remote", -1, 0, 0.0)
    with pytest.raises(ValueError):
        await ledger.record("remote", 0, 0, -0.01)
    assert await ledger.get(TODAY, "remote") is None


@pytest.mark.asyncio
async def test_rows_keyed_by_current_date(tmp_path):
    current = {"day": TODAY}
    async with CostLedger(tmp_path / "state.db", today=lambda: current["day"]) as ledger:
        await ledger.record("remote", 1, 1, 1.0)
        current["day"] = TODAY + timedelta(days=1)
        await ledger.record("remote", 1, 1, 2.0)

        assert (await ledger.get(TODAY, "remote")).execution_count == 1
        assert (await ledger.get(TODAY + timedelta(days=1), "remote")).cost_usd == pytest.approx(2.0)
        assert await ledger.total_cost(TODAY) == pytest.approx(1.0)
        assert await ledger.total_cost(TODAY, TODAY + timedelta(days=1)) == pytest.approx(3.0)


@pytest.mark.asyncio
async def test_persists_across_connections(tmp_path):
    path = tmp_path / "nested" / "state.db"
    async with CostLedger(path, today=lambda: TODAY) as ledger:
        await ledger.record("local", 3, 4, 0.0)
    async with CostLedger(path, today=lambda: TODAY) as ledger:
        await ledger.record("local", 3, 4, 0.0)
        rec = await ledger.get(TODAY, "local")
    assert rec.execution_count == 2
    assert rec.tokens_in == 6


@pytest.mark.asyncio
async def test_unconnected_ledger_raises(tmp_path):
    ledger = CostLedger(tmp_path / "state.db")
    with pytest.raises(RuntimeError, match="not connected"):
        await ledger.record("local", 1, 1, 0.0)


@pytest.mark.asyncio
async def test_total_cost_empty_is_zero(ledger):
    assert await ledger.total_cost(date(2020, 1, 1)) == 0.0


@pytest.mark.asyncio
async def test_locks_do_not_grow_with_days(tmp_path):
    current = {"day": TODAY}
    async with CostLedger(tmp_path / "state.db", today=lambda: current["day"]) as ledger:
        for offset in range(5):
            current["day"] = TODAY + timedelta(days=offset)
            await ledger.record("local", 1, 1, 0.0)
            await ledger.record("remote", 1, 1, 0.5)

        assert sorted(ledger._key_locks) == ["local", "remote"]
        assert await ledger.total_cost(TODAY, TODAY + timedelta(days=4)) == pytest.approx(2.5)
