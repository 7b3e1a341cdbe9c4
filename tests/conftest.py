"""Shared fixtures: scripted backends, an event recorder and a temp ledger."""

import asyncio
from datetime import date
from typing import Any

import pytest
import pytest_asyncio

from clawless_router.events import EventSink
from clawless_router.ledger import CostLedger
from clawless_router.models import InferenceBackend, Response, Task, Tier

TODAY = date(2026, 10, 19)


class RecordingSink(EventSink):
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class ScriptedBackend(InferenceBackend):
    """Backend whose behaviour is set per test."""

    def __init__(
        self,
        tier: Tier,
        content: str = "ok",
        *,
        alive: bool = True,
        error: Exception | None = None,
        delay: float = 0.0,
        tokens: tuple[int, int] = (10, 20),
        cost: float = 0.0,
    ):
        super().__init__(model=f"{tier.value}-model")
        self.tier = tier
        self.content = content
        self.alive = alive
        self.error = error
        self.delay = delay
        self.tokens = tokens
        self.cost = cost
        self.execute_calls = 0
        self.probe_calls = 0
        self.timeouts_seen: list[int | None] = []
        self.cancelled = False

    async def execute(self, task: Task, *, temperature=None, timeout_ms=None) -> Response:
        self.execute_calls += 1
        self.timeouts_seen.append(timeout_ms)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return Response(
            content=self.content,
            backend_used=self.tier,
            tokens_in=self.tokens[0],
            tokens_out=self.tokens[1],
            cost_usd=self.cost,
            model=self.model,
        )

    async def probe(self) -> bool:
        self.probe_calls += 1
        return self.alive


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def local() -> ScriptedBackend:
    return ScriptedBackend(Tier.LOCAL, "repo")


@pytest.fixture
def remote() -> ScriptedBackend:
    return ScriptedBackend(Tier.REMOTE, "remote answer", tokens=(100, 400), cost=0.0063)


@pytest_asyncio.fixture
async def ledger(tmp_path):
    async with CostLedger(tmp_path / "state.db", today=lambda: TODAY) as ledger:
        yield ledger
