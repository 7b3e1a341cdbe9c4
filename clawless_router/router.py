"""InferenceRouter: score, pick a tier, execute, gate, fall back, record.

Per task:
  1. Score the task. Tier NONE is rejected before any backend call.
  2. Local tier → probe, execute with the local deadline, validate.
     Any local failure (down, timeout, error, low quality) falls back to remote.
  3. Remote tier → execute once. Remote failures are terminal.
  4. Record the served response in the cost ledger.

Only the ledger is shared between concurrent routings.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, TypeVar

from clawless_router.complexity import ComplexityAnalyzer
from clawless_router.config import RouterConfig, RoutingMode
from clawless_router.errors import (
    RECOVERABLE_LOCAL_KINDS,
    AllBackendsExhausted,
    BackendExecutionError,
    BackendUnavailable,
    DeterministicTaskRejected,
    QualityValidationFailed,
    RouterError,
    RoutingCancelled,
)
from clawless_router.events import EventSink, LoguruEventSink
from clawless_router.health import ProbeCache
from clawless_router.ledger import CostLedger
from clawless_router.local_backend import LocalBackend
from clawless_router.models import InferenceBackend, Response, Task, Tier
from clawless_router.pricing import ModelPrice
from clawless_router.remote_backend import RemoteBackend
from clawless_router.validator import QualityValidator

T = TypeVar("T")


@dataclass
class LocalAttempt:
    """Outcome of the local leg: the accepted response, or the error that ended it."""

    response: Response | None = None
    error: RouterError | None = None

    @property
    def ok(self) -> bool:
        return self.response is not None and self.error is None


class InferenceRouter:
    """Routes tasks between a local and a remote inference backend."""

    def __init__(
        self,
        local: InferenceBackend,
        remote: InferenceBackend,
        ledger: CostLedger,
        config: RouterConfig | None = None,
        *,
        analyzer: ComplexityAnalyzer | None = None,
        validator: QualityValidator | None = None,
        sink: EventSink | None = None,
    ):
        self._local = local
        self._remote = remote
        self._ledger = ledger
        self.config = config or RouterConfig()
        self._analyzer = analyzer or ComplexityAnalyzer()
        self._validator = validator or QualityValidator()
        self._sink = sink or LoguruEventSink()

    async def route(self, task: Task, *, cancel_event: asyncio.Event | None = None) -> Response:
        """Run ``task`` on the appropriate backend.

        Setting ``cancel_event`` aborts the in-flight backend call and raises
        RoutingCancelled without trying any further backend. Cancelling the
        calling asyncio task has the same effect but raises CancelledError.

        Raises:
            DeterministicTaskRejected: Task scored below the local threshold.
            AllBackendsExhausted: Local failed, then remote failed.
            RoutingCancelled: ``cancel_event`` was set.
            RouterError: Remote failure on a direct remote routing, or any
                local failure in local-only mode. In local-only mode this
                includes QualityValidationFailed, which auto mode never
                surfaces because it falls back to remote instead.
        """
        start = time.monotonic()
        score = self._analyzer.analyze(task)
        self._sink.emit(
            "route.scored",
            kind=task.kind_name, score=score.total, tier=score.recommended.value,
            reasoning=score.reasoning,
        )

        if score.recommended is Tier.NONE:
            self._sink.emit("route.rejected", kind=task.kind_name, score=score.total)
            raise DeterministicTaskRejected(
                f"Task '{task.kind_name}' scored {score.total}; deterministic tasks "
                "must not be routed to an inference backend",
                score=score.total,
            )

        try:
            if self._select_path(score.recommended) is Tier.LOCAL:
                response = await self._route_local_first(task, cancel_event)
            else:
                response = await self._attempt_remote(task, cancel_event)
        except RoutingCancelled:
            self._sink.emit("route.cancelled", kind=task.kind_name)
            raise

        await self._record(response)
        self._sink.emit(
            "route.completed",
            kind=task.kind_name, backend=response.backend_used.value, model=response.model,
            tokens_in=response.tokens_in, tokens_out=response.tokens_out,
            cost_usd=round(response.cost_usd, 6),
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        return response

    def _select_path(self, recommended: Tier) -> Tier:
        mode = self.config.mode
        if mode is RoutingMode.REMOTE_ONLY:
            return Tier.REMOTE
        if mode is RoutingMode.LOCAL_ONLY:
            return Tier.LOCAL
        if recommended is Tier.LOCAL and self.config.fallback_enabled:
            return Tier.LOCAL
        return Tier.REMOTE

    async def _route_local_first(self, task: Task, cancel_event: asyncio.Event | None) -> Response:
        attempt = await self._attempt_local(task, cancel_event)
        if attempt.ok:
            return attempt.response

        error = attempt.error
        if self.config.mode is RoutingMode.LOCAL_ONLY or error.kind not in RECOVERABLE_LOCAL_KINDS:
            raise error
        return await self._attempt_remote(task, cancel_event, local_error=error)

    async def _attempt_local(self, task: Task, cancel_event: asyncio.Event | None) -> LocalAttempt:
        if not await self._guard(self._local.probe(), cancel_event):
            self._sink.emit("route.local_unavailable", kind=task.kind_name)
            return LocalAttempt(error=BackendUnavailable(
                "Local backend failed its liveness probe", backend=self._local.name,
            ))

        try:
            response = await self._guard(
                self._local.execute(task, timeout_ms=self.config.local_timeout_ms), cancel_event,
            )
        except RoutingCancelled:
            raise
        except RouterError as e:
            self._sink.emit("route.local_failed", kind=task.kind_name, error=e.kind.value, detail=str(e))
            return LocalAttempt(error=e)
        except Exception as e:
            # Backends are expected to raise RouterError; anything else is an execution failure.
            self._sink.emit("route.local_failed", kind=task.kind_name, error="unexpected", detail=str(e))
            error = BackendExecutionError(f"Local backend raised {type(e).__name__}: {e}", backend=self._local.name)
            error.__cause__ = e
            return LocalAttempt(error=error)

        reason = self._validator.explain(response, task)
        if reason is not None:
            self._sink.emit("route.quality_rejected", kind=task.kind_name, reason=reason)
            return LocalAttempt(
                response=response,
                error=QualityValidationFailed(reason, backend=self._local.name),
            )
        return LocalAttempt(response=response)

    async def _attempt_remote(
        self,
        task: Task,
        cancel_event: asyncio.Event | None,
        local_error: RouterError | None = None,
    ) -> Response:
        try:
            return await self._guard(self._remote.execute(task), cancel_event)
        except RoutingCancelled:
            raise
        except Exception as e:
            self._sink.emit(
                "route.remote_failed", kind=task.kind_name,
                fallback=local_error is not None, detail=str(e),
            )
            if local_error is None:
                raise
            raise AllBackendsExhausted(
                f"Local backend failed ({local_error.kind.value}) and remote backend failed: {e}",
                local_error=local_error, remote_error=e,
            ) from e

    async def _guard(self, call: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
        """Await ``call`` unless ``cancel_event`` fires first, in which case cancel it."""
        if cancel_event is None:
            return await call
        if cancel_event.is_set():
            if asyncio.iscoroutine(call):
                call.close()
            raise RoutingCancelled("Routing cancelled by caller")

        task = asyncio.ensure_future(call)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            await asyncio.gather(task, waiter, return_exceptions=True)
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        # Wait for the backend call to unwind; its CancelledError is collected, not raised.
        await asyncio.gather(task, return_exceptions=True)
        raise RoutingCancelled("Routing cancelled by caller")

    async def _record(self, response: Response) -> None:
        await self._ledger.record(
            response.backend_used.value, response.tokens_in, response.tokens_out, response.cost_usd,
        )
        if response.cost_usd > 0:
            await self._report_spend()

    async def _report_spend(self) -> None:
        """Emit an event when spend passes a configured limit. Never blocks routing."""
        daily_limit = self.config.daily_spend_limit_usd
        monthly_limit = self.config.monthly_spend_limit_usd
        if daily_limit is None and monthly_limit is None:
            return
        today = self._ledger.current_date()
        if daily_limit is not None:
            spent = await self._ledger.total_cost(today)
            if spent > daily_limit:
                self._sink.emit(
                    "ledger.spend_limit_exceeded", period="daily", spent_usd=round(spent, 6), limit_usd=daily_limit,
                )
        if monthly_limit is not None:
            spent = await self._ledger.total_cost(date(today.year, today.month, 1), today)
            if spent > monthly_limit:
                self._sink.emit(
                    "ledger.spend_limit_exceeded", period="monthly", spent_usd=round(spent, 6), limit_usd=monthly_limit,
                )


def create_router(
    config: RouterConfig,
    ledger: CostLedger,
    *,
    sink: EventSink | None = None,
    http_client: Any = None,
    anthropic_client: Any = None,
    api_key: str | None = None,
) -> InferenceRouter:
    """Wire an InferenceRouter from configuration."""
    local = LocalBackend(
        model=config.local_model,
        base_url=config.local_base_url,
        timeout_ms=config.local_timeout_ms,
        max_tokens=config.local_max_tokens,
        client=http_client,
    )
    price = None
    if config.remote_price_in_per_million is not None:
        price = ModelPrice(config.remote_price_in_per_million, config.remote_price_out_per_million)
    remote = RemoteBackend(
        model=config.remote_model,
        api_key=api_key,
        max_tokens=config.remote_max_tokens,
        price=price,
        probe_cache=ProbeCache(config.probe_cache_ttl_s),
        client=anthropic_client,
    )
    return InferenceRouter(local, remote, ledger, config, sink=sink)
