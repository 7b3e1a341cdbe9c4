"""Remote inference backend for Claude models via the Anthropic API."""

import asyncio
import os
import time
from typing import Any

import anthropic
from loguru import logger

from clawless_router.errors import BackendExecutionError, BackendTimeout
from clawless_router.health import ProbeCache
from clawless_router.models import InferenceBackend, Response, Task, Tier, compose_prompt
from clawless_router.pricing import ModelPrice, resolve_price


class RemoteBackend(InferenceBackend):
    """Paid, high-capability tier.

    No internal deadline: a call runs until it completes, fails, or the
    caller cancels it. ``timeout_ms`` is honored when passed explicitly.

    Requires ANTHROPIC_API_KEY unless ``client`` or ``api_key`` is given.
    """

    tier = Tier.REMOTE
    default_temperature = 0.7

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        max_tokens: int = 4096,
        price: ModelPrice | None = None,
        probe_cache: ProbeCache | None = None,
        max_retries: int = 2,
        client: Any = None,
    ):
        super().__init__(model)
        self.max_tokens = max_tokens
        self.price = price or resolve_price(model)
        self._probe_cache = probe_cache or ProbeCache()

        if client is not None:
            self._client = client
        else:
            key = api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not key:
                raise ValueError(
                    "Anthropic API key not found. Set ANTHROPIC_API_KEY environment variable "
                    "or pass api_key parameter."
                )
            self._client = anthropic.AsyncAnthropic(api_key=key, max_retries=max_retries)

    def build_request(self, task: Task, temperature: float) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": compose_prompt(task)}],
        }

    async def _create(self, request: dict[str, Any], timeout_ms: int | None) -> Any:
        call = self._client.messages.create(**request)
        if timeout_ms is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout_ms / 1000)

    async def execute(
        self,
        task: Task,
        *,
        temperature: float | None = None,
        timeout_ms: int | None = None,
    ) -> Response:
        temp = self.default_temperature if temperature is None else temperature
        request = self.build_request(task, temp)

        start = time.monotonic()
        try:
            message = await self._create(request, timeout_ms)
        except asyncio.TimeoutError as e:
            raise BackendTimeout(
                f"Remote backend timed out after {timeout_ms}ms", backend=self.name, timeout_ms=timeout_ms,
            ) from e
        except anthropic.APITimeoutError as e:
            raise BackendTimeout(f"Anthropic request timed out: {e}", backend=self.name) from e
        except anthropic.APIStatusError as e:
            raise BackendExecutionError(
                f"Anthropic API error: {e}", backend=self.name, status_code=e.status_code,
            ) from e
        except anthropic.APIError as e:
            raise BackendExecutionError(f"Anthropic API error: {e}", backend=self.name) from e
        latency_ms = int((time.monotonic() - start) * 1000)

        text = [block.text for block in (message.content or []) if getattr(block, "text", None)]
        if not text:
            raise BackendExecutionError("Anthropic returned no text content", backend=self.name)

        tokens_in = message.usage.input_tokens
        tokens_out = message.usage.output_tokens
        cost = self.price.cost(tokens_in, tokens_out)
        logger.debug(
            f"Remote {self.model}: {tokens_in} in / {tokens_out} out, ${cost:.6f} in {latency_ms}ms"
        )
        return Response(
            content="\n".join(text),
            backend_used=Tier.REMOTE,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=cost,
            model=self.model,
            latency_ms=latency_ms,
        )

    async def _probe_once(self) -> bool:
        try:
            # Minimal real request; ProbeCache keeps this from running on every check.
            await self._client.messages.create(
                model=self.model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
            return True
        except Exception as e:
            logger.debug(f"Remote backend probe failed: {e}")
            return False

    async def probe(self) -> bool:
        return await self._probe_cache.check(self.name, self._probe_once)
