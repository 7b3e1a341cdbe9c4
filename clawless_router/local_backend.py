"""Local inference backend over the Ollama HTTP API."""

import asyncio
import time
from typing import Any

import httpx
from loguru import logger

from clawless_router.errors import BackendExecutionError, BackendTimeout
from clawless_router.models import InferenceBackend, Response, Task, Tier, compose_prompt


class LocalBackend(InferenceBackend):
    """Free, low-latency tier. Cost is always zero.

    Pass ``client`` to share a connection pool (or a mock transport in
    tests); otherwise a client is opened per call.
    """

    tier = Tier.LOCAL
    default_temperature = 0.1

    def __init__(
        self,
        model: str = "llama3.1:8b",
        base_url: str = "http://localhost:11434",
        timeout_ms: int = 5000,
        max_tokens: int = 2048,
        probe_timeout_s: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(model)
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.max_tokens = max_tokens
        self.probe_timeout_s = probe_timeout_s
        self._client = client

    def build_payload(self, task: Task, temperature: float) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": compose_prompt(task),
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": self.max_tokens,
            },
        }

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/api/generate"
        if self._client is not None:
            return await self._client.post(url, json=payload)
        # The deadline is enforced by asyncio.wait_for, not by httpx.
        async with httpx.AsyncClient(timeout=None) as client:
            return await client.post(url, json=payload)

    async def execute(
        self,
        task: Task,
        *,
        temperature: float | None = None,
        timeout_ms: int | None = None,
    ) -> Response:
        temp = self.default_temperature if temperature is None else temperature
        deadline_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        payload = self.build_payload(task, temp)

        start = time.monotonic()
        try:
            # wait_for cancels the in-flight request when the deadline passes
            http_response = await asyncio.wait_for(self._post(payload), timeout=deadline_ms / 1000)
        except asyncio.TimeoutError as e:
            raise BackendTimeout(
                f"Local backend timed out after {deadline_ms}ms",
                backend=self.name, timeout_ms=deadline_ms,
            ) from e
        except httpx.TimeoutException as e:
            raise BackendTimeout(
                f"Local backend request timed out: {e}", backend=self.name, timeout_ms=deadline_ms,
            ) from e
        except httpx.HTTPError as e:
            raise BackendExecutionError(
                f"Failed to reach local backend at {self.base_url}: {e}", backend=self.name,
            ) from e
        latency_ms = int((time.monotonic() - start) * 1000)

        if http_response.is_error:
            raise BackendExecutionError(
                f"Local backend returned HTTP {http_response.status_code}: {http_response.text[:200]}",
                backend=self.name, status_code=http_response.status_code,
            )

        try:
            data = http_response.json()
            content = data["response"]
        except (ValueError, KeyError, TypeError) as e:
            raise BackendExecutionError(
                f"Unexpected local backend response format: {http_response.text[:200]}",
                backend=self.name,
            ) from e
        if not isinstance(content, str):
            raise BackendExecutionError("Local backend response text is not a string", backend=self.name)

        tokens_in = int(data.get("prompt_eval_count") or 0)
        tokens_out = int(data.get("eval_count") or 0)
        logger.debug(
            f"Local {self.model}: {tokens_in} in / {tokens_out} out in {latency_ms}ms"
        )
        return Response(
            content=content,
            backend_used=Tier.LOCAL,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=0.0,
            model=self.model,
            latency_ms=latency_ms,
        )

    async def probe(self) -> bool:
        url = f"{self.base_url}/api/tags"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.probe_timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self.probe_timeout_s) as client:
                    response = await client.get(url)
            return response.status_code == 200
        except Exception as e:
            logger.debug(f"Local backend probe failed: {e}")
            return False

    def __repr__(self) -> str:
        return f"LocalBackend(model={self.model!r}, base_url={self.base_url!r})"
