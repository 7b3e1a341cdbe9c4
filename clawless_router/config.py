"""Router configuration.

Loaded once at startup by the host application and treated as read-only.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

ENV_PREFIX = "CLAWLESS_"


class RoutingMode(str, Enum):
    AUTO = "auto"
    REMOTE_ONLY = "remote_only"
    LOCAL_ONLY = "local_only"


@dataclass(frozen=True)
class RouterConfig:
    """Routing and backend settings.

    Spend limits are reported against the ledger but never enforced.
    """

    mode: RoutingMode = RoutingMode.AUTO
    fallback_enabled: bool = True

    local_base_url: str = "http://localhost:11434"
    local_model: str = "llama3.1:8b"
    local_timeout_ms: int = 5000
    local_max_tokens: int = 2048

    remote_model: str = "claude-sonnet-4-20250514"
    remote_max_tokens: int = 4096
    remote_price_in_per_million: float | None = None  # overrides the price table
    remote_price_out_per_million: float | None = None
    probe_cache_ttl_s: float = 60.0

    daily_spend_limit_usd: float | None = None
    monthly_spend_limit_usd: float | None = None

    ledger_path: str = "data/state.db"

    def __post_init__(self) -> None:
        if self.local_timeout_ms <= 0:
            raise ValueError("local_timeout_ms must be positive")
        if (self.remote_price_in_per_million is None) != (self.remote_price_out_per_million is None):
            raise ValueError("remote input and output prices must be set together")


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_number(name: str, raw: str, kind: type) -> int | float:
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"{name} must be {kind.__name__}, got {raw!r}") from None


# field name -> parser
_FIELDS = {
    "mode": lambda n, v: RoutingMode(v.strip().lower().replace("-", "_")),
    "fallback_enabled": _parse_bool,
    "local_base_url": lambda n, v: v,
    "local_model": lambda n, v: v,
    "local_timeout_ms": lambda n, v: _parse_number(n, v, int),
    "local_max_tokens": lambda n, v: _parse_number(n, v, int),
    "remote_model": lambda n, v: v,
    "remote_max_tokens": lambda n, v: _parse_number(n, v, int),
    "remote_price_in_per_million": lambda n, v: _parse_number(n, v, float),
    "remote_price_out_per_million": lambda n, v: _parse_number(n, v, float),
    "probe_cache_ttl_s": lambda n, v: _parse_number(n, v, float),
    "daily_spend_limit_usd": lambda n, v: _parse_number(n, v, float),
    "monthly_spend_limit_usd": lambda n, v: _parse_number(n, v, float),
    "ledger_path": lambda n, v: v,
}


def load_config(env: Mapping[str, str] | None = None) -> RouterConfig:
    """Build a RouterConfig from ``CLAWLESS_*`` environment variables.

    Unset variables keep their defaults, e.g. ``CLAWLESS_MODE=remote-only``
    or ``CLAWLESS_LOCAL_TIMEOUT_MS=8000``.

    Raises:
        ValueError: If a variable holds a malformed value.
    """
    env = os.environ if env is None else env
    values = {}
    for field_name, parse in _FIELDS.items():
        var = ENV_PREFIX + field_name.upper()
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        values[field_name] = parse(var, raw)
    return RouterConfig(**values)
