"""Remote model price table, single source of truth for spend.

Prices are USD per million tokens.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPrice:
    input_per_million: float
    output_per_million: float

    def cost(self, tokens_in: int, tokens_out: int) -> float:
        return (
            tokens_in * self.input_per_million
            + tokens_out * self.output_per_million
        ) / 1_000_000


# Full model id → price. Keep sorted by id for readability.
MODEL_PRICING: dict[str, ModelPrice] = {
    "claude-3-5-haiku-20241022": ModelPrice(0.80, 4.00),
    "claude-3-5-sonnet-20241022": ModelPrice(3.00, 15.00),
    "claude-3-opus-20240229": ModelPrice(15.00, 75.00),
    "claude-haiku-4-5": ModelPrice(1.00, 5.00),
    "claude-opus-4-1": ModelPrice(15.00, 75.00),
    "claude-opus-4-20250514": ModelPrice(15.00, 75.00),
    "claude-sonnet-4-20250514": ModelPrice(3.00, 15.00),
    "claude-sonnet-4-5": ModelPrice(3.00, 15.00),
}

# Short name → full model id.
MODEL_ALIASES: dict[str, str] = {
    "haiku": "claude-haiku-4-5",
    "opus": "claude-opus-4-1",
    "sonnet": "claude-sonnet-4-5",
}

_NORMALIZED: dict[str, str] = {}


def _normalize(s: str) -> str:
    """Strip hyphens, underscores, spaces, dots and lowercase."""
    return s.lower().replace("-", "").replace("_", "").replace(" ", "").replace(".", "")


def _build_normalized() -> None:
    _NORMALIZED.clear()
    for key in (*MODEL_PRICING, *MODEL_ALIASES):
        _NORMALIZED[_normalize(key)] = key


_build_normalized()


def resolve_price(model: str) -> ModelPrice:
    """Look up the price for a model id or short name.

    Resolution order: exact id, short alias, provider prefix stripped
    ("anthropic/claude-..."), dated snapshot of a known family
    ("claude-haiku-4-5-20251001"), normalized spelling.

    Raises:
        KeyError: If nothing matches. The message lists close matches.
    """
    raw = model.strip()
    lowered = raw.lower()
    if "/" in lowered:
        lowered = lowered.split("/", 1)[1]

    if lowered in MODEL_PRICING:
        return MODEL_PRICING[lowered]
    if lowered in MODEL_ALIASES:
        return MODEL_PRICING[MODEL_ALIASES[lowered]]

    # Longest family prefix wins so "claude-opus-4-1-..." beats "claude-opus-4-..."
    for known in sorted(MODEL_PRICING, key=len, reverse=True):
        if lowered.startswith(known + "-"):
            return MODEL_PRICING[known]

    normed = _normalize(lowered)
    if normed in _NORMALIZED:
        key = _NORMALIZED[normed]
        return MODEL_PRICING[MODEL_ALIASES.get(key, key)]

    candidates = difflib.get_close_matches(normed, _NORMALIZED.keys(), n=3, cutoff=0.7)
    if candidates:
        suggestions = ", ".join(_NORMALIZED[c] for c in candidates)
        raise KeyError(f"No price for model '{model}'. Did you mean: {suggestions}?")
    raise KeyError(f"No price for model '{model}'. Known: {', '.join(sorted(MODEL_PRICING))}")
