"""Deterministic complexity scoring for routing decisions.

Score is additive with no upper clamp:
1. Base score from the task kind
2. Context size bucket
3. Prompt ambiguity
4. Reasoning bonus for planning / error recovery
5. Tool count bonus
6. Retry penalty

The recommended tier depends only on the total.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from loguru import logger

from clawless_router.heuristics import AmbiguityDetector, RegexAmbiguityDetector
from clawless_router.models import ComplexityScore, Task, TaskKind, Tier

BASE_SCORES: Mapping[TaskKind, int] = MappingProxyType({
    TaskKind.CLASSIFICATION: 1,
    TaskKind.EXTRACTION: 2,
    TaskKind.PLANNING: 4,
    TaskKind.ERROR_RECOVERY: 5,
    TaskKind.WORKFLOW_COMPILATION: 7,
    TaskKind.CODE_REVIEW: 8,
    TaskKind.SECURITY_ANALYSIS: 9,
})
UNKNOWN_KIND_SCORE = 3

# (min exclusive length, points), checked from the largest bucket down
CONTEXT_BUCKETS: tuple[tuple[int, int], ...] = ((10_000, 3), (5_000, 2), (2_000, 1))

AMBIGUITY_POINTS = 2
REASONING_POINTS = 3
TOOL_POINTS = 1
TOOL_THRESHOLD = 3
RETRY_POINTS = 2

REASONING_KINDS = frozenset({TaskKind.PLANNING, TaskKind.ERROR_RECOVERY})

LOCAL_THRESHOLD = 2
REMOTE_THRESHOLD = 7


def _check_table(table: Mapping[TaskKind, int]) -> None:
    missing = [kind.value for kind in TaskKind if kind not in table]
    if missing:
        raise RuntimeError(f"Base score table is missing task kinds: {', '.join(missing)}")


_check_table(BASE_SCORES)


def recommend(total: int) -> Tier:
    """Map a total score to a tier."""
    if total < LOCAL_THRESHOLD:
        return Tier.NONE
    if total < REMOTE_THRESHOLD:
        return Tier.LOCAL
    return Tier.REMOTE


def context_points(context: str | None) -> int:
    length = len(context) if context else 0
    for min_length, points in CONTEXT_BUCKETS:
        if length > min_length:
            return points
    return 0


class ComplexityAnalyzer:
    """Scores tasks. Stateless apart from the injected heuristics."""

    def __init__(
        self,
        ambiguity: AmbiguityDetector | None = None,
        base_scores: Mapping[TaskKind, int] = BASE_SCORES,
    ):
        _check_table(base_scores)
        self._ambiguity = ambiguity or RegexAmbiguityDetector()
        self._base_scores = base_scores

    def _base(self, kind: TaskKind | str) -> int:
        try:
            return self._base_scores[TaskKind(kind)]
        except ValueError:
            logger.debug(f"Unknown task kind '{kind}', using default base score")
            return UNKNOWN_KIND_SCORE

    def analyze(self, task: Task) -> ComplexityScore:
        try:
            kind: TaskKind | None = TaskKind(task.kind)
        except ValueError:
            kind = None

        breakdown = {
            "task_kind": self._base(task.kind),
            "context_size": context_points(task.context),
            "ambiguity": AMBIGUITY_POINTS if self._ambiguity.is_ambiguous(task.prompt) else 0,
            "reasoning": REASONING_POINTS if kind in REASONING_KINDS else 0,
            "tool_count": TOOL_POINTS if task.tool_count > TOOL_THRESHOLD else 0,
            "retry": RETRY_POINTS if task.is_retry else 0,
        }
        total = sum(breakdown.values())
        tier = recommend(total)

        reasons = [f"{name}+{points}" for name, points in breakdown.items() if points]
        reasoning = f"{task.kind_name}: " + (", ".join(reasons) or "no factors") + f" = {total}"
        return ComplexityScore(total=total, breakdown=breakdown, recommended=tier, reasoning=reasoning)
