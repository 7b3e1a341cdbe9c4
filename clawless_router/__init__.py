"""clawless-router: local-first inference routing with quality-gated fallback."""

from clawless_router.complexity import ComplexityAnalyzer
from clawless_router.config import RouterConfig, RoutingMode, load_config
from clawless_router.errors import (
    AllBackendsExhausted,
    BackendExecutionError,
    BackendTimeout,
    BackendUnavailable,
    DeterministicTaskRejected,
    ErrorKind,
    QualityValidationFailed,
    RouterError,
    RoutingCancelled,
)
from clawless_router.ledger import CostLedger
from clawless_router.models import ComplexityScore, CostRecord, InferenceBackend, Response, Task, TaskKind, Tier
from clawless_router.router import InferenceRouter, create_router
from clawless_router.validator import QualityValidator

__all__ = [
    "AllBackendsExhausted",
    "BackendExecutionError",
    "BackendTimeout",
    "BackendUnavailable",
    "ComplexityAnalyzer",
    "ComplexityScore",
    "CostLedger",
    "CostRecord",
    "DeterministicTaskRejected",
    "ErrorKind",
    "InferenceBackend",
    "InferenceRouter",
    "QualityValidationFailed",
    "QualityValidator",
    "Response",
    "RouterConfig",
    "RouterError",
    "RoutingCancelled",
    "RoutingMode",
    "Task",
    "TaskKind",
    "Tier",
    "create_router",
    "load_config",
]
