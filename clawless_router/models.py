"""Core data models for clawless-router."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum


class TaskKind(str, Enum):
    """Kinds of inference work the router accepts."""

    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"
    PLANNING = "planning"
    CODE_REVIEW = "code_review"
    SECURITY_ANALYSIS = "security_analysis"
    WORKFLOW_COMPILATION = "workflow_compilation"
    ERROR_RECOVERY = "error_recovery"


class Tier(str, Enum):
    """Backend tier. NONE means no inference backend should run."""

    NONE = "none"
    LOCAL = "local"
    REMOTE = "remote"


_JSON_ONLY_INSTRUCTION = (
    "Respond with valid JSON only. "
    "Do not include any explanation, markdown or prose outside the JSON."
)


@dataclass(frozen=True)
class Task:
    """A unit of inference work submitted to the router."""

    kind: TaskKind | str
    prompt: str
    context: str | None = None
    tool_count: int = 0
    expects_structured_output: bool = False
    required_fields: tuple[str, ...] = ()
    min_length: int | None = None
    is_retry: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.prompt, str) or not self.prompt:
            raise ValueError("Task prompt must be a non-empty string")
        # None means absent for the optional fields.
        if self.tool_count is None:
            object.__setattr__(self, "tool_count", 0)
        if self.tool_count < 0:
            raise ValueError("tool_count cannot be negative")
        # Lists are accepted for convenience but stored as a tuple.
        object.__setattr__(self, "required_fields", tuple(self.required_fields or ()))

    @property
    def kind_name(self) -> str:
        return self.kind.value if isinstance(self.kind, TaskKind) else str(self.kind)


def compose_prompt(task: Task) -> str:
    """Build the prompt text sent to a backend for ``task``."""
    parts = []
    if task.context:
        parts.append(f"Context:\n{task.context}")
        parts.append(f"Task:\n{task.prompt}")
    else:
        parts.append(task.prompt)
    if task.expects_structured_output:
        parts.append(_JSON_ONLY_INSTRUCTION)
    return "\n\n".join(parts)


@dataclass(frozen=True)
class ComplexityScore:
    """Result of complexity analysis."""

    total: int
    breakdown: dict[str, int]
    recommended: Tier
    reasoning: str = ""


@dataclass
class Response:
    """Response from an inference backend."""

    content: str
    backend_used: Tier
    tokens_in: int = 0
    tokens_out: int = 0
    cost_usd: float = 0.0
    model: str = ""
    latency_ms: int = 0


@dataclass
class CostRecord:
    """Aggregated usage for one backend on one day."""

    date: date
    backend: str
    tokens_in: int = 0
    tokens_out: int = 0
    cost_usd: float = 0.0
    execution_count: int = 0


class InferenceBackend(ABC):
    """Abstract base class for inference backends."""

    tier: Tier = Tier.NONE
    default_temperature: float = 0.7

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def execute(
        self,
        task: Task,
        *,
        temperature: float | None = None,
        timeout_ms: int | None = None,
    ) -> Response:
        """Run ``task`` and return the backend's response.

        Raises:
            BackendTimeout: If ``timeout_ms`` elapses first. The in-flight
                call is cancelled before this is raised.
            BackendExecutionError: On network, HTTP or parse failures.
        """
        ...

    @abstractmethod
    async def probe(self) -> bool:
        """Return True if the backend is reachable. Never raises."""
        ...

    @property
    def name(self) -> str:
        return self.tier.value

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
