"""Error taxonomy for routing failures."""

from enum import Enum


class ErrorKind(str, Enum):
    DETERMINISTIC_TASK_REJECTED = "deterministic_task_rejected"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    BACKEND_TIMEOUT = "backend_timeout"
    BACKEND_EXECUTION_ERROR = "backend_execution_error"
    QUALITY_VALIDATION_FAILED = "quality_validation_failed"
    ALL_BACKENDS_EXHAUSTED = "all_backends_exhausted"
    ROUTING_CANCELLED = "routing_cancelled"


# Failures on the local leg that the router recovers from by trying remote.
RECOVERABLE_LOCAL_KINDS = frozenset({
    ErrorKind.BACKEND_UNAVAILABLE,
    ErrorKind.BACKEND_TIMEOUT,
    ErrorKind.BACKEND_EXECUTION_ERROR,
    ErrorKind.QUALITY_VALIDATION_FAILED,
})


class RouterError(Exception):
    """Base class for every error the router raises."""

    kind: ErrorKind

    def __init__(self, message: str, *, backend: str | None = None):
        super().__init__(message)
        self.backend = backend


class DeterministicTaskRejected(RouterError):
    """Task scored too low to justify any inference backend."""

    kind = ErrorKind.DETERMINISTIC_TASK_REJECTED

    def __init__(self, message: str, *, score: int):
        super().__init__(message)
        self.score = score


class BackendUnavailable(RouterError):
    kind = ErrorKind.BACKEND_UNAVAILABLE


class BackendTimeout(RouterError):
    kind = ErrorKind.BACKEND_TIMEOUT

    def __init__(self, message: str, *, backend: str | None = None, timeout_ms: int | None = None):
        super().__init__(message, backend=backend)
        self.timeout_ms = timeout_ms


class BackendExecutionError(RouterError):
    """Network, HTTP status or response parsing failure."""

    kind = ErrorKind.BACKEND_EXECUTION_ERROR

    def __init__(self, message: str, *, backend: str | None = None, status_code: int | None = None):
        super().__init__(message, backend=backend)
        self.status_code = status_code


class QualityValidationFailed(RouterError):
    """Local result rejected by the quality gate. Never reaches the caller."""

    kind = ErrorKind.QUALITY_VALIDATION_FAILED


class AllBackendsExhausted(RouterError):
    """Remote attempt failed after the local attempt had already failed."""

    kind = ErrorKind.ALL_BACKENDS_EXHAUSTED

    def __init__(self, message: str, *, local_error: RouterError, remote_error: Exception):
        super().__init__(message, backend="remote")
        self.local_error = local_error
        self.remote_error = remote_error


class RoutingCancelled(RouterError):
    kind = ErrorKind.ROUTING_CANCELLED
