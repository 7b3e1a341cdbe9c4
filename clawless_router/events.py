"""Structured event sinks for routing observability."""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger


class EventSink(ABC):
    @abstractmethod
    def emit(self, event: str, **fields: Any) -> None:
        ...


class LoguruEventSink(EventSink):
    """Writes events through loguru with the fields bound as ``extra``."""

    _WARNING_EVENTS = frozenset({
        "route.local_failed",
        "route.local_unavailable",
        "route.quality_rejected",
        "route.remote_failed",
        "ledger.spend_limit_exceeded",
    })

    def emit(self, event: str, **fields: Any) -> None:
        bound = logger.bind(event=event, **fields)
        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        if event in self._WARNING_EVENTS:
            bound.warning(f"{event} {detail}")
        else:
            bound.info(f"{event} {detail}")


class NullEventSink(EventSink):
    def emit(self, event: str, **fields: Any) -> None:
        pass
