"""
Observability sink - where request/response events are reported.

The sink is chosen by the OBSERVABILITY_SINK setting (dotted path) and handed
to whoever emits events, instead of living in module-level mutable state.

Settings:
    OBSERVABILITY_SINK = 'apps.core.observability.LoggingSink'   # default
    OBSERVABILITY_SINK = 'apps.core.observability.MemorySink'    # tests
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, List, Optional

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestEvent:
    """One completed HTTP request."""
    method: str
    path: str
    status_code: int
    duration_ms: float
    remote_addr: Optional[str]
    user_id: Optional[str]
    occurred_at: datetime


class ObservabilitySink(ABC):
    """
    Abstract destination for observability events.

    Implementations:
    - LoggingSink: writes events to the 'apps.core.observability' logger
    - MemorySink: keeps events in a list (tests)
    """

    @abstractmethod
    def record(self, event: Any) -> None:
        pass


class LoggingSink(ObservabilitySink):
    def record(self, event: Any) -> None:
        if isinstance(event, RequestEvent):
            logger.info(
                "%s %s %s %.1fms",
                event.method, event.path, event.status_code, event.duration_ms,
                extra={"event": asdict(event)},
            )
        else:
            logger.info("event: %r", event)


class MemorySink(ObservabilitySink):
    def __init__(self):
        self.events: List[Any] = []

    def record(self, event: Any) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()


def build_sink(path: Optional[str] = None) -> ObservabilitySink:
    """Instantiate the sink named by ``path`` or the OBSERVABILITY_SINK setting."""
    path = path or getattr(settings, 'OBSERVABILITY_SINK', 'apps.core.observability.LoggingSink')
    sink_class = import_string(path)
    sink = sink_class()
    if not isinstance(sink, ObservabilitySink):
        raise TypeError(f"{path} is not an ObservabilitySink")
    return sink

