"""Job events and the in-process event bus.

Pipeline progress is published as events so observers (CLI output, a UI push
channel, tests) can follow a job without polling the job store. Another
transport (Redis, SQS, NATS) only has to implement ``EventBus``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from queue import Empty, Full, Queue
from typing import Any, DefaultDict, Dict, Iterator, List, Optional, Protocol

from core.models import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS_PER_TYPE = 1000


@dataclass(slots=True)
class Event:
    """One published fact about a job; ``correlation_id`` carries the job id."""

    type: str
    payload: Dict[str, Any]
    correlation_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)


class EventBus(Protocol):
    def publish(self, event: Event) -> None:
        """Publish an event to the bus."""

    def subscribe(self, event_type: str) -> Iterator[Event]:
        """Yield events of the given type as they arrive."""


class InMemoryEventBus:
    """Per-type bounded FIFO queues inside one process.

    ``subscribe`` blocks for the next event and suits a consumer thread;
    ``drain`` returns whatever is already queued and never blocks, which is
    what async code and tests want. When nobody consumes a type, its queue
    keeps only the newest ``max_events`` events.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS_PER_TYPE) -> None:
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self.max_events = max_events
        self._queues: DefaultDict[str, Queue[Event]] = defaultdict(
            lambda: Queue(maxsize=self.max_events)
        )

    def publish(self, event: Event) -> None:
        q = self._queues[event.type]
        while True:
            try:
                q.put_nowait(event)
                return
            except Full:
                try:
                    dropped = q.get_nowait()
                except Empty:
                    continue
                logger.debug("event_bus.dropped type=%s job=%s", dropped.type, dropped.correlation_id)

    def subscribe(self, event_type: str) -> Iterator[Event]:
        q = self._queues[event_type]
        while True:
            yield q.get()

    def drain(self, event_type: str) -> List[Event]:
        q = self._queues[event_type]
        drained: List[Event] = []
        while True:
            try:
                drained.append(q.get_nowait())
            except Empty:
                return drained
