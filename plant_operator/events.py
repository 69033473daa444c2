"""Event recording for Plant lifecycle transitions.

Events are a fire-and-forget notification channel: a recorder that fails
never changes the outcome of a reconcile pass.
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
import datetime
from enum import StrEnum
import logging

from .manifest import NamedResource

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "EventType",
    "Event",
    "EventRecorder",
    "InMemoryEventRecorder",
]

DEFAULT_HISTORY = 1000


class EventType(StrEnum):
    """Severity of an event."""

    NORMAL = "Normal"
    WARNING = "Warning"


@dataclass(frozen=True)
class Event:
    """A notification about an object."""

    resource_id: NamedResource
    type: EventType
    reason: str
    message: str
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )


class EventRecorder(ABC):
    """Sink for events about Plant objects."""

    def event(
        self,
        resource_id: NamedResource,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        """Record an event, logging instead of raising on failure."""
        try:
            self.record(Event(resource_id, event_type, reason, message))
        except Exception:
            _LOGGER.exception("Failed to record event %s for %s", reason, resource_id)

    @abstractmethod
    def record(self, event: Event) -> None:
        """Deliver the event to the sink."""


class InMemoryEventRecorder(EventRecorder):
    """EventRecorder that logs events and keeps a bounded history."""

    def __init__(self, max_events: int = DEFAULT_HISTORY) -> None:
        """Initialize InMemoryEventRecorder."""
        self._events: deque[Event] = deque(maxlen=max_events)

    def record(self, event: Event) -> None:
        """Log the event and add it to the history."""
        level = logging.WARNING if event.type == EventType.WARNING else logging.INFO
        _LOGGER.log(
            level,
            "%s %s %s: %s",
            event.resource_id,
            event.type,
            event.reason,
            event.message,
        )
        self._events.append(event)

    def list_events(self, resource_id: NamedResource | None = None) -> list[Event]:
        """Return recorded events, optionally for a single object."""
        return [
            event
            for event in self._events
            if resource_id is None or event.resource_id == resource_id
        ]
