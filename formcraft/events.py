"""Event system for the formcraft editor.

Every accepted editor mutation and state change emits a typed EditorEvent.
Hosts subscribe through an EventEmitter to re-render after changes; the
editor also keeps the events in an append-only log.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import json
import logging

from dateutil.parser import isoparse

from .types import EditorState, EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditorEvent:
    """A single event in an editing session.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_3f2a...")
        type: Event type from EventType enum
        ts: UTC timestamp when the event occurred
        state: Editor state after this event
        field_id: Field the event relates to, if any
        payload: Optional event-specific data (changed attributes, indices, ...)

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = EditorEvent(
        ...     event_id="evt_001",
        ...     type=EventType.FIELD_INSERTED,
        ...     ts=datetime.now(timezone.utc),
        ...     state=EditorState.IDLE,
        ...     field_id="f1",
        ...     payload={"index": 0},
        ... )
    """
    event_id: str
    type: EventType
    ts: datetime
    state: EditorState
    field_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Normalize string enums."""
        if isinstance(self.state, str):
            object.__setattr__(self, "state", EditorState(self.state))
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Timestamp is formatted as ISO 8601 string.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "ts": self.ts.isoformat(),
            "state": self.state.value,
        }
        if self.field_id is not None:
            result["fieldId"] = self.field_id
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to a single JSON line."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorEvent":
        """Create EditorEvent from dictionary (camelCase keys)."""
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            ts=isoparse(data["ts"]),
            state=EditorState(data["state"]),
            field_id=data.get("fieldId"),
            payload=data.get("payload"),
        )


EventListener = Callable[[EditorEvent], None]
"""Type alias for event listener callbacks.

Listeners are called synchronously, in registration order, when an event is
emitted.
"""


class EventEmitter:
    """Observer-style dispatcher for editor events.

    Features:
    - Type-specific subscriptions
    - Wildcard subscriptions (all events)
    - Synchronous dispatch in registration order
    - Error isolation: a failing listener is logged and does not stop the
      remaining listeners or the editor operation that emitted the event

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(EventType.FIELD_INSERTED, seen.append)
        >>> emitter.listener_count(EventType.FIELD_INSERTED)
        1
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type; unknown listeners are ignored."""
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe a wildcard listener; unknown listeners are ignored."""
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def emit(self, event: EditorEvent) -> None:
        """Dispatch an event to type-specific listeners, then wildcard listeners."""
        for listener in list(self._listeners.get(event.type, [])) + list(self._any_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Editor event listener %r failed on %s", listener, event.type.value
                )

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Count listeners for one type, or all listeners including wildcards."""
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return len(self._any_listeners) + sum(len(v) for v in self._listeners.values())


__all__ = [
    "EditorEvent",
    "EventListener",
    "EventEmitter",
]
