"""
Event bus for Woven City state changes.

Lets the dashboard, the CLI and tests observe the simulation without the
engine knowing about any of them. The bus is passed in explicitly; there is
no process-wide instance.

Usage:
    bus = EventBus()
    bus.on(EventType.EMERGENCE, my_handler)
    bus.emit(EventType.EMERGENCE, city_id=city.id, name="Neighborhood Memory")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Simulation events that can be published."""

    # Thread events
    THREAD_WOVEN = "thread.woven"
    EMERGENCE = "thread.emergence"

    # Narrative events
    BEAT_FIRED = "beat.fired"
    THOUGHT_SPAWNED = "beat.thought_spawned"
    NARRATIVE_LOGGED = "narrative.logged"
    MOOD_CHANGED = "city.mood_changed"

    # Planner interaction
    INTERACTION_RECORDED = "planner.interaction"
    REQUEST_ANSWERED = "planner.request_answered"
    CHOICE_RECORDED = "planner.choice"

    # Moments
    MOMENT_REVEALED = "moment.revealed"
    MOMENT_DESTROYED = "moment.destroyed"

    # Simulation lifecycle
    SIMULATION_STARTED = "simulation.started"
    SIMULATION_SKIPPED = "simulation.skipped"
    SIMULATION_COMPLETED = "simulation.completed"
    CITY_SAVED = "city.saved"


@dataclass
class CityEvent:
    """
    Event payload for the event bus.

    Attributes:
        type: The event type (from EventType enum)
        data: Event-specific payload as dict
        city_id: ID of the city this event belongs to
        tick: Simulation tick when the event occurred (0 outside a run)
        timestamp: When the event was emitted
    """

    type: EventType
    data: dict = field(default_factory=dict)
    city_id: str = ""
    tick: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[CityEvent], None]


class EventBus:
    """
    Synchronous event bus.

    Listeners are called immediately on emit(), inside the tick that caused
    the event. A failing listener is logged and never breaks the others.
    """

    def __init__(self, history_limit: int = 100):
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[CityEvent] = []
        self._history_limit = history_limit

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to an event type. Subscribing twice is a no-op."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        if handler not in self._listeners[event_type]:
            self._listeners[event_type].append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._listeners and handler in self._listeners[event_type]:
            self._listeners[event_type].remove(handler)

    def emit(
        self,
        event_type: EventType,
        city_id: str = "",
        tick: int = 0,
        **data,
    ) -> CityEvent:
        """
        Emit an event to all subscribers.

        Returns:
            The emitted CityEvent (for chaining/testing)
        """
        event = CityEvent(type=event_type, data=data, city_id=city_id, tick=tick)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in handler for {event_type.value}: {e}")

        return event

    def clear(self) -> None:
        """Clear all listeners. Useful for testing."""
        self._listeners.clear()

    def get_history(self, event_type: EventType | None = None) -> list[CityEvent]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))
