"""State management for woven cities."""

from .schema import (
    City,
    CityMood,
    CityMoment,
    ChoicePattern,
    EmergentProperty,
    GameState,
    MomentType,
    PendingThought,
    RelationType,
    RequestItem,
    ThreadRelationship,
    ThreadType,
    UrbanThread,
)
from .event_bus import CityEvent, EventBus, EventType
from .store import CityStore, JsonCityStore, MemoryCityStore
from .snapshots import CitySnapshot, GameStateSnapshot, ThreadSnapshot, snapshot_city
from .manager import CityManager

__all__ = [
    # Schema
    "City",
    "CityMood",
    "CityMoment",
    "ChoicePattern",
    "EmergentProperty",
    "GameState",
    "MomentType",
    "PendingThought",
    "RelationType",
    "RequestItem",
    "ThreadRelationship",
    "ThreadType",
    "UrbanThread",
    # Events
    "CityEvent",
    "EventBus",
    "EventType",
    # Store
    "CityStore",
    "JsonCityStore",
    "MemoryCityStore",
    # Snapshots
    "CitySnapshot",
    "GameStateSnapshot",
    "ThreadSnapshot",
    "snapshot_city",
    # Manager
    "CityManager",
]
