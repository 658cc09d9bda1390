"""
Thread graph for a city.

Weaves new threads into the city's fabric, keeps relationships symmetric
and answers the graph queries used by emergence and story beats.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

from ..state.event_bus import EventBus, EventType
from ..state.schema import City, DialogueContext, DialogueSpeaker, ThreadRelationship, ThreadType, UrbanThread
from .relationships import calculate_relationship

if TYPE_CHECKING:
    from ..content.dialogue import DialogueLibrary

logger = logging.getLogger(__name__)


class ThreadGraph:
    """
    Relationship graph over one city's threads.

    Threads hold their relationships by other-thread id; this class is the
    only place that creates them, so both endpoints always agree.
    """

    def __init__(
        self,
        city: City,
        dialogue: DialogueLibrary | None = None,
        rng: random.Random | None = None,
        bus: EventBus | None = None,
    ):
        self.city = city
        self.dialogue = dialogue
        self.rng = rng or random.Random()
        self.bus = bus

    # ─── Queries ────────────────────────────────────────────

    @property
    def threads(self) -> list[UrbanThread]:
        return self.city.threads

    def count(self, category: ThreadType | None = None) -> int:
        if category is None:
            return len(self.city.threads)
        return len(self.threads_of_type(category))

    def threads_of_type(self, category: ThreadType) -> list[UrbanThread]:
        return [t for t in self.city.threads if t.category == category]

    def has_type(self, category: ThreadType) -> bool:
        return any(t.category == category for t in self.city.threads)

    def find(self, thread_id: str) -> UrbanThread | None:
        for thread in self.city.threads:
            if thread.id == thread_id:
                return thread
        return None

    def relationship(self, thread: UrbanThread, other_id: str) -> ThreadRelationship | None:
        return thread.relationship_with(other_id)

    def pair_relationships(self, a: ThreadType, b: ThreadType) -> list[ThreadRelationship]:
        """Relationships held by category-a threads that point at category-b threads."""
        found = []
        for thread in self.threads_of_type(a):
            for rel in thread.relationships:
                other = self.find(rel.other_thread_id)
                if other is not None and other.category == b:
                    found.append(rel)
        return found

    def has_relationship_between(self, a: ThreadType, b: ThreadType) -> bool:
        return bool(self.pair_relationships(a, b))

    def relationships_among(self, categories: list[ThreadType]) -> list[ThreadRelationship]:
        """Every relationship whose both endpoints belong to the given categories."""
        wanted = set(categories)
        found = []
        for thread in self.city.threads:
            if thread.category not in wanted:
                continue
            for rel in thread.relationships:
                other = self.find(rel.other_thread_id)
                if other is not None and other.category in wanted:
                    found.append(rel)
        return found

    # ─── Mutation ───────────────────────────────────────────

    @staticmethod
    def add_relationship(thread: UrbanThread, relationship: ThreadRelationship) -> bool:
        """Attach a relationship; the first one per other thread wins. Returns True if added."""
        if thread.relationship_with(relationship.other_thread_id) is not None:
            return False
        thread.relationships.append(relationship)
        return True

    def strengthen_relationship(self, thread: UrbanThread, other_id: str, amount: float) -> float | None:
        """Add to one endpoint's strength (clamped). Returns the new strength."""
        rel = thread.relationship_with(other_id)
        if rel is None:
            return None
        rel.strength = rel.strength + amount
        return rel.strength

    def weave(self, category: ThreadType) -> UrbanThread:
        """Create the next thread of a category and connect it to every existing thread."""
        thread = UrbanThread(
            category=category,
            instance_number=self.count(category) + 1,
            city_id=self.city.id,
        )

        for existing in self.city.threads:
            self.add_relationship(thread, calculate_relationship(thread, existing))
            self.add_relationship(existing, calculate_relationship(existing, thread))

        self.city.threads.append(thread)
        self.city.log.append(f"Thread woven: {thread.display_name} [Coherence: {thread.coherence:.2f}]")
        logger.debug(f"Wove {thread.display_name} into {self.city.name}")

        # The city comments on its first two threads
        if self.dialogue is not None and len(self.city.threads) <= 2:
            tag = "first" if len(self.city.threads) == 1 else "second"
            line = self.dialogue.get_dialogue(
                DialogueSpeaker.CITY, DialogueContext.ON_CREATION, tags=[tag], rng=self.rng
            )
            if line:
                self.city.log.append(f"CITY: {line}")

        if self.bus is not None:
            self.bus.emit(
                EventType.THREAD_WOVEN,
                city_id=self.city.id,
                thread_id=thread.id,
                display_name=thread.display_name,
            )

        return thread

    def weave_many(self, categories: list[ThreadType]) -> list[UrbanThread]:
        return [self.weave(category) for category in categories]

    def creation_line(self, thread: UrbanThread) -> str | None:
        """The new thread's own first words, if any dialogue is loaded."""
        if self.dialogue is None:
            return None
        return self.dialogue.get_dialogue(
            DialogueSpeaker.for_thread(thread.category), DialogueContext.ON_CREATION, rng=self.rng
        )
