"""
Story beat engine.

Matches beat triggers against a city's thread graph and resources, then
fires the beats that match: dialogue to the log, effects to the city,
spawned thoughts to the planner's queue.

Beats are shared content. Whether a one-time beat already fired for a city
is recorded on that city, never on the beat.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..content.schemas import (
    BeatEffects,
    BeatTrigger,
    CityCoherenceTrigger,
    EmergentPropertyTrigger,
    RelationshipFormedTrigger,
    StoryBeat,
    SynergyTrigger,
    TensionTrigger,
    ThreadComplexityTrigger,
    ThreadCreatedTrigger,
    ThreadCreatedTypeTrigger,
)
from ..state import resources
from ..state.event_bus import EventBus, EventType
from ..state.schema import City, PendingThought, ThreadType
from .threads import ThreadGraph

logger = logging.getLogger(__name__)

SELF_AWARENESS = "selfAwareness"


class ThoughtResolutionError(Exception):
    """A pending thought could not be resolved with the given choice."""

    def __init__(self, thought_title: str, reason: str):
        self.thought_title = thought_title
        self.reason = reason
        super().__init__(f"Cannot resolve thought {thought_title!r}: {reason}")


# ─── Trigger Predicates ─────────────────────────────────────

def mean_synergy(graph: ThreadGraph, a: ThreadType, b: ThreadType) -> float | None:
    rels = graph.pair_relationships(a, b)
    if not rels:
        return None
    return sum(r.synergy for r in rels) / len(rels)


def mean_tension(graph: ThreadGraph, a: ThreadType, b: ThreadType) -> float | None:
    """Tension is the negative part of synergy, as a positive number."""
    rels = graph.pair_relationships(a, b)
    if not rels:
        return None
    return sum(abs(min(0.0, r.synergy)) for r in rels) / len(rels)


def mean_complexity(graph: ThreadGraph, category: ThreadType) -> float:
    threads = graph.threads_of_type(category)
    if not threads:
        return 0.0
    return sum(t.complexity for t in threads) / len(threads)


def trigger_matches(trigger: BeatTrigger, city: City) -> bool:
    """Pure predicate: does the trigger hold for the city right now?"""
    graph = ThreadGraph(city)

    if isinstance(trigger, ThreadCreatedTrigger):
        return graph.count() >= trigger.count

    if isinstance(trigger, ThreadCreatedTypeTrigger):
        return graph.count(trigger.thread_type) >= trigger.count

    if isinstance(trigger, RelationshipFormedTrigger):
        return graph.has_relationship_between(trigger.type1, trigger.type2)

    if isinstance(trigger, EmergentPropertyTrigger):
        return city.has_emerged(trigger.name)

    if isinstance(trigger, SynergyTrigger):
        synergy = mean_synergy(graph, trigger.type1, trigger.type2)
        return synergy is not None and synergy >= trigger.threshold

    if isinstance(trigger, TensionTrigger):
        tension = mean_tension(graph, trigger.type1, trigger.type2)
        return tension is not None and tension >= trigger.threshold

    if isinstance(trigger, CityCoherenceTrigger):
        return resources.coherence(city) >= trigger.threshold

    if isinstance(trigger, ThreadComplexityTrigger):
        return mean_complexity(graph, trigger.thread_type) >= trigger.threshold

    return False


def thread_deltas(deltas: dict[str, float] | None) -> list[tuple[ThreadType, float]]:
    """Per-category effect deltas; unknown categories are skipped with a warning."""
    known = []
    for key, delta in (deltas or {}).items():
        try:
            known.append((ThreadType(key), delta))
        except ValueError:
            logger.warning(f"Ignoring beat effect for unknown thread type {key!r}")
    return known


# ─── Engine ─────────────────────────────────────────────────

class StoryBeatEngine:
    """Fires story beats for a city."""

    def __init__(
        self,
        beats: list[StoryBeat],
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.beats = beats
        self._by_id = {beat.id: beat for beat in beats}
        self.bus = bus
        self.clock = clock

    def get(self, beat_id: str) -> StoryBeat | None:
        return self._by_id.get(beat_id)

    def is_eligible(self, beat: StoryBeat, city: City) -> bool:
        return not (beat.one_time_only and city.has_triggered(beat.id))

    def check(self, city: City) -> list[StoryBeat]:
        """Beats whose triggers match and that have not been used up. Does not modify the city."""
        return [
            beat for beat in self.beats
            if self.is_eligible(beat, city) and trigger_matches(beat.trigger, city)
        ]

    def evaluate(self, city: City) -> list[StoryBeat]:
        """Fire every eligible matching beat."""
        fired = []
        for beat in self.check(city):
            # An earlier beat in this pass may have fired it through a link
            if self.is_eligible(beat, city):
                self.fire(city, beat)
                fired.append(beat)
        return fired

    def fire(self, city: City, beat: StoryBeat) -> None:
        city.mark_triggered(beat.id)

        for line in beat.dialogue:
            city.log.append(f"{line.speaker.value.upper()}: {line.text}")

        if beat.effects is not None:
            self.apply_effects(city, beat.effects)

        if beat.spawned_thought is not None:
            thought = beat.spawned_thought
            city.pending_thoughts.append(
                PendingThought(
                    beat_id=beat.id,
                    title=thought.thought_title,
                    body=thought.thought_body,
                    branches=dict(thought.branches or {}),
                    spawned_at=self.clock(),
                )
            )
            if self.bus is not None:
                self.bus.emit(EventType.THOUGHT_SPAWNED, city_id=city.id, title=thought.thought_title)

        logger.info(f"Story beat {beat.id} fired for {city.name}")
        if self.bus is not None:
            self.bus.emit(EventType.BEAT_FIRED, city_id=city.id, beat_id=beat.id, name=beat.name)

    def fire_by_id(self, city: City, beat_id: str) -> bool:
        """Fire a linked beat unless it is unknown or already used. Returns True if fired."""
        beat = self.get(beat_id)
        if beat is None:
            logger.warning(f"Linked story beat {beat_id} not found")
            return False
        if not self.is_eligible(beat, city):
            return False
        self.fire(city, beat)
        return True

    @staticmethod
    def apply_effects(city: City, effects: BeatEffects) -> None:
        if effects.city_coherence is not None:
            resources.adjust(city, "coherence", effects.city_coherence)
        if effects.city_complexity is not None:
            resources.adjust(city, "complexity", effects.city_complexity)
        if effects.city_self_awareness is not None:
            resources.adjust_parameter(city, SELF_AWARENESS, effects.city_self_awareness)

        for category, delta in thread_deltas(effects.thread_coherence):
            for thread in city.threads:
                if thread.category == category:
                    thread.coherence = thread.coherence + delta

        for category, delta in thread_deltas(effects.thread_complexity):
            for thread in city.threads:
                if thread.category == category:
                    thread.complexity = thread.complexity + delta

    def resolve_thought(self, city: City, thought_title: str, choice: str) -> StoryBeat | None:
        """
        Answer a pending thought.

        The thought leaves the queue. If the choice names a branch, the beat it
        points at fires and is returned. A thought without branches is simply
        dismissed.

        Raises:
            ThoughtResolutionError: no such pending thought, or the choice is
                not one of its branches
        """
        thought = next((t for t in city.pending_thoughts if t.title == thought_title), None)
        if thought is None:
            raise ThoughtResolutionError(thought_title, "no such pending thought")

        if thought.branches and choice not in thought.branches:
            raise ThoughtResolutionError(thought_title, f"unknown choice {choice!r}")

        city.pending_thoughts.remove(thought)
        city.log.append(f"The planner answers: '{choice}'")

        target_id = thought.branches.get(choice)
        if target_id is None:
            return None
        if self.fire_by_id(city, target_id):
            return self.get(target_id)
        return None
