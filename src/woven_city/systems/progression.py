"""
Progression evaluation: emergence first, then story beats.

Runs on the simulation's evaluation interval and right after a thread is
woven.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..content.schemas import StoryBeat
from ..state.schema import City, EmergentProperty
from .beats import StoryBeatEngine
from .emergence import EmergenceEvaluator


@dataclass
class ProgressionResult:
    """What one evaluation pass changed."""
    emerged: list[EmergentProperty] = field(default_factory=list)
    fired: list[StoryBeat] = field(default_factory=list)

    @property
    def has_effects(self) -> bool:
        return bool(self.emerged or self.fired)


class ProgressionSystem:
    """
    Ties emergence to story beats.

    An emergence rule may link a beat by id; the linked beat fires as soon
    as the property emerges, before the regular trigger pass.
    """

    def __init__(self, emergence: EmergenceEvaluator, beats: StoryBeatEngine):
        self.emergence = emergence
        self.beats = beats
        self._links = {rule.name: rule.story_beat_id for rule in emergence.rules if rule.story_beat_id}

    def evaluate(self, city: City) -> ProgressionResult:
        result = ProgressionResult()

        for prop in self.emergence.evaluate(city):
            result.emerged.append(prop)
            beat_id = self._links.get(prop.name)
            if beat_id and self.beats.fire_by_id(city, beat_id):
                result.fired.append(self.beats.get(beat_id))

        result.fired.extend(self.beats.evaluate(city))
        return result
