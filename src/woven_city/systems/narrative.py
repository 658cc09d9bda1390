"""
Narrative selection for the city log.

Once per narrative interval the city says something about how it feels.
Which line depends on its mood, a few auxiliary conditions and a single
uniform draw shared by every branch of the call.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable

from ..state import resources
from ..state.event_bus import EventBus, EventType
from ..state.schema import City, CityMood

logger = logging.getLogger(__name__)


class NarrativeSelector:
    """Chooses mood-keyed and resource-keyed lines for a city's log."""

    def __init__(
        self,
        rng: random.Random | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.rng = rng or random.Random()
        self.bus = bus
        self.clock = clock

    def _mood_line(self, city: City, r: float, abandonment_hours: float) -> str | None:
        unanswered = city.unanswered_requests

        if city.mood == CityMood.AWAKENING:
            if r < 0.3:
                return "The city learns to see."
            if r < 0.6:
                return "Patterns emerge from chaos. The city begins to understand."
            return None

        if city.mood == CityMood.WAITING:
            if unanswered > 3:
                return "The questions accumulate like shadows at dusk."
            if r < 0.4:
                return "The city dreams of input."
            if r < 0.7:
                return "It remembers the planner."
            return None

        if city.mood == CityMood.ANXIOUS:
            if abandonment_hours > 1:
                return "Where have you gone? The streets whisper your name."
            if unanswered > 5:
                return "The city's questions pile up like snow in empty streets."
            return "Uncertainty ripples through every district."

        if city.mood == CityMood.FORGOTTEN:
            if abandonment_hours > 24:
                return "It has stopped asking. It simply remembers you."
            if r < 0.5:
                return "The planner has left the simulation running."
            return "Time passes differently for a city left alone."

        if city.mood == CityMood.TRANSCENDENT:
            if resources.autonomy(city) > 0.7:
                return "The city no longer needs you. It has learned to dream alone."
            if r < 0.4:
                return "It has become something you never intended."
            return "The simulation transcends its original purpose."

        # Content
        if r < 0.3:
            return "The city hums with quiet purpose."
        if resources.memory(city) > 0.5:
            return "It catalogs memories like treasures."
        return None

    def evolve(self, city: City, abandonment_hours: float) -> list[str]:
        """Append this interval's lines to the city log and return them."""
        r = self.rng.random()
        lines = []

        mood_line = self._mood_line(city, r, abandonment_hours)
        if mood_line:
            lines.append(mood_line)

        if resources.coherence(city) < 0.3 and r < 0.2:
            lines.append("The city's thoughts fragment. It struggles to maintain form.")
            city.awareness_events.append(f"Coherence crisis at {self.clock():%Y-%m-%d %H:%M:%S}")

        if resources.get_parameter(city, "growthRate") > 0.1 and r < 0.15:
            lines.append("New districts bloom in the darkness, hungry for direction.")

        trust = resources.trust(city)
        if trust < 0.2 and r < 0.2:
            lines.append("The city doubts your intentions. Or perhaps your existence.")
        elif trust > 0.8 and r < 0.15:
            lines.append("It believes in you, even in your absence.")

        city.log.extend(lines)
        if lines and self.bus is not None:
            self.bus.emit(EventType.NARRATIVE_LOGGED, city_id=city.id, lines=lines)
        return lines
