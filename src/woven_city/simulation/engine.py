"""
Simulation engine: the idle tick loop.

Each tick the city's attention decays, its resources drift according to how
the planner has treated it, and its mood is re-derived. Every few ticks the
city speaks and the progression system (emergence, then story beats) runs.
When the loop ends, naturally or by cancellation, the city gets exactly one
concluding line and is saved.

The loop is single-threaded asyncio. Tick bodies are synchronous; the sleep
between ticks is the only suspension point, so nothing else can observe a
half-applied tick.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..config import DEFAULT_CONFIG, BalanceConfig
from ..state import resources
from ..state.event_bus import EventBus, EventType
from ..state.schema import City, CityMood
from ..state.store import CityStore
from ..systems.mood import derive_mood
from ..systems.narrative import NarrativeSelector
from ..systems.progression import ProgressionSystem

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one run() call."""
    started: bool
    ticks: int = 0
    cancelled: bool = False
    final_line: str | None = None
    mood: CityMood | None = None


class SimulationEngine:
    """
    Drives a city through one simulation run.

    Collaborators are injected: the random source, the clock, the event bus,
    the store used as save hook and the progression system. Any of them may
    be omitted.
    """

    def __init__(
        self,
        config: BalanceConfig | None = None,
        store: CityStore | None = None,
        progression: ProgressionSystem | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
        bus: EventBus | None = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.store = store
        self.progression = progression
        self.rng = rng or random.Random()
        self.clock = clock
        self.bus = bus
        self.narrative = NarrativeSelector(self.rng, bus, clock)

    @property
    def settings(self):
        return self.config.simulation

    # ─── Per-tick rules ─────────────────────────────────────

    def update_consciousness(self, city: City, abandonment_hours: float) -> None:
        """Attention decay and resource drift for one tick."""
        s = self.settings
        city.attention_level = city.attention_level - s.attention_decay

        answered = city.answered_requests
        total_requests = len(city.requests)

        # Coherence drifts toward its target while the planner pays attention
        if city.attention_level > 0.7:
            current = resources.coherence(city)
            resources.adjust(city, "coherence", (s.coherence_target - current) * 0.01)
        elif city.attention_level < 0.3:
            resources.adjust(city, "coherence", -0.002)

        resources.set_resource(city, "memory", city.progress * 0.8 + answered * 0.05)

        if answered > 0:
            response_rate = answered / max(1, total_requests)
            base = response_rate * 0.7 + (0.3 if abandonment_hours < 1 else 0.0)
            resources.set_resource(city, "trust", (base + resources.trust(city) + s.trust_target) / 3)
        elif abandonment_hours > 24:
            resources.adjust(city, "trust", -0.01)
        else:
            resources.adjust(city, "trust", (s.trust_target - resources.trust(city)) * 0.005)

        if abandonment_hours > 12:
            resources.adjust(city, "autonomy", 0.005)
        elif answered > 3:
            resources.adjust(city, "autonomy", -0.002)

    def update_mood(self, city: City, abandonment_hours: float, tick: int = 0) -> CityMood:
        previous = city.mood
        city.mood = derive_mood(
            city.resources,
            city.attention_level,
            city.progress,
            abandonment_hours,
            city.unanswered_requests,
        )
        if city.mood != previous:
            logger.debug(f"{city.name} mood {previous.value} -> {city.mood.value}")
            if self.bus is not None:
                self.bus.emit(
                    EventType.MOOD_CHANGED,
                    city_id=city.id,
                    tick=tick,
                    before=previous.value,
                    after=city.mood.value,
                )
        return city.mood

    def tick(self, city: City, tick: int) -> None:
        """One synchronous tick: resources, mood, periodic narrative and progression, progress."""
        s = self.settings
        abandonment = city.abandonment_hours(self.clock())

        self.update_consciousness(city, abandonment)
        self.update_mood(city, abandonment, tick)

        if s.narrative_interval > 0 and tick % s.narrative_interval == 0:
            self.narrative.evolve(city, abandonment)

        if self.progression is not None and s.evaluation_interval > 0 and tick % s.evaluation_interval == 0:
            self.progression.evaluate(city)

        city.progress = round(city.progress + s.progress_increment, 6)
        if s.log_progress:
            city.log.append(f"Tick {tick}: progress = {city.progress:.2f}")

        if s.autosave and s.autosave_interval > 0 and tick % s.autosave_interval == 0:
            self.save(city, tick)

        logger.debug(f"{city.name} tick {tick}: mood={city.mood.value} progress={city.progress:.2f}")

    # ─── End of run ─────────────────────────────────────────

    def assess_final_mood(self, city: City) -> str:
        """Append exactly one concluding line and return it."""
        autonomy = resources.autonomy(city)
        trust = resources.trust(city)
        coherence = resources.coherence(city)

        if autonomy > 0.8:
            city.awareness_events.append("The city has achieved independence.")
            line = "Simulation complete. The city no longer needs guidance."
        elif trust > 0.8 and coherence > 0.7:
            city.awareness_events.append("The city and planner achieved harmony.")
            line = "Simulation complete. The city trusts your vision."
        elif coherence < 0.3:
            city.awareness_events.append("The city fragmented under neglect.")
            line = "Simulation complete. The city lost coherence."
        else:
            line = "Simulation complete. The city waits in the silence."

        city.log.append(line)
        return line

    def save(self, city: City, tick: int = 0) -> None:
        if self.store is None:
            return
        self.store.save(city)
        if self.bus is not None:
            self.bus.emit(EventType.CITY_SAVED, city_id=city.id, tick=tick)

    # ─── Run loop ───────────────────────────────────────────

    async def run(self, city: City, cancel_event: asyncio.Event | None = None) -> RunResult:
        """
        Run the city until its progress reaches 1.0, the tick limit, or cancellation.

        A city that is already running is left alone; the call is reported
        and returns a result with started=False.
        """
        if city.is_running:
            logger.warning(f"City {city.name} ({city.id}) is already running; ignoring start request")
            if self.bus is not None:
                self.bus.emit(EventType.SIMULATION_SKIPPED, city_id=city.id)
            return RunResult(started=False, mood=city.mood)

        s = self.settings
        city.is_running = True
        result = RunResult(started=True)
        logger.info(f"Simulation started for {city.name} ({city.id})")
        if self.bus is not None:
            self.bus.emit(EventType.SIMULATION_STARTED, city_id=city.id)

        try:
            for tick in range(1, s.max_ticks + 1):
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    break

                self.tick(city, tick)
                result.ticks = tick

                if city.progress >= 1.0:
                    break

                await asyncio.sleep(s.tick_delay)
        except asyncio.CancelledError:
            result.cancelled = True
            raise
        finally:
            city.is_running = False
            result.final_line = self.assess_final_mood(city)
            result.mood = city.mood
            self.save(city, result.ticks)

            logger.info(
                f"Simulation {'cancelled' if result.cancelled else 'completed'} for {city.name} "
                f"after {result.ticks} ticks: {result.final_line}"
            )
            if self.bus is not None:
                self.bus.emit(
                    EventType.SIMULATION_COMPLETED,
                    city_id=city.id,
                    tick=result.ticks,
                    cancelled=result.cancelled,
                    final_line=result.final_line,
                )

        return result
