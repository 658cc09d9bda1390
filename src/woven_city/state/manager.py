"""
City lifecycle management.

Handles create, load, list, save, delete operations and the planner's
entry points into a running city: interactions, request answers, woven
threads, answered thoughts and recorded choices.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from ..config import DEFAULT_CONFIG, BalanceConfig
from .event_bus import EventBus, EventType
from .schema import (
    ChoicePattern,
    City,
    CityMoment,
    GameState,
    MomentContext,
    MomentType,
    RequestItem,
    RequestType,
    ThreadType,
    UrbanThread,
)
from .snapshots import CitySnapshot, GameStateSnapshot, snapshot_city, snapshot_game_state
from .store import CityStore, JsonCityStore

if TYPE_CHECKING:
    from ..content.loader import ContentLibrary
    from ..content.schemas import StoryBeat
    from ..simulation.engine import RunResult, SimulationEngine
    from ..systems.endings import Ending
    from ..systems.moments import MomentSelector
    from ..systems.progression import ProgressionResult, ProgressionSystem
    from ..systems.threads import ThreadGraph

logger = logging.getLogger(__name__)


class CityManager:
    """
    Manages city lifecycle and the planner's operations on the current city.

    Storage is delegated to a CityStore implementation:
    - JsonCityStore for production (file-based)
    - MemoryCityStore for testing (in-memory)
    """

    def __init__(
        self,
        store: CityStore | Path | str = "cities",
        content: ContentLibrary | None = None,
        config: BalanceConfig | None = None,
        bus: EventBus | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize with a store.

        Args:
            store: CityStore instance, or path for JsonCityStore
            content: Emergence rules, story beats, moments and dialogue
            config: Balance values; defaults when omitted
            bus: Event bus shared with observers
            rng: Random source for narrative and dialogue draws
            clock: Source of "now", injectable for tests
        """
        if isinstance(store, (Path, str)):
            self.store = JsonCityStore(Path(store))
        else:
            self.store = store

        if content is None:
            from ..content.loader import ContentLibrary

            content = ContentLibrary()
        self.content = content
        self.config = config or DEFAULT_CONFIG
        self.bus = bus or EventBus()
        self.rng = rng or random.Random()
        self.clock = clock

        self.current: City | None = None
        self.game_state = GameState(
            city_trust=self.config.relationship_bounds.initial_trust,
            city_autonomy=self.config.relationship_bounds.initial_autonomy,
            session_started=clock(),
        )
        self._cache: dict[str, City] = {}

        # Systems (lazily initialized)
        self._progression: ProgressionSystem | None = None
        self._moments: MomentSelector | None = None

    @property
    def progression(self) -> ProgressionSystem:
        """Emergence and story beats over the loaded content (lazy initialization)."""
        if self._progression is None:
            from ..systems.beats import StoryBeatEngine
            from ..systems.emergence import EmergenceEvaluator
            from ..systems.progression import ProgressionSystem

            self._progression = ProgressionSystem(
                EmergenceEvaluator(self.content.emergence_rules, self.bus, self.clock),
                StoryBeatEngine(self.content.story_beats, self.bus, self.clock),
            )
        return self._progression

    @property
    def moments(self) -> MomentSelector:
        """Moment selection for this session (lazy initialization)."""
        if self._moments is None:
            from ..systems.moments import MomentSelector

            self._moments = MomentSelector(self.content.fresh_moments(), self.config, self.rng, self.bus)
        return self._moments

    def threads(self) -> ThreadGraph:
        """Thread graph over the current city."""
        from ..systems.threads import ThreadGraph

        return ThreadGraph(self._require_city(), self.content.dialogue, self.rng, self.bus)

    def engine(self) -> SimulationEngine:
        from ..simulation.engine import SimulationEngine

        return SimulationEngine(
            config=self.config,
            store=self.store,
            progression=self.progression,
            rng=self.rng,
            clock=self.clock,
            bus=self.bus,
        )

    def _require_city(self) -> City:
        if self.current is None:
            raise RuntimeError("No city loaded")
        return self.current

    # -------------------------------------------------------------------------
    # City Lifecycle
    # -------------------------------------------------------------------------

    def create_city(self, name: str, parameters: dict[str, float] | None = None) -> City:
        """Create a new city and set it as current."""
        now = self.clock()
        city = City(
            name=name,
            parameters=parameters or {},
            created_at=now,
            last_interaction=now,
        )
        self.current = city
        self._cache[city.id] = city
        self.save_city()
        logger.info(f"Created city {name} ({city.id})")
        return city

    def load_city(self, city_id: str) -> City | None:
        """
        Load a city by ID, partial ID, or 1-based index into list_cities().
        """
        if city_id in self._cache:
            self.current = self._cache[city_id]
            return self.current

        if city_id.isdigit():
            cities = self.list_cities()
            idx = int(city_id) - 1
            if 0 <= idx < len(cities):
                city_id = cities[idx]["id"]

        city = self.store.load(city_id)
        if city is None:
            return None

        # A run cannot survive a process exit
        if city.is_running:
            logger.warning(f"City {city.name} was saved mid-run; clearing its running flag")
            city.is_running = False

        self.current = city
        self._cache[city.id] = city
        return city

    def save_city(self) -> bool:
        if self.current is None:
            return False
        self.store.save(self.current)
        self.bus.emit(EventType.CITY_SAVED, city_id=self.current.id)
        return True

    def delete_city(self, city_id: str) -> str | None:
        """Delete a city by ID. Returns deleted ID or None."""
        if city_id.isdigit():
            cities = self.list_cities()
            idx = int(city_id) - 1
            if 0 <= idx < len(cities):
                city_id = cities[idx]["id"]

        if not self.store.delete(city_id):
            return None

        self._cache.pop(city_id, None)
        if self.current is not None and self.current.id == city_id:
            self.current = None
        return city_id

    def list_cities(self) -> list[dict]:
        """List all cities, each with a human-readable age."""
        cities = self.store.list_all()
        for city in cities:
            city["display_time"] = self._format_relative_time(city["created_at"])
        return cities

    def _format_relative_time(self, moment: datetime) -> str:
        seconds = (self.clock() - moment).total_seconds()
        if seconds < 60:
            return "just now"
        if seconds < 3600:
            return f"{int(seconds // 60)}m ago"
        if seconds < 86400:
            return f"{int(seconds // 3600)}h ago"
        return f"{int(seconds // 86400)}d ago"

    # -------------------------------------------------------------------------
    # Planner Interaction
    # -------------------------------------------------------------------------

    def record_interaction(self) -> None:
        from ..simulation.interaction import record_interaction

        city = self._require_city()
        record_interaction(city, self.clock(), self.config.simulation.interaction_attention_gain)
        self.bus.emit(EventType.INTERACTION_RECORDED, city_id=city.id)

    def add_request(
        self,
        title: str,
        item_type: RequestType = RequestType.REQUEST,
        urgency: float = 0.5,
    ) -> RequestItem:
        """The city asks the planner something."""
        city = self._require_city()
        request = RequestItem(title=title, item_type=item_type, urgency=urgency, created_at=self.clock())
        city.requests.append(request)
        return request

    def respond_to_request(self, request_id: str, response_text: str) -> RequestItem | None:
        """Answer a request by id. Returns the request, or None if unknown."""
        from ..simulation.interaction import respond_to_request

        city = self._require_city()
        request = next((r for r in city.requests if r.id == request_id), None)
        if request is None:
            return None

        respond_to_request(
            city, request, response_text, self.clock(), self.config.simulation.interaction_attention_gain
        )
        self.bus.emit(EventType.REQUEST_ANSWERED, city_id=city.id, request_id=request.id)
        return request

    def weave_thread(self, category: ThreadType) -> tuple[UrbanThread, str | None]:
        """
        Weave a new thread into the current city.

        Returns the thread and its first words (None without dialogue).
        Progression is evaluated immediately so creation beats fire now,
        not at the next simulation interval.
        """
        graph = self.threads()
        thread = graph.weave(category)
        line = graph.creation_line(thread)
        if line:
            self._require_city().log.append(f"{category.value.upper()}: {line}")
        self.progression.evaluate(self._require_city())
        return thread, line

    def weave_threads(self, categories: list[ThreadType]) -> list[tuple[UrbanThread, str | None]]:
        return [self.weave_thread(category) for category in categories]

    def evaluate_progression(self) -> ProgressionResult:
        return self.progression.evaluate(self._require_city())

    def resolve_thought(self, thought_title: str, choice: str) -> StoryBeat | None:
        city = self._require_city()
        self.record_interaction()
        return self.progression.beats.resolve_thought(city, thought_title, choice)

    def record_choice(self, pattern: ChoicePattern) -> list[str]:
        """
        Record a planner choice.

        Efficiency choices may destroy one fragile moment the planner has
        already seen. Returns the ids of moments destroyed by this choice.
        """
        self.game_state.record_choice(pattern, self.config.choice_impacts, self.config.relationship_bounds)
        self.bus.emit(
            EventType.CHOICE_RECORDED,
            city_id=self.current.id if self.current else "",
            pattern=pattern.value,
        )

        if pattern != ChoicePattern.EFFICIENCY:
            return []
        destroyed = self.moments.apply_efficiency_consequences(self.game_state)
        if destroyed and self.current is not None:
            for moment_id in destroyed:
                moment = self.moments.find(moment_id)
                self.current.log.append(moment.get_text(MomentContext.DESTROYED))
        return destroyed

    def reveal_moment(
        self,
        preferred_type: MomentType | None = None,
        preferred_district: int | None = None,
    ) -> tuple[CityMoment, str] | None:
        """
        Reveal the next moment for the current act.

        Selection is weighted by the planner's dominant choice pattern. The
        moment's first-mention text goes to the city log when a city is
        loaded. Returns None once the act has nothing left to reveal.
        """
        moment = self.moments.select(
            self.game_state.current_act,
            preferred_type=preferred_type,
            preferred_district=preferred_district,
            pattern=self.game_state.dominant_pattern(),
        )
        if moment is None:
            return None

        text = self.moments.reveal(moment, self.game_state)
        if self.current is not None:
            self.current.log.append(text)
        return moment, text

    def check_ending(self) -> Ending | None:
        from ..systems.endings import check_for_ending

        return check_for_ending(self.game_state, self.config.ending_thresholds)

    # -------------------------------------------------------------------------
    # Simulation
    # -------------------------------------------------------------------------

    async def run_simulation(self, cancel_event: asyncio.Event | None = None) -> RunResult:
        return await self.engine().run(self._require_city(), cancel_event)

    def consciousness_summary(self) -> str:
        from ..simulation.interaction import consciousness_summary

        return consciousness_summary(self._require_city())

    def snapshot(self) -> CitySnapshot:
        return snapshot_city(self._require_city())

    def game_snapshot(self) -> GameStateSnapshot:
        return snapshot_game_state(self.game_state)
