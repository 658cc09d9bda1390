"""
Read-only views of simulation state for renderers and other collaborators.

Snapshots are frozen; mutating them raises a pydantic ValidationError.
Mappings are stored as tuples of (key, value) pairs so nothing inside a
snapshot can be changed in place either.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from . import resources
from .schema import ChoicePattern, City, CityMood, GameState, ThreadType, UrbanThread


class ThreadSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    category: ThreadType
    coherence: float
    autonomy: float
    complexity: float
    integration_level: float
    average_synergy: float
    relationship_count: int


class CitySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    mood: CityMood
    progress: float
    attention_level: float
    is_running: bool
    last_interaction: datetime
    resources: tuple[tuple[str, float], ...]
    threads: tuple[ThreadSnapshot, ...]
    emergent_properties: tuple[str, ...]
    perceptions: tuple[str, ...]
    recent_log: tuple[str, ...]
    unanswered_requests: int
    pending_thoughts: tuple[str, ...]

    def resource(self, name: str) -> float:
        return dict(self.resources)[name]


class GameStateSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_act: int
    current_scene: int
    total_choices: int
    choice_ratios: tuple[tuple[ChoicePattern, float], ...]
    dominant_pattern: ChoicePattern | None
    city_trust: float
    city_autonomy: float
    destroyed_moments: int
    reached_ending: str | None

    def ratio(self, pattern: ChoicePattern) -> float:
        return dict(self.choice_ratios)[pattern]


def snapshot_thread(thread: UrbanThread) -> ThreadSnapshot:
    return ThreadSnapshot(
        id=thread.id,
        display_name=thread.display_name,
        category=thread.category,
        coherence=thread.coherence,
        autonomy=thread.autonomy,
        complexity=thread.complexity,
        integration_level=thread.integration_level,
        average_synergy=thread.average_synergy,
        relationship_count=len(thread.relationships),
    )


def snapshot_city(city: City, log_tail: int = 10) -> CitySnapshot:
    """Freeze the parts of a city a renderer needs, with resource defaults filled in."""
    return CitySnapshot(
        id=city.id,
        name=city.name,
        mood=city.mood,
        progress=city.progress,
        attention_level=city.attention_level,
        is_running=city.is_running,
        last_interaction=city.last_interaction,
        resources=tuple((key, resources.get_resource(city, key)) for key in resources.RESOURCE_DEFAULTS),
        threads=tuple(snapshot_thread(t) for t in city.threads),
        emergent_properties=tuple(p.name for p in city.emergent_properties),
        perceptions=tuple(city.perceptions),
        recent_log=tuple(city.log[-log_tail:]) if log_tail > 0 else (),
        unanswered_requests=city.unanswered_requests,
        pending_thoughts=tuple(t.title for t in city.pending_thoughts),
    )


def snapshot_game_state(state: GameState) -> GameStateSnapshot:
    return GameStateSnapshot(
        current_act=state.current_act,
        current_scene=state.current_scene,
        total_choices=state.total_choices(),
        choice_ratios=tuple(state.choice_ratios().items()),
        dominant_pattern=state.dominant_pattern(),
        city_trust=state.city_trust,
        city_autonomy=state.city_autonomy,
        destroyed_moments=len(state.destroyed_moment_ids),
        reached_ending=state.reached_ending,
    )
