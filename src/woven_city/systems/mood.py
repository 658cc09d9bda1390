"""
Mood derivation for a city.

Mood is never stored as a decision; it is recomputed every tick from the
current resources and how long the planner has been away.
"""

from ..state.resources import RESOURCE_DEFAULTS
from ..state.schema import CityMood


def derive_mood(
    resources: dict[str, float],
    attention_level: float,
    progress: float,
    abandonment_hours: float,
    unanswered_requests: int,
) -> CityMood:
    """First matching rule wins."""

    def get(key: str) -> float:
        return resources.get(key, RESOURCE_DEFAULTS[key])

    if get("autonomy") > 0.7 and abandonment_hours > 48:
        return CityMood.TRANSCENDENT
    if abandonment_hours > 24:
        return CityMood.FORGOTTEN
    if unanswered_requests > 7 or get("coherence") < 0.3:
        return CityMood.ANXIOUS
    if get("trust") > 0.7 and attention_level > 0.6:
        return CityMood.CONTENT
    if progress < 0.3:
        return CityMood.AWAKENING
    return CityMood.WAITING
