"""
Planner interaction with a city.

These are the only ways the planner's presence reaches the simulation:
touching the city, and answering its requests.
"""

from datetime import datetime

from ..state import resources
from ..state.schema import City, RequestItem, clamp

INTERACTION_ATTENTION_GAIN = 0.1

RESPONSE_TRUST_GAIN = 0.05
RESPONSE_MEMORY_GAIN = 0.02
RESPONSE_AUTONOMY_LOSS = 0.03


def record_interaction(
    city: City,
    now: datetime | None = None,
    attention_gain: float = INTERACTION_ATTENTION_GAIN,
) -> None:
    """The planner looked in on the city."""
    city.last_interaction = now or datetime.now()
    city.attention_level = clamp(city.attention_level + attention_gain)


def respond_to_request(
    city: City,
    request: RequestItem,
    response_text: str,
    now: datetime | None = None,
    attention_gain: float = INTERACTION_ATTENTION_GAIN,
) -> None:
    """
    Answer one of the city's requests.

    Any answer counts as an interaction; only a non-empty one moves trust,
    memory and autonomy.
    """
    now = now or datetime.now()
    request.response = response_text
    record_interaction(city, now, attention_gain)

    if not response_text:
        return

    resources.adjust(city, "trust", RESPONSE_TRUST_GAIN)
    resources.adjust(city, "memory", RESPONSE_MEMORY_GAIN)
    # The city leans on the planner a little more
    resources.adjust(city, "autonomy", -RESPONSE_AUTONOMY_LOSS)

    city.log.append(f"The planner responds: '{response_text}'")
    city.awareness_events.append(f"Response received at {now:%Y-%m-%d %H:%M:%S}: {request.title}")


def consciousness_summary(city: City) -> str:
    return "\n".join([
        f"Mood: {city.mood.value}",
        f"Attention: {city.attention_level * 100:.1f}%",
        f"Coherence: {resources.coherence(city) * 100:.1f}%",
        f"Memory: {resources.memory(city) * 100:.1f}%",
        f"Trust: {resources.trust(city) * 100:.1f}%",
        f"Autonomy: {resources.autonomy(city) * 100:.1f}%",
    ])
