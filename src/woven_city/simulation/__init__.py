"""The idle tick loop and the planner's interactions with it."""

from .engine import RunResult, SimulationEngine
from .interaction import consciousness_summary, record_interaction, respond_to_request

__all__ = [
    "RunResult",
    "SimulationEngine",
    "consciousness_summary",
    "record_interaction",
    "respond_to_request",
]
