"""Simulation rules that operate on a city or a game state."""

from .beats import StoryBeatEngine, ThoughtResolutionError
from .emergence import EmergenceEvaluator
from .endings import Ending, check_for_ending, determine_ending
from .moments import MomentSelector
from .mood import derive_mood
from .narrative import NarrativeSelector
from .progression import ProgressionResult, ProgressionSystem
from .relationships import calculate_relationship, relationship_between
from .threads import ThreadGraph

__all__ = [
    "Ending",
    "EmergenceEvaluator",
    "MomentSelector",
    "NarrativeSelector",
    "ProgressionResult",
    "ProgressionSystem",
    "StoryBeatEngine",
    "ThoughtResolutionError",
    "ThreadGraph",
    "calculate_relationship",
    "check_for_ending",
    "derive_mood",
    "determine_ending",
    "relationship_between",
]
