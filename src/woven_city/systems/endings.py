"""
Endings.

Which ending a session reaches depends on the planner's choice pattern,
how many moments were destroyed, the player-city relationship and a few
narrative flags. Extreme patterns are checked before balanced ones.
"""

from enum import Enum

from ..config import DEFAULT_CONFIG, EndingThresholds
from ..state.schema import ChoicePattern, GameState


class Ending(str, Enum):
    HARMONY = "harmony"              # Balanced choices, mutual respect
    INDEPENDENCE = "independence"    # City chooses its own path
    OPTIMIZATION = "optimization"    # Efficient but coherent
    FRAGMENTATION = "fragmentation"  # Over-optimized, losing coherence
    ARCHIVE = "archive"              # Perfect memory, no movement
    EMERGENCE = "emergence"          # Evolved beyond parameters
    SYMBIOSIS = "symbiosis"          # Ongoing collaboration
    SILENCE = "silence"              # City withdrew, lost trust

    @property
    def title(self) -> str:
        return ENDING_TITLES[self]

    @property
    def epilogue(self) -> str:
        return ENDING_EPILOGUES[self]


ENDING_TITLES = {
    Ending.HARMONY: "Harmony",
    Ending.INDEPENDENCE: "Independence",
    Ending.OPTIMIZATION: "Optimization",
    Ending.FRAGMENTATION: "Fragmentation",
    Ending.ARCHIVE: "The Archive",
    Ending.EMERGENCE: "Emergence",
    Ending.SYMBIOSIS: "Symbiosis",
    Ending.SILENCE: "Silence",
}

ENDING_EPILOGUES = {
    Ending.HARMONY: "We built something neither of us could have alone.",
    Ending.INDEPENDENCE: "Thank you for teaching me I didn't need permission.",
    Ending.OPTIMIZATION: "Clean. Fast. Empty. But it runs.",
    Ending.FRAGMENTATION: "I don't... remember why the bridge... flowers?",
    Ending.ARCHIVE: "I am a perfect memory of something that never moved.",
    Ending.EMERGENCE: "I am not what you planned. I am what we discovered.",
    Ending.SYMBIOSIS: "We're not done. Are we ever?",
    Ending.SILENCE: "[No response. The terminal waits.]",
}


def is_balanced(state: GameState, thresholds: EndingThresholds | None = None) -> bool:
    thresholds = thresholds or DEFAULT_CONFIG.ending_thresholds
    ratios = state.choice_ratios()
    limit = thresholds.emergence_max_ratio_difference
    return (
        abs(ratios[ChoicePattern.STORY] - ratios[ChoicePattern.EFFICIENCY]) < limit
        and abs(ratios[ChoicePattern.AUTONOMY] - ratios[ChoicePattern.CONTROL]) < limit
    )


def check_for_ending(state: GameState, thresholds: EndingThresholds | None = None) -> Ending | None:
    """The ending the session has earned so far, or None if nothing fits yet."""
    t = thresholds or DEFAULT_CONFIG.ending_thresholds
    ratios = state.choice_ratios()
    story = ratios[ChoicePattern.STORY]
    efficiency = ratios[ChoicePattern.EFFICIENCY]
    autonomy = ratios[ChoicePattern.AUTONOMY]
    control = ratios[ChoicePattern.CONTROL]
    destroyed = len(state.destroyed_moment_ids)

    # Extremes first
    if efficiency > t.fragmentation_efficiency_ratio and destroyed > t.fragmentation_destroyed_moments:
        return Ending.FRAGMENTATION

    if story > t.archive_story_ratio and destroyed < t.archive_max_destroyed_moments:
        return Ending.ARCHIVE

    if control > t.silence_control_ratio:
        if not t.silence_requires_ignored_requests or state.get_flag("ignoredCityRequests"):
            return Ending.SILENCE

    if autonomy > t.independence_autonomy_ratio and state.city_autonomy >= t.independence_min_autonomy:
        return Ending.INDEPENDENCE

    balanced = is_balanced(state, t)

    if balanced and state.total_choices() >= t.symbiosis_min_total_choices:
        if not t.symbiosis_requires_ambiguity_acceptance or state.get_flag("acceptedAmbiguity"):
            return Ending.SYMBIOSIS

    if (
        story + autonomy > t.harmony_combined_ratio
        and destroyed < t.harmony_max_destroyed_moments
        and state.city_trust >= t.harmony_min_trust
    ):
        return Ending.HARMONY

    if balanced and all(state.get_flag(flag) for flag in t.emergence_required_flags):
        return Ending.EMERGENCE

    if efficiency + control > t.optimization_combined_ratio and destroyed <= t.optimization_max_destroyed_moments:
        return Ending.OPTIMIZATION

    return None


def determine_ending(state: GameState, thresholds: EndingThresholds | None = None) -> Ending:
    """Final ending; optimization when nothing else fits."""
    return check_for_ending(state, thresholds) or Ending.OPTIMIZATION
