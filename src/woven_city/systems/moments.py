"""
Moment selection.

Chooses which narrative moment to reveal next, weighted by the player's
dominant choice pattern, and decides which fragile moments an
efficiency-minded planner destroys along the way.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from ..config import DEFAULT_CONFIG, BalanceConfig, MomentFragility
from ..state.event_bus import EventBus, EventType
from ..state.schema import ChoicePattern, CityMoment, GameState, MomentContext, MomentType

logger = logging.getLogger(__name__)


# ─── Weights ────────────────────────────────────────────────

M = MomentType
P = ChoicePattern

MOMENT_AFFINITIES: dict[tuple[MomentType, ChoicePattern], float] = {
    # Story players are drawn to connection, history and change
    (M.INVISIBLE_CONNECTION, P.STORY): 2.0,
    (M.TEMPORAL_GHOST, P.STORY): 2.0,
    (M.MOMENT_OF_BECOMING, P.STORY): 2.0,
    (M.QUESTION, P.STORY): 1.5,

    # Efficiency players overlook rituals and small things
    (M.DAILY_RITUAL, P.EFFICIENCY): 0.5,
    (M.WEIGHT_OF_SMALL_THINGS, P.EFFICIENCY): 0.5,
    (M.NEAR_MISS, P.EFFICIENCY): 0.7,

    # Autonomy players see the city asking and becoming
    (M.QUESTION, P.AUTONOMY): 1.8,
    (M.MOMENT_OF_BECOMING, P.AUTONOMY): 1.8,

    # Control players rarely witness rebellion
    (M.SMALL_REBELLION, P.CONTROL): 0.3,
}

del M, P


def affinity(moment_type: MomentType, pattern: ChoicePattern) -> float:
    """Neutral 1.0 unless an explicit pair says otherwise."""
    return MOMENT_AFFINITIES.get((moment_type, pattern), 1.0)


def selection_weight(
    moment_type: MomentType,
    pattern: ChoicePattern | None,
    base_weight: float = DEFAULT_CONFIG.moment_weights.base_weight,
) -> float:
    if pattern is None:
        return base_weight
    return base_weight * affinity(moment_type, pattern)


def destruction_probability(fragility: int, settings: MomentFragility | None = None) -> float:
    """Three-bucket step on fragility."""
    settings = settings or DEFAULT_CONFIG.moment_fragility
    if fragility >= settings.high_fragility_threshold:
        return settings.high_fragility_destruction_chance
    if fragility >= settings.moderate_fragility_threshold:
        return settings.moderate_fragility_destruction_chance
    return settings.low_fragility_destruction_chance


# ─── Statistics ─────────────────────────────────────────────

@dataclass
class MomentSelectionStats:
    available_count: int
    type_distribution: dict[MomentType, int] = field(default_factory=dict)
    district_distribution: dict[int, int] = field(default_factory=dict)
    average_fragility: float = 0.0
    recently_shown_types: list[MomentType] = field(default_factory=list)

    def formatted_report(self) -> str:
        lines = [
            "=== MOMENT SELECTION STATISTICS ===",
            "",
            f"Available Moments: {self.available_count}",
            f"Average Fragility: {self.average_fragility:.1f}/10",
            "",
            "BY TYPE:",
        ]
        for moment_type, count in sorted(self.type_distribution.items(), key=lambda x: -x[1]):
            lines.append(f"- {moment_type.description}: {count}")

        lines += ["", "BY DISTRICT:"]
        for district, count in sorted(self.district_distribution.items()):
            name = "City-wide" if district == 0 else f"District {district}"
            lines.append(f"- {name}: {count}")

        if self.recently_shown_types:
            lines += ["", "RECENTLY SHOWN TYPES:"]
            lines += [f"- {t.description}" for t in reversed(self.recently_shown_types)]

        lines.append("===================================")
        return "\n".join(lines)


# ─── Selector ───────────────────────────────────────────────

class MomentSelector:
    """
    Weighted moment selection over one session's moments.

    Remembers the last few selected types so the same kind of moment does
    not come up again and again.
    """

    def __init__(
        self,
        moments: list[CityMoment],
        config: BalanceConfig | None = None,
        rng: random.Random | None = None,
        bus: EventBus | None = None,
    ):
        self.moments = moments
        self.config = config or DEFAULT_CONFIG
        self.rng = rng or random.Random()
        self.bus = bus
        self.recently_shown_types: list[MomentType] = []

    # ─── Queries ────────────────────────────────────────────

    def available(self, act: int, exclude_ids: list[str] | None = None) -> list[CityMoment]:
        """Unrevealed, undestroyed moments unlocked by this act."""
        excluded = set(exclude_ids or [])
        return [
            m for m in self.moments
            if m.is_available_in_act(act)
            and not m.has_been_revealed
            and not m.is_destroyed
            and m.moment_id not in excluded
        ]

    def preserved(self) -> list[CityMoment]:
        return [m for m in self.moments if m.has_been_revealed and not m.is_destroyed]

    def destroyed(self) -> list[CityMoment]:
        return [m for m in self.moments if m.is_destroyed]

    def remembered(self) -> list[CityMoment]:
        return [m for m in self.moments if m.is_remembered]

    def of_type(self, moment_type: MomentType, act: int) -> list[CityMoment]:
        return [m for m in self.available(act) if m.type == moment_type]

    def in_district(self, district: int, act: int) -> list[CityMoment]:
        return [m for m in self.available(act) if m.district == district]

    def with_tag(self, tag: str, act: int) -> list[CityMoment]:
        return [m for m in self.available(act) if tag in m.tags]

    def find(self, moment_id: str) -> CityMoment | None:
        return next((m for m in self.moments if m.moment_id == moment_id), None)

    # ─── Selection ──────────────────────────────────────────

    def weight_for(self, moment: CityMoment, pattern: ChoicePattern | None, enforce_variety: bool = True) -> float:
        weights = self.config.moment_weights
        weight = selection_weight(moment.type, pattern, weights.base_weight)

        if enforce_variety and moment.type in self.recently_shown_types:
            weight *= weights.recent_type_weight_reduction

        if (
            pattern == ChoicePattern.EFFICIENCY
            and moment.fragility >= self.config.moment_fragility.high_fragility_threshold
        ):
            weight *= weights.fragile_moment_multiplier

        return weight

    def _weighted_choice(self, weighted: list[tuple[CityMoment, float]]) -> CityMoment | None:
        if not weighted:
            return None

        total = sum(w for _, w in weighted)
        if total <= 0:
            return self.rng.choice(weighted)[0]

        roll = self.rng.random() * total
        cumulative = 0.0
        for moment, weight in weighted:
            cumulative += weight
            if roll < cumulative:
                return moment
        return weighted[-1][0]

    def _track_type(self, moment_type: MomentType) -> None:
        self.recently_shown_types.append(moment_type)
        limit = self.config.moment_weights.recent_moment_check_count
        if len(self.recently_shown_types) > limit:
            self.recently_shown_types = self.recently_shown_types[-limit:]

    def select(
        self,
        act: int,
        preferred_type: MomentType | None = None,
        preferred_district: int | None = None,
        pattern: ChoicePattern | None = None,
        exclude_ids: list[str] | None = None,
        enforce_variety: bool = True,
    ) -> CityMoment | None:
        """
        Pick one moment, or None when nothing is available.

        Type and district preferences only narrow the pool when something
        would remain. District 0 moments are city-wide and match any district.
        """
        candidates = self.available(act, exclude_ids)
        if not candidates:
            return None

        if preferred_type is not None:
            typed = [m for m in candidates if m.type == preferred_type]
            if typed:
                candidates = typed

        if preferred_district is not None:
            local = [m for m in candidates if m.district in (preferred_district, 0)]
            if local:
                candidates = local

        weighted = [(m, self.weight_for(m, pattern, enforce_variety)) for m in candidates]
        selected = self._weighted_choice(weighted)
        if selected is not None:
            self._track_type(selected.type)
        return selected

    def select_fragile(self, act: int, threshold: int = 7, exclude_ids: list[str] | None = None) -> CityMoment | None:
        fragile = [m for m in self.available(act, exclude_ids) if m.fragility >= threshold]
        if not fragile:
            return None
        return self.rng.choice(fragile)

    def select_many(
        self,
        count: int,
        act: int,
        pattern: ChoicePattern | None = None,
        exclude_ids: list[str] | None = None,
    ) -> list[CityMoment]:
        """Up to count distinct moments for a batch reveal."""
        selected = []
        exclusions = list(exclude_ids or [])
        for _ in range(count):
            moment = self.select(act, pattern=pattern, exclude_ids=exclusions)
            if moment is None:
                break
            selected.append(moment)
            exclusions.append(moment.moment_id)
        return selected

    def reset_variety(self) -> None:
        self.recently_shown_types.clear()

    # ─── Consequences ───────────────────────────────────────

    def reveal(self, moment: CityMoment, state: GameState) -> str:
        """Mark a moment revealed and return its first-mention text."""
        moment.reveal()
        state.reveal_moment(moment.moment_id)
        if self.bus is not None:
            self.bus.emit(EventType.MOMENT_REVEALED, moment_id=moment.moment_id)
        return moment.get_text(MomentContext.FIRST_TIME)

    def attempt_destruction(self, moment: CityMoment) -> bool:
        """Roll against the moment's fragility. Returns True if it was destroyed."""
        probability = destruction_probability(moment.fragility, self.config.moment_fragility)
        if self.rng.random() < probability:
            moment.destroy()
            if self.bus is not None:
                self.bus.emit(EventType.MOMENT_DESTROYED, moment_id=moment.moment_id)
            return True
        return False

    def apply_efficiency_consequences(self, state: GameState, count: int = 1) -> list[str]:
        """Try to destroy the most fragile preserved moments. Returns destroyed ids."""
        threshold = self.config.moment_fragility.moderate_fragility_threshold
        fragile = [m for m in self.preserved() if m.fragility >= threshold]
        fragile.sort(key=lambda m: m.fragility, reverse=True)

        destroyed = []
        for moment in fragile[:count]:
            if self.attempt_destruction(moment):
                destroyed.append(moment.moment_id)
                state.destroy_moment(moment.moment_id)
        if destroyed:
            logger.info(f"Efficiency choices destroyed {len(destroyed)} moment(s)")
        return destroyed

    def stats(self, act: int) -> MomentSelectionStats:
        available = self.available(act)
        types: dict[MomentType, int] = {}
        districts: dict[int, int] = {}
        for m in available:
            types[m.type] = types.get(m.type, 0) + 1
            districts[m.district] = districts.get(m.district, 0) + 1

        average = sum(m.fragility for m in available) / len(available) if available else 0.0
        return MomentSelectionStats(
            available_count=len(available),
            type_distribution=types,
            district_distribution=districts,
            average_fragility=average,
            recently_shown_types=list(self.recently_shown_types),
        )

    def reset(self) -> None:
        """Clear session flags on every moment."""
        for moment in self.moments:
            moment.reset_session()
        self.reset_variety()
