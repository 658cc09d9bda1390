"""
Relationship rules between urban thread categories.

A static compatibility matrix keyed by unordered category pairs decides how
two newly connected threads relate. Same-category threads always resonate.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..state.schema import RelationType, ThreadRelationship, ThreadType, UrbanThread


# ─── Data Structures ────────────────────────────────────────

@dataclass(frozen=True)
class RelationshipTemplate:
    """How two categories relate before any emergence deepens the bond."""
    relation_type: RelationType
    strength: float
    synergy: float
    description: str


@dataclass(frozen=True)
class ThreadPair:
    """
    Unordered pair of thread categories.

    Normalized on construction so ThreadPair(a, b) == ThreadPair(b, a).
    """
    first: ThreadType
    second: ThreadType

    def __post_init__(self):
        if self.second.value < self.first.value:
            first, second = self.second, self.first
            object.__setattr__(self, "first", first)
            object.__setattr__(self, "second", second)

    @property
    def is_same_type(self) -> bool:
        return self.first == self.second


# ─── Configuration ───────────────────────────────────────────

DEFAULT_TEMPLATE = RelationshipTemplate(
    RelationType.SUPPORT, 0.4, 0.2, "A moderate connection exists between these threads"
)

RESONANCE_STRENGTH = 0.6
RESONANCE_SYNERGY = 0.5
RESONANCE_LEVEL = 0.7

T = ThreadType
R = RelationType

COMPATIBILITY_MATRIX: dict[ThreadPair, RelationshipTemplate] = {
    # Transit
    ThreadPair(T.TRANSIT, T.HOUSING): RelationshipTemplate(
        R.SUPPORT, 0.75, 0.6, "Transit carries residents between home and everything else"),
    ThreadPair(T.TRANSIT, T.COMMERCE): RelationshipTemplate(
        R.SUPPORT, 0.7, 0.5, "Transit brings customers; commerce gives routes a purpose"),
    ThreadPair(T.TRANSIT, T.CULTURE): RelationshipTemplate(
        R.HARMONY, 0.65, 0.4, "Transit lines thread through the places where culture gathers"),
    ThreadPair(T.TRANSIT, T.PARKS): RelationshipTemplate(
        R.HARMONY, 0.6, 0.5, "Transit opens green spaces to the whole city"),

    # Housing
    ThreadPair(T.HOUSING, T.PARKS): RelationshipTemplate(
        R.SUPPORT, 0.7, 0.8, "Parks give homes room to breathe"),
    ThreadPair(T.HOUSING, T.COMMERCE): RelationshipTemplate(
        R.SUPPORT, 0.65, 0.4, "Neighborhood shops grow where people live"),
    ThreadPair(T.HOUSING, T.CULTURE): RelationshipTemplate(
        R.HARMONY, 0.6, 0.6, "Culture lives in the stories residents carry home"),
    ThreadPair(T.HOUSING, T.WATER): RelationshipTemplate(
        R.DEPENDENCY, 0.9, 0.5, "No home survives without water"),
    ThreadPair(T.HOUSING, T.POWER): RelationshipTemplate(
        R.DEPENDENCY, 0.85, 0.5, "Homes depend on power for light and warmth"),
    ThreadPair(T.HOUSING, T.SEWAGE): RelationshipTemplate(
        R.DEPENDENCY, 0.85, 0.4, "Sewage quietly carries away what homes leave behind"),

    # Culture
    ThreadPair(T.CULTURE, T.COMMERCE): RelationshipTemplate(
        R.HARMONY, 0.5, 0.3, "Markets and galleries share the same crowds"),
    ThreadPair(T.CULTURE, T.PARKS): RelationshipTemplate(
        R.HARMONY, 0.75, 0.7, "Festivals and concerts spill into open green space"),
    ThreadPair(T.CULTURE, T.KNOWLEDGE): RelationshipTemplate(
        R.HARMONY, 0.8, 0.8, "Culture and knowledge preserve the city's memory together"),

    # Commerce
    ThreadPair(T.COMMERCE, T.POWER): RelationshipTemplate(
        R.DEPENDENCY, 0.75, 0.5, "Every storefront hums on borrowed current"),
    ThreadPair(T.COMMERCE, T.PARKS): RelationshipTemplate(
        R.TENSION, 0.3, -0.2, "Commerce eyes green space as land waiting to be used"),

    # Infrastructure
    ThreadPair(T.POWER, T.WATER): RelationshipTemplate(
        R.DEPENDENCY, 0.85, 0.7, "Pumps need power; turbines need water"),
    ThreadPair(T.POWER, T.SEWAGE): RelationshipTemplate(
        R.DEPENDENCY, 0.8, 0.6, "Treatment plants run on steady power"),
    ThreadPair(T.WATER, T.SEWAGE): RelationshipTemplate(
        R.SUPPORT, 0.75, 0.5, "Clean water in, used water out: one cycle"),
    ThreadPair(T.WATER, T.PARKS): RelationshipTemplate(
        R.SUPPORT, 0.7, 0.6, "Water keeps the parks alive through dry seasons"),

    # Knowledge
    ThreadPair(T.KNOWLEDGE, T.HOUSING): RelationshipTemplate(
        R.SUPPORT, 0.6, 0.5, "Libraries and schools anchor neighborhoods"),
    ThreadPair(T.KNOWLEDGE, T.COMMERCE): RelationshipTemplate(
        R.HARMONY, 0.65, 0.6, "Ideas become trades; trades fund new ideas"),
}

del T, R


# ─── Lookup ─────────────────────────────────────────────────

def relationship_between(a: ThreadType, b: ThreadType) -> RelationshipTemplate:
    """Template for two different categories; the moderate default on a miss."""
    return COMPATIBILITY_MATRIX.get(ThreadPair(a, b), DEFAULT_TEMPLATE)


def calculate_relationship(source: UrbanThread, target: UrbanThread) -> ThreadRelationship:
    """Build source's relationship record pointing at target."""
    if source.category == target.category:
        return ThreadRelationship(
            other_thread_id=target.id,
            relation_type=RelationType.RESONANCE,
            strength=RESONANCE_STRENGTH,
            synergy=RESONANCE_SYNERGY,
            is_same_type=True,
            resonance=RESONANCE_LEVEL,
        )

    template = relationship_between(source.category, target.category)
    return ThreadRelationship(
        other_thread_id=target.id,
        relation_type=template.relation_type,
        strength=template.strength,
        synergy=template.synergy,
    )
