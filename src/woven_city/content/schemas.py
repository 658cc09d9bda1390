"""
Document models for static narrative content.

Content files use camelCase keys; the models expose snake_case attributes
and accept either spelling.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..state.schema import (
    CityMoment,
    DialogueContext,
    DialogueSpeaker,
    EmotionalTone,
    MomentType,
    ThreadType,
    generate_id,
)


class ContentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------------------------------------------------------
# Dialogue
# -----------------------------------------------------------------------------

class DialogueLine(ContentModel):
    """A single line spoken during a story beat."""
    id: str = Field(default_factory=generate_id)
    speaker: DialogueSpeaker
    text: str
    emotional_tone: EmotionalTone | None = None
    tags: list[str] = Field(default_factory=list)


class DialogueFragment(ContentModel):
    """Interchangeable variations for one speaker in one context."""
    id: str
    speaker: DialogueSpeaker
    fragments: list[str]
    context: DialogueContext
    tags: list[str] = Field(default_factory=list)


class DialogueLibraryFile(ContentModel):
    speaker: DialogueSpeaker
    alternate_terminology: list[str] | None = None
    dialogue_fragments: list[DialogueFragment] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Moments
# -----------------------------------------------------------------------------

class CityMomentData(ContentModel):
    """
    Raw moment entry. ``type`` stays a string here so one bad entry can be
    dropped without rejecting the whole library.
    """
    moment_id: str = Field(alias="momentID")
    text: str
    type: str
    district: int = 0
    fragility: int = 5
    associated_act: int = 1
    first_mention: str = ""
    if_preserved: str = ""
    if_destroyed: str = ""
    if_remembered: str = ""
    tags: list[str] | None = None
    author_notes: str | None = None

    def to_model(self) -> CityMoment | None:
        """Build a CityMoment, or None when the type is unknown."""
        try:
            moment_type = MomentType(self.type)
        except ValueError:
            return None

        return CityMoment(
            moment_id=self.moment_id,
            text=self.text,
            type=moment_type,
            district=self.district,
            fragility=self.fragility,
            associated_act=self.associated_act,
            first_mention=self.first_mention,
            if_preserved=self.if_preserved,
            if_destroyed=self.if_destroyed,
            if_remembered=self.if_remembered,
            tags=self.tags or [],
            author_notes=self.author_notes,
        )


class MomentLibrary(ContentModel):
    moments: list[CityMomentData] = Field(default_factory=list)
    version: str | None = None
    description: str | None = None


# -----------------------------------------------------------------------------
# Emergence rules
# -----------------------------------------------------------------------------

class EmergenceConditions(ContentModel):
    """Absent conditions are vacuously satisfied."""
    required_thread_types: list[ThreadType] = Field(default_factory=list)
    minimum_relationship_strength: float | None = None
    minimum_average_integration: float | None = None
    minimum_thread_count: int | None = None
    minimum_city_complexity: float | None = None


class RelationshipDeepeningTemplate(ContentModel):
    type1: ThreadType
    type2: ThreadType
    quality: str
    strength_bonus: float


class ConsciousnessExpansionTemplate(ContentModel):
    new_perceptions: list[str] = Field(default_factory=list)
    expanded_self_awareness: str = ""
    complexity_increase: float = 0.0
    affected_thread_types: list[ThreadType] | None = None
    deepened_relationships: list[RelationshipDeepeningTemplate] | None = None


class EmergenceRule(ContentModel):
    name: str
    conditions: EmergenceConditions = Field(default_factory=EmergenceConditions)
    consciousness_expansion: ConsciousnessExpansionTemplate = Field(
        default_factory=ConsciousnessExpansionTemplate
    )
    story_beat_id: str | None = Field(default=None, alias="storyBeatID")


class EmergenceRuleCollection(ContentModel):
    emergent_properties: list[EmergenceRule] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Story beats
# -----------------------------------------------------------------------------

class ThreadCreatedTrigger(ContentModel):
    type: Literal["threadCreated"] = "threadCreated"
    count: int


class ThreadCreatedTypeTrigger(ContentModel):
    type: Literal["threadCreatedType"] = "threadCreatedType"
    thread_type: ThreadType
    count: int


class RelationshipFormedTrigger(ContentModel):
    type: Literal["relationshipFormed"] = "relationshipFormed"
    type1: ThreadType
    type2: ThreadType


class EmergentPropertyTrigger(ContentModel):
    type: Literal["emergentProperty"] = "emergentProperty"
    name: str


class SynergyTrigger(ContentModel):
    type: Literal["synergy"] = "synergy"
    type1: ThreadType
    type2: ThreadType
    threshold: float


class TensionTrigger(ContentModel):
    type: Literal["tension"] = "tension"
    type1: ThreadType
    type2: ThreadType
    threshold: float


class CityCoherenceTrigger(ContentModel):
    type: Literal["cityCoherence"] = "cityCoherence"
    threshold: float


class ThreadComplexityTrigger(ContentModel):
    type: Literal["threadComplexity"] = "threadComplexity"
    thread_type: ThreadType
    threshold: float


BeatTrigger = Annotated[
    Union[
        ThreadCreatedTrigger,
        ThreadCreatedTypeTrigger,
        RelationshipFormedTrigger,
        EmergentPropertyTrigger,
        SynergyTrigger,
        TensionTrigger,
        CityCoherenceTrigger,
        ThreadComplexityTrigger,
    ],
    Field(discriminator="type"),
]


class BeatEffects(ContentModel):
    city_coherence: float | None = None
    city_self_awareness: float | None = None
    city_complexity: float | None = None
    thread_coherence: dict[str, float] | None = None  # category -> delta; unknown categories are skipped
    thread_complexity: dict[str, float] | None = None


class ThoughtSpawner(ContentModel):
    thought_title: str
    thought_body: str
    branches: dict[str, str] | None = None  # choice text -> next beat id


class StoryBeat(ContentModel):
    """
    A narrative moment fired when its trigger matches.

    Beats are shared, read-only content; which beats a city has already
    seen lives on the city.
    """
    id: str
    name: str
    trigger: BeatTrigger
    dialogue: list[DialogueLine] = Field(default_factory=list)
    effects: BeatEffects | None = None
    spawned_thought: ThoughtSpawner | None = None
    one_time_only: bool = True


class StoryBeatCollection(ContentModel):
    beats: list[StoryBeat] = Field(default_factory=list)
