"""
Pydantic models for Woven City state.

Designed to serialize to JSON but structured like database tables:
entities reference each other by string id, never by object.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from uuid import uuid4

from ..config import DEFAULT_CONFIG, ChoiceImpacts, RelationshipBounds


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class ThreadType(str, Enum):
    """Aspects of urban infrastructure that can be woven into a city."""
    TRANSIT = "transit"
    HOUSING = "housing"
    CULTURE = "culture"
    COMMERCE = "commerce"
    PARKS = "parks"
    WATER = "water"
    POWER = "power"
    SEWAGE = "sewage"
    KNOWLEDGE = "knowledge"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class RelationType(str, Enum):
    SUPPORT = "support"          # One helps the other function
    HARMONY = "harmony"          # They work well together
    TENSION = "tension"          # They conflict
    RESONANCE = "resonance"      # Same-type threads vibrating together
    DEPENDENCY = "dependency"    # One needs the other to function


class CityMood(str, Enum):
    AWAKENING = "awakening"
    WAITING = "waiting"
    ANXIOUS = "anxious"
    CONTENT = "content"
    FORGOTTEN = "forgotten"
    TRANSCENDENT = "transcendent"


class ChoicePattern(str, Enum):
    STORY = "story"              # Preserve human narratives
    EFFICIENCY = "efficiency"    # Optimize systems
    AUTONOMY = "autonomy"        # Let city decide
    CONTROL = "control"          # Direct intervention


class MomentType(str, Enum):
    """Categories of narrative moments."""
    DAILY_RITUAL = "dailyRitual"
    NEAR_MISS = "nearMiss"
    SMALL_REBELLION = "smallRebellion"
    INVISIBLE_CONNECTION = "invisibleConnection"
    TEMPORAL_GHOST = "temporalGhost"
    QUESTION = "question"
    MOMENT_OF_BECOMING = "momentOfBecoming"
    WEIGHT_OF_SMALL_THINGS = "weightOfSmallThings"

    @property
    def description(self) -> str:
        return MOMENT_TYPE_NAMES[self]


MOMENT_TYPE_NAMES: dict[MomentType, str] = {
    MomentType.DAILY_RITUAL: "Daily Ritual",
    MomentType.NEAR_MISS: "Near Miss",
    MomentType.SMALL_REBELLION: "Small Rebellion",
    MomentType.INVISIBLE_CONNECTION: "Invisible Connection",
    MomentType.TEMPORAL_GHOST: "Temporal Ghost",
    MomentType.QUESTION: "Question",
    MomentType.MOMENT_OF_BECOMING: "Moment of Becoming",
    MomentType.WEIGHT_OF_SMALL_THINGS: "Weight of Small Things",
}


class MomentContext(str, Enum):
    """Which text variant of a moment to show."""
    FIRST_TIME = "firstTime"
    PRESERVED = "preserved"
    DESTROYED = "destroyed"
    REMEMBERED = "remembered"
    DEFAULT = "default"


class RequestType(str, Enum):
    MEMORY = "memory"      # The city remembers something
    REQUEST = "request"    # The city asks for input
    DREAM = "dream"        # Idle thoughts
    WARNING = "warning"    # Something needs attention


class DialogueSpeaker(str, Enum):
    """The city itself plus one voice per thread category."""
    CITY = "city"
    TRANSIT = "transit"
    HOUSING = "housing"
    CULTURE = "culture"
    COMMERCE = "commerce"
    PARKS = "parks"
    WATER = "water"
    POWER = "power"
    SEWAGE = "sewage"
    KNOWLEDGE = "knowledge"

    @classmethod
    def for_thread(cls, thread_type: ThreadType) -> "DialogueSpeaker":
        return cls(thread_type.value)

    @property
    def thread_type(self) -> ThreadType | None:
        if self is DialogueSpeaker.CITY:
            return None
        return ThreadType(self.value)


class EmotionalTone(str, Enum):
    CURIOUS = "curious"
    CONTEMPLATIVE = "contemplative"
    UNCERTAIN = "uncertain"
    CONFIDENT = "confident"
    ANXIOUS = "anxious"
    PEACEFUL = "peaceful"
    EXCITED = "excited"
    MELANCHOLIC = "melancholic"
    DETERMINED = "determined"
    THOUGHTFUL = "thoughtful"
    SURPRISED = "surprised"
    CONTENT = "content"


class DialogueContext(str, Enum):
    ON_CREATION = "onCreation"          # When thread is first woven
    ON_RELATIONSHIP = "onRelationship"  # When forming a new relationship
    ON_EMERGENCE = "onEmergence"        # When emergent property appears
    ON_TENSION = "onTension"            # When conflict arises
    ON_HARMONY = "onHarmony"            # When synergy strengthens
    IDLE = "idle"
    REFLECTION = "reflection"
    MILESTONE = "milestone"
    QUESTIONING = "questioning"
    REALIZATION = "realization"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def generate_id() -> str:
    return str(uuid4())[:8]


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


# -----------------------------------------------------------------------------
# Threads
# -----------------------------------------------------------------------------

class ThreadRelationship(BaseModel):
    """
    One endpoint's record of a relationship with another thread.

    Both endpoints hold their own record; the other side is referenced by id.
    Out-of-range strength and synergy are clamped, never rejected.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    other_thread_id: str
    relation_type: RelationType
    strength: float                      # 0.0 to 1.0
    synergy: float                       # -1.0 (conflict) to 1.0 (mutual benefit)
    formed_at: datetime = Field(default_factory=datetime.now)
    is_same_type: bool = False
    resonance: float | None = None       # Only meaningful for same-type threads

    @field_validator("strength")
    @classmethod
    def _clamp_strength(cls, v: float) -> float:
        return clamp(v, 0.0, 1.0)

    @field_validator("synergy")
    @classmethod
    def _clamp_synergy(cls, v: float) -> float:
        return clamp(v, -1.0, 1.0)


class UrbanThread(BaseModel):
    """A conscious thread woven into a city's fabric."""
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    category: ThreadType
    instance_number: int = 1
    woven_at: datetime = Field(default_factory=datetime.now)

    coherence: float = 0.5    # Internal stability
    autonomy: float = 0.3     # Lower = more integrated with other threads
    complexity: float = 0.1   # Depth of thought, grows with emergence

    relationships: list[ThreadRelationship] = Field(default_factory=list)
    city_id: str | None = None

    @field_validator("coherence", "autonomy", "complexity")
    @classmethod
    def _clamp_unit(cls, v: float) -> float:
        return clamp(v)

    @property
    def display_name(self) -> str:
        """e.g. Transit_01"""
        return f"{self.category.display_name}_{self.instance_number:02d}"

    @property
    def integration_level(self) -> float:
        """Mean relationship strength, 0.0 when unconnected."""
        if not self.relationships:
            return 0.0
        return sum(r.strength for r in self.relationships) / len(self.relationships)

    @property
    def average_synergy(self) -> float:
        if not self.relationships:
            return 0.0
        return sum(r.synergy for r in self.relationships) / len(self.relationships)

    def relationship_with(self, thread_id: str) -> ThreadRelationship | None:
        for relationship in self.relationships:
            if relationship.other_thread_id == thread_id:
                return relationship
        return None


# -----------------------------------------------------------------------------
# Emergence
# -----------------------------------------------------------------------------

class RelationshipDeepening(BaseModel):
    """How a relationship between two specific threads deepens."""
    thread_id_1: str
    thread_id_2: str
    quality: str                # "spatial intimacy", "functional synergy"
    strength_bonus: float


class ConsciousnessExpansion(BaseModel):
    """How an emergent property changes existing consciousness."""
    affected_thread_ids: list[str] = Field(default_factory=list)
    new_perceptions: list[str] = Field(default_factory=list)
    deepened_relationships: list[RelationshipDeepening] = Field(default_factory=list)
    expanded_self_awareness: str = ""
    complexity_increase: float = 0.0


class EmergentProperty(BaseModel):
    """
    A new dimension of awareness arising from interacting threads.

    Emergence deepens understanding of existing entities; a property never
    speaks in its own voice.
    """
    id: str = Field(default_factory=generate_id)
    name: str
    emerged_at: datetime = Field(default_factory=datetime.now)
    source_thread_ids: list[str] = Field(default_factory=list)
    consciousness_expansion: ConsciousnessExpansion = Field(default_factory=ConsciousnessExpansion)
    city_id: str | None = None

    @property
    def has_voice(self) -> bool:
        return False


# -----------------------------------------------------------------------------
# City
# -----------------------------------------------------------------------------

class RequestItem(BaseModel):
    """Something the city has asked of its planner."""
    id: str = Field(default_factory=generate_id)
    title: str = "Task"
    item_type: RequestType = RequestType.REQUEST
    urgency: float = 0.5
    created_at: datetime = Field(default_factory=datetime.now)
    response: str | None = None

    @property
    def is_answered(self) -> bool:
        return self.response is not None


class PendingThought(BaseModel):
    """A thought spawned by a story beat, waiting for the planner."""
    beat_id: str
    title: str
    body: str
    branches: dict[str, str] = Field(default_factory=dict)  # choice text -> next beat id
    spawned_at: datetime = Field(default_factory=datetime.now)


def default_resources() -> dict[str, float]:
    return {
        "coherence": 1.0,     # Sanity/stability
        "memory": 0.0,        # Accumulated experiences
        "trust": 0.5,         # Faith in the planner
        "autonomy": 0.0,      # Self-sufficiency
        "complexity": 0.0,    # Depth of consciousness
    }


class City(BaseModel):
    """Aggregate root for one simulated city consciousness."""
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    name: str
    created_at: datetime = Field(default_factory=datetime.now)
    progress: float = 0.0
    log: list[str] = Field(default_factory=list)
    is_running: bool = False
    parameters: dict[str, float] = Field(default_factory=dict)

    mood: CityMood = CityMood.AWAKENING
    attention_level: float = 1.0
    last_interaction: datetime = Field(default_factory=datetime.now)
    awareness_events: list[str] = Field(
        default_factory=lambda: ["The city opens its eyes for the first time."]
    )
    resources: dict[str, float] = Field(default_factory=default_resources)

    threads: list[UrbanThread] = Field(default_factory=list)
    emergent_properties: list[EmergentProperty] = Field(default_factory=list)
    perceptions: list[str] = Field(default_factory=list)
    triggered_beat_ids: list[str] = Field(default_factory=list)

    requests: list[RequestItem] = Field(default_factory=list)
    pending_thoughts: list[PendingThought] = Field(default_factory=list)

    @field_validator("progress", "attention_level")
    @classmethod
    def _clamp_unit(cls, v: float) -> float:
        return clamp(v)

    @field_validator("resources")
    @classmethod
    def _clamp_resources(cls, v: dict[str, float]) -> dict[str, float]:
        return {key: clamp(value) for key, value in v.items()}

    @property
    def unanswered_requests(self) -> int:
        return len([r for r in self.requests if not r.is_answered])

    @property
    def answered_requests(self) -> int:
        return len([r for r in self.requests if r.is_answered])

    def has_emerged(self, name: str) -> bool:
        return any(p.name == name for p in self.emergent_properties)

    def has_triggered(self, beat_id: str) -> bool:
        return beat_id in self.triggered_beat_ids

    def mark_triggered(self, beat_id: str) -> None:
        if beat_id not in self.triggered_beat_ids:
            self.triggered_beat_ids.append(beat_id)

    def abandonment_hours(self, now: datetime | None = None) -> float:
        """Hours since the planner last touched the city."""
        now = now or datetime.now()
        return max(0.0, (now - self.last_interaction).total_seconds() / 3600)


# -----------------------------------------------------------------------------
# Session state
# -----------------------------------------------------------------------------

class GameState(BaseModel):
    """
    Per-session progression and the hidden choice-pattern accumulator.

    The choice counters and the trust/autonomy relationship only move
    through record_choice().
    """
    current_act: int = 1
    current_scene: int = 0

    story_choices: int = 0
    efficiency_choices: int = 0
    autonomy_choices: int = 0
    control_choices: int = 0

    unlocked_commands: list[str] = Field(default_factory=lambda: ["HELP", "OBSERVE"])
    revealed_moment_ids: list[str] = Field(default_factory=list)
    destroyed_moment_ids: list[str] = Field(default_factory=list)

    narrative_flags: dict[str, bool] = Field(default_factory=dict)
    narrative_data: dict[str, str] = Field(default_factory=dict)

    reached_ending: str | None = None
    session_started: datetime = Field(default_factory=datetime.now)

    # Relationship with the city, not the city's internal state
    city_trust: float = DEFAULT_CONFIG.relationship_bounds.initial_trust
    city_autonomy: float = DEFAULT_CONFIG.relationship_bounds.initial_autonomy

    def record_choice(
        self,
        pattern: ChoicePattern,
        impacts: ChoiceImpacts | None = None,
        bounds: RelationshipBounds | None = None,
    ) -> None:
        """Count a choice and shift trust/autonomy by its configured impact."""
        impacts = impacts or DEFAULT_CONFIG.choice_impacts
        bounds = bounds or DEFAULT_CONFIG.relationship_bounds

        if pattern == ChoicePattern.STORY:
            self.story_choices += impacts.story_choice_increment
            self.city_trust += impacts.story_trust_gain
            self.city_autonomy += impacts.story_autonomy_impact
        elif pattern == ChoicePattern.EFFICIENCY:
            self.efficiency_choices += impacts.efficiency_choice_increment
            self.city_trust -= impacts.efficiency_trust_loss
            self.city_autonomy += impacts.efficiency_autonomy_impact
        elif pattern == ChoicePattern.AUTONOMY:
            self.autonomy_choices += impacts.autonomy_choice_increment
            self.city_trust += impacts.autonomy_trust_impact
            self.city_autonomy += impacts.autonomy_gain
        elif pattern == ChoicePattern.CONTROL:
            self.control_choices += impacts.control_choice_increment
            self.city_trust += impacts.control_trust_impact
            self.city_autonomy -= impacts.control_autonomy_loss

        self.city_trust = clamp(self.city_trust, bounds.min_trust, bounds.max_trust)
        self.city_autonomy = clamp(self.city_autonomy, bounds.min_autonomy, bounds.max_autonomy)

    def unlock_command(self, command: str) -> None:
        command = command.upper()
        if command not in self.unlocked_commands:
            self.unlocked_commands.append(command)

    def is_command_unlocked(self, command: str) -> bool:
        return command.upper() in self.unlocked_commands

    def reveal_moment(self, moment_id: str) -> None:
        if moment_id not in self.revealed_moment_ids:
            self.revealed_moment_ids.append(moment_id)

    def destroy_moment(self, moment_id: str) -> None:
        if moment_id not in self.destroyed_moment_ids:
            self.destroyed_moment_ids.append(moment_id)

    def set_flag(self, flag: str, value: bool = True) -> None:
        self.narrative_flags[flag] = value

    def get_flag(self, flag: str) -> bool:
        return self.narrative_flags.get(flag, False)

    def advance_act(self) -> None:
        self.current_act += 1
        self.current_scene = 0

    def advance_scene(self) -> None:
        self.current_scene += 1

    def total_choices(self) -> int:
        return self.story_choices + self.efficiency_choices + self.autonomy_choices + self.control_choices

    def choice_ratios(self) -> dict[ChoicePattern, float]:
        """Share of each pattern in all choices; all zero before any choice."""
        total = self.total_choices()
        counts = {
            ChoicePattern.STORY: self.story_choices,
            ChoicePattern.EFFICIENCY: self.efficiency_choices,
            ChoicePattern.AUTONOMY: self.autonomy_choices,
            ChoicePattern.CONTROL: self.control_choices,
        }
        if total == 0:
            return {pattern: 0.0 for pattern in counts}
        return {pattern: count / total for pattern, count in counts.items()}

    def dominant_pattern(self) -> ChoicePattern | None:
        """Highest-ratio pattern; ties resolve story, efficiency, autonomy, control."""
        ratios = self.choice_ratios()
        best = max(ratios.values())
        if best <= 0:
            return None
        for pattern, ratio in ratios.items():
            if ratio == best:
                return pattern
        return None


# -----------------------------------------------------------------------------
# Moments
# -----------------------------------------------------------------------------

class CityMoment(BaseModel):
    """A narrative moment, revealed through play and shaped by choices."""
    moment_id: str
    text: str
    type: MomentType
    district: int = 0          # 0 = city-wide
    fragility: int = 5         # 1 = resilient, 10 = extremely fragile
    associated_act: int = 1

    first_mention: str = ""
    if_preserved: str = ""
    if_destroyed: str = ""
    if_remembered: str = ""

    tags: list[str] = Field(default_factory=list)
    author_notes: str | None = None

    # Session-only state
    has_been_revealed: bool = False
    is_destroyed: bool = False
    is_remembered: bool = False
    revealed_at: datetime | None = None

    @field_validator("fragility")
    @classmethod
    def _clamp_fragility(cls, v: int) -> int:
        return int(clamp(v, 1, 10))

    @property
    def type_name(self) -> str:
        return self.type.description

    def get_text(self, context: MomentContext) -> str:
        variants = {
            MomentContext.FIRST_TIME: self.first_mention,
            MomentContext.PRESERVED: self.if_preserved,
            MomentContext.DESTROYED: self.if_destroyed,
            MomentContext.REMEMBERED: self.if_remembered,
        }
        # Empty variants fall back to the base text
        return variants.get(context) or self.text

    def reveal(self, now: datetime | None = None) -> None:
        self.has_been_revealed = True
        self.revealed_at = now or datetime.now()

    def destroy(self) -> None:
        self.is_destroyed = True

    def remember(self) -> None:
        self.is_remembered = True

    def is_available_in_act(self, act: int) -> bool:
        return act >= self.associated_act

    def has_any_tag(self, tags: list[str]) -> bool:
        return not set(self.tags).isdisjoint(tags)

    def has_all_tags(self, tags: list[str]) -> bool:
        return set(tags).issubset(self.tags)

    def reset_session(self) -> None:
        self.has_been_revealed = False
        self.is_destroyed = False
        self.is_remembered = False
        self.revealed_at = None
