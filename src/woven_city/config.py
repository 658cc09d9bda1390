"""
Balance configuration.

All tunable values for choice impacts, moment selection, endings and the
simulation loop. Stored as JSON or YAML; missing keys fall back to defaults.
"""

import json
import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class ChoiceImpacts(BaseModel):
    """How much each choice pattern moves the player-city relationship."""
    story_choice_increment: int = 1
    story_trust_gain: float = 0.05
    story_autonomy_impact: float = 0.0

    efficiency_choice_increment: int = 1
    efficiency_trust_loss: float = 0.02
    efficiency_autonomy_impact: float = -0.01

    autonomy_choice_increment: int = 1
    autonomy_trust_impact: float = 0.03
    autonomy_gain: float = 0.05

    control_choice_increment: int = 1
    control_trust_impact: float = -0.03
    control_autonomy_loss: float = 0.05


class RelationshipBounds(BaseModel):
    """Limits for GameState trust and autonomy."""
    min_trust: float = 0.0
    max_trust: float = 1.0
    initial_trust: float = 0.5
    min_autonomy: float = 0.0
    max_autonomy: float = 1.0
    initial_autonomy: float = 0.5


class MomentWeights(BaseModel):
    """Weights for procedural moment selection."""
    base_weight: float = 1.0
    fragile_moment_multiplier: float = 2.5
    recent_type_weight_reduction: float = 0.3  # 0.3 = 30% of normal weight
    recent_moment_check_count: int = 3


class MomentFragility(BaseModel):
    """Fragility buckets and their destruction chances."""
    high_fragility_threshold: int = 7
    moderate_fragility_threshold: int = 4
    high_fragility_destruction_chance: float = 0.6
    moderate_fragility_destruction_chance: float = 0.3
    low_fragility_destruction_chance: float = 0.1


class EndingThresholds(BaseModel):
    """Thresholds deciding which ending a session reaches."""
    fragmentation_efficiency_ratio: float = 0.7
    fragmentation_destroyed_moments: int = 8

    archive_story_ratio: float = 0.7
    archive_max_destroyed_moments: int = 2

    silence_control_ratio: float = 0.6
    silence_requires_ignored_requests: bool = True

    independence_autonomy_ratio: float = 0.6
    independence_min_autonomy: float = 0.7

    harmony_combined_ratio: float = 0.5
    harmony_max_destroyed_moments: int = 3
    harmony_min_trust: float = 0.6

    optimization_combined_ratio: float = 0.5
    optimization_max_destroyed_moments: int = 7

    emergence_max_ratio_difference: float = 0.25
    emergence_required_flags: list[str] = Field(
        default_factory=lambda: ["cityTranscended", "questionedOwnNature", "formedNewPattern"]
    )

    symbiosis_requires_ambiguity_acceptance: bool = True
    symbiosis_min_total_choices: int = 20


class SimulationSettings(BaseModel):
    """Tick loop tuning. Constants are content values, not invariants."""
    max_ticks: int = 100
    tick_delay: float = 0.1  # seconds between ticks
    progress_increment: float = 0.01
    narrative_interval: int = 10
    evaluation_interval: int = 10
    autosave: bool = True
    autosave_interval: int = 10
    log_progress: bool = True

    coherence_target: float = 0.75
    trust_target: float = 0.85
    attention_decay: float = 0.001
    interaction_attention_gain: float = 0.1


class BalanceConfig(BaseModel):
    """Master configuration for all balance values."""
    choice_impacts: ChoiceImpacts = Field(default_factory=ChoiceImpacts)
    relationship_bounds: RelationshipBounds = Field(default_factory=RelationshipBounds)
    moment_weights: MomentWeights = Field(default_factory=MomentWeights)
    moment_fragility: MomentFragility = Field(default_factory=MomentFragility)
    ending_thresholds: EndingThresholds = Field(default_factory=EndingThresholds)
    simulation: SimulationSettings = Field(default_factory=SimulationSettings)


DEFAULT_CONFIG = BalanceConfig()


def _read_document(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        return yaml.safe_load(text) or {}
    return json.loads(text)


def load_config(path: Path | str | None = None) -> BalanceConfig:
    """Load config from file, or return defaults if not found or invalid."""
    if path is None:
        return DEFAULT_CONFIG.model_copy(deep=True)

    path = Path(path)
    if not path.exists():
        return DEFAULT_CONFIG.model_copy(deep=True)

    try:
        saved = _read_document(path)
        # Sections missing from the file keep their defaults
        return BalanceConfig.model_validate(saved)
    except (json.JSONDecodeError, yaml.YAMLError, ValidationError, OSError) as e:
        logger.warning(f"Ignoring invalid config {path}: {e}")
        return DEFAULT_CONFIG.model_copy(deep=True)


def save_config(config: BalanceConfig, path: Path | str) -> bool:
    """Save config to a JSON file. Returns True on success."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
        return True
    except OSError:
        return False


def validate_config(config: BalanceConfig) -> list[str]:
    """Return balance warnings; an empty list means the values look sane."""
    warnings = []
    impacts = config.choice_impacts
    endings = config.ending_thresholds

    if impacts.story_trust_gain > 0.15:
        warnings.append(
            f"Story trust gain ({impacts.story_trust_gain}) is very high - trust will build too quickly"
        )

    if impacts.control_autonomy_loss > 0.15:
        warnings.append(
            f"Control autonomy loss ({impacts.control_autonomy_loss}) is very high - "
            "Silence ending will trigger too easily"
        )

    if endings.fragmentation_efficiency_ratio < endings.optimization_combined_ratio:
        warnings.append("Fragmentation threshold lower than Optimization - may cause conflicts")

    fragility = config.moment_fragility
    if fragility.moderate_fragility_threshold >= fragility.high_fragility_threshold:
        warnings.append("Moderate fragility threshold must be below the high threshold")

    if config.simulation.narrative_interval <= 0 or config.simulation.evaluation_interval <= 0:
        warnings.append("Simulation intervals must be positive")

    return warnings
