"""
Content loading for narrative documents.

Reads JSON or YAML files into validated content models. A content directory
is laid out as:

    emergence_rules/*.json   EmergenceRuleCollection
    story_beats/*.json       StoryBeatCollection
    moments/*.json           MomentLibrary
    dialogue/*.json          DialogueLibraryFile (one speaker per file)

YAML (.yaml/.yml) is accepted anywhere JSON is.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from ..state.schema import CityMoment
from .dialogue import DialogueLibrary
from .schemas import (
    DialogueLibraryFile,
    EmergenceRule,
    EmergenceRuleCollection,
    MomentLibrary,
    StoryBeat,
    StoryBeatCollection,
)

logger = logging.getLogger(__name__)

BUILTIN_CONTENT_DIR = Path(__file__).parent / "data"
CONTENT_SUFFIXES = (".json", ".yaml", ".yml")

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


class ContentError(Exception):
    """A content document is missing, unreadable or malformed."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


# ─── Documents ──────────────────────────────────────────────

def read_document(path: Path | str) -> dict:
    """Parse a JSON or YAML file into a dict."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ContentError(f"cannot read file ({e.strerror or e})", path) from e

    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ContentError(f"cannot parse document: {e}", path) from e

    if not isinstance(data, dict):
        raise ContentError("document root must be an object", path)
    return data


def _validate(model: type[M], data: dict, path: Path | None = None) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ContentError(f"invalid {model.__name__}: {e}", path) from e


def _files(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix in CONTENT_SUFFIXES)


# ─── Parsers ────────────────────────────────────────────────

def parse_moments(data: dict, path: Path | None = None) -> list[CityMoment]:
    """Moments from a library document; entries with an unknown type are dropped."""
    library = _validate(MomentLibrary, data, path)
    moments = []
    for entry in library.moments:
        moment = entry.to_model()
        if moment is None:
            logger.warning(f"Skipping moment {entry.moment_id}: unknown type {entry.type!r}")
            continue
        moments.append(moment)
    return moments


def parse_story_beats(data: dict, path: Path | None = None) -> list[StoryBeat]:
    """Beats from a collection document; any bad beat rejects the whole document."""
    return _validate(StoryBeatCollection, data, path).beats


def parse_emergence_rules(data: dict, path: Path | None = None) -> list[EmergenceRule]:
    return _validate(EmergenceRuleCollection, data, path).emergent_properties


def parse_dialogue(data: dict, path: Path | None = None) -> DialogueLibraryFile:
    return _validate(DialogueLibraryFile, data, path)


def load_moments(path: Path | str) -> list[CityMoment]:
    path = Path(path)
    return parse_moments(read_document(path), path)


def load_story_beats(path: Path | str) -> list[StoryBeat]:
    path = Path(path)
    return parse_story_beats(read_document(path), path)


def load_emergence_rules(path: Path | str) -> list[EmergenceRule]:
    path = Path(path)
    return parse_emergence_rules(read_document(path), path)


def load_dialogue_file(path: Path | str) -> DialogueLibraryFile:
    path = Path(path)
    return parse_dialogue(read_document(path), path)


# ─── Merging ────────────────────────────────────────────────

def merge_unique(items: list[T], key: Callable[[T], str], kind: str) -> list[T]:
    """Keep the first item per key; later duplicates are dropped with a warning."""
    seen: set[str] = set()
    merged = []
    for item in items:
        k = key(item)
        if k in seen:
            logger.warning(f"Duplicate {kind} {k!r} dropped")
            continue
        seen.add(k)
        merged.append(item)
    return merged


@dataclass
class ContentLibrary:
    """Everything the simulation reads but never writes."""
    emergence_rules: list[EmergenceRule] = field(default_factory=list)
    story_beats: list[StoryBeat] = field(default_factory=list)
    moments: list[CityMoment] = field(default_factory=list)
    dialogue: DialogueLibrary = field(default_factory=DialogueLibrary)

    def beat(self, beat_id: str) -> StoryBeat | None:
        for beat in self.story_beats:
            if beat.id == beat_id:
                return beat
        return None

    def rule(self, name: str) -> EmergenceRule | None:
        for rule in self.emergence_rules:
            if rule.name == name:
                return rule
        return None

    def fresh_moments(self) -> list[CityMoment]:
        """Per-session copies; moments carry session flags."""
        return [m.model_copy(deep=True) for m in self.moments]

    def validate(self) -> list[str]:
        """Cross-document problems that loading alone cannot catch."""
        issues = list(self.dialogue.validate())
        beat_ids = {b.id for b in self.story_beats}

        for rule in self.emergence_rules:
            if rule.story_beat_id and rule.story_beat_id not in beat_ids:
                issues.append(f"Emergence rule {rule.name!r} links unknown beat {rule.story_beat_id!r}")

        for beat in self.story_beats:
            thought = beat.spawned_thought
            if thought and thought.branches:
                for choice, target in thought.branches.items():
                    if target not in beat_ids:
                        issues.append(f"Beat {beat.id!r} branch {choice!r} points at unknown beat {target!r}")

        return issues


def load_content_dir(directory: Path | str) -> ContentLibrary:
    """Load every content document under a directory. Raises ContentError."""
    directory = Path(directory)
    if not directory.is_dir():
        raise ContentError("content directory not found", directory)

    rules: list[EmergenceRule] = []
    beats: list[StoryBeat] = []
    moments: list[CityMoment] = []
    dialogue = DialogueLibrary()

    for path in _files(directory / "emergence_rules"):
        rules.extend(load_emergence_rules(path))
    for path in _files(directory / "story_beats"):
        beats.extend(load_story_beats(path))
    for path in _files(directory / "moments"):
        moments.extend(load_moments(path))
    for path in _files(directory / "dialogue"):
        dialogue.add(load_dialogue_file(path))

    library = ContentLibrary(
        emergence_rules=merge_unique(rules, lambda r: r.name, "emergence rule"),
        story_beats=merge_unique(beats, lambda b: b.id, "story beat"),
        moments=merge_unique(moments, lambda m: m.moment_id, "moment"),
        dialogue=dialogue,
    )

    logger.info(
        f"Loaded {len(library.emergence_rules)} emergence rules, "
        f"{len(library.story_beats)} story beats, {len(library.moments)} moments, "
        f"{len(library.dialogue.speakers)} dialogue speakers from {directory}"
    )
    return library


def load_builtin_content() -> ContentLibrary:
    """The content shipped with the package."""
    return load_content_dir(BUILTIN_CONTENT_DIR)
