"""
Dialogue library: thread and city voices keyed by speaker and context.
"""

import logging
import random

from ..state.schema import DialogueContext, DialogueSpeaker
from .schemas import DialogueFragment, DialogueLibraryFile

logger = logging.getLogger(__name__)


class DialogueLibrary:
    """In-memory dialogue fragments, organized by speaker."""

    def __init__(self, files: list[DialogueLibraryFile] | None = None):
        self._fragments: dict[DialogueSpeaker, list[DialogueFragment]] = {}
        self._terminology: dict[DialogueSpeaker, list[str]] = {}
        for library in files or []:
            self.add(library)

    def add(self, library: DialogueLibraryFile) -> None:
        """Register one speaker's file. A later file for the same speaker extends it."""
        self._fragments.setdefault(library.speaker, []).extend(library.dialogue_fragments)
        if library.alternate_terminology:
            self._terminology.setdefault(library.speaker, []).extend(library.alternate_terminology)

    @property
    def speakers(self) -> list[DialogueSpeaker]:
        return list(self._fragments)

    def fragments_for(self, speaker: DialogueSpeaker) -> list[DialogueFragment]:
        return list(self._fragments.get(speaker, []))

    def contexts_for(self, speaker: DialogueSpeaker) -> set[DialogueContext]:
        return {f.context for f in self._fragments.get(speaker, [])}

    def get_dialogue(
        self,
        speaker: DialogueSpeaker,
        context: DialogueContext,
        tags: list[str] | None = None,
        rng: random.Random | None = None,
    ) -> str | None:
        """
        A random line for speaker in context.

        When tags are given, only fragments sharing at least one tag qualify.
        Returns None when nothing matches.
        """
        rng = rng or random.Random()
        fragments = self._fragments.get(speaker)
        if not fragments:
            logger.debug(f"No dialogue for speaker {speaker.value}")
            return None

        matches = [f for f in fragments if f.context == context]
        if tags:
            matches = [f for f in matches if not set(f.tags).isdisjoint(tags)]

        matches = [f for f in matches if f.fragments]
        if not matches:
            logger.debug(f"No dialogue for {speaker.value} in {context.value} with tags {tags}")
            return None

        chosen = rng.choice(matches)
        return rng.choice(chosen.fragments)

    def get_alternate_terminology(
        self, speaker: DialogueSpeaker, rng: random.Random | None = None
    ) -> str | None:
        """e.g. "mobility pulse" for transit."""
        terms = self._terminology.get(speaker)
        if not terms:
            return None
        return (rng or random.Random()).choice(terms)

    def validate(self) -> list[str]:
        """Problems found: speakers with no file, or a file with no fragments."""
        issues = []
        for speaker in DialogueSpeaker:
            fragments = self._fragments.get(speaker)
            if fragments is None:
                issues.append(f"Missing dialogue for {speaker.value}")
            elif not fragments:
                issues.append(f"Empty dialogue for {speaker.value}")
        return issues
