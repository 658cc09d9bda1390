"""Authored content: emergence rules, story beats, moments and dialogue."""

from .dialogue import DialogueLibrary
from .loader import (
    ContentError,
    ContentLibrary,
    load_builtin_content,
    load_content_dir,
)

__all__ = [
    "ContentError",
    "ContentLibrary",
    "DialogueLibrary",
    "load_builtin_content",
    "load_content_dir",
]
