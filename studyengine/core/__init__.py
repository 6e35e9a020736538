"""
Core Module - Shared domain models and helpers.

Components:
- models: StudyItem, Question, Flashcard, Attempt and the engine enums
- exceptions: fatal engine errors
- clock: timezone-aware date helpers
- serialization: JSON payload <-> item conversion
"""

from studyengine.core.exceptions import (
    NonFiniteStabilityError,
    StudyEngineError,
    UnknownStudyModeError,
)
from studyengine.core.models import (
    Attempt,
    DueReason,
    Flashcard,
    ItemFacets,
    Question,
    SelfEval,
    StudyItem,
    StudyMode,
    TimingClass,
)

__all__ = [
    # Models
    "Attempt",
    "DueReason",
    "Flashcard",
    "ItemFacets",
    "Question",
    "SelfEval",
    "StudyItem",
    "StudyMode",
    "TimingClass",
    # Errors
    "StudyEngineError",
    "NonFiniteStabilityError",
    "UnknownStudyModeError",
]
