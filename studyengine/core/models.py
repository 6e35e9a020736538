"""
Core study item models.

Design:
- StudyItem: the capability set the engine schedules (SRS fields + flags)
- Question / Flashcard: concrete kinds carrying their own content fields
- Attempt: immutable record appended on every review
- ItemFacets: the only view of kind-specific data the engine ever reads

Items are frozen snapshots. A review never edits an item in place; it yields
a new snapshot that the caller persists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, ClassVar

from studyengine.core.clock import utc_now


class SelfEval(IntEnum):
    """Self-reported difficulty of a review."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    @property
    def grade(self) -> str:
        return self.name.lower()


class TimingClass(str, Enum):
    """Response-time classification relative to the learner's own norm."""

    RUSH = "RUSH"  # Faster than genuine retrieval allows (likely a guess)
    SOP_OK = "SOP_OK"  # Within the expected operating band
    OVER = "OVER"  # Far slower than usual


class DueReason(str, Enum):
    DUE = "due"
    NEW = "new"


class StudyMode(str, Enum):
    """Queue building strategy."""

    STANDARD = "standard"  # Steady spaced repetition
    EXAM = "exam"  # Cram by exam-day failure risk
    CRITICAL = "critical"  # Recovery triage


@dataclass(frozen=True)
class Attempt:
    """One review of one item."""

    timestamp: datetime
    was_correct: bool
    mastery_after: float
    stability_after: float
    elapsed_sec: float
    self_eval_level: int
    timing_class: TimingClass | None = None
    grade: str | None = None
    target_sec: float | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ItemFacets:
    """Filterable, kind-independent view of an item's classification."""

    subject: str = ""
    topic: str = ""
    bank: str | None = None
    area: str | None = None
    tags: tuple[str, ...] = ()
    question_type: str | None = None
    is_favorite: bool = False


@dataclass(frozen=True)
class StudyItem:
    """Anything the engine can schedule."""

    id: str
    next_review_date: datetime | None = None
    stability: float = 1.0  # Days; time constant of the forgetting curve
    mastery_score: float = 0.0  # 0-100
    total_attempts: int = 0
    last_was_correct: bool | None = None
    recent_error: int = 0
    hot_topic: bool = False
    is_critical: bool = False
    is_fundamental: bool = False
    last_reviewed_at: datetime | None = None
    attempt_history: tuple[Attempt, ...] = ()
    correct_streak: int = 0
    srs_stage: int = 0
    lapses: int = 0

    kind: ClassVar[str] = "item"

    @classmethod
    def new(cls, id: str, *, now: datetime | None = None, stability: float | None = None, **fields: Any):
        """
        Create a never-reviewed item.

        Stability defaults to ``srs_v2.S_default_days`` and the item is due
        immediately.
        """
        if stability is None:
            from config import get_settings

            stability = get_settings().srs_v2.S_default_days
        return cls(
            id=id,
            next_review_date=now or utc_now(),
            stability=stability,
            mastery_score=0.0,
            total_attempts=0,
            **fields,
        )

    @property
    def is_new(self) -> bool:
        return self.total_attempts == 0

    @property
    def recently_wrong(self) -> bool:
        """Last attempt was wrong."""
        return self.total_attempts > 0 and not self.last_was_correct

    @property
    def has_recent_error(self) -> bool:
        return self.recently_wrong or self.recent_error > 0

    def facets(self) -> ItemFacets:
        return ItemFacets()

    @property
    def subject_key(self) -> str:
        """Grouping key for interleaving and timing scopes."""
        return self.facets().subject or "default"


@dataclass(frozen=True)
class Question(StudyItem):
    """Quiz-style question."""

    question_ref: str = ""
    question_text: str = ""
    options: dict[str, str | None] = field(default_factory=dict)
    correct_answer: str = ""
    subject: str = ""
    topic: str = ""
    bank: str | None = None
    area: str | None = None
    question_type: str | None = None
    tags: tuple[str, ...] = ()
    is_favorite: bool = False
    is_gap_type: bool = False

    kind: ClassVar[str] = "question"

    def facets(self) -> ItemFacets:
        return ItemFacets(
            subject=self.subject,
            topic=self.topic,
            bank=self.bank,
            area=self.area,
            tags=tuple(self.tags),
            question_type=self.question_type,
            is_favorite=self.is_favorite,
        )


@dataclass(frozen=True)
class Flashcard(StudyItem):
    """Front/back flashcard."""

    front: str = ""
    back: str = ""
    discipline: str = ""
    topic: str = ""
    card_type: str = "basic"  # basic, cloze, imageOcclusion
    tags: tuple[str, ...] = ()
    is_favorite: bool = False

    kind: ClassVar[str] = "flashcard"

    def facets(self) -> ItemFacets:
        return ItemFacets(
            subject=self.discipline,
            topic=self.topic,
            tags=tuple(self.tags),
            is_favorite=self.is_favorite,
        )
