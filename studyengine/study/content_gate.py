"""
Content Gate - keeps unplayable or frozen content out of study sessions.

Philosophy:
- Rejected items are dropped, never raised on
- The gate runs before any scoring
- Frozen subjects are excluded wholesale

The queue builder consumes any object implementing ContentGate;
DefaultContentGate is the in-memory implementation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Protocol, Sequence, TypeVar

from loguru import logger

from studyengine.core.clock import utc_now
from studyengine.core.models import Flashcard, Question, StudyItem

T = TypeVar("T", bound=StudyItem)

TRUE_FALSE_TYPE = "11 Certo/Errado"
GAP_REF_PREFIXES = ("GAP-", "LACUNA-")
OPTION_KEYS = ("A", "B", "C", "D", "E")


class ContentGate(Protocol):
    """Safety gate consumed by the queue builder."""

    def filter_executable_items(self, items: Sequence[T]) -> list[T]: ...

    def is_strict_question(self, item: StudyItem) -> bool: ...


def normalize_key(name: str | None) -> str:
    """Canonical subject key: upper-case, single spaces, tight slashes."""
    key = (name or "").upper().strip()
    key = re.sub(r"\s+", " ", key)
    return re.sub(r"\s*/\s*", "/", key)


def resolve_discipline_name(item: StudyItem | None) -> str:
    if item is None:
        return ""
    facets = item.facets()
    return (facets.subject or facets.area or "").strip()


@dataclass
class DisciplineFlags:
    """Frozen-subject flags, keyed by normalised subject name."""

    frozen: dict[str, datetime] = field(default_factory=dict)

    def is_frozen(self, name: str) -> bool:
        return normalize_key(name) in self.frozen

    def set_frozen(self, name: str, frozen: bool, now: datetime | None = None) -> None:
        key = normalize_key(name)
        if frozen:
            self.frozen[key] = now or utc_now()
        else:
            self.frozen.pop(key, None)

    def frozen_set(self) -> set[str]:
        return set(self.frozen)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> DisciplineFlags:
        flags = cls()
        for name in names:
            flags.set_frozen(name, True)
        return flags


def is_strict_question(item: StudyItem) -> bool:
    """
    True only for a genuine question, not a gap/cloze item.

    Gap items are recognised by their flag, their reference prefix, or
    ``{{...}}`` markers in the text.
    """
    if not isinstance(item, Question):
        return False
    if item.is_gap_type:
        return False
    if item.question_ref and item.question_ref.startswith(GAP_REF_PREFIXES):
        return False
    if item.question_text and "{{" in item.question_text and "}}" in item.question_text:
        return False
    if not item.correct_answer and not item.options:
        return False
    return True


def _is_valid_option(text: str | None) -> bool:
    if not text or not text.strip():
        return False
    # Diagnosis codes leaking into option text
    if text.startswith("WD_") or (len(text) < 50 and "|" in text):
        return False
    return True


def validate_question_for_session(item: Question) -> bool:
    """Minimum content needed to present a question."""
    if not is_strict_question(item):
        return False
    if not item.question_text or not item.question_text.strip():
        return False
    if not item.correct_answer or not item.correct_answer.strip():
        return False
    if item.question_type == TRUE_FALSE_TYPE:
        return True
    valid = [key for key in OPTION_KEYS if _is_valid_option(item.options.get(key))]
    return len(valid) >= 2


def validate_flashcard_for_session(item: Flashcard) -> bool:
    return bool(item.front and item.front.strip() and item.back and item.back.strip())


def validate_for_session(item: StudyItem) -> bool:
    if isinstance(item, Question):
        return validate_question_for_session(item)
    if isinstance(item, Flashcard):
        return validate_flashcard_for_session(item)
    return True


class DefaultContentGate:
    """Structural validation plus frozen-subject exclusion."""

    def __init__(self, flags: DisciplineFlags | None = None):
        self.flags = flags or DisciplineFlags()

    def can_execute(self, item: StudyItem | None) -> bool:
        if item is None:
            return False
        discipline = resolve_discipline_name(item)
        if discipline and self.flags.is_frozen(discipline):
            return False
        return validate_for_session(item)

    def filter_executable_items(self, items: Sequence[T]) -> list[T]:
        if not items:
            return []
        kept = [item for item in items if self.can_execute(item)]
        if len(kept) != len(items):
            logger.debug(f"Content gate dropped {len(items) - len(kept)} of {len(items)} items")
        return kept

    def is_strict_question(self, item: StudyItem) -> bool:
        return is_strict_question(item)
