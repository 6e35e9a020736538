"""
Review Service - records one attempt end to end.

Wires together:
- TimingScopeRegistry (classify the response time in the item's scope)
- calculate_new_srs_state / apply_srs_patch (new item snapshot)
- Micro-spacing (re-exposure burst when a weak item is failed)

Nothing is persisted here; the caller stores ReviewOutcome.item and, if it
wants, the registry snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from loguru import logger

from config import Settings, get_settings
from studyengine.core.clock import ensure_aware, utc_now
from studyengine.core.models import SelfEval, StudyItem, TimingClass
from studyengine.study.micro_spacing import is_weak, reconcile_next_review, schedule_micro_spacing
from studyengine.study.srs_update import SrsPatch, apply_srs_patch, calculate_new_srs_state
from studyengine.study.timing_classifier import TimingScopeRegistry, TimingVerdict


@dataclass
class ReviewOutcome:
    """Result of recording one review."""

    item: StudyItem  # New snapshot, attempt appended
    patch: SrsPatch
    verdict: TimingVerdict
    micro_schedule: list[datetime] = field(default_factory=list)
    next_due: datetime | None = None  # Soonest of micro checkpoints and next_review_date

    @property
    def timing_class(self) -> TimingClass:
        return self.verdict.timing_class


def subject_scope(item: StudyItem) -> str:
    return item.subject_key


class ReviewService:
    """
    Records reviews for one learner session.

    Usage:
        service = ReviewService()
        outcome = service.record_review(item, is_correct=True, eval_level=2, elapsed_sec=35)
        store.save(outcome.item)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: TimingScopeRegistry | None = None,
        scope_for: Callable[[StudyItem], str] = subject_scope,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or TimingScopeRegistry(self.settings)
        self.scope_for = scope_for

    def record_review(
        self,
        item: StudyItem,
        is_correct: bool,
        eval_level: int | SelfEval,
        elapsed_sec: float,
        *,
        now: datetime | None = None,
        target_sec: float | None = None,
        diagnostics: dict[str, Any] | None = None,
    ) -> ReviewOutcome:
        """
        Classify timing, update SRS state and plan micro-spacing.

        Args:
            item: Item before the attempt
            is_correct: Whether the answer was correct
            eval_level: Self-reported difficulty 0-3
            elapsed_sec: Response time in seconds
            now: Review timestamp (default: now, UTC)
            target_sec: Cold-start timing reference for this item
            diagnostics: Opaque payload stored on the attempt

        Returns:
            ReviewOutcome with the new snapshot
        """
        now = ensure_aware(now) or utc_now()
        scope = self.scope_for(item)
        verdict = self.registry.classify(scope, elapsed_sec, target_sec)

        patch = calculate_new_srs_state(
            item,
            is_correct,
            eval_level,
            elapsed_sec,
            self.settings,
            timing=verdict,
            now=now,
            diagnostics=diagnostics,
        )
        updated = apply_srs_patch(item, patch)

        micro: list[datetime] = []
        if not is_correct and is_weak(updated, self.settings):
            micro = schedule_micro_spacing(now, settings=self.settings)

        next_due = reconcile_next_review(patch.next_review_date, micro, now)

        logger.debug(
            f"Recorded review {item.id} [{scope}]: {verdict.timing_class.value}, "
            f"correct={is_correct}, micro={len(micro)}, next_due={next_due.isoformat()}"
        )

        return ReviewOutcome(
            item=updated,
            patch=patch,
            verdict=verdict,
            micro_schedule=micro,
            next_due=next_due,
        )
