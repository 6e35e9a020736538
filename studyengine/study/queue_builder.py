"""
Queue Builder - assembles a bounded, ordered study session.

Pipeline (stateless; deterministic for identical inputs):
1. Content gate (structural validation + frozen subjects)
2. Metrics for every surviving item
3. Conjunctive UI filters
4. Early-review lock (standard mode only; new items always pass)
5. Mode selection:
   - standard: per-subject round robin, due before new within a subject
   - exam: reviewed by exam-day risk, new capped by new_content_limit
   - critical: recently wrong / unstable / hot triage
6. Session KPIs over the final queue

An empty result is valid output, never an error.
"""

from __future__ import annotations

import math
import random
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Sequence

from loguru import logger

from config import Settings, get_settings
from studyengine.core.clock import ensure_aware, utc_now
from studyengine.core.exceptions import UnknownStudyModeError
from studyengine.core.models import DueReason, Question, StudyItem, StudyMode
from studyengine.study.content_gate import ContentGate, DefaultContentGate
from studyengine.study.metrics import CalculatedItemMetrics, calculate_metrics
from studyengine.study.priority import exam_sort_key, spaced_sort_key


@dataclass
class QueueFilters:
    """User-chosen filters. Every active filter must match (AND)."""

    subjects: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    banks: list[str] = field(default_factory=list)
    areas: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)  # Item must carry all of them
    question_types: list[str] = field(default_factory=list)
    is_hot: bool = False
    is_fundamental: bool = False
    is_critical: bool = False
    recent_error: bool = False
    is_favorite: bool = False
    is_study_later: bool = False

    def matches(self, item: StudyItem, study_later_ids: set[str]) -> bool:
        facets = item.facets()
        checks = (
            not self.subjects or facets.subject in self.subjects,
            not self.topics or facets.topic in self.topics,
            not self.banks or (facets.bank is not None and facets.bank in self.banks),
            not self.areas or (facets.area is not None and facets.area in self.areas),
            not self.tags or all(tag in facets.tags for tag in self.tags),
            not self.question_types
            or (facets.question_type is not None and facets.question_type in self.question_types),
            not self.is_hot or item.hot_topic,
            not self.is_fundamental or item.is_fundamental,
            not self.is_critical or item.is_critical,
            not self.recent_error or item.recently_wrong,
            not self.is_favorite or facets.is_favorite,
            not self.is_study_later or item.id in study_later_ids,
        )
        return all(checks)


@dataclass
class QueueBuilderParams:
    """Request for one study session."""

    mode: StudyMode | str
    items: Sequence[StudyItem]
    settings: Settings | None = None
    filters: QueueFilters = field(default_factory=QueueFilters)
    session_size: int | None = None  # Default: queue.default_session_size
    new_content_limit: float | None = None  # Default: queue.new_content_limit
    allow_early_items: bool = False
    content_gate: ContentGate | None = None
    study_later_ids: Iterable[str] | Callable[[], Iterable[str]] | None = None
    now: datetime | None = None
    shuffle_seed: int | None = None  # Default: ordinal of now's date


@dataclass
class QueueMix:
    due: int = 0
    near_due: int = 0
    new: int = 0
    critical: int = 0
    total: int = 0
    pct_new: float = 0.0


@dataclass
class QueueTargets:
    r_target: float
    time_base_sec: float


@dataclass
class KpiPreview:
    mean_d: float = 0.0
    median_d: float = 0.0
    mean_priority: float = 0.0
    pct_new: float = 0.0


@dataclass
class SessionKPIs:
    """Summary of a built queue (view data, not persisted)."""

    mode: StudyMode
    filters: QueueFilters
    mix: QueueMix
    targets: QueueTargets
    kpi_preview: KpiPreview


@dataclass
class BuildStudyQueueResult:
    queue: list[CalculatedItemMetrics]
    kpis: SessionKPIs

    @property
    def items(self) -> list[StudyItem]:
        return [m.item for m in self.queue]


def resolve_mode(mode: StudyMode | str) -> StudyMode:
    if isinstance(mode, StudyMode):
        return mode
    try:
        return StudyMode(str(mode).lower())
    except ValueError:
        raise UnknownStudyModeError(mode) from None


def _study_later_set(source: Iterable[str] | Callable[[], Iterable[str]] | None) -> set[str]:
    if source is None:
        return set()
    if callable(source):
        source = source()
    return set(source)


def group_by_subject(metrics: Iterable[CalculatedItemMetrics]) -> dict[str, list[CalculatedItemMetrics]]:
    groups: dict[str, list[CalculatedItemMetrics]] = defaultdict(list)
    for m in metrics:
        groups[m.item.subject_key].append(m)
    return groups


def _passes_gate(item: StudyItem, gate: ContentGate) -> bool:
    if isinstance(item, Question):
        return gate.is_strict_question(item)
    return True


def _apply_early_lock(
    metrics: list[CalculatedItemMetrics],
    now: datetime,
) -> list[CalculatedItemMetrics]:
    kept = []
    for m in metrics:
        item = m.item
        if item.is_new or item.next_review_date is None:
            kept.append(m)
        elif ensure_aware(item.next_review_date) <= now:
            kept.append(m)
    return kept


# =============================================================================
# MODE SELECTION
# =============================================================================


def _select_standard(
    available: list[CalculatedItemMetrics],
    session_size: int,
    rng: random.Random,
) -> list[CalculatedItemMetrics]:
    due_by_subject = group_by_subject(m for m in available if not m.item.is_new)
    new_by_subject = group_by_subject(m for m in available if m.item.is_new)

    for group in due_by_subject.values():
        group.sort(key=spaced_sort_key)
    for group in new_by_subject.values():
        rng.shuffle(group)

    subjects = sorted(set(due_by_subject) | set(new_by_subject))
    queue: list[CalculatedItemMetrics] = []
    has_candidates = True

    while len(queue) < session_size and has_candidates:
        has_candidates = False
        for subject in subjects:
            if len(queue) >= session_size:
                break
            due_group = due_by_subject.get(subject)
            new_group = new_by_subject.get(subject)
            if due_group:
                queue.append(due_group.pop(0).with_due_reason(DueReason.DUE))
                has_candidates = True
            elif new_group:
                queue.append(new_group.pop(0).with_due_reason(DueReason.NEW))
                has_candidates = True

    return queue


def _select_exam(
    available: list[CalculatedItemMetrics],
    session_size: int,
    new_content_limit: float,
) -> list[CalculatedItemMetrics]:
    new_items = [m.with_due_reason(DueReason.NEW) for m in available if m.item.is_new]
    reviewed = [m.with_due_reason(DueReason.DUE) for m in available if not m.item.is_new]
    reviewed.sort(key=exam_sort_key)

    new_count = min(len(new_items), math.floor(session_size * new_content_limit))
    reviewed_count = min(len(reviewed), session_size - new_count)
    return reviewed[:reviewed_count] + new_items[:new_count]


def _select_critical(
    available: list[CalculatedItemMetrics],
    session_size: int,
    settings: Settings,
) -> list[CalculatedItemMetrics]:
    floor = settings.queue.critical_stability_floor_days
    critical = [
        m.with_due_reason(DueReason.NEW if m.item.is_new else DueReason.DUE)
        for m in available
        if m.item.recently_wrong
        or (m.item.stability or settings.srs_v2.S_default_days) < floor
        or m.item.hot_topic
    ]
    critical.sort(key=exam_sort_key if settings.study_mode == "exam" else spaced_sort_key)
    return critical[:session_size]


# =============================================================================
# KPIs
# =============================================================================


def _priority_of(m: CalculatedItemMetrics, mode: StudyMode, settings: Settings) -> float:
    if mode is StudyMode.EXAM or (mode is StudyMode.CRITICAL and settings.study_mode == "exam"):
        return m.priority_exam
    return m.priority_spaced


def compute_kpis(
    queue: list[CalculatedItemMetrics],
    mode: StudyMode,
    filters: QueueFilters,
    settings: Settings,
) -> SessionKPIs:
    mix = QueueMix(total=len(queue))
    for m in queue:
        if m.due_reason is DueReason.NEW:
            mix.new += 1
        else:
            mix.due += 1
            if settings.srs.r_target <= m.r_now < settings.srs.r_near:
                mix.near_due += 1
    if mode is StudyMode.CRITICAL:
        mix.critical = len(queue)
    mix.pct_new = (mix.new / mix.total) * 100 if mix.total else 0.0

    preview = KpiPreview(pct_new=mix.pct_new)
    if queue:
        domains = [m.d for m in queue]
        preview.mean_d = statistics.fmean(domains)
        preview.median_d = statistics.median(domains)
        preview.mean_priority = statistics.fmean(_priority_of(m, mode, settings) for m in queue)

    return SessionKPIs(
        mode=mode,
        filters=filters,
        mix=mix,
        targets=QueueTargets(
            r_target=settings.srs.r_target,
            time_base_sec=settings.target_sec_default,
        ),
        kpi_preview=preview,
    )


def build_study_queue(params: QueueBuilderParams) -> BuildStudyQueueResult:
    """
    Build an ordered session queue.

    Args:
        params: QueueBuilderParams describing the request

    Returns:
        BuildStudyQueueResult with the queue and session KPIs

    Raises:
        UnknownStudyModeError: if params.mode is not a known mode
    """
    mode = resolve_mode(params.mode)
    settings = params.settings or get_settings()
    now = ensure_aware(params.now) or utc_now()
    session_size = params.session_size if params.session_size is not None else settings.queue.default_session_size
    session_size = max(0, session_size)
    new_limit = params.new_content_limit if params.new_content_limit is not None else settings.queue.new_content_limit
    gate = params.content_gate or DefaultContentGate()
    seed = params.shuffle_seed if params.shuffle_seed is not None else now.date().toordinal()
    rng = random.Random(seed)

    # 1. Content gate
    active = [item for item in gate.filter_executable_items(list(params.items)) if _passes_gate(item, gate)]

    # 2. Metrics
    calculated = [calculate_metrics(item, settings, now) for item in active]

    # 3. Filters
    study_later_ids = _study_later_set(params.study_later_ids)
    available = [m for m in calculated if params.filters.matches(m.item, study_later_ids)]

    # 4. Early-review lock
    if mode is StudyMode.STANDARD and settings.lock_early_review and not params.allow_early_items:
        available = _apply_early_lock(available, now)

    # 5. Mode selection
    if mode is StudyMode.STANDARD:
        queue = _select_standard(available, session_size, rng)
    elif mode is StudyMode.EXAM:
        queue = _select_exam(available, session_size, new_limit)
    else:
        queue = _select_critical(available, session_size, settings)

    # 6. KPIs
    kpis = compute_kpis(queue, mode, params.filters, settings)

    logger.info(
        f"Built {mode.value} queue: {kpis.mix.total}/{session_size} items "
        f"({kpis.mix.due} due, {kpis.mix.new} new) from {len(available)} eligible "
        f"of {len(params.items)}"
    )

    return BuildStudyQueueResult(queue=queue, kpis=kpis)
