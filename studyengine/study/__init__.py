"""
Study Module - adaptive review scheduling.

Provides:
- Retrievability model and current domain
- Response-time classification (EWMA + MAD)
- Mastery/stability update rule
- Micro-spacing after failures
- Spaced and exam priorities
- Study queue construction (standard / exam / critical)
"""

from studyengine.study.metrics import CalculatedItemMetrics, calculate_metrics
from studyengine.study.micro_spacing import reconcile_next_review, schedule_micro_spacing
from studyengine.study.queue_builder import (
    BuildStudyQueueResult,
    QueueBuilderParams,
    QueueFilters,
    SessionKPIs,
    build_study_queue,
)
from studyengine.study.retrievability import (
    calculate_current_domain,
    current_domain,
    retrievability,
)
from studyengine.study.review_service import ReviewOutcome, ReviewService
from studyengine.study.srs_update import SrsPatch, apply_srs_patch, calculate_new_srs_state
from studyengine.study.timing_classifier import (
    TimingClassifier,
    TimingScopeRegistry,
    TimingScopeState,
    TimingVerdict,
)

__all__ = [
    "retrievability",
    "current_domain",
    "calculate_current_domain",
    "TimingClassifier",
    "TimingScopeRegistry",
    "TimingScopeState",
    "TimingVerdict",
    "SrsPatch",
    "calculate_new_srs_state",
    "apply_srs_patch",
    "schedule_micro_spacing",
    "reconcile_next_review",
    "CalculatedItemMetrics",
    "calculate_metrics",
    "QueueFilters",
    "QueueBuilderParams",
    "SessionKPIs",
    "BuildStudyQueueResult",
    "build_study_queue",
    "ReviewService",
    "ReviewOutcome",
]
