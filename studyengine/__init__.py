"""
studyengine - adaptive review scheduling for questions and flashcards.

Exposed entry points:
- calculate_metrics(item, settings, now)
- calculate_current_domain(item, settings, now)
- calculate_new_srs_state(item, is_correct, eval_level, elapsed_sec, settings)
- build_study_queue(params)
"""

from studyengine.core.models import Flashcard, Question, StudyItem, StudyMode
from studyengine.study import (
    QueueBuilderParams,
    QueueFilters,
    ReviewService,
    build_study_queue,
    calculate_current_domain,
    calculate_metrics,
    calculate_new_srs_state,
)

__version__ = "1.0.0"

__all__ = [
    "Flashcard",
    "Question",
    "StudyItem",
    "StudyMode",
    "QueueBuilderParams",
    "QueueFilters",
    "ReviewService",
    "build_study_queue",
    "calculate_current_domain",
    "calculate_metrics",
    "calculate_new_srs_state",
]
