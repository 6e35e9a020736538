"""
Unit tests for ReviewService (timing + SRS update + micro-spacing).
"""

from datetime import timedelta

import pytest

from studyengine.core.models import TimingClass
from studyengine.study.review_service import ReviewService
from studyengine.study.timing_classifier import TimingScopeRegistry


@pytest.fixture
def service(settings):
    return ReviewService(settings)


class TestRecordReview:
    def test_failed_weak_item_gets_micro_spacing(self, service, make_question, now):
        outcome = service.record_review(make_question(stability=1.0), False, 0, 30, now=now, target_sec=30)

        assert outcome.micro_schedule == [now, now + timedelta(hours=6), now + timedelta(hours=18)]
        assert outcome.next_due == now
        assert outcome.item.total_attempts == 1
        assert outcome.item.lapses == 1
        assert outcome.item.next_review_date == outcome.patch.next_review_date

    def test_failed_strong_item_skips_micro_spacing(self, service, reviewed_question, now):
        item = reviewed_question(stability=100, mastery=90, now=now)
        outcome = service.record_review(item, False, 0, 30, now=now, target_sec=30)

        assert outcome.item.stability == pytest.approx(50.0)
        assert outcome.micro_schedule == []
        assert outcome.next_due == outcome.patch.next_review_date

    def test_correct_answer_has_no_micro_spacing(self, service, make_question, now):
        outcome = service.record_review(make_question(), True, 2, 30, now=now, target_sec=30)
        assert outcome.micro_schedule == []
        assert outcome.timing_class is TimingClass.SOP_OK
        assert outcome.item.attempt_history[-1].timing_class is TimingClass.SOP_OK

    def test_rush_is_recorded(self, service, make_question, now):
        outcome = service.record_review(make_question(), True, 3, 2, now=now, target_sec=30)
        assert outcome.timing_class is TimingClass.RUSH
        assert outcome.patch.stability == pytest.approx(1.12)

    def test_timing_scopes_follow_subject(self, settings, make_question, make_flashcard, now):
        registry = TimingScopeRegistry(settings)
        service = ReviewService(settings, registry)

        service.record_review(make_question("q1"), True, 2, 30, now=now)
        service.record_review(make_question("q2"), True, 2, 40, now=now)
        service.record_review(make_flashcard("f1"), True, 2, 10, now=now)

        assert registry.state("Math").count == 2
        assert registry.state("Biology").count == 1

    def test_custom_scope(self, settings, make_question, now):
        service = ReviewService(settings, scope_for=lambda item: "global")
        service.record_review(make_question(subject="Law"), True, 2, 30, now=now)
        assert service.registry.state("global").count == 1

    def test_diagnostics_are_kept(self, service, make_question, now):
        outcome = service.record_review(make_question(), False, 0, 30, now=now, diagnostics={"picked": "B"})
        assert outcome.item.attempt_history[-1].diagnostics == {"picked": "B"}
