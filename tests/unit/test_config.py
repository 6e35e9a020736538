"""
Unit tests for settings defaults, validation and environment overrides.
"""

import pytest
from pydantic import ValidationError

from config import (
    ExamModeSettings,
    Settings,
    SrsSettings,
    SrsV2Settings,
    TimingSettings,
    get_settings,
)


class TestDefaults:
    def test_engine_defaults(self, settings):
        assert settings.srs.r_target == 0.80
        assert settings.srs.r_near == 0.85
        assert settings.srs_v2.gamma_fail == 0.5
        assert settings.srs_v2.cap_S_days == 365
        assert settings.exam_mode.micro_spaced_hours == [0, 6, 18]
        assert settings.queue.new_content_limit == 0.1
        assert settings.lock_early_review is True
        assert settings.study_mode == "standard"
        assert settings.exam_date is None

    def test_priority_weights(self, settings):
        weights = settings.srs.weights.model_dump()
        assert set(weights) == {"is_hot", "is_fundamental", "is_critical", "recent_error", "low_s"}
        assert settings.srs.weights.total == pytest.approx(sum(weights.values()))

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestValidation:
    def test_near_threshold_below_target(self):
        with pytest.raises(ValidationError):
            SrsSettings(r_target=0.9, r_near=0.85)

    @pytest.mark.parametrize("gamma", [0.0, 1.0, 1.5])
    def test_gamma_fail_must_shrink(self, gamma):
        with pytest.raises(ValidationError):
            SrsV2Settings(gamma_fail=gamma)

    def test_hot_cap_below_min_interval(self):
        with pytest.raises(ValidationError):
            SrsV2Settings(min_interval_days=5, max_hot_days=3)

    def test_rush_above_over(self):
        with pytest.raises(ValidationError):
            TimingSettings(rush_threshold=2.5, over_threshold=2.0)

    def test_negative_micro_offsets(self):
        with pytest.raises(ValidationError):
            ExamModeSettings(micro_spaced_hours=[0, -6])

    def test_unknown_study_mode(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, study_mode="cram")


class TestEnvironment:
    def test_nested_override(self, monkeypatch):
        monkeypatch.setenv("STUDYENGINE_SRS_V2__GAMMA_FAIL", "0.4")
        monkeypatch.setenv("STUDYENGINE_STUDY_MODE", "exam")
        settings = Settings(_env_file=None)
        assert settings.srs_v2.gamma_fail == pytest.approx(0.4)
        assert settings.srs_v2.alpha_good == pytest.approx(0.22)
        assert settings.study_mode == "exam"

    def test_exam_date_from_env(self, monkeypatch):
        monkeypatch.setenv("STUDYENGINE_EXAM_DATE", "2024-06-01T09:00:00+00:00")
        settings = Settings(_env_file=None)
        assert settings.exam_date.year == 2024
        assert settings.exam_date.month == 6
