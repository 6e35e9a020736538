"""
Configuration settings for the studyengine review scheduler.

Uses Pydantic Settings for environment variable management with .env file support.
Nested groups can be overridden with the ``__`` delimiter, e.g.
``STUDYENGINE_SRS_V2__GAMMA_FAIL=0.4``.
"""
from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ========================================
# Priority weights
# ========================================
class PriorityWeights(BaseModel):
    """Additive weights applied to both priority scores."""

    is_hot: float = Field(default=0.5, ge=0, description="Hot topic flag weight")
    is_fundamental: float = Field(default=0.3, ge=0, description="Fundamental flag weight")
    is_critical: float = Field(default=0.3, ge=0, description="Critical flag weight")
    recent_error: float = Field(default=0.3, ge=0, description="Last attempt was wrong")
    low_s: float = Field(default=0.2, ge=0, description="Low stability weight")

    @property
    def total(self) -> float:
        return self.is_hot + self.is_fundamental + self.is_critical + self.recent_error + self.low_s


class SrsSettings(BaseModel):
    """Retrievability targets driving intervals and spaced priority."""

    r_target: float = Field(
        default=0.80,
        gt=0,
        lt=1,
        description="Retrievability at which an item becomes due",
    )
    r_near: float = Field(
        default=0.85,
        gt=0,
        lt=1,
        description="Retrievability below which an item counts as near-due",
    )
    near_due_bonus: float = Field(
        default=0.25,
        ge=0,
        description="Spaced priority bonus for near-due items",
    )
    weights: PriorityWeights = Field(default_factory=PriorityWeights)

    @model_validator(mode="after")
    def _check_thresholds(self) -> SrsSettings:
        if self.r_near < self.r_target:
            raise ValueError("r_near must be >= r_target")
        return self


# ========================================
# Stability update rule
# ========================================
class SrsV2Settings(BaseModel):
    """Stability growth/decay multipliers and interval bounds."""

    alpha_easy: float = Field(default=0.30, ge=0)
    alpha_good: float = Field(default=0.22, ge=0)
    alpha_hard: float = Field(default=0.12, ge=0)
    gamma_fail: float = Field(
        default=0.50,
        gt=0,
        lt=1,
        description="Multiplicative stability penalty on failure",
    )
    rt_fast: float = Field(default=0.50, gt=0, description="Ratio for full response-time bonus")
    rt_slow: float = Field(default=1.50, gt=0, description="Ratio where the bonus vanishes")
    k_rt_bonus: float = Field(default=0.06, ge=0)
    k_long_gap: float = Field(default=0.10, ge=0)
    min_interval_days: float = Field(default=1, gt=0)
    max_hot_days: float = Field(default=3, gt=0)
    S_default_days: float = Field(default=1, gt=0)
    cap_S_days: float = Field(default=365, gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> SrsV2Settings:
        if self.max_hot_days < self.min_interval_days:
            raise ValueError("max_hot_days must be >= min_interval_days")
        if self.rt_slow <= self.rt_fast:
            raise ValueError("rt_slow must be greater than rt_fast")
        if self.S_default_days > self.cap_S_days:
            raise ValueError("S_default_days cannot exceed cap_S_days")
        return self


class MasterySettings(BaseModel):
    """Long-term mastery update (diminishing returns)."""

    gain_rate: float = Field(default=0.25, gt=0, le=1)
    max_gain_per_session: float = Field(default=15, gt=0)
    error_penalty_level: float = Field(default=0.2, ge=0, lt=1)
    eval_weights: dict[int, float] = Field(
        default_factory=lambda: {0: 0.6, 1: 0.6, 2: 1.0, 3: 1.3},
        description="Gain multiplier per self-eval level (again/hard/good/easy)",
    )


# ========================================
# Timing classifier
# ========================================
class TimingSettings(BaseModel):
    """Response-time classifier (EWMA + MAD)."""

    sop_guard_types: list[str] = Field(default_factory=lambda: ["02", "03", "04", "07", "15"])
    min_think_sec: float = Field(default=5, ge=0)
    rush_threshold: float = Field(default=0.5, gt=0)
    over_threshold: float = Field(default=2.0, gt=0)
    sop_band_low: float = Field(default=0.8, gt=0)
    sop_band_high: float = Field(default=1.2, gt=0)
    lambda_ewma: float = Field(default=0.3, gt=0, le=1)
    mad_alert_z: float = Field(default=3, gt=0)
    window_n: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _check_bands(self) -> TimingSettings:
        if self.sop_band_low > self.sop_band_high:
            raise ValueError("sop_band_low must be <= sop_band_high")
        if self.rush_threshold >= self.over_threshold:
            raise ValueError("rush_threshold must be < over_threshold")
        return self


class ExamModeSettings(BaseModel):
    micro_spaced_hours: list[float] = Field(default_factory=lambda: [0, 6, 18])

    @field_validator("micro_spaced_hours")
    @classmethod
    def _non_negative(cls, v: list[float]) -> list[float]:
        if any(h < 0 for h in v):
            raise ValueError("micro_spaced_hours offsets must be >= 0")
        return v


class MicroSpacingSettings(BaseModel):
    """Thresholds below which a failed item counts as weak."""

    stability_floor_days: float = Field(default=10, gt=0)
    mastery_floor: float = Field(default=40, ge=0, le=100)


class QueueSettings(BaseModel):
    critical_stability_floor_days: float = Field(default=10, gt=0)
    default_session_size: int = Field(default=20, ge=0)
    new_content_limit: float = Field(default=0.1, ge=0, le=1)


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STUDYENGINE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    srs: SrsSettings = Field(default_factory=SrsSettings)
    srs_v2: SrsV2Settings = Field(default_factory=SrsV2Settings)
    mastery: MasterySettings = Field(default_factory=MasterySettings)
    timing: TimingSettings = Field(default_factory=TimingSettings)
    exam_mode: ExamModeSettings = Field(default_factory=ExamModeSettings)
    micro_spacing: MicroSpacingSettings = Field(default_factory=MicroSpacingSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)

    # ========================================
    # Queue gating and mode selection
    # ========================================
    lock_early_review: bool = Field(
        default=True,
        description="Hide scheduled items before their review date (standard mode)",
    )
    study_mode: Literal["standard", "exam"] = Field(
        default="standard",
        description="Which priority drives critical-mode ordering",
    )
    exam_date: datetime | None = Field(
        default=None,
        description="Exam checkpoint used for projected retrievability",
    )
    target_sec_default: float = Field(
        default=120,
        gt=0,
        description="Expected response time before the classifier warms up",
    )

    log_level: str = Field(default="INFO", description="loguru level for the CLI")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
