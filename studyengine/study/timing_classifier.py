"""
Timing Classifier - response time relative to the learner's own norm.

Each classification scope (a subject, an item class, or one global scope;
the caller decides) keeps a small statistics blob:

- EWMA of response time:  m' = lambda * x + (1 - lambda) * m
- A sliding window of the last ``window_n`` samples for a MAD spread
  estimate (robust sigma = 1.4826 * MAD)

classify() both classifies a sample and folds it into the scope state.
Until the window is full the scope is "cold" and only static thresholds
against ``target_sec`` are used. Every sample is clipped to an upper fence
before it enters the EWMA, cold or warm; the window keeps raw values.

The state is caller-owned and mutable. One scope must have one writer at a
time; TimingScopeRegistry hands out a lock per scope for threaded hosts.
"""

from __future__ import annotations

import statistics
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from loguru import logger

from config import Settings, get_settings
from studyengine.core.models import TimingClass

# Scale factor turning a MAD into a normal-consistent sigma estimate
MAD_TO_SIGMA = 1.4826


@dataclass
class TimingScopeState:
    """Running response-time statistics for one scope."""

    ewma: float | None = None
    window: deque[float] = field(default_factory=deque)
    count: int = 0

    def median_absolute_deviation(self) -> float:
        if len(self.window) < 2:
            return 0.0
        med = statistics.median(self.window)
        return statistics.median(abs(x - med) for x in self.window)

    def robust_sigma(self) -> float:
        return MAD_TO_SIGMA * self.median_absolute_deviation()

    def is_warm(self, window_n: int) -> bool:
        return self.ewma is not None and len(self.window) >= window_n

    def to_dict(self) -> dict[str, Any]:
        """Serialise for caller-side persistence."""
        return {"ewma": self.ewma, "window": list(self.window), "count": self.count}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TimingScopeState:
        if not data:
            return cls()
        return cls(
            ewma=data.get("ewma"),
            window=deque(float(x) for x in data.get("window", [])),
            count=int(data.get("count", 0)),
        )


@dataclass(frozen=True)
class TimingVerdict:
    """Outcome of classifying one response time."""

    timing_class: TimingClass
    elapsed_sec: float
    reference_sec: float  # EWMA mean when warm, target otherwise
    ratio: float  # elapsed / reference
    within_band: bool  # sop_band_low <= ratio <= sop_band_high (reported, not scored)
    robust_z: float | None = None  # None while cold or without spread
    warm: bool = False

    @property
    def is_rush(self) -> bool:
        return self.timing_class is TimingClass.RUSH


def is_guarded(question_type: str | None, settings: Settings | None = None) -> bool:
    """
    Whether rushing is penalised for this question type.

    Types are matched on their leading code, so "02 Multiple choice" matches
    the guard code "02".
    """
    settings = settings or get_settings()
    if not question_type:
        return False
    code = question_type.strip().split(" ", 1)[0]
    return code in settings.timing.sop_guard_types


class TimingClassifier:
    """
    Classifies response times as RUSH / SOP_OK / OVER.

    Usage:
        classifier = TimingClassifier()
        state = TimingScopeState()
        verdict = classifier.classify(42.0, state)
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.params = self.settings.timing

    def classify(
        self,
        elapsed_sec: float,
        state: TimingScopeState,
        target_sec: float | None = None,
    ) -> TimingVerdict:
        """
        Classify one response time and update the scope statistics.

        Args:
            elapsed_sec: Response time in seconds
            state: Scope state, mutated in place
            target_sec: Cold-start reference (default: target_sec_default)

        Returns:
            TimingVerdict for this sample
        """
        verdict = self.peek(elapsed_sec, state, target_sec)
        self._update(state, max(0.0, elapsed_sec), target_sec)
        return verdict

    def peek(
        self,
        elapsed_sec: float,
        state: TimingScopeState,
        target_sec: float | None = None,
    ) -> TimingVerdict:
        """Classify without touching the state."""
        p = self.params
        elapsed = max(0.0, elapsed_sec)
        warm = state.is_warm(p.window_n)
        reference = state.ewma if warm else (target_sec or self.settings.target_sec_default)
        reference = max(reference, 1e-9)
        ratio = elapsed / reference

        robust_z = None
        if warm:
            sigma = state.robust_sigma()
            if sigma > 0:
                robust_z = (elapsed - state.ewma) / sigma

        if elapsed < p.min_think_sec or ratio < p.rush_threshold:
            timing_class = TimingClass.RUSH
        elif ratio > p.over_threshold:
            timing_class = TimingClass.OVER
        elif robust_z is not None and robust_z > p.mad_alert_z:
            timing_class = TimingClass.OVER
            logger.debug(f"Timing anomaly: {elapsed:.1f}s (z={robust_z:.2f}, mean={state.ewma:.1f}s)")
        else:
            timing_class = TimingClass.SOP_OK

        return TimingVerdict(
            timing_class=timing_class,
            elapsed_sec=elapsed,
            reference_sec=reference,
            ratio=ratio,
            within_band=p.sop_band_low <= ratio <= p.sop_band_high,
            robust_z=robust_z,
            warm=warm,
        )

    def upper_fence(self, state: TimingScopeState, target_sec: float | None = None) -> float:
        """
        Largest sample allowed into the EWMA.

        Warm scopes use the robust band (ewma + mad_alert_z * sigma), or
        over_threshold times the EWMA when the window has no spread. Cold
        scopes cap at over_threshold times the larger of the EWMA and the
        target.
        """
        p = self.params
        if state.is_warm(p.window_n):
            sigma = state.robust_sigma()
            if sigma > 0:
                return state.ewma + p.mad_alert_z * sigma
            return state.ewma * p.over_threshold
        target = target_sec or self.settings.target_sec_default
        return max(state.ewma or 0.0, target) * p.over_threshold

    def _update(self, state: TimingScopeState, elapsed: float, target_sec: float | None = None) -> None:
        p = self.params
        # Clip to the upper fence so one outlier cannot drag the mean
        sample = min(elapsed, self.upper_fence(state, target_sec))
        if state.ewma is None:
            state.ewma = sample
        else:
            state.ewma = p.lambda_ewma * sample + (1 - p.lambda_ewma) * state.ewma

        state.window.append(elapsed)
        while len(state.window) > p.window_n:
            state.window.popleft()
        state.count += 1


class TimingScopeRegistry:
    """
    Holds per-scope timing states with one lock per scope.

    Callers that persist states themselves can skip the registry and pass
    TimingScopeState objects straight to TimingClassifier.
    """

    def __init__(self, settings: Settings | None = None, states: dict[str, TimingScopeState] | None = None):
        self.classifier = TimingClassifier(settings)
        self._states: dict[str, TimingScopeState] = dict(states or {})
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, scope: str) -> threading.Lock:
        with self._guard:
            if scope not in self._locks:
                self._locks[scope] = threading.Lock()
            return self._locks[scope]

    def state(self, scope: str) -> TimingScopeState:
        with self._guard:
            return self._states.setdefault(scope, TimingScopeState())

    @contextmanager
    def locked(self, scope: str) -> Iterator[TimingScopeState]:
        """Exclusive access to one scope's state."""
        with self._lock_for(scope):
            yield self.state(scope)

    def classify(self, scope: str, elapsed_sec: float, target_sec: float | None = None) -> TimingVerdict:
        with self.locked(scope) as state:
            return self.classifier.classify(elapsed_sec, state, target_sec)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Serialisable copy of every scope's state."""
        with self._guard:
            scopes = list(self._states)
        result = {}
        for scope in scopes:
            with self.locked(scope) as state:
                result[scope] = state.to_dict()
        return result

    @classmethod
    def from_snapshot(cls, data: dict[str, dict[str, Any]], settings: Settings | None = None) -> TimingScopeRegistry:
        states = {scope: TimingScopeState.from_dict(blob) for scope, blob in data.items()}
        return cls(settings, states)
