"""
Engine exceptions.

Only programming errors are raised; irregular input degrades silently
(filtered or clamped) instead.
"""


class StudyEngineError(Exception):
    """Base class for fatal engine errors."""
    pass


class NonFiniteStabilityError(StudyEngineError):
    """Raised when an update produces a NaN/Infinity stability."""

    def __init__(self, item_id: str, value: float):
        self.item_id = item_id
        self.value = value
        super().__init__(f"Non-finite stability {value!r} computed for item {item_id}")


class UnknownStudyModeError(StudyEngineError):
    """Raised when the queue builder receives a mode it does not know."""

    def __init__(self, mode: object):
        self.mode = mode
        super().__init__(f"Unknown study mode: {mode!r}")
