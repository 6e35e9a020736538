"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from studyengine.core.models import Flashcard, Question  # noqa: E402
from studyengine.study.retrievability import interval_for_target  # noqa: E402

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Default settings, isolated from the environment and .env files."""
    return Settings(_env_file=None)


@pytest.fixture
def now():
    return NOW


def _question(id="q-1", **fields):
    data = {
        "question_text": f"Question {id}?",
        "options": {"A": "First option", "B": "Second option", "C": "Third option", "D": "Fourth option"},
        "correct_answer": "A",
        "subject": "Math",
        "topic": "Algebra",
        "question_type": "02 Multiple choice",
    }
    data.update(fields)
    return Question(id=id, **data)


def _reviewed(factory, id, *, now=NOW, days_ago=1.0, stability=10.0, mastery=60.0,
              correct=True, r_target=0.8, **fields):
    """Item reviewed ``days_ago`` days before ``now`` and scheduled for r_target."""
    last = now - timedelta(days=days_ago)
    return factory(
        id,
        stability=stability,
        mastery_score=mastery,
        total_attempts=fields.pop("total_attempts", 1),
        last_was_correct=correct,
        last_reviewed_at=last,
        next_review_date=last + timedelta(days=interval_for_target(stability, r_target)),
        **fields,
    )


@pytest.fixture
def make_question():
    """Factory for a structurally valid, never-reviewed question."""
    return _question


@pytest.fixture
def make_flashcard():
    def _make(id="f-1", **fields):
        data = {"front": f"Front {id}", "back": f"Back {id}", "discipline": "Biology", "topic": "Cells"}
        data.update(fields)
        return Flashcard(id=id, **data)

    return _make


@pytest.fixture
def reviewed_question():
    """Factory for a question with one past review."""

    def _make(id="q-1", **kwargs):
        return _reviewed(_question, id, **kwargs)

    return _make
