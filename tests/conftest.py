from pathlib import Path

import pytest

from config.settings import QuizEngineSettings
from services.quiz_engine.engine import QuizEngine
from services.quiz_engine.loader import QuizRegistry
from services.quiz_engine.models import Quiz

QUIZ_CONTENT_DIR = Path(__file__).resolve().parents[1] / "assets" / "quizzes"


# --- Seed quiz: two keys, two core questions ---

SEED_QUIZ = {
    "slug": "seed-ab",
    "title": "Seed A/B",
    "questions": {
        "min_required": 2,
        "results": [
            {"key": "A", "title": "Alpha", "summary": "Alpha summary"},
            {"key": "B", "title": "Beta"},
        ],
        "questions": [
            {
                "id": "Q1",
                "options": [
                    {"key": "x", "weights": {"A": 2}},
                    {"key": "y", "weights": {"B": 2}},
                ],
            },
            {
                "id": "Q2",
                "options": [
                    {"key": "x", "weights": {"A": 1, "B": 1}},
                    {"key": "y", "weights": {"B": 3}},
                ],
            },
        ],
    },
}


@pytest.fixture
def seed_quiz_payload():
    """Raw wire payload of the two-key seed quiz."""
    return SEED_QUIZ


@pytest.fixture
def seed_quiz():
    return Quiz.model_validate(SEED_QUIZ)


@pytest.fixture
def settings():
    """Default settings pointed at the seeded content."""
    return QuizEngineSettings(content_dir=QUIZ_CONTENT_DIR)


@pytest.fixture(scope="session")
def registry():
    """Registry loaded with the seeded quiz content."""
    return QuizRegistry.from_directory(QUIZ_CONTENT_DIR)


@pytest.fixture
def engine(registry, settings):
    return QuizEngine(registry=registry, settings=settings)
