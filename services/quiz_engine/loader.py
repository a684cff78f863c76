import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import yaml
from pydantic import ValidationError

from .definitions import canonical_slug
from .models import Quiz, QuizSpecValidationError

logger = logging.getLogger(__name__)

QUIZ_FILE_SUFFIXES = (".yml", ".yaml", ".json")


def load_quiz_spec_data(data: Dict[str, Any]) -> Quiz:
    """
    Validates raw quiz content against the Quiz model and performs the
    authoring checks pydantic does not cover (duplicate ids, empty quiz).
    """
    try:
        quiz = Quiz.model_validate(data)
    except ValidationError as e:
        raise QuizSpecValidationError(f"Quiz '{_slug_of(data)}' failed schema validation: {e}") from e

    if not quiz.questions:
        raise QuizSpecValidationError(f"Quiz '{quiz.slug}' declares no questions")

    result_keys = set()
    for result in quiz.results:
        if result.key in result_keys:
            raise QuizSpecValidationError(f"Duplicate result key '{result.key}' in quiz '{quiz.slug}'")
        result_keys.add(result.key)

    question_ids = set()
    for question in quiz.questions:
        if question.id in question_ids:
            raise QuizSpecValidationError(f"Duplicate question ID '{question.id}' in quiz '{quiz.slug}'")
        question_ids.add(question.id)

        option_keys = set()
        for option in question.options:
            if option.key in option_keys:
                raise QuizSpecValidationError(
                    f"Duplicate option key '{option.key}' in question '{question.id}' (quiz '{quiz.slug}')"
                )
            option_keys.add(option.key)

    return quiz


def load_quiz_spec_from_file(file_path: Union[str, Path]) -> Quiz:
    """
    Loads a quiz definition from a YAML (or JSON) file, validates it,
    and returns a Quiz object.
    """
    path = Path(file_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except FileNotFoundError:
        raise QuizSpecValidationError(f"File not found: {file_path}")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise QuizSpecValidationError(f"Error parsing quiz file {file_path}: {e}")

    if not isinstance(data, dict):
        raise QuizSpecValidationError(f"Quiz file is empty or invalid: {file_path}")

    return load_quiz_spec_data(data)


def coerce_quiz(quiz: Any) -> Optional[Quiz]:
    """
    Lenient conversion used on the scoring path. Returns None when the
    definition is structurally unusable instead of raising.
    """
    if isinstance(quiz, Quiz):
        return quiz if quiz.questions else None
    if not isinstance(quiz, dict):
        return None
    try:
        parsed = Quiz.model_validate(quiz)
    except ValidationError as e:
        logger.warning(f"Quiz '{_slug_of(quiz)}' is structurally unusable: {e.error_count()} validation error(s)")
        return None
    return parsed if parsed.questions else None


def _slug_of(data: Any) -> Optional[str]:
    return data.get("slug") if isinstance(data, dict) else None


class QuizRegistry:
    """
    Holds loaded quiz definitions keyed by slug.

    Callers own the registry instance; there is no module-level cache.
    """

    def __init__(self, quizzes: Optional[List[Quiz]] = None):
        self._quizzes: Dict[str, Quiz] = {}
        for quiz in quizzes or []:
            self.add(quiz)

    @classmethod
    def from_directory(cls, content_dir: Union[str, Path]) -> "QuizRegistry":
        content_dir = Path(content_dir)
        if not content_dir.is_dir():
            raise QuizSpecValidationError(f"Quiz content directory not found: {content_dir}")
        registry = cls()
        for path in sorted(content_dir.iterdir()):
            if path.suffix in QUIZ_FILE_SUFFIXES:
                registry.add(load_quiz_spec_from_file(path))
        logger.info(f"Loaded {len(registry)} quiz definitions from {content_dir}")
        return registry

    def add(self, quiz: Quiz) -> None:
        if not quiz.slug:
            raise QuizSpecValidationError("Quiz definitions need a slug to be registered")
        if quiz.slug in self._quizzes:
            raise QuizSpecValidationError(f"Duplicate quiz slug: {quiz.slug}")
        self._quizzes[quiz.slug] = quiz

    def get(self, slug: Optional[str]) -> Optional[Quiz]:
        if not slug:
            return None
        return self._quizzes.get(slug) or self._quizzes.get(canonical_slug(slug) or "")

    def slugs(self) -> List[str]:
        return list(self._quizzes.keys())

    def __contains__(self, slug: object) -> bool:
        return isinstance(slug, str) and self.get(slug) is not None

    def __iter__(self) -> Iterator[Quiz]:
        return iter(self._quizzes.values())

    def __len__(self) -> int:
        return len(self._quizzes)
