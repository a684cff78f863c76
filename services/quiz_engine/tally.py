import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .models import InsufficientAnswers, Quiz, QuizOption, QuizQuestion, TallyResult

logger = logging.getLogger(__name__)

DEFAULT_MIN_REQUIRED_RATIO = 0.6


def declared_result_keys(quiz: Quiz) -> List[str]:
    """
    Result keys in declared order. Quizzes without a results catalog fall
    back to every weight key in first-seen order.
    """
    if quiz.results:
        return quiz.result_keys
    seen: Dict[str, None] = {}
    for question in quiz.questions:
        for option in question.options:
            for key in option.weights:
                seen.setdefault(key, None)
    return list(seen)


def default_min_required(quiz: Quiz) -> int:
    core = sum(1 for q in quiz.questions if not q.optional)
    return math.ceil(DEFAULT_MIN_REQUIRED_RATIO * core)


def resolve_min_required(quiz: Quiz, fallback: Optional[int] = None) -> int:
    if quiz.min_required is not None:
        return max(0, int(quiz.min_required))
    if fallback is not None:
        return max(0, int(fallback))
    return default_min_required(quiz)


def chosen_options(quiz: Quiz, answers: Mapping[Any, Any]) -> List[Tuple[QuizQuestion, QuizOption]]:
    """Pairs each answered question with its chosen option, in quiz order."""
    normalized = {str(k): v for k, v in (answers or {}).items()}
    picked = []
    for question in quiz.questions:
        if question.id not in normalized:
            continue
        option = question.find_option(normalized[question.id])
        if option is None:
            logger.debug(f"Ignoring answer '{normalized[question.id]}' for question '{question.id}': no such option")
            continue
        picked.append((question, option))
    return picked


def _question_ceiling(question: QuizQuestion, keys: Iterable[str]) -> Dict[str, float]:
    """Best achievable contribution per key on one question (max absolute weight over its options)."""
    ceiling = {}
    for key in keys:
        if question.max_points is not None and key in question.max_points:
            ceiling[key] = question.max_points[key]
            continue
        ceiling[key] = max((abs(o.weights.get(key, 0.0)) for o in question.options), default=0.0)
    return ceiling


def tally(
    quiz: Quiz,
    answers: Mapping[Any, Any],
    result_keys: Optional[List[str]] = None,
    min_required: Optional[int] = None,
) -> Union[TallyResult, InsufficientAnswers]:
    """
    Accumulates chosen-option weights into per-key totals and per-key maxima.

    Args:
        quiz: The quiz definition.
        answers: Mapping of question id to chosen option key.
        result_keys: Overrides the declared key set (dual-axis quizzes pass
            their prefixed axis keys here).
        min_required: Overrides quiz.min_required when the quiz leaves it unset.

    Returns:
        TallyResult, or InsufficientAnswers when fewer than the required
        number of non-optional questions were answered.
    """
    keys = list(result_keys) if result_keys is not None else declared_result_keys(quiz)
    required = resolve_min_required(quiz, min_required)

    picked = chosen_options(quiz, answers)
    answered_core = sum(1 for question, _ in picked if not question.optional)
    if answered_core < required:
        return InsufficientAnswers(required=required, answered=answered_core)

    key_set = set(keys)
    totals_raw = {k: 0.0 for k in keys}
    max_raw = {k: 0.0 for k in keys}
    flag_keys = list(quiz.flag_keys)
    flags = {k: 0.0 for k in flag_keys}

    for question, option in picked:
        for key, weight in option.weights.items():
            if key in key_set:
                totals_raw[key] += weight
        for key, ceiling in _question_ceiling(question, keys).items():
            max_raw[key] += ceiling
        for key, value in option.flags.items():
            if key in flags:
                flags[key] += value

    return TallyResult(
        totals_raw=totals_raw,
        max_raw=max_raw,
        answered_core_count=answered_core,
        flags=flags,
    )


def core_hit_counts(quiz: Quiz, answers: Mapping[Any, Any], keys: Iterable[str]) -> Dict[str, int]:
    """For each key, how many answered non-optional questions gave it nonzero weight."""
    counts = {k: 0 for k in keys}
    for question, option in chosen_options(quiz, answers):
        if question.optional:
            continue
        for key in counts:
            if option.weights.get(key, 0.0) != 0:
                counts[key] += 1
    return counts
