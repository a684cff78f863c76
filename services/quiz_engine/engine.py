import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from config.logging_config import setup_logging
from config.settings import QuizEngineSettings, get_settings

from .definitions import QuizShape, QuizType, get_quiz_type
from .loader import QuizRegistry, coerce_quiz
from .models import AxisResult, Quiz, ScoredResult, ScoringFailure, start_case
from .normalizer import display_totals, percent_of_max
from .resolver import resolve
from .tally import core_hit_counts, declared_result_keys, tally
from .vectors import rank, split_by_prefix

logger = logging.getLogger(__name__)

NO_QUESTIONS = "No questions."
UNKNOWN_QUIZ = "Unknown quiz."

ScoreOutcome = Union[ScoredResult, ScoringFailure]


def remap_totals_keys(
    totals: Mapping[str, Any],
    key_remap: Mapping[str, str],
    protected: Optional[Iterable[str]] = None,
) -> Dict[str, float]:
    """
    Folds legacy result keys into their canonical names, summing collisions.

    Keys listed in `protected` are already canonical for the quiz at hand and
    are left alone even if the remap table names them.
    """
    protected = set(protected or [])
    remapped: Dict[str, float] = {}
    for key, value in (totals or {}).items():
        canonical = key if key in protected else key_remap.get(key, key)
        try:
            amount = float(value)
        except (TypeError, ValueError):
            amount = 0.0
        remapped[canonical] = remapped.get(canonical, 0.0) + amount
    return remapped


def _failure_from_tally(outcome) -> ScoringFailure:
    return ScoringFailure(reason=outcome.reason, required=outcome.required, answered=outcome.answered)


class _TemplateFields(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def _summary_for(
    quiz: Quiz,
    quiz_type: QuizType,
    key: Optional[str],
    title: str,
    axis_winners: Optional[Mapping[str, Optional[str]]] = None,
) -> Optional[str]:
    result_def = quiz.result_for(key)
    if result_def is not None and result_def.display_summary:
        return result_def.display_summary
    template = quiz.summary_template or quiz_type.summary_template
    if not template:
        return None
    fields = _TemplateFields(title=title, key=key or "")
    for axis, winner in (axis_winners or {}).items():
        fields[axis] = start_case(winner or "")
    try:
        return template.format_map(fields)
    except (ValueError, IndexError):
        logger.warning(f"Unusable summary template on quiz '{quiz.slug}'")
        return None


def _result_meta(quiz: Quiz, quiz_type: QuizType, key: Optional[str], answered: int) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "slug": quiz.slug or quiz_type.slug,
        "mode": quiz_type.resolution_mode.value,
        "shape": quiz_type.shape.value,
        "answered_core_count": answered,
    }
    result_def = quiz.result_for(key)
    if result_def is not None:
        if result_def.headline:
            meta["headline"] = result_def.headline
        if result_def.guidance:
            meta["guidance"] = list(result_def.guidance)
    return meta


def score_quiz(
    quiz: Union[Quiz, Dict[str, Any]],
    answers: Mapping[Any, Any],
    quiz_type: Optional[QuizType] = None,
    settings: Optional[QuizEngineSettings] = None,
) -> ScoreOutcome:
    """
    Scores one answer set against one quiz.

    Args:
        quiz: A Quiz model or a raw wire payload.
        answers: Mapping of question id to chosen option key.
        quiz_type: Type record; looked up from the quiz slug when omitted.
        settings: Display/rounding settings; the cached settings when omitted.

    Returns:
        ScoredResult on success. ScoringFailure when the quiz is unusable
        ("No questions.") or too few core questions were answered.
    """
    parsed = coerce_quiz(quiz)
    if parsed is None:
        return ScoringFailure(reason=NO_QUESTIONS)

    quiz_type = quiz_type or get_quiz_type(parsed.slug)
    settings = settings or get_settings()

    if quiz_type.is_dual_axis:
        return score_dual_axis(parsed, answers, quiz_type, settings)

    keys = declared_result_keys(parsed)
    outcome = tally(parsed, answers, keys, min_required=quiz_type.default_min_required)
    if not outcome.ok:
        return _failure_from_tally(outcome)

    resolution = resolve(
        outcome.totals_raw,
        outcome.max_raw,
        mode=quiz_type.resolution_mode,
        keys=keys,
        priority_order=quiz_type.priority_order,
        core_hits=core_hit_counts(parsed, answers, keys),
        precision=settings.confidence_precision,
    )

    key = resolution.result_key
    result_def = parsed.result_for(key)
    if key is not None and result_def is None:
        logger.debug(f"Quiz '{parsed.slug}' has no results entry for winning key '{key}'")
    title = result_def.display_title if result_def else (start_case(key) if key else (parsed.title or ""))

    return ScoredResult(
        result_key=key,
        result_title=title,
        result_summary=_summary_for(parsed, quiz_type, key, title),
        result_totals=display_totals(
            outcome.totals_raw,
            outcome.max_raw,
            keys,
            max_value=settings.display_max_value,
            gamma=settings.gamma,
            boost=settings.boost,
            floor=settings.floor,
        ),
        result_percentages=percent_of_max(outcome.totals_raw, outcome.max_raw, keys),
        totals_raw=outcome.totals_raw,
        max_raw=outcome.max_raw,
        confidence=resolution.confidence,
        order=resolution.order,
        flags=outcome.flags,
        meta=_result_meta(parsed, quiz_type, key, outcome.answered_core_count),
    )


def score_dual_axis(
    quiz: Union[Quiz, Dict[str, Any]],
    answers: Mapping[Any, Any],
    quiz_type: QuizType,
    settings: Optional[QuizEngineSettings] = None,
) -> ScoreOutcome:
    """
    Scores a quiz whose options weigh two axes at once (role x element,
    role x energy). Each axis is resolved on its own raw totals, with the
    axis' declared key order as tie-break priority.
    """
    parsed = coerce_quiz(quiz)
    if parsed is None:
        return ScoringFailure(reason=NO_QUESTIONS)
    settings = settings or get_settings()

    keys = quiz_type.prefixed_keys()
    outcome = tally(parsed, answers, keys, min_required=quiz_type.default_min_required)
    if not outcome.ok:
        return _failure_from_tally(outcome)

    axis_names = quiz_type.axis_names
    totals_by_axis = split_by_prefix(outcome.totals_raw, axis_names, strip_prefix=True)
    max_by_axis = split_by_prefix(outcome.max_raw, axis_names, strip_prefix=True)
    hits_by_axis = split_by_prefix(core_hit_counts(parsed, answers, keys), axis_names, strip_prefix=True)

    axes: Dict[str, AxisResult] = {}
    for axis in axis_names:
        axis_keys = quiz_type.axis_keys(axis)
        resolution = resolve(
            totals_by_axis[axis],
            max_by_axis[axis],
            mode=quiz_type.resolution_mode,
            keys=axis_keys,
            priority_order=axis_keys,
            core_hits={k: int(v) for k, v in hits_by_axis[axis].items()},
            precision=settings.confidence_precision,
        )
        axes[axis] = AxisResult(
            winner=resolution.result_key,
            confidence=resolution.confidence,
            ranking=rank(totals_by_axis[axis]),
        )

    key = quiz_type.compose_key([axes[a].winner for a in axis_names])
    result_def = parsed.result_for(key)
    if result_def is not None:
        title = result_def.display_title
    else:
        title = " × ".join(start_case(axes[a].winner or "") for a in quiz_type.title_axes)
        if quiz_type.shape == QuizShape.PREFERENCE:
            title = f"{title} (preference)"

    confidence = min((axes[a].confidence for a in axis_names), default=0.0)

    return ScoredResult(
        result_key=key,
        result_title=title,
        result_summary=_summary_for(parsed, quiz_type, key, title, {a: axes[a].winner for a in axis_names}),
        result_totals=dict(outcome.totals_raw),
        result_percentages=percent_of_max(outcome.totals_raw, outcome.max_raw, keys),
        totals_raw=outcome.totals_raw,
        max_raw=outcome.max_raw,
        confidence=confidence,
        order=[],
        flags=outcome.flags,
        axes=axes,
        meta=_result_meta(parsed, quiz_type, key, outcome.answered_core_count),
    )


class QuizEngine:
    """
    Scores answer sets against the quizzes held by a registry.
    """
    def __init__(self, registry: Optional[QuizRegistry] = None, settings: Optional[QuizEngineSettings] = None):
        """
        Args:
            registry: Loaded quiz definitions. Loaded from settings.content_dir when omitted.
            settings: Engine settings. The cached environment settings when omitted.
        """
        self.settings = settings or get_settings()
        setup_logging(self.settings.log_level)
        self.registry = registry if registry is not None else QuizRegistry.from_directory(self.settings.content_dir)

    def score(self, slug: str, answers: Mapping[Any, Any]) -> ScoreOutcome:
        quiz = self.registry.get(slug)
        if quiz is None:
            logger.warning(f"Scoring requested for unknown quiz '{slug}'")
            return ScoringFailure(reason=UNKNOWN_QUIZ)
        return score_quiz(quiz, answers, get_quiz_type(quiz.slug), self.settings)

    def score_payload(self, payload: Dict[str, Any], answers: Mapping[Any, Any]) -> ScoreOutcome:
        return score_quiz(payload, answers, settings=self.settings)

    def migrate_totals(self, slug: str, totals: Mapping[str, Any]) -> Dict[str, float]:
        """Canonical-key totals for a stored row, protecting keys the loaded quiz declares."""
        quiz = self.registry.get(slug)
        protected = declared_result_keys(quiz) if quiz is not None else None
        return remap_totals_keys(totals, get_quiz_type(slug).key_remap, protected)
