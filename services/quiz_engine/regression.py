import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .definitions import QuizType, get_quiz_type
from .loader import coerce_quiz
from .models import Quiz, ResolutionMode, TallyResult
from .resolver import resolve
from .tally import core_hit_counts, declared_result_keys, tally
from .vectors import split_by_prefix

logger = logging.getLogger(__name__)


def simulate_answer_sets(quiz: Union[Quiz, Dict[str, Any]], n: int, seed: int = 0) -> List[Dict[str, str]]:
    """
    Generates n answer sets, one uniformly random option per question.
    The same seed always yields the same sets.
    """
    parsed = coerce_quiz(quiz)
    if parsed is None:
        return []
    rng = np.random.default_rng(seed)
    answer_sets = []
    for _ in range(n):
        answers = {}
        for question in parsed.questions:
            if question.options:
                answers[question.id] = question.options[int(rng.integers(len(question.options)))].key
        answer_sets.append(answers)
    return answer_sets


def _winner(
    quiz: Quiz,
    quiz_type: QuizType,
    outcome: TallyResult,
    answers: Mapping[Any, Any],
    keys: List[str],
    mode: ResolutionMode,
) -> Optional[str]:
    hits = core_hit_counts(quiz, answers, keys)
    if not quiz_type.is_dual_axis:
        return resolve(
            outcome.totals_raw, outcome.max_raw, mode=mode, keys=keys,
            priority_order=quiz_type.priority_order, core_hits=hits,
        ).result_key

    axis_names = quiz_type.axis_names
    totals = split_by_prefix(outcome.totals_raw, axis_names, strip_prefix=True)
    maxima = split_by_prefix(outcome.max_raw, axis_names, strip_prefix=True)
    axis_hits = split_by_prefix(hits, axis_names, strip_prefix=True)
    winners = []
    for axis in axis_names:
        axis_keys = quiz_type.axis_keys(axis)
        winners.append(resolve(
            totals[axis], maxima[axis], mode=mode, keys=axis_keys,
            priority_order=axis_keys, core_hits={k: int(v) for k, v in axis_hits[axis].items()},
        ).result_key)
    return quiz_type.compose_key(winners)


def generate_mode_drift_report(
    quiz: Union[Quiz, Dict[str, Any]],
    answer_sets: List[Mapping[Any, Any]],
    quiz_type: Optional[QuizType] = None,
) -> Dict[str, Any]:
    """
    Scores every answer set under both resolution modes and reports where the
    raw-magnitude winner and the ratio-to-maximum winner disagree.

    Args:
        quiz: Quiz model or raw payload.
        answer_sets: Answer sets to score; ones failing the answer gate are skipped.
        quiz_type: Type record; looked up from the quiz slug when omitted.

    Returns:
        A dictionary with the slug, respondent count, agreement rate, winner
        counts per mode and the disagreeing respondents.
    """
    parsed = coerce_quiz(quiz)
    if parsed is None:
        raise ValueError("Quiz definition has no usable questions")
    quiz_type = quiz_type or get_quiz_type(parsed.slug)
    keys = quiz_type.prefixed_keys() if quiz_type.is_dual_axis else declared_result_keys(parsed)

    rows = []
    skipped = 0
    for index, answers in enumerate(answer_sets):
        outcome = tally(parsed, answers, keys, min_required=quiz_type.default_min_required)
        if not outcome.ok:
            skipped += 1
            continue
        rows.append({
            "respondent": index,
            "winner_raw": _winner(parsed, quiz_type, outcome, answers, keys, ResolutionMode.RAW),
            "winner_ratio": _winner(parsed, quiz_type, outcome, answers, keys, ResolutionMode.RATIO),
        })

    if skipped:
        logger.info(f"Drift report for '{parsed.slug}' skipped {skipped} answer sets below the answer gate")

    report = {
        "slug": parsed.slug,
        "respondents": len(rows),
        "agreement_rate": None,
        "winners_raw": {},
        "winners_ratio": {},
        "disagreements": [],
    }
    if not rows:
        return report

    df = pd.DataFrame(rows, columns=["respondent", "winner_raw", "winner_ratio"])
    agree = df["winner_raw"] == df["winner_ratio"]
    report["agreement_rate"] = round(float(agree.mean()), 4)
    report["winners_raw"] = {str(k): int(v) for k, v in df["winner_raw"].value_counts().sort_index().items()}
    report["winners_ratio"] = {str(k): int(v) for k, v in df["winner_ratio"].value_counts().sort_index().items()}
    report["disagreements"] = [
        {"respondent": int(r.respondent), "raw": r.winner_raw, "ratio": r.winner_ratio}
        for r in df.loc[~agree].itertuples(index=False)
    ]
    return report
