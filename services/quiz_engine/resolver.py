import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional

from .models import Resolution, ResolutionMode
from .normalizer import ratio

logger = logging.getLogger(__name__)

TIE_TOLERANCE = 1e-9


def _as_number(value) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def mode_scores(
    totals: Mapping[str, float],
    keys: List[str],
    mode: ResolutionMode,
    max_raw: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    """The values winners are compared on: raw totals, or totals over their own maxima."""
    if mode == ResolutionMode.RATIO:
        if max_raw is None:
            logger.debug("Ratio resolution requested without maxima; comparing raw totals instead.")
        else:
            return {k: ratio(totals.get(k, 0.0), max_raw.get(k, 0.0)) for k in keys}
    return {k: _as_number(totals.get(k, 0.0)) for k in keys}


def _break_tie(
    candidates: List[str],
    declared: List[str],
    core_hits: Optional[Mapping[str, int]],
    priority_order: Optional[Iterable[str]],
) -> str:
    if len(candidates) > 1 and core_hits:
        best_hits = max(core_hits.get(k, 0) for k in candidates)
        candidates = [k for k in candidates if core_hits.get(k, 0) == best_hits]

    if len(candidates) == 1:
        return candidates[0]

    priority = list(priority_order or [])
    # Keys outside the priority list rank after it, in declared order
    def rank(key: str):
        tier = priority.index(key) if key in priority else len(priority)
        return (tier, declared.index(key))

    return min(candidates, key=rank)


def resolve(
    totals: Mapping[str, float],
    max_raw: Optional[Mapping[str, float]] = None,
    mode: ResolutionMode = ResolutionMode.RAW,
    keys: Optional[Iterable[str]] = None,
    priority_order: Optional[Iterable[str]] = None,
    core_hits: Optional[Mapping[str, int]] = None,
    precision: int = 3,
) -> Resolution:
    """
    Picks the winning result key and a confidence for it.

    Candidates are the keys within TIE_TOLERANCE of the top score. Ties go to
    the key hit by the most answered core questions, then to the earliest key in
    priority_order, then to the earliest declared key. Without an explicit key
    order the keys are taken sorted, so the winner never depends on mapping
    iteration order.

    Confidence is the margin between first and second place: in ratio mode the
    ratio margin itself, in raw mode the margin over the largest maximum (or the
    winner's own total when no maxima are known). A single key yields 1.0.
    """
    declared = list(keys) if keys is not None else sorted(totals.keys())
    if not declared:
        return Resolution(result_key=None, confidence=0.0, order=[], scores={}, mode=mode)

    scores = mode_scores(totals, declared, mode, max_raw)
    top = max(scores.values())
    candidates = [k for k in declared if top - scores[k] <= TIE_TOLERANCE]
    winner = _break_tie(candidates, declared, core_hits, priority_order)

    rest = sorted((k for k in declared if k != winner), key=lambda k: -scores[k])
    order = [winner] + rest

    if len(order) == 1:
        confidence = 1.0
    else:
        margin = max(0.0, scores[winner] - scores[order[1]])
        if mode == ResolutionMode.RATIO and max_raw is not None:
            confidence = margin
        else:
            denominator = max((_as_number(v) for v in (max_raw or {}).values()), default=0.0)
            if denominator <= 0:
                denominator = scores[winner]
            confidence = margin / denominator if denominator > 0 else 0.0

    confidence = round(max(0.0, min(1.0, confidence)), precision)
    return Resolution(result_key=winner, confidence=confidence, order=order, scores=scores, mode=mode)


def pick_primary(totals: Mapping[str, float], priority_order: Optional[Iterable[str]] = None) -> Optional[str]:
    """Max-value key of a totals mapping, tie-broken like resolve()."""
    if not totals:
        return None
    return resolve(totals, mode=ResolutionMode.RAW, priority_order=priority_order).result_key
