import math
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

DEFAULT_SUMMARY_KEYS = ["accountability", "repair", "gift", "time", "words", "change"]
DEFAULT_CAP_PER_STYLE = 16.0


class Distribution(BaseModel):
    keys: List[str]
    counts: Dict[str, float]
    normalized: Dict[str, float]
    percentages: Dict[str, float]
    order: List[str]
    winner: Optional[str]
    runner_up: Optional[str]
    margin: float
    confidence: float
    total_answered_weight: float


def _count(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value) if math.isfinite(value) else 0.0


def summarize_results(
    totals: Optional[Mapping[str, Any]],
    keys: Optional[List[str]] = None,
    cap_per_style: float = DEFAULT_CAP_PER_STYLE,
    as_percent: bool = True,
) -> Distribution:
    """
    Tidy distribution of a quiz's tallies: counts, share of the per-style cap,
    winner and runner-up by count, and margin / cap as confidence.
    """
    keys = list(keys) if keys else list(DEFAULT_SUMMARY_KEYS)
    totals = totals or {}
    counts = {k: _count(totals.get(k)) for k in keys}

    # sorted() is stable, so equal counts keep the given key order
    order = sorted(keys, key=lambda k: -counts[k])
    winner = order[0] if order else None
    runner_up = order[1] if len(order) > 1 else None
    margin = counts[winner] - counts[runner_up] if winner and runner_up else 0.0
    confidence = margin / cap_per_style if cap_per_style > 0 else 0.0

    normalized = {}
    percentages = {}
    for k in keys:
        norm = counts[k] / cap_per_style if cap_per_style > 0 else 0.0
        normalized[k] = norm
        percentages[k] = int(math.floor(norm * 100 + 0.5)) if as_percent else norm

    return Distribution(
        keys=keys,
        counts=counts,
        normalized=normalized,
        percentages=percentages,
        order=order,
        winner=winner,
        runner_up=runner_up,
        margin=margin,
        confidence=confidence,
        total_answered_weight=sum(counts.values()),
    )


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def distribution_label(distribution: Distribution) -> str:
    """'Top: A (8) · Runner-up: C (6) · Others: B (2), D (0)'"""
    d = distribution
    parts = []
    if d.winner:
        parts.append(f"Top: {d.winner} ({_fmt(d.counts[d.winner])})")
    if d.runner_up:
        parts.append(f"Runner-up: {d.runner_up} ({_fmt(d.counts[d.runner_up])})")
    rest = [f"{k} ({_fmt(d.counts[k])})" for k in d.order[2:]]
    if rest:
        parts.append(f"Others: {', '.join(rest)}")
    return " · ".join(parts)


def build_narrative_signals(
    quiz_slug: Optional[str],
    result_title: Optional[str],
    totals: Optional[Mapping[str, Any]],
    archetype: Optional[Mapping[str, Any]] = None,
    cap_per_style: float = DEFAULT_CAP_PER_STYLE,
    keys: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Stable JSON payload handed to the generative text layer."""
    dist = summarize_results(totals or {}, keys=keys, cap_per_style=cap_per_style)
    return {
        "quiz_slug": quiz_slug,
        "result_title": result_title,
        "distribution": {
            "counts": dist.counts,
            "percentages": dist.percentages,
            "order": dist.order,
            "winner": dist.winner,
            "runner_up": dist.runner_up,
            "confidence": dist.confidence,
            "cap_per_style": cap_per_style,
        },
        "archetype": {
            "role": archetype.get("role"),
            "energy": archetype.get("energy"),
            "title": archetype.get("title"),
        } if archetype else None,
    }
