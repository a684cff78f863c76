import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import QuizResultDefinition, RankedEntry


def _as_number(value: Any) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def split_by_prefix(
    totals: Mapping[str, Any],
    prefixes: Iterable[str],
    strip_prefix: bool = False,
) -> Dict[str, Dict[str, float]]:
    """
    Partitions one combined totals mapping into one vector per prefix.

    A key belongs to prefix 'role' when it starts with 'role_' (case-insensitive).
    Keys matching no prefix are dropped. Input order is preserved within each vector.
    """
    prefixes = list(prefixes)
    vectors: Dict[str, Dict[str, float]] = {p: {} for p in prefixes}
    for key, value in (totals or {}).items():
        lowered = str(key).lower()
        for prefix in prefixes:
            marker = f"{prefix.lower()}_"
            if lowered.startswith(marker):
                target_key = str(key)[len(marker):] if strip_prefix else str(key)
                vectors[prefix][target_key] = _as_number(value)
                break
    return vectors


def split_vectors(totals: Mapping[str, Any]):
    """(roles, elements) split of an archetype totals mapping, prefixes kept."""
    vectors = split_by_prefix(totals, ["role", "element"])
    return vectors["role"], vectors["element"]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def rank(vector: Mapping[str, Any]) -> List[RankedEntry]:
    """
    Entries sorted by score descending (stable, so ties keep input order),
    each with its percentage of the vector's top score.
    """
    entries = [(str(k), _as_number(v)) for k, v in (vector or {}).items()]
    if not entries:
        return []
    top = max(score for _, score in entries)
    ranked = sorted(entries, key=lambda item: -item[1])
    return [
        RankedEntry(
            key=key,
            score=score,
            percent_of_max=max(0, _round_half_up(score / top * 100)) if top > 0 else 0,
        )
        for key, score in ranked
    ]


def build_label_index(results: Optional[Iterable[Any]]) -> Dict[str, str]:
    index = {}
    for row in results or []:
        if isinstance(row, QuizResultDefinition):
            index[row.key] = row.label or row.title or row.key
        elif isinstance(row, dict) and row.get("key"):
            index[row["key"]] = row.get("label") or row.get("title") or row["key"]
    return index


def _label(entry: Optional[RankedEntry], labels: Mapping[str, str]) -> Optional[str]:
    if entry is None:
        return None
    return labels.get(entry.key) or entry.key


def compose_attraction_line(
    top_roles: List[RankedEntry],
    top_elements: List[RankedEntry],
    labels: Optional[Mapping[str, str]] = None,
) -> str:
    """One-line summary from the top two entries of each ranked vector."""
    labels = labels or {}
    role1 = _label(top_roles[0] if top_roles else None, labels)
    role2 = _label(top_roles[1] if len(top_roles) > 1 else None, labels)
    el1 = _label(top_elements[0] if top_elements else None, labels)
    el2 = _label(top_elements[1] if len(top_elements) > 1 else None, labels)

    role_part = f"{role1} + {role2}" if role2 else (role1 or "—")
    element_part = f"{el1}/{el2}" if el2 else (el1 or "—")
    return f"You're pulled toward **{role_part}** energy with an **{element_part}** elemental vibe."
