import math
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import start_case

DEFAULT_MAX_VALUE = 10.0
DEFAULT_GAMMA = 0.8
DEFAULT_BOOST = 1.12
DEFAULT_FLOOR = 0.6


def _finite(value) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def rescale(value: float, max_value: float = DEFAULT_MAX_VALUE) -> float:
    """
    Brings a raw value into display units.

    Probabilities in [0, 1] are scaled by max_value, percentages in (1, 100]
    are divided by 100 first, anything else is clamped as-is.
    """
    v = _finite(value)
    if 0.0 <= v <= 1.0:
        return v * max_value
    if 1.0 < v <= 100.0:
        return v / 100.0 * max_value
    return _clamp(v, 0.0, max_value)


def shape(
    value: float,
    max_value: float = DEFAULT_MAX_VALUE,
    gamma: float = DEFAULT_GAMMA,
    boost: float = DEFAULT_BOOST,
    floor: float = DEFAULT_FLOOR,
) -> float:
    """Perceptual reshape: gamma-expand, boost, snap tiny positives up to floor."""
    if max_value <= 0:
        return 0.0
    unit = _clamp(_finite(value), 0.0, max_value) / max_value
    shaped = (unit ** gamma) * max_value * boost
    if 0.0 < shaped < floor:
        shaped = floor
    return _clamp(shaped, 0.0, max_value)


def normalize_to_object_keyed(
    totals: Mapping[str, float],
    keys: Optional[Iterable[str]] = None,
    max_value: float = DEFAULT_MAX_VALUE,
    gamma: float = DEFAULT_GAMMA,
    boost: float = DEFAULT_BOOST,
    floor: float = DEFAULT_FLOOR,
) -> Dict[str, float]:
    """Display values keyed by result key; absent keys count as 0."""
    keys = list(keys) if keys is not None else list(totals.keys())
    return {
        k: shape(rescale(totals.get(k, 0.0), max_value), max_value, gamma, boost, floor)
        for k in keys
    }


def normalize_for_display(
    totals: Mapping[str, float],
    keys: Optional[Iterable[str]] = None,
    labels: Optional[Mapping[str, str]] = None,
    max_value: float = DEFAULT_MAX_VALUE,
    gamma: float = DEFAULT_GAMMA,
    boost: float = DEFAULT_BOOST,
    floor: float = DEFAULT_FLOOR,
) -> List[Tuple[str, float]]:
    """Chart-ready [label, value] pairs in key order."""
    labels = labels or {}
    shaped = normalize_to_object_keyed(totals, keys, max_value, gamma, boost, floor)
    return [(labels.get(k) or start_case(k), v) for k, v in shaped.items()]


def ratio(total: float, maximum: float) -> float:
    """total / maximum, 0 when the maximum is not positive."""
    maximum = _finite(maximum)
    if maximum <= 0:
        return 0.0
    return _finite(total) / maximum


def percent_of_max(totals_raw: Mapping[str, float], max_raw: Mapping[str, float], keys: Optional[Iterable[str]] = None) -> Dict[str, float]:
    """Plain percentage of each key's own maximum, clamped to [0, 100]."""
    keys = list(keys) if keys is not None else list(totals_raw.keys())
    return {
        k: round(_clamp(ratio(totals_raw.get(k, 0.0), max_raw.get(k, 0.0)) * 100.0, 0.0, 100.0), 1)
        for k in keys
    }


def display_totals(
    totals_raw: Mapping[str, float],
    max_raw: Mapping[str, float],
    keys: Optional[Iterable[str]] = None,
    max_value: float = DEFAULT_MAX_VALUE,
    gamma: float = DEFAULT_GAMMA,
    boost: float = DEFAULT_BOOST,
    floor: float = DEFAULT_FLOOR,
) -> Dict[str, float]:
    """
    Display-shaped value of each key's ratio to its own maximum.

    Ratios are clamped to [0, 1] before shaping so negative totals show as 0.
    """
    keys = list(keys) if keys is not None else list(totals_raw.keys())
    ratios = {k: _clamp(ratio(totals_raw.get(k, 0.0), max_raw.get(k, 0.0)), 0.0, 1.0) for k in keys}
    return {k: round(v, 3) for k, v in normalize_to_object_keyed(ratios, keys, max_value, gamma, boost, floor).items()}
