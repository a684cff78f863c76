import itertools

import pytest

from services.quiz_engine.models import ResolutionMode
from services.quiz_engine.resolver import pick_primary, resolve


SEED_TOTALS = {"A": 2.0, "B": 3.0}
SEED_MAXIMA = {"A": 3.0, "B": 5.0}


# --- Resolution modes on the seed scenario ---

def test_raw_mode_picks_larger_total():
    resolution = resolve(SEED_TOTALS, SEED_MAXIMA, mode=ResolutionMode.RAW, keys=["A", "B"])
    assert resolution.result_key == "B"
    # margin 1 over the largest maximum 5
    assert resolution.confidence == pytest.approx(0.2)


def test_ratio_mode_picks_larger_share_of_own_maximum():
    resolution = resolve(SEED_TOTALS, SEED_MAXIMA, mode=ResolutionMode.RATIO, keys=["A", "B"])
    assert resolution.result_key == "A"
    # 2/3 - 3/5
    assert resolution.confidence == pytest.approx(0.067)
    assert resolution.scores["A"] == pytest.approx(2 / 3)


def test_ratio_mode_without_maxima_compares_raw_totals():
    resolution = resolve(SEED_TOTALS, None, mode=ResolutionMode.RATIO)
    assert resolution.result_key == "B"


# --- Confidence scenario ---

def test_confidence_scenario_clear_winner():
    resolution = resolve({"A": 10, "B": 4, "C": 4})
    assert resolution.result_key == "A"
    assert resolution.confidence == pytest.approx(0.6)
    assert resolution.order == ["A", "B", "C"]


def test_confidence_scaled_by_largest_maximum_in_raw_mode():
    resolution = resolve({"A": 10, "B": 4, "C": 4}, {"A": 12, "B": 12, "C": 8})
    assert resolution.confidence == pytest.approx(0.5)


def test_equal_runners_up_follow_declared_key_order():
    resolution = resolve({"A": 10, "B": 4, "C": 4}, keys=["A", "C", "B"])
    assert resolution.order == ["A", "C", "B"]


def test_single_key_is_fully_confident():
    resolution = resolve({"only": 3})
    assert resolution.result_key == "only"
    assert resolution.confidence == 1.0
    assert resolution.order == ["only"]


def test_empty_totals_resolve_to_nothing():
    resolution = resolve({})
    assert resolution.result_key is None
    assert resolution.confidence == 0.0
    assert resolution.order == []


def test_all_zero_totals_have_zero_confidence():
    resolution = resolve({"A": 0, "B": 0}, keys=["A", "B"])
    assert resolution.result_key == "A"
    assert resolution.confidence == 0.0


def test_confidence_is_bounded_and_rounded():
    resolution = resolve({"A": 1, "B": 0}, {"A": 3, "B": 3}, mode=ResolutionMode.RATIO, keys=["A", "B"])
    assert resolution.confidence == 0.333
    assert 0.0 <= resolution.confidence <= 1.0


# --- Tie-breaking ---

def test_tie_broken_by_core_hits():
    resolution = resolve(
        {"A": 4, "B": 4},
        keys=["A", "B"],
        core_hits={"A": 1, "B": 3},
    )
    assert resolution.result_key == "B"


def test_remaining_tie_broken_by_priority_order():
    resolution = resolve(
        {"karmic": 6, "soulmate": 6, "kindred": 1},
        keys=["soulmate", "karmic", "kindred"],
        priority_order=["twin_soul", "karmic", "soulmate"],
        core_hits={"karmic": 2, "soulmate": 2},
    )
    assert resolution.result_key == "karmic"
    assert resolution.order[0] == "karmic"


def test_keys_missing_from_priority_rank_after_listed_keys():
    resolution = resolve({"x": 1, "y": 1}, keys=["x", "y"], priority_order=["y"])
    assert resolution.result_key == "y"


def test_tie_without_priority_uses_declared_order():
    resolution = resolve({"B": 2, "A": 2}, keys=["B", "A"])
    assert resolution.result_key == "B"


def test_near_equal_scores_count_as_tied():
    resolution = resolve({"A": 0.3, "B": 0.1 + 0.2}, keys=["B", "A"])
    assert resolution.result_key == "B"


def test_winner_independent_of_mapping_iteration_order():
    totals = {"C": 5, "A": 5, "B": 5, "D": 1}
    winners = set()
    for permutation in itertools.permutations(totals.items()):
        winners.add(resolve(dict(permutation)).result_key)
    assert winners == {"A"}


def test_repeated_calls_are_identical():
    totals = {"x": 3, "y": 3, "z": 3}
    results = [resolve(totals, priority_order=["z", "y"]) for _ in range(5)]
    assert all(r == results[0] for r in results)
    assert results[0].result_key == "z"


# --- pick_primary ---

def test_pick_primary_uses_max_value():
    assert pick_primary({"words": 3, "time": 7, "touch": 2}) == "time"


def test_pick_primary_tie_uses_priority_then_sorted_keys():
    assert pick_primary({"soulmate": 4, "karmic": 4}, ["karmic"]) == "karmic"
    assert pick_primary({"soulmate": 4, "karmic": 4}) == "karmic"


def test_pick_primary_empty_is_none():
    assert pick_primary({}) is None
