import logging

import pytest

from services.quiz_engine.aggregator import aggregate, primary_key_of, read_totals, resolve_archetype_from_row
from services.quiz_engine.models import CompositeProfile, Facet, ScoringFailure


# --- Tolerant totals reading ---

def test_read_totals_accepts_mapping_pairs_and_records():
    assert read_totals({"a": 1, "b": "2"}) == {"a": 1.0, "b": 2.0}
    assert read_totals([["a", 1], ("b", 3)]) == {"a": 1.0, "b": 3.0}
    assert read_totals([{"key": "a", "value": 4}, {"k": "b", "v": 5}, {"name": "c", "score": 6}]) == {
        "a": 4.0, "b": 5.0, "c": 6.0,
    }


def test_read_totals_drops_unusable_entries():
    assert read_totals({"a": "lots", "b": True, 3: 1, "c": None}) == {}
    assert read_totals(None) == {}
    assert read_totals("words") == {}


# --- Winning key of a stored value ---

def test_primary_key_prefers_explicit_result_key():
    assert primary_key_of({"result_key": "time", "totals_raw": {"words": 9}}, "love-language-receiving") == "time"


def test_primary_key_falls_back_to_totals():
    assert primary_key_of({"result_totals": {"words": 2, "touch": 5}}, "love-language-receiving") == "touch"


def test_primary_key_remaps_legacy_totals():
    row = {"totals": {"verbal": 3, "words": 2, "time": 4}}
    assert primary_key_of(row, "apology-language") == "words"


def test_stored_row_resolves_in_the_quiz_ratio_mode():
    """words has the bigger raw total, time the bigger share of its own maximum."""
    row = {
        "totals_raw": {"words": 6, "time": 5},
        "max_raw": {"words": 12, "time": 5},
        "result_totals": {"words": 6.3, "time": 10.0},
    }
    assert primary_key_of(row, "love-language-receiving") == "time"
    assert aggregate({"love-language-receiving": row}).romantic.key == "keeper_lover"


def test_stored_row_resolves_in_the_quiz_raw_mode():
    row = {"totals_raw": {"karmic": 6, "kindred": 5}, "max_raw": {"karmic": 12, "kindred": 5}}
    assert primary_key_of(row, "soul-connection") == "karmic"


def test_stored_row_agrees_with_engine_result(engine, registry):
    quiz = registry.get("ambiversion-spectrum")
    scored = engine.score("ambiversion-spectrum", {q.id: q.options[0].key for q in quiz.questions})
    row = scored.to_payload()
    del row["result_key"]
    assert primary_key_of(row, "ambiversion-spectrum") == scored.result_key == "introvert_strong"


def test_display_totals_preferred_over_raw_totals_without_maxima():
    row = {"totals_raw": {"words": 6, "time": 5}, "result_totals": {"words": 6.3, "time": 10.0}}
    assert primary_key_of(row, "love-language-receiving") == "time"


def test_primary_key_of_failures_is_none():
    assert primary_key_of(ScoringFailure(reason="No questions.")) is None
    assert primary_key_of({"ok": False, "reason": "Please answer at least 9 questions."}) is None
    assert primary_key_of(None) is None
    assert primary_key_of({}) is None


def test_primary_key_of_plain_string():
    assert primary_key_of("secure", "attachment-style") == "secure"


# --- Composite profile ---

def test_empty_input_gives_empty_profile():
    profile = aggregate({})
    assert isinstance(profile, CompositeProfile)
    payload = profile.to_payload()
    for facet in ("element", "role", "romantic", "mystic", "attachment", "life_path", "friendship", "cues"):
        assert payload[facet] is None
    assert payload["notes"] == {"apology": None, "forgiveness": None}
    assert payload["visibility"] is False
    assert payload["compatibility"] == {"best_with": [], "growth_with": [], "tensions_with": []}


def test_full_profile_from_scored_results(engine, registry):
    scored = {
        "love-language-receiving": {"result_key": "words"},
        "ambiversion-spectrum": {"result_key": "ambivert"},
        "soul-connection": engine.score("soul-connection", {
            "q1": "intense", "q2": "catalyst", "q3": "explosive", "q4": "chaotic",
            "q5": "onfire", "q6": "grand", "q7": "passion", "q8": "spiky",
            "q9": "a", "q10": "sd", "q11": "thin", "q12": "onesided",
        }),
        "attachment-style": {"result_key": "fearful"},
        "apology-language": {"result_key": "time"},
        "forgiveness-language": {"result_key": "change"},
    }
    profile = aggregate(scored, {"element": "Fire", "public": True})
    assert profile.romantic == Facet(key="orator_lover", label="The Orator (Words)")
    assert profile.role == Facet(key="weaver", label="Weaver")
    assert profile.mystic == Facet(key="firepath", label="Firepath")
    assert profile.attachment.label == "Fearful-Avoidant"
    assert profile.notes.apology == "time"
    assert profile.notes.forgiveness == "change"
    assert profile.element == "Fire"
    assert profile.cues.texture == "Velvet heat"
    assert profile.visibility is True


def test_partial_input_leaves_other_facets_empty():
    profile = aggregate({"soul-connection": {"result_key": "kindred"}})
    assert profile.mystic.key == "companion"
    assert profile.romantic is None
    assert profile.role is None


def test_alias_slugs_feed_their_facet():
    profile = aggregate({"love-language-rx": {"result_key": "acts"}})
    assert profile.romantic.key == "guardian_lover"


def test_unknown_slug_is_ignored():
    profile = aggregate({"horoscope": {"result_key": "leo"}})
    assert profile == aggregate({})


def test_unknown_key_leaves_facet_empty(caplog):
    caplog.set_level(logging.WARNING)
    profile = aggregate({"ambiversion-spectrum": {"result_key": "hermit"}})
    assert profile.role is None
    assert "hermit" in caplog.text


def test_failed_rows_contribute_nothing():
    profile = aggregate({
        "love-language-receiving": {"ok": False, "reason": "Please answer at least 9 questions."},
        "attachment-style": ScoringFailure(reason="No questions."),
    })
    assert profile.romantic is None
    assert profile.attachment is None


def test_totals_only_row_resolves_by_max_value():
    profile = aggregate({"love-language-receiving": {"totals_raw": {"words": 3, "gifts": 8}}})
    assert profile.romantic.key == "giver_lover"


def test_unknown_element_has_no_cues():
    profile = aggregate({}, {"element": "Plasma"})
    assert profile.element == "Plasma"
    assert profile.cues is None


def test_element_cues_match_case_insensitively():
    assert aggregate({}, {"element": "water"}).cues.texture == "Silk flow"


# --- Archetype rows ---

def test_archetype_from_nested_row():
    row = {"result_totals": {
        "role": {"Sage": 4, "Navigator": 7},
        "energy": [{"key": "Muse", "value": 2}, {"key": "Rebel", "value": 5}],
    }}
    archetype = resolve_archetype_from_row(row)
    assert archetype["role"] == "Navigator"
    assert archetype["energy"] == "Rebel"
    assert archetype["key"] == "Navigator_Rebel"
    assert archetype["label"] == "Navigator × Rebel"


def test_archetype_from_flat_prefixed_row():
    row = {"totals": {"role_Seeker": 6, "role_Herald": 2, "energy_Sage": 3}}
    archetype = resolve_archetype_from_row(row)
    assert archetype["key"] == "Seeker_Sage"


def test_archetype_primary_block_overrides_computed_label():
    row = {"result_totals": {
        "role_Seeker": 6,
        "energy_Sage": 3,
        "primary": {"label": "The Wandering Sage", "key": "seeker_sage"},
    }}
    archetype = resolve_archetype_from_row(row)
    assert archetype["label"] == "The Wandering Sage"
    assert archetype["key"] == "seeker_sage"


def test_archetype_result_title_wins():
    row = {"result_title": "Catalyst × Warrior (preference)", "result_totals": {"role_Catalyst": 1, "energy_Warrior": 1}}
    assert resolve_archetype_from_row(row)["label"] == "Catalyst × Warrior (preference)"


@pytest.mark.parametrize("row", [None, {}, {"result_totals": "garbage"}])
def test_archetype_from_empty_row(row):
    archetype = resolve_archetype_from_row(row)
    assert archetype["key"] is None
    assert archetype["label"] is None
