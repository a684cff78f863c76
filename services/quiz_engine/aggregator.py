import logging
from typing import Any, Dict, Mapping, Optional

from .definitions import (
    ELEMENT_CUES,
    FACET_SOURCES,
    NOTE_SOURCES,
    QuizType,
    canonical_slug,
    get_quiz_type,
)
from .engine import remap_totals_keys
from .models import CompositeProfile, ElementCues, Facet, ProfileNotes, ScoredResult, ScoringFailure
from .resolver import pick_primary, resolve
from .vectors import split_by_prefix

logger = logging.getLogger(__name__)


def read_totals(maybe: Any) -> Dict[str, float]:
    """
    Tolerant totals reader for stored rows.

    Accepts a {key: value} mapping, a list of [key, value] pairs, or a list of
    {key|k|name, value|v|score} dicts. Non-numeric values are dropped.
    """
    pairs = []
    if isinstance(maybe, Mapping):
        pairs = list(maybe.items())
    elif isinstance(maybe, (list, tuple)):
        for item in maybe:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                pairs.append((item[0], item[1]))
            elif isinstance(item, Mapping):
                key = next((item[f] for f in ("key", "k", "name") if item.get(f) is not None), None)
                value = next((item[f] for f in ("value", "v", "score") if item.get(f) is not None), None)
                pairs.append((key, value))

    totals: Dict[str, float] = {}
    for key, value in pairs:
        if not isinstance(key, str) or isinstance(value, bool):
            continue
        try:
            totals[key] = float(value)
        except (TypeError, ValueError):
            continue
    return totals


def primary_key_of(value: Any, slug: Optional[str] = None) -> Optional[str]:
    """
    Winning key of a scored result or stored row, or None if there is none.

    Rows without an explicit result_key are resolved again: raw totals with
    their maxima go through the quiz type's resolution mode; otherwise the
    max-value key of the stored totals wins, preferring the display totals,
    which are already ratios. Legacy keys are folded to canonical names first.
    """
    if value is None or isinstance(value, ScoringFailure):
        return None
    if isinstance(value, str):
        return value or None
    quiz_type = get_quiz_type(slug)
    if isinstance(value, ScoredResult):
        return value.result_key or _resolve_stored(value.totals_raw, value.max_raw, quiz_type)
    if isinstance(value, Mapping):
        if value.get("ok") is False:
            return None
        if value.get("result_key"):
            return str(value["result_key"])
        totals_raw = read_totals(value.get("totals_raw"))
        max_raw = read_totals(value.get("max_raw"))
        if totals_raw and max_raw:
            return _resolve_stored(totals_raw, max_raw, quiz_type)
        for field_name in ("result_totals", "totals_raw", "totals"):
            totals = read_totals(value.get(field_name))
            if totals:
                totals = remap_totals_keys(totals, quiz_type.key_remap)
                return pick_primary(totals, quiz_type.priority_order)
        return None
    logger.debug(f"Unrecognized result value of type {type(value).__name__} for '{slug}'")
    return None


def _resolve_stored(totals_raw: Mapping[str, Any], max_raw: Mapping[str, Any], quiz_type: QuizType) -> Optional[str]:
    totals = remap_totals_keys(totals_raw, quiz_type.key_remap)
    maxima = remap_totals_keys(max_raw, quiz_type.key_remap)
    return resolve(
        totals,
        maxima or None,
        mode=quiz_type.resolution_mode,
        priority_order=quiz_type.priority_order,
    ).result_key


def _element_cues(element: Optional[str]) -> Optional[ElementCues]:
    if not element:
        return None
    cues = ELEMENT_CUES.get(element) or ELEMENT_CUES.get(element.strip().capitalize())
    return ElementCues(**cues) if cues else None


def aggregate(
    scored_by_slug: Optional[Mapping[str, Any]],
    context: Optional[Mapping[str, Any]] = None,
) -> CompositeProfile:
    """
    Builds the composite profile from the latest result per quiz slug.

    A facet is set only when its source quiz is present and its winning key is
    in the facet table. Unknown slugs and unknown keys are ignored.
    """
    by_slug: Dict[str, Any] = {}
    for slug, value in (scored_by_slug or {}).items():
        canonical = canonical_slug(slug)
        if canonical is None:
            continue
        by_slug[canonical] = value

    facets: Dict[str, Optional[Facet]] = {}
    for facet_name, (source_slug, table) in FACET_SOURCES.items():
        facets[facet_name] = None
        if source_slug not in by_slug:
            continue
        key = primary_key_of(by_slug[source_slug], source_slug)
        if key is None:
            continue
        entry = table.get(key)
        if entry is None:
            logger.warning(f"No {facet_name} facet for key '{key}' from quiz '{source_slug}'")
            continue
        facets[facet_name] = Facet(key=entry[0], label=entry[1])

    notes = {
        note_name: primary_key_of(by_slug.get(source_slug), source_slug)
        for note_name, source_slug in NOTE_SOURCES.items()
    }

    context = context or {}
    element = context.get("element")
    element = str(element) if element else None

    return CompositeProfile(
        element=element,
        cues=_element_cues(element),
        visibility=bool(context.get("public", context.get("visibility", False))),
        notes=ProfileNotes(**notes),
        **facets,
    )


def resolve_archetype_from_row(row: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Reads the role/energy archetype out of a stored preference-quiz row.

    Totals may be nested ({"role": {...}, "energy": {...}}) or flat with
    role_/energy_ prefixed keys.
    """
    if not row:
        return {"label": None, "key": None, "role": None, "energy": None, "totals": {}}

    totals = row.get("result_totals") or row.get("totals") or row.get("payload") or {}
    if not isinstance(totals, Mapping):
        totals = {}

    nested_role = totals.get("role", totals.get("roles"))
    nested_energy = totals.get("energy", totals.get("energies"))
    if nested_role is not None or nested_energy is not None:
        role_totals = read_totals(nested_role)
        energy_totals = read_totals(nested_energy)
    else:
        split = split_by_prefix(read_totals(totals), ["role", "energy"], strip_prefix=True)
        role_totals, energy_totals = split["role"], split["energy"]

    role = pick_primary(role_totals)
    energy = pick_primary(energy_totals)

    def _primary_field(name: str) -> Optional[str]:
        for holder in ("primary", "winner"):
            block = totals.get(holder)
            if isinstance(block, Mapping) and block.get(name):
                return str(block[name])
        return None

    label = row.get("result_title") or _primary_field("label") or (f"{role} × {energy}" if role and energy else None)
    key = row.get("result_key") or _primary_field("key") or (f"{role}_{energy}" if role and energy else None)

    return {"label": label, "key": key, "role": role, "energy": energy, "totals": dict(totals)}
