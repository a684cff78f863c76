# services/quiz_engine/definitions.py
# Static per-quiz-type configuration and the facet lookup tables used by the aggregator.

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .models import ResolutionMode

logger = logging.getLogger(__name__)


class QuizShape(str, Enum):
    WEIGHTED = "weighted"
    DUAL_AXIS = "dual_axis"
    PREFERENCE = "preference"  # dual axis, totals left unnormalized


class QuizType(BaseModel):
    slug: str
    shape: QuizShape = QuizShape.WEIGHTED
    resolution_mode: ResolutionMode = ResolutionMode.RATIO
    aliases: Tuple[str, ...] = ()
    priority_order: Tuple[str, ...] = ()
    # axis name -> declared keys, in axis order (dual shapes only)
    axes: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    title_axes: Tuple[str, ...] = ()
    # combined dual-axis key: winners joined in axis order, optionally lowercased
    key_joiner: str = "_"
    lowercase_key: bool = False
    key_remap: Dict[str, str] = Field(default_factory=dict)
    default_min_required: Optional[int] = None
    summary_template: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_dual_axis(self) -> bool:
        return self.shape in (QuizShape.DUAL_AXIS, QuizShape.PREFERENCE)

    @property
    def axis_names(self) -> List[str]:
        return [name for name, _ in self.axes]

    def axis_keys(self, axis: str) -> List[str]:
        for name, keys in self.axes:
            if name == axis:
                return list(keys)
        return []

    def compose_key(self, winners: List[Optional[str]]) -> str:
        parts = [w or "" for w in winners]
        if self.lowercase_key:
            parts = [p.lower() for p in parts]
        return self.key_joiner.join(parts)

    def prefixed_keys(self) -> List[str]:
        """Combined result-key set for a dual-axis quiz, e.g. 'role_sage'."""
        return [f"{name}_{key}" for name, keys in self.axes for key in keys]


# --- Axis key sets ---

ELEMENT_KEYS = ("fire", "water", "earth", "air", "electricity")
ARCHETYPE_ROLE_KEYS = (
    "protector", "healer", "muse", "architect", "rebel",
    "sage", "guardian", "artisan", "visionary", "navigator",
)
ROLE_KEYS = (
    "Navigator", "Protector", "Architect", "Guardian", "Artisan",
    "Catalyst", "Nurturer", "Herald", "Seeker",
)
ENERGY_KEYS = (
    "Muse", "Sage", "Visionary", "Healer", "Warrior", "Creator",
    "Lover", "Magician", "Rebel", "Caregiver", "Sovereign", "Jester",
)


# --- Registered quiz types ---

QUIZ_TYPES: Tuple[QuizType, ...] = (
    QuizType(
        slug="soul-connection",
        resolution_mode=ResolutionMode.RAW,
        priority_order=("twin_soul", "soulmate", "twin_flame", "karmic", "kindred"),
        default_min_required=7,
        summary_template="Your connection reads as {title}.",
    ),
    QuizType(slug="love-language-receiving", aliases=("love-language-rx",)),
    QuizType(slug="love-language-giving"),
    QuizType(slug="ambiversion-spectrum"),
    QuizType(slug="attachment-style"),
    QuizType(
        slug="apology-language",
        aliases=("apology-style",),
        key_remap={"verbal": "words", "responsibility": "accountability"},
    ),
    QuizType(
        slug="forgiveness-language",
        aliases=("forgiveness",),
        key_remap={"repair": "accountability", "restitution": "amends", "gestures": "gesture"},
    ),
    QuizType(
        slug="archetype",
        shape=QuizShape.DUAL_AXIS,
        resolution_mode=ResolutionMode.RAW,
        axes=(("element", ELEMENT_KEYS), ("role", ARCHETYPE_ROLE_KEYS)),
        title_axes=("role", "element"),
        default_min_required=8,
        summary_template="Your leading role is {role}, expressed through {element} element.",
    ),
    QuizType(
        slug="archetype-dual",
        aliases=("archetype_dual",),
        shape=QuizShape.DUAL_AXIS,
        resolution_mode=ResolutionMode.RAW,
        axes=(("role", ROLE_KEYS), ("energy", ENERGY_KEYS)),
        title_axes=("role", "energy"),
        default_min_required=12,
        key_joiner="__",
        lowercase_key=True,
    ),
    QuizType(
        slug="archetype-preference",
        aliases=("archetype_preference",),
        shape=QuizShape.PREFERENCE,
        resolution_mode=ResolutionMode.RAW,
        axes=(("role", ROLE_KEYS), ("energy", ENERGY_KEYS)),
        title_axes=("role", "energy"),
        default_min_required=10,
    ),
)

_BY_SLUG: Dict[str, QuizType] = {}
for _qt in QUIZ_TYPES:
    _BY_SLUG[_qt.slug] = _qt
    for _alias in _qt.aliases:
        _BY_SLUG[_alias] = _qt


def get_quiz_type(slug: Optional[str]) -> QuizType:
    """
    Resolves a quiz slug (or alias) to its type record.

    Unknown slugs get a generic weighted quiz resolved by ratio, whose
    tie-break order is the quiz's declared result order.
    """
    key = (slug or "").strip().lower()
    quiz_type = _BY_SLUG.get(key)
    if quiz_type is None:
        logger.debug(f"No registered quiz type for slug '{slug}', using generic weighted type.")
        return QuizType(slug=key)
    return quiz_type


def canonical_slug(slug: Optional[str]) -> Optional[str]:
    key = (slug or "").strip().lower()
    quiz_type = _BY_SLUG.get(key)
    return quiz_type.slug if quiz_type else (key or None)


# --- Facet tables (winning key -> (facet key, label)) ---

LOVE_LANGUAGE_TO_ROMANTIC: Dict[str, Tuple[str, str]] = {
    "words": ("orator_lover", "The Orator (Words)"),
    "time": ("keeper_lover", "The Keeper (Quality Time)"),
    "touch": ("ember_lover", "The Ember (Physical Touch)"),
    "service": ("guardian_lover", "The Guardian (Acts of Service)"),
    "acts": ("guardian_lover", "The Guardian (Acts of Service)"),
    "gifts": ("giver_lover", "The Giver (Gifts)"),
}

AMBIVERSION_TO_ROLE: Dict[str, Tuple[str, str]] = {
    "introvert_strong": ("sage", "Sage"),
    "introvert": ("sage", "Sage"),
    "ambivert": ("weaver", "Weaver"),
    "extrovert": ("muse", "Muse"),
    "extrovert_strong": ("muse", "Muse"),
}

SOUL_CONNECTION_TO_MYSTIC: Dict[str, Tuple[str, str]] = {
    "twin_soul": ("mirror", "Mirror"),
    "twin_flame": ("firepath", "Firepath"),
    "soulmate": ("harmonic", "Harmonic"),
    "karmic": ("teacher", "Teacher"),
    "kindred": ("companion", "Companion"),
}

ATTACHMENT_TO_FACET: Dict[str, Tuple[str, str]] = {
    "secure": ("secure", "Secure"),
    "anxious": ("anxious", "Anxious"),
    "avoidant": ("avoidant", "Avoidant"),
    "fearful": ("fearful", "Fearful-Avoidant"),
}

# facet name -> (source quiz slug, lookup table)
FACET_SOURCES: Dict[str, Tuple[str, Dict[str, Tuple[str, str]]]] = {
    "romantic": ("love-language-receiving", LOVE_LANGUAGE_TO_ROMANTIC),
    "role": ("ambiversion-spectrum", AMBIVERSION_TO_ROLE),
    "mystic": ("soul-connection", SOUL_CONNECTION_TO_MYSTIC),
    "attachment": ("attachment-style", ATTACHMENT_TO_FACET),
}

# note name -> source quiz slug (winning key copied through untranslated)
NOTE_SOURCES: Dict[str, str] = {
    "apology": "apology-language",
    "forgiveness": "forgiveness-language",
}

ELEMENT_CUES: Dict[str, Dict[str, object]] = {
    "Fire": {"colors": ["#ff6a3a", "#e83e00"], "notes": ["Amber", "Spice"], "texture": "Velvet heat"},
    "Water": {"colors": ["#6bb6ff", "#1e5fff"], "notes": ["Sea Salt", "Lotus"], "texture": "Silk flow"},
    "Earth": {"colors": ["#b89a6a", "#6d5a3c"], "notes": ["Vetiver", "Cedar"], "texture": "Suede ground"},
    "Air": {"colors": ["#e5f5ff", "#9ed8ff"], "notes": ["Linen", "Citrus"], "texture": "Linen light"},
    "Light": {"colors": ["#fff7cc", "#ffe066"], "notes": ["Neroli", "Pear"], "texture": "Sheer glow"},
    "Shadow": {"colors": ["#333", "#000"], "notes": ["Oud", "Smoke"], "texture": "Lacquer night"},
    "Storm": {"colors": ["#9cb0ff", "#4253ff"], "notes": ["Ozonic", "Rain"], "texture": "Satin charge"},
    "Flux": {"colors": ["#f4b6ff", "#b25dff"], "notes": ["Iris", "Musk"], "texture": "Iridescent"},
}
