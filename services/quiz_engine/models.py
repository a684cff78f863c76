import math
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _coerce_number(value: Any) -> float:
    """Numeric weight or 0.0 for anything non-numeric / non-finite."""
    if isinstance(value, bool):
        return float(value)
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def _coerce_weight_map(value: Any) -> Dict[str, float]:
    if not isinstance(value, dict):
        return {}
    return {str(k): _coerce_number(v) for k, v in value.items()}


def start_case(value: str) -> str:
    """'twin_flame' -> 'Twin Flame'."""
    words = str(value or "").replace("_", " ").replace("-", " ").split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


class ResolutionMode(str, Enum):
    RAW = "raw"      # highest raw total wins
    RATIO = "ratio"  # highest total / own maximum wins


# --- Quiz definition (content, read-only) ---

class QuizOption(BaseModel):
    key: str
    label: Optional[str] = None
    weights: Dict[str, float] = Field(default_factory=dict)
    flags: Dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def fold_axis_weights(cls, data: Any) -> Any:
        # weights_role / weights_element / ... become prefixed keys on one vector
        if not isinstance(data, dict):
            return data
        data = dict(data)
        weights = _coerce_weight_map(data.get("weights"))
        for field_name in list(data.keys()):
            if field_name.startswith("weights_"):
                axis = field_name[len("weights_"):]
                for k, v in _coerce_weight_map(data.pop(field_name)).items():
                    weights[f"{axis}_{k}"] = v
        data["weights"] = weights
        data["flags"] = _coerce_weight_map(data.get("flags"))
        if data.get("key") is not None:
            data["key"] = str(data["key"])
        return data


class QuizQuestion(BaseModel):
    id: str
    prompt: Optional[str] = None
    optional: bool = False
    options: List[QuizOption] = Field(default_factory=list)
    max_points: Optional[Dict[str, float]] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("optional", mode="before")
    @classmethod
    def falsy_optional(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("max_points", mode="before")
    @classmethod
    def coerce_max_points(cls, v: Any) -> Optional[Dict[str, float]]:
        if v is None:
            return None
        return {k: abs(n) for k, n in _coerce_weight_map(v).items()}

    def find_option(self, option_key: Any) -> Optional[QuizOption]:
        if option_key is None or option_key == "":
            return None
        for option in self.options:
            if option.key == str(option_key):
                return option
        return None


class QuizResultDefinition(BaseModel):
    key: str
    title: Optional[str] = None
    label: Optional[str] = None
    headline: Optional[str] = None
    summary: Optional[str] = None
    blurb: Optional[str] = None
    guidance: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @property
    def display_title(self) -> str:
        return self.title or self.label or start_case(self.key)

    @property
    def display_summary(self) -> Optional[str]:
        return self.summary or self.blurb


class Quiz(BaseModel):
    """A quiz definition as authored in content. Immutable once loaded."""
    slug: Optional[str] = None
    title: Optional[str] = None
    version: Optional[int] = None
    min_required: Optional[int] = None
    results: List[QuizResultDefinition] = Field(default_factory=list)
    questions: List[QuizQuestion] = Field(default_factory=list)
    flag_keys: List[str] = Field(default_factory=list)
    summary_template: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def unwrap_envelope(cls, data: Any) -> Any:
        # Stored rows nest everything under "questions": {questions, results, ...}
        if not isinstance(data, dict):
            return data
        data = dict(data)
        inner = data.get("questions")
        if isinstance(inner, dict):
            data["questions"] = inner.get("questions") or []
            for field_name in ("results", "min_required", "version"):
                if field_name in inner and data.get(field_name) is None:
                    data[field_name] = inner[field_name]
            flags_meta = inner.get("flags_meta") or {}
            if isinstance(flags_meta, dict) and "flag_keys" not in data:
                data["flag_keys"] = list(flags_meta.get("keys") or [])
            meta = inner.get("meta") or {}
            if isinstance(meta, dict) and data.get("summary_template") is None:
                data["summary_template"] = meta.get("summary_template")
        meta = data.get("meta")
        if isinstance(meta, dict) and data.get("summary_template") is None:
            data["summary_template"] = meta.get("summary_template")
        return data

    @property
    def result_keys(self) -> List[str]:
        return [r.key for r in self.results]

    def result_for(self, key: Optional[str]) -> Optional[QuizResultDefinition]:
        for r in self.results:
            if r.key == key:
                return r
        return None


class QuizSpecValidationError(ValueError):
    """Raised by strict content loading for unusable quiz definitions."""
    pass


# --- Engine outputs ---

class TallyResult(BaseModel):
    ok: Literal[True] = True
    totals_raw: Dict[str, float]
    max_raw: Dict[str, float]
    answered_core_count: int
    flags: Dict[str, float] = Field(default_factory=dict)


class InsufficientAnswers(BaseModel):
    ok: Literal[False] = False
    required: int
    answered: int

    @property
    def reason(self) -> str:
        return f"Please answer at least {self.required} questions."


class Resolution(BaseModel):
    result_key: Optional[str]
    confidence: float
    order: List[str]
    scores: Dict[str, float]
    mode: ResolutionMode


class RankedEntry(BaseModel):
    key: str
    score: float
    percent_of_max: int


class AxisResult(BaseModel):
    winner: Optional[str]
    confidence: float
    ranking: List[RankedEntry]


class ScoredResult(BaseModel):
    ok: Literal[True] = True
    result_key: Optional[str]
    result_title: str
    result_summary: Optional[str] = None
    result_totals: Dict[str, float]
    result_percentages: Dict[str, float] = Field(default_factory=dict)
    totals_raw: Dict[str, float]
    max_raw: Dict[str, float]
    confidence: float
    order: List[str] = Field(default_factory=list)
    flags: Dict[str, float] = Field(default_factory=dict)
    axes: Optional[Dict[str, AxisResult]] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ScoringFailure(BaseModel):
    ok: Literal[False] = False
    reason: str
    required: Optional[int] = None
    answered: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# --- Composite profile ---

class Facet(BaseModel):
    key: str
    label: str

    model_config = ConfigDict(frozen=True)


class ProfileNotes(BaseModel):
    apology: Optional[str] = None
    forgiveness: Optional[str] = None


class ElementCues(BaseModel):
    colors: List[str]
    notes: List[str]
    texture: str


class Compatibility(BaseModel):
    best_with: List[str] = Field(default_factory=list)
    growth_with: List[str] = Field(default_factory=list)
    tensions_with: List[str] = Field(default_factory=list)


class CompositeProfile(BaseModel):
    element: Optional[str] = None
    role: Optional[Facet] = None
    romantic: Optional[Facet] = None
    mystic: Optional[Facet] = None
    attachment: Optional[Facet] = None
    life_path: Optional[Facet] = None
    friendship: Optional[Facet] = None
    cues: Optional[ElementCues] = None
    compatibility: Compatibility = Field(default_factory=Compatibility)
    visibility: bool = False
    notes: ProfileNotes = Field(default_factory=ProfileNotes)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
