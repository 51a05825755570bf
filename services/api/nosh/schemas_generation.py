"""Schemas for generation capability output.

The model is asked for strict JSON, but it still returns numbers as strings,
lists as null, and plain strings where objects were requested. These models
coerce what they can; anything else fails validation and is reported as a
parse error upstream.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .core.text import parse_int, parse_number


def _listify(v: Any) -> list:
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return list(v)
    return [v]


def _str_list(v: Any) -> list[str]:
    return [str(x).strip() for x in _listify(v) if x is not None and str(x).strip()]


def _bool_or(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, str):
        return v.strip().lower() in ("true", "yes", "1")
    return bool(v)


def _ingredient_entries(v: Any) -> list[dict]:
    """Entries keyed by ingredient (or name); entries without a usable name are dropped."""
    out = []
    for x in _listify(v):
        if isinstance(x, str):
            x = {"ingredient": x}
        if not isinstance(x, dict):
            continue
        name = x.get("ingredient") or x.get("name")
        if name is None or not str(name).strip():
            continue
        out.append({**x, "ingredient": str(name).strip()})
    return out


# --- Extraction ---

class ExtractedIngredient(BaseModel):
    name: str = ""
    quantity: Optional[float] = None
    unit: Optional[str] = None
    is_pantry_staple: bool = False
    is_sacred: bool = False
    supermarket_section: Optional[str] = None
    estimated_cost: Optional[float] = None
    sort_order: Optional[int] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return str(v).strip() if v is not None else ""

    @field_validator("quantity", "estimated_cost", mode="before")
    @classmethod
    def _number(cls, v):
        return parse_number(v)

    @field_validator("sort_order", mode="before")
    @classmethod
    def _int(cls, v):
        return parse_int(v)

    @field_validator("unit", "supermarket_section", mode="before")
    @classmethod
    def _opt_str(cls, v):
        return str(v).strip() or None if v is not None else None

    @field_validator("is_pantry_staple", "is_sacred", mode="before")
    @classmethod
    def _flag(cls, v):
        return _bool_or(v, False)


class SacredIngredientEntry(BaseModel):
    ingredient: str
    reason: Optional[str] = None


class FlexibleIngredientEntry(BaseModel):
    ingredient: str
    can_remove: bool = False
    substitute: Optional[str] = None

    @field_validator("can_remove", mode="before")
    @classmethod
    def _flag(cls, v):
        return _bool_or(v, False)

    @field_validator("substitute", mode="before")
    @classmethod
    def _sub(cls, v):
        if v is None:
            return None
        s = str(v).strip()
        return None if s.lower() in ("", "null", "none") else s


class AdaptationEntry(BaseModel):
    change: str
    reason: Optional[str] = None
    impact: Optional[str] = None


class ExtractedSacredAnalysis(BaseModel):
    hero_ingredient: Optional[str] = None
    sacred_ingredients: list[SacredIngredientEntry] = []
    sacred_technique: Optional[str] = None
    sacred_flavour_profile: Optional[str] = None
    flexible_ingredients: list[FlexibleIngredientEntry] = []
    simplification_opportunities: list[str] = []
    one_pot_feasible: bool = True
    side_tasks_needed: list[str] = []
    original_ingredient_count: Optional[int] = None
    original_step_count: Optional[int] = None
    adaptations_made: list[AdaptationEntry] = []
    quality_score: Optional[int] = None
    confidence: Optional[int] = None
    risk_level: str = "low"
    risks: list[str] = []

    @field_validator("sacred_ingredients", mode="before")
    @classmethod
    def _sacred(cls, v):
        return _ingredient_entries(v)

    @field_validator("flexible_ingredients", mode="before")
    @classmethod
    def _flexible(cls, v):
        return _ingredient_entries(v)

    @field_validator("adaptations_made", mode="before")
    @classmethod
    def _adaptations(cls, v):
        return [{"change": x} if isinstance(x, str) else x for x in _listify(v)]

    @field_validator("simplification_opportunities", "side_tasks_needed", "risks", mode="before")
    @classmethod
    def _lists(cls, v):
        return _str_list(v)

    @field_validator(
        "original_ingredient_count", "original_step_count", "quality_score", "confidence",
        mode="before",
    )
    @classmethod
    def _ints(cls, v):
        return parse_int(v)

    @field_validator("one_pot_feasible", mode="before")
    @classmethod
    def _one_pot(cls, v):
        return _bool_or(v, True)

    @field_validator("risk_level", mode="before")
    @classmethod
    def _risk(cls, v):
        s = str(v).strip().lower() if v is not None else ""
        return s if s in ("low", "medium", "high") else "low"

    @field_validator("hero_ingredient", "sacred_technique", "sacred_flavour_profile", mode="before")
    @classmethod
    def _opt_str(cls, v):
        return str(v).strip() or None if v is not None else None


class ExtractedRecipe(BaseModel):
    title: Optional[str] = None
    nosh_hook: Optional[str] = None
    description: Optional[str] = None
    vessel: Optional[str] = None
    cuisine: Optional[str] = None
    total_time_minutes: Optional[int] = None
    prep_time_minutes: Optional[int] = None
    cook_time_minutes: Optional[int] = None
    serves: Optional[int] = None
    cost_per_serve: Optional[float] = None
    difficulty: Optional[int] = None
    spice_level: Optional[int] = None
    adventure_level: Optional[int] = None
    dietary_tags: list[str] = []
    season_tags: list[str] = []
    tips: list[str] = []
    storage_notes: Optional[str] = None
    leftover_ideas: list[str] = []
    ingredients: list[ExtractedIngredient] = []
    sacred_analysis: Optional[ExtractedSacredAnalysis] = None

    @field_validator(
        "total_time_minutes", "prep_time_minutes", "cook_time_minutes", "serves",
        "difficulty", "spice_level", "adventure_level",
        mode="before",
    )
    @classmethod
    def _ints(cls, v):
        return parse_int(v)

    @field_validator("cost_per_serve", mode="before")
    @classmethod
    def _cost(cls, v):
        return parse_number(v)

    @field_validator("dietary_tags", "season_tags", "tips", "leftover_ideas", mode="before")
    @classmethod
    def _lists(cls, v):
        return _str_list(v)

    @field_validator("ingredients", mode="before")
    @classmethod
    def _ingredients(cls, v):
        return [{"name": x} if isinstance(x, str) else x for x in _listify(v)]

    @field_validator("title", "nosh_hook", "description", "vessel", "cuisine", "storage_notes", mode="before")
    @classmethod
    def _opt_str(cls, v):
        return str(v).strip() or None if v is not None else None


# --- Workflow cards ---

class IngredientCallout(BaseModel):
    name: str
    qty: Optional[str] = None
    action: Optional[str] = None

    @field_validator("qty", "action", mode="before")
    @classmethod
    def _opt_str(cls, v):
        return str(v).strip() or None if v is not None else None


class WorkflowCardPayload(BaseModel):
    card_number: Optional[int] = None
    title: str = Field(description="SHORT LABEL (1-3 words), e.g. SEAR, BUILD BASE, SIMMER")
    card_type: Optional[str] = Field(None, description="prep | technique | simmer | finish | serve")
    heat_level: Optional[int] = Field(None, description="0 off, 1 low, 2 medium, 3 high")
    instructions: list[str] = Field(default_factory=list, description="2-4 short imperative lines")
    success_marker: Optional[str] = Field(None, description="What you see, smell or feel when this card is complete")
    timer_seconds: Optional[int] = Field(None, description="Only for unattended waits")
    parallel_task: Optional[str] = None
    pro_tip: Optional[str] = None
    technique_icon: Optional[str] = None
    ingredients_used: list[IngredientCallout] = Field(default_factory=list)

    @field_validator("card_number", "heat_level", "timer_seconds", mode="before")
    @classmethod
    def _ints(cls, v):
        return parse_int(v)

    @field_validator("instructions", mode="before")
    @classmethod
    def _instructions(cls, v):
        return _str_list(v)

    @field_validator("ingredients_used", mode="before")
    @classmethod
    def _callouts(cls, v):
        return [{"name": x} if isinstance(x, str) else x for x in _listify(v)]

    @field_validator("card_type", "success_marker", "parallel_task", "pro_tip", "technique_icon", mode="before")
    @classmethod
    def _opt_str(cls, v):
        return str(v).strip() or None if v is not None else None


class CardSetPayload(BaseModel):
    cards: list[WorkflowCardPayload]
