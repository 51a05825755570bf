"""Pydantic schemas for the NOSH API.

Request/response models for:
- Recipe extraction
- Workflow card generation
- Read views (recipes, uploads, cuisine knowledge)
"""

from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field


# --- Extraction ---

class RecipeExtractRequest(BaseModel):
    upload_type: Literal["text", "url", "pdf", "image"]
    raw_text: Optional[str] = None
    file_url: Optional[str] = None
    source_url: Optional[str] = None


class SacredSummary(BaseModel):
    hero: Optional[str]
    quality: Optional[int]
    confidence: Optional[int]
    sacred_count: int = 0
    adaptations: int = 0


class RecipeExtractResponse(BaseModel):
    recipe_id: str
    upload_id: str
    sacred_analysis: Optional[SacredSummary] = None


# --- Cards ---

class GenerateCardsRequest(BaseModel):
    recipe_id: Optional[str] = Field(None, description="Recipe to (re)generate cards for")


class GenerateCardsResponse(BaseModel):
    recipe_id: str
    card_count: int
    sacred_aware: bool


# --- Read views ---

class IngredientOut(BaseModel):
    id: str
    name: str
    quantity: Optional[float]
    unit: Optional[str]
    is_pantry_staple: bool
    is_sacred: bool
    supermarket_section: str
    estimated_cost: Optional[float]
    sort_order: int

    class Config:
        from_attributes = True


class SacredAnalysisOut(BaseModel):
    cuisine: str
    hero_ingredient: Optional[str]
    sacred_ingredients: list[dict] = []
    sacred_technique: Optional[str]
    sacred_flavour_profile: Optional[str]
    flexible_ingredients: list[dict] = []
    simplification_opportunities: list[str] = []
    side_tasks_needed: list[str] = []
    one_pot_feasible: bool
    original_ingredient_count: Optional[int]
    compressed_ingredient_count: Optional[int]
    quality_score: Optional[int]
    confidence: Optional[int]
    risk_level: str
    risks: list[str] = []
    adaptations_made: list[dict] = []

    class Config:
        from_attributes = True


class WorkflowCardOut(BaseModel):
    id: str
    card_number: int
    title: str
    card_type: str
    heat_level: int
    instructions: list[str] = []
    success_marker: str
    timer_seconds: Optional[int]
    parallel_task: Optional[str]
    pro_tip: Optional[str]
    technique_icon: Optional[str]
    ingredients_used: list[dict] = []

    class Config:
        from_attributes = True


class RecipeOut(BaseModel):
    id: str
    title: str
    slug: str
    description: Optional[str]
    hook: Optional[str]
    cuisine: str
    vessel: str
    total_time_minutes: int
    prep_time_minutes: Optional[int]
    cook_time_minutes: Optional[int]
    serves: int
    cost_per_serve: Optional[float]
    difficulty: int
    spice_level: int
    adventure_level: int
    dietary_tags: list[str] = []
    season_tags: list[str] = []
    tips: list[str] = []
    storage_notes: Optional[str]
    leftover_ideas: list[str] = []
    pipeline_status: str
    ingredients: list[IngredientOut] = []
    sacred_analysis: Optional[SacredAnalysisOut] = None
    workflow_cards: list[WorkflowCardOut] = []
    created_at: datetime

    class Config:
        from_attributes = True


class UploadOut(BaseModel):
    id: str
    upload_type: str
    status: str  # processing | completed | failed
    error_message: Optional[str]
    recipe_id: Optional[str]
    ai_model_used: Optional[str]
    ai_tokens_used: Optional[int]
    created_at: datetime
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class KnowledgeBaseOut(BaseModel):
    cuisine: str
    common_sacred_ingredients: list[dict] = []
    common_sacred_techniques: list[str] = []
    common_flavour_profiles: list[str] = []
    typical_hero_ingredients: list[str] = []
    commonly_removed: list[str] = []
    common_substitutions: list[dict] = []
    common_side_tasks: list[str] = []
    recipe_count: int
    avg_quality_score: int
    last_learned_at: Optional[datetime]

    class Config:
        from_attributes = True
