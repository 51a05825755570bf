"""SQLAlchemy ORM models for the NOSH recipe pipeline.

Tables:
- recipe_uploads: One row per extraction request, with status tracking
- recipes: Compressed NOSH-format recipe
- recipe_ingredients: Ingredient lines (pantry staples + at most 12 others)
- recipe_sacred_analyses: Sacred vs flexible analysis, 1:1 with recipes
- cuisine_knowledge: Per-cuisine aggregate recomputed from sacred analyses
- workflow_cards: Ordered cooking cards, replaced wholesale on regeneration
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    Float,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB

from .db import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


UPLOAD_PROCESSING = "processing"
UPLOAD_COMPLETED = "completed"
UPLOAD_FAILED = "failed"

PIPELINE_EXTRACTED = "extracted"
PIPELINE_CARDS_READY = "cards_ready"


class Upload(Base):
    """A submitted recipe source.

    State machine: processing -> completed | failed. Terminal rows are
    never modified again.
    """
    __tablename__ = "recipe_uploads"
    __table_args__ = (
        Index("ix_recipe_uploads_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    upload_type: Mapped[str] = mapped_column(String(20), nullable=False)  # text | url | pdf | image
    raw_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=UPLOAD_PROCESSING)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    recipe_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True
    )

    # Raw model output + telemetry for cost accounting downstream
    extracted_json: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    ai_model_used: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    ai_tokens_used: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ai_usage: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    recipe: Mapped[Optional["Recipe"]] = relationship("Recipe")

    @property
    def is_terminal(self) -> bool:
        return self.status in (UPLOAD_COMPLETED, UPLOAD_FAILED)


class Recipe(Base):
    """Recipe in NOSH format: <=12 non-staple ingredients, one vessel, <=60 minutes."""
    __tablename__ = "recipes"
    __table_args__ = (
        Index("ix_recipes_cuisine", "cuisine"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hook: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cuisine: Mapped[str] = mapped_column(String(80), nullable=False, default="Other")
    vessel: Mapped[str] = mapped_column(String(40), nullable=False, default="pot")

    total_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    prep_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cook_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    serves: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    cost_per_serve: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    difficulty: Mapped[int] = mapped_column(Integer, nullable=False, default=2)  # 1-5
    spice_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # 0-4
    adventure_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # 1-4

    dietary_tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    season_tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    tips: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    storage_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    leftover_ideas: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    source_type: Mapped[str] = mapped_column(String(20), nullable=False, default="converted")
    pipeline_status: Mapped[str] = mapped_column(String(20), nullable=False, default=PIPELINE_EXTRACTED)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    ingredients: Mapped[list["Ingredient"]] = relationship(
        "Ingredient", back_populates="recipe", cascade="all, delete-orphan",
        order_by="Ingredient.sort_order"
    )
    sacred_analysis: Mapped[Optional["SacredAnalysis"]] = relationship(
        "SacredAnalysis", back_populates="recipe", cascade="all, delete-orphan", uselist=False
    )
    workflow_cards: Mapped[list["WorkflowCard"]] = relationship(
        "WorkflowCard", back_populates="recipe", cascade="all, delete-orphan",
        order_by="WorkflowCard.card_number"
    )

    @property
    def non_staple_count(self) -> int:
        return sum(1 for i in self.ingredients if not i.is_pantry_staple)


class Ingredient(Base):
    """Ingredient line within a recipe."""
    __tablename__ = "recipe_ingredients"
    __table_args__ = (
        Index("ix_recipe_ingredients_recipe_id", "recipe_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    is_pantry_staple: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_sacred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supermarket_section: Mapped[str] = mapped_column(String(40), nullable=False, default="pantry")
    estimated_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="ingredients")


class SacredAnalysis(Base):
    """What defines the dish vs what can be simplified. Written once at extraction."""
    __tablename__ = "recipe_sacred_analyses"
    __table_args__ = (
        Index("ix_recipe_sacred_analyses_cuisine", "cuisine"),
    )

    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True
    )
    cuisine: Mapped[str] = mapped_column(String(80), nullable=False)

    hero_ingredient: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sacred_ingredients: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # [{ingredient, reason}]
    sacred_technique: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sacred_flavour_profile: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    flexible_ingredients: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # [{ingredient, can_remove, substitute}]
    simplification_opportunities: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    side_tasks_needed: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    one_pot_feasible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    original_ingredient_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    compressed_ingredient_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    original_step_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    quality_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 0-100
    confidence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 0-100
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False, default="low")
    risks: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    adaptations_made: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # [{change, reason, impact}]

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="sacred_analysis")


class KnowledgeBase(Base):
    """Per-cuisine aggregate. Fully recomputed, never incrementally updated."""
    __tablename__ = "cuisine_knowledge"

    cuisine: Mapped[str] = mapped_column(String(80), primary_key=True)

    common_sacred_ingredients: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # [{ingredient, frequency, reason}]
    common_sacred_techniques: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    common_flavour_profiles: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    typical_hero_ingredients: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    commonly_removed: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    common_substitutions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # [{original, substitute}]
    common_side_tasks: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    recipe_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_quality_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # When the aggregate last changed
    last_learned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class WorkflowCard(Base):
    """One phase of the guided cook."""
    __tablename__ = "workflow_cards"
    __table_args__ = (
        Index("ix_workflow_cards_recipe_id", "recipe_id"),
        UniqueConstraint("recipe_id", "card_number", name="uq_workflow_cards_recipe_card_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False
    )
    card_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    card_type: Mapped[str] = mapped_column(String(20), nullable=False, default="technique")
    heat_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 off .. 3 high
    instructions: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    success_marker: Mapped[str] = mapped_column(Text, nullable=False)
    timer_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    parallel_task: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pro_tip: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    technique_icon: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    ingredients_used: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # [{name, qty, action}]

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="workflow_cards")
