"""Initial schema: uploads, recipes, ingredients, sacred analyses, cuisine knowledge, workflow cards

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = postgresql.JSONB(astext_type=sa.Text())


def _json_list(name: str) -> sa.Column:
    return sa.Column(name, JSONB, nullable=False, server_default=sa.text("'[]'::jsonb"))


def upgrade() -> None:
    # Recipes
    op.create_table(
        "recipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("hook", sa.Text, nullable=True),
        sa.Column("cuisine", sa.String(80), nullable=False, server_default="Other"),
        sa.Column("vessel", sa.String(40), nullable=False, server_default="pot"),
        sa.Column("total_time_minutes", sa.Integer, nullable=False, server_default="30"),
        sa.Column("prep_time_minutes", sa.Integer, nullable=True),
        sa.Column("cook_time_minutes", sa.Integer, nullable=True),
        sa.Column("serves", sa.Integer, nullable=False, server_default="4"),
        sa.Column("cost_per_serve", sa.Float, nullable=True),
        sa.Column("difficulty", sa.Integer, nullable=False, server_default="2"),
        sa.Column("spice_level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("adventure_level", sa.Integer, nullable=False, server_default="1"),
        _json_list("dietary_tags"),
        _json_list("season_tags"),
        _json_list("tips"),
        sa.Column("storage_notes", sa.Text, nullable=True),
        _json_list("leftover_ideas"),
        sa.Column("source_type", sa.String(20), nullable=False, server_default="converted"),
        sa.Column("pipeline_status", sa.String(20), nullable=False, server_default="extracted"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("total_time_minutes BETWEEN 1 AND 60", name="ck_recipes_total_time"),
    )
    op.create_index("ix_recipes_cuisine", "recipes", ["cuisine"])

    # Uploads
    op.create_table(
        "recipe_uploads",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("upload_type", sa.String(20), nullable=False),
        sa.Column("raw_text", sa.Text, nullable=True),
        sa.Column("file_url", sa.Text, nullable=True),
        sa.Column("source_url", sa.Text, nullable=True),
        sa.Column("uploaded_by", sa.String(80), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="processing"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True),
        sa.Column("extracted_json", JSONB, nullable=True),
        sa.Column("ai_model_used", sa.String(120), nullable=True),
        sa.Column("ai_tokens_used", sa.Integer, nullable=True),
        sa.Column("ai_usage", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_recipe_uploads_status", "recipe_uploads", ["status"])

    # Ingredients
    op.create_table(
        "recipe_ingredients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("quantity", sa.Float, nullable=True),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("is_pantry_staple", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_sacred", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("supermarket_section", sa.String(40), nullable=False, server_default="pantry"),
        sa.Column("estimated_cost", sa.Float, nullable=True),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_recipe_ingredients_recipe_id", "recipe_ingredients", ["recipe_id"])

    # Sacred analyses (1:1 with recipes)
    op.create_table(
        "recipe_sacred_analyses",
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("cuisine", sa.String(80), nullable=False),
        sa.Column("hero_ingredient", sa.String(200), nullable=True),
        _json_list("sacred_ingredients"),
        sa.Column("sacred_technique", sa.Text, nullable=True),
        sa.Column("sacred_flavour_profile", sa.Text, nullable=True),
        _json_list("flexible_ingredients"),
        _json_list("simplification_opportunities"),
        _json_list("side_tasks_needed"),
        sa.Column("one_pot_feasible", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("original_ingredient_count", sa.Integer, nullable=True),
        sa.Column("compressed_ingredient_count", sa.Integer, nullable=True),
        sa.Column("original_step_count", sa.Integer, nullable=True),
        sa.Column("quality_score", sa.Integer, nullable=True),
        sa.Column("confidence", sa.Integer, nullable=True),
        sa.Column("risk_level", sa.String(20), nullable=False, server_default="low"),
        _json_list("risks"),
        _json_list("adaptations_made"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_recipe_sacred_analyses_cuisine", "recipe_sacred_analyses", ["cuisine"])

    # Cuisine knowledge
    op.create_table(
        "cuisine_knowledge",
        sa.Column("cuisine", sa.String(80), primary_key=True),
        _json_list("common_sacred_ingredients"),
        _json_list("common_sacred_techniques"),
        _json_list("common_flavour_profiles"),
        _json_list("typical_hero_ingredients"),
        _json_list("commonly_removed"),
        _json_list("common_substitutions"),
        _json_list("common_side_tasks"),
        sa.Column("recipe_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("avg_quality_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_learned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Workflow cards
    op.create_table(
        "workflow_cards",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("card_number", sa.Integer, nullable=False),
        sa.Column("title", sa.String(120), nullable=False),
        sa.Column("card_type", sa.String(20), nullable=False, server_default="technique"),
        sa.Column("heat_level", sa.Integer, nullable=False, server_default="0"),
        _json_list("instructions"),
        sa.Column("success_marker", sa.Text, nullable=False),
        sa.Column("timer_seconds", sa.Integer, nullable=True),
        sa.Column("parallel_task", sa.Text, nullable=True),
        sa.Column("pro_tip", sa.Text, nullable=True),
        sa.Column("technique_icon", sa.String(40), nullable=True),
        _json_list("ingredients_used"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("recipe_id", "card_number", name="uq_workflow_cards_recipe_card_number"),
        sa.CheckConstraint("heat_level BETWEEN 0 AND 3", name="ck_workflow_cards_heat_level"),
    )
    op.create_index("ix_workflow_cards_recipe_id", "workflow_cards", ["recipe_id"])


def downgrade() -> None:
    op.drop_index("ix_workflow_cards_recipe_id", table_name="workflow_cards")
    op.drop_table("workflow_cards")
    op.drop_table("cuisine_knowledge")
    op.drop_index("ix_recipe_sacred_analyses_cuisine", table_name="recipe_sacred_analyses")
    op.drop_table("recipe_sacred_analyses")
    op.drop_index("ix_recipe_ingredients_recipe_id", table_name="recipe_ingredients")
    op.drop_table("recipe_ingredients")
    op.drop_index("ix_recipe_uploads_status", table_name="recipe_uploads")
    op.drop_table("recipe_uploads")
    op.drop_index("ix_recipes_cuisine", table_name="recipes")
    op.drop_table("recipes")
