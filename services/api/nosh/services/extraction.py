"""Recipe extraction: source -> generation -> NOSH-format recipe + sacred analysis.

Flow:
1. Validate the request (nothing is written for unusable input)
2. Commit an Upload in "processing"
3. Resolve source content (text, fetched URL, file reference / inline image)
4. Call the generation capability once with the knowledge context
5. Parse + normalize, then persist everything in one transaction
6. Learn from the new analysis (best effort)

Any failure between 2 and 5 marks the Upload failed and re-raises.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..ai.parsing import Invalid, parse_generation_output, validate_into
from ..ai.prompts import EXTRACTION_PROMPT
from ..ai.utils import parse_data_url
from ..core.ai_client import ai_client, ChatMessage, GenerationResult, InlineImage
from ..core.text import (
    clean_md,
    clean_md_list,
    normalize_cuisine,
    normalize_name,
    parse_number,
    slugify,
    strip_html,
    to_base36,
    truncate,
)
from ..exceptions import (
    NoshError,
    ParseError,
    PersistenceError,
    SourceFetchError,
    ValidationError,
)
from ..models import (
    Ingredient,
    Recipe,
    SacredAnalysis,
    Upload,
    UPLOAD_COMPLETED,
    UPLOAD_FAILED,
    UPLOAD_PROCESSING,
    PIPELINE_EXTRACTED,
)
from ..schemas import RecipeExtractRequest, RecipeExtractResponse, SacredSummary
from ..schemas_generation import ExtractedRecipe
from ..settings import settings
from .knowledge import build_knowledge_context, knowledge_learner, KnowledgeLearner

logger = logging.getLogger("nosh.extraction")

PANTRY_STAPLES = frozenset({
    "salt", "pepper", "black pepper", "olive oil", "vegetable oil", "cooking oil", "oil", "water",
})
MAX_NON_STAPLE_INGREDIENTS = 12
MAX_TOTAL_MINUTES = 60
DEFAULT_TOTAL_MINUTES = 30
ERROR_MESSAGE_CHARS = 500
SLUG_COLUMN_CHARS = 120


@dataclass
class SourceContent:
    text: str
    images: list[InlineImage] = field(default_factory=list)


@dataclass
class NormalizedRecipe:
    recipe_fields: dict
    ingredients: list[dict]
    analysis_fields: Optional[dict]
    dropped_ingredients: list[str] = field(default_factory=list)


# --- Normalization helpers (pure) ---

def fallback_title(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"Unnamed {now:%d/%m/%y}"


def clamp_total_minutes(value: Optional[int]) -> int:
    return max(1, min(value or DEFAULT_TOTAL_MINUTES, MAX_TOTAL_MINUTES))


def _clamp(value: Optional[int], lo: int, hi: int, default: Optional[int]) -> Optional[int]:
    if value is None:
        return default
    return max(lo, min(value, hi))


def is_pantry_staple(name: str, flagged: bool = False) -> bool:
    return bool(flagged) or normalize_name(name) in PANTRY_STAPLES


def cap_ingredients(ingredients: list[dict], limit: int = MAX_NON_STAPLE_INGREDIENTS) -> tuple[list[dict], list[dict]]:
    """
    Keep every staple and at most ``limit`` non-staples.

    Sacred ingredients are kept first, then the rest by sort order.
    Returns (kept, dropped), both in the original order.
    """
    others = [i for i in ingredients if not i["is_pantry_staple"]]
    if len(others) <= limit:
        return list(ingredients), []

    ranked = sorted(
        range(len(others)),
        key=lambda idx: (not others[idx]["is_sacred"], others[idx]["sort_order"], idx),
    )
    keep_ids = {id(others[idx]) for idx in ranked[:limit]}

    kept = [i for i in ingredients if i["is_pantry_staple"] or id(i) in keep_ids]
    dropped = [i for i in others if id(i) not in keep_ids]
    return kept, dropped


def normalize_extraction(extracted: ExtractedRecipe, now: Optional[datetime] = None) -> NormalizedRecipe:
    """Apply NOSH defaults and constraints to a validated model response."""
    title = clean_md(extracted.title or "") or fallback_title(now)
    cuisine = normalize_cuisine(extracted.cuisine)
    sa = extracted.sacred_analysis

    sacred_names = set()
    if sa is not None:
        sacred_names = {normalize_name(s.ingredient) for s in sa.sacred_ingredients if s.ingredient}

    ingredients = []
    for idx, ing in enumerate(extracted.ingredients):
        name = clean_md(ing.name)
        if not name:
            continue
        ingredients.append({
            "name": name,
            "quantity": ing.quantity,
            "unit": ing.unit,
            "is_pantry_staple": is_pantry_staple(name, ing.is_pantry_staple),
            "is_sacred": ing.is_sacred or normalize_name(name) in sacred_names,
            "supermarket_section": (ing.supermarket_section or "pantry").lower(),
            "estimated_cost": ing.estimated_cost,
            "sort_order": ing.sort_order if ing.sort_order is not None else idx,
        })

    kept, dropped = cap_ingredients(ingredients)

    recipe_fields = {
        "title": truncate(title, 200),
        "description": extracted.description,
        "hook": extracted.nosh_hook,
        "cuisine": cuisine,
        "vessel": (extracted.vessel or "pot").lower(),
        "total_time_minutes": clamp_total_minutes(extracted.total_time_minutes),
        "prep_time_minutes": extracted.prep_time_minutes,
        "cook_time_minutes": extracted.cook_time_minutes,
        "serves": extracted.serves or 4,
        "cost_per_serve": extracted.cost_per_serve,
        "difficulty": _clamp(extracted.difficulty, 1, 5, 2),
        "spice_level": _clamp(extracted.spice_level, 0, 4, 1),
        "adventure_level": _clamp(extracted.adventure_level, 1, 4, 1),
        "dietary_tags": clean_md_list(extracted.dietary_tags),
        "season_tags": clean_md_list(extracted.season_tags),
        "tips": clean_md_list(extracted.tips),
        "storage_notes": extracted.storage_notes,
        "leftover_ideas": clean_md_list(extracted.leftover_ideas),
    }

    analysis_fields = None
    if sa is not None:
        sacred_ingredients = [
            {"ingredient": clean_md(s.ingredient), "reason": s.reason}
            for s in sa.sacred_ingredients
            if clean_md(s.ingredient)
        ]
        adaptations = [a.model_dump() for a in sa.adaptations_made]
        for ing in dropped:
            adaptations.append({
                "change": f"Removed {ing['name']}",
                "reason": f"NOSH format allows at most {MAX_NON_STAPLE_INGREDIENTS} non-staple ingredients",
                "impact": "minor",
            })

        hero = clean_md(sa.hero_ingredient or "") or None
        if hero is None and sacred_ingredients:
            hero = sacred_ingredients[0]["ingredient"]

        analysis_fields = {
            "cuisine": cuisine,
            "hero_ingredient": hero,
            "sacred_ingredients": sacred_ingredients,
            "sacred_technique": sa.sacred_technique,
            "sacred_flavour_profile": sa.sacred_flavour_profile,
            "flexible_ingredients": [f.model_dump() for f in sa.flexible_ingredients],
            "simplification_opportunities": clean_md_list(sa.simplification_opportunities),
            "side_tasks_needed": clean_md_list(sa.side_tasks_needed),
            "one_pot_feasible": sa.one_pot_feasible,
            "original_ingredient_count": (
                sa.original_ingredient_count
                if sa.original_ingredient_count is not None
                else len(extracted.ingredients)
            ),
            "compressed_ingredient_count": len(kept),
            "original_step_count": sa.original_step_count,
            "quality_score": _clamp(sa.quality_score, 0, 100, None),
            "confidence": _clamp(sa.confidence, 0, 100, None),
            "risk_level": sa.risk_level,
            "risks": clean_md_list(sa.risks),
            "adaptations_made": adaptations,
        }

    return NormalizedRecipe(
        recipe_fields=recipe_fields,
        ingredients=kept,
        analysis_fields=analysis_fields,
        dropped_ingredients=[i["name"] for i in dropped],
    )


def unique_slug(db: Session, title: str) -> str:
    token = to_base36(time.time_ns() // 1000)
    base = slugify(title)[:SLUG_COLUMN_CHARS - len(token) - 5]
    slug = f"{base}-{token}"
    candidate = slug
    counter = 2
    while db.query(Recipe.id).filter(Recipe.slug == candidate).first() is not None:
        candidate = f"{slug}-{counter}"
        counter += 1
    return candidate


# --- Mock generation ---

_UNITS = {"g", "kg", "ml", "l", "cup", "cups", "tbsp", "tsp", "can", "cans", "tin", "tins", "clove", "cloves"}


def _mock_ingredient(line: str) -> dict:
    m = re.match(r"^([\d./]+(?:\s+\d+/\d+)?)\s*(.*)$", line)
    quantity, unit, name = None, None, line
    if m:
        quantity = parse_number(m.group(1))
        rest = m.group(2).split(None, 1)
        if len(rest) == 2 and rest[0].lower() in _UNITS:
            unit, name = rest[0].lower(), rest[1]
        else:
            name = m.group(2)
    return {"name": name.strip(), "quantity": quantity, "unit": unit}


def _mock_extraction(content: str) -> dict:
    """Deterministic stand-in used when AI mode is mock."""
    lines = [l.strip() for l in (content or "").splitlines() if l.strip()]
    title = clean_md(lines[0])[:120] if lines else None
    ingredients = []
    for line in lines[1:]:
        if re.match(r"^[-*•]\s+", line):
            ing = _mock_ingredient(clean_md(line))
            if ing["name"]:
                ing["sort_order"] = len(ingredients)
                ingredients.append(ing)

    hero = ingredients[0]["name"] if ingredients else None
    return {
        "title": title,
        "nosh_hook": "A weeknight version that keeps what matters.",
        "description": title,
        "vessel": "pot",
        "cuisine": "Other",
        "total_time_minutes": 35,
        "serves": 4,
        "ingredients": ingredients,
        "sacred_analysis": {
            "hero_ingredient": hero,
            "sacred_ingredients": [{"ingredient": hero, "reason": "The dish is built around it"}] if hero else [],
            "sacred_technique": "simmer",
            "one_pot_feasible": True,
            "side_tasks_needed": [],
            "original_ingredient_count": len(ingredients),
            "quality_score": 70,
            "confidence": 60,
            "risk_level": "low",
        },
    }


# --- Extractor ---

class RecipeExtractor:
    def __init__(self, learner: Optional[KnowledgeLearner] = None):
        self.learner = learner or knowledge_learner

    def validate_request(self, payload: RecipeExtractRequest) -> None:
        if payload.upload_type == "text" and (payload.raw_text or "").strip():
            return
        if payload.upload_type == "url" and (payload.source_url or "").strip():
            return
        if payload.upload_type in ("pdf", "image") and (payload.file_url or "").strip():
            file_url = payload.file_url.strip()
            if file_url.startswith("data:"):
                decoded = parse_data_url(file_url)
                if decoded is None or not decoded[0].startswith("image/"):
                    raise ValidationError("Inline file data must be an image", upload_type=payload.upload_type)
            return
        raise ValidationError("No content provided", upload_type=payload.upload_type)

    def resolve_source(self, payload: RecipeExtractRequest) -> SourceContent:
        if payload.upload_type == "text":
            return SourceContent(text=payload.raw_text.strip())

        if payload.upload_type == "url":
            return SourceContent(text=self._fetch_url(payload.source_url.strip()))

        file_url = payload.file_url.strip()
        if file_url.startswith("data:"):
            mime_type, data = parse_data_url(file_url)
            return SourceContent(
                text="[Image uploaded inline] Please extract the recipe from this image.",
                images=[InlineImage(mime_type=mime_type, data=data)],
            )
        return SourceContent(text=f"[File uploaded at: {file_url}] Please extract the recipe from this content.")

    def _fetch_url(self, url: str) -> str:
        try:
            resp = requests.get(
                url,
                timeout=settings.source_fetch_timeout_sec,
                headers={"User-Agent": "NOSH-RecipeExtractor/1.0"},
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise SourceFetchError(f"Failed to fetch source URL: {e}", url=url) from e

        text = strip_html(resp.text)[:settings.source_max_chars]
        if not text:
            raise SourceFetchError("Source URL returned no readable content", url=url)
        return text

    def _generate(self, knowledge_context: str, source: SourceContent) -> GenerationResult:
        if ai_client.mode == "mock":
            return GenerationResult(content=json.dumps(_mock_extraction(source.text)), model="mock")

        messages = [
            ChatMessage(role="system", content=EXTRACTION_PROMPT.format(knowledge_context=knowledge_context)),
            ChatMessage(role="user", content=source.text, images=source.images),
        ]
        return ai_client.chat(
            messages,
            temperature=settings.extraction_temperature,
            json_output=True,
        )

    def _parse(self, result: GenerationResult) -> tuple[ExtractedRecipe, dict]:
        if not result.content:
            raise ParseError("AI returned no content", reason="AI returned no content")

        parsed = parse_generation_output(result.content)
        if isinstance(parsed, Invalid):
            raise ParseError(f"Failed to parse AI response as JSON: {parsed.snippet}", reason=parsed.reason)
        raw = parsed.data
        if not isinstance(raw, dict):
            raise ParseError(
                f"AI response failed recipe schema validation: {result.content[:200]}",
                reason="Schema validation error: expected a JSON object",
            )

        validated = validate_into(parsed, ExtractedRecipe)
        if isinstance(validated, Invalid):
            raise ParseError(f"AI response failed recipe schema validation: {validated.snippet}", reason=validated.reason)
        return validated.data, raw

    def _persist(
        self,
        db: Session,
        upload: Upload,
        normalized: NormalizedRecipe,
        raw: dict,
        result: GenerationResult,
    ) -> tuple[Recipe, Optional[SacredAnalysis]]:
        recipe = Recipe(
            slug=unique_slug(db, normalized.recipe_fields["title"]),
            source_type="converted",
            pipeline_status=PIPELINE_EXTRACTED,
            **normalized.recipe_fields,
        )
        for ing in normalized.ingredients:
            recipe.ingredients.append(Ingredient(**ing))

        analysis = None
        if normalized.analysis_fields is not None:
            analysis = SacredAnalysis(**normalized.analysis_fields)
            recipe.sacred_analysis = analysis

        db.add(recipe)
        db.flush()

        upload.recipe_id = recipe.id
        upload.extracted_json = raw
        upload.ai_model_used = result.model
        upload.ai_tokens_used = result.usage.total_tokens if result.usage else None
        upload.ai_usage = result.usage.as_dict() if result.usage else None
        upload.status = UPLOAD_COMPLETED
        upload.completed_at = datetime.now(timezone.utc)

        db.commit()
        db.refresh(recipe)
        return recipe, analysis

    def _fail(self, db: Session, upload_id: str, message: str) -> None:
        try:
            db.rollback()
            upload = db.get(Upload, upload_id)
            if upload is None or upload.is_terminal:
                return
            upload.status = UPLOAD_FAILED
            upload.error_message = truncate(message, ERROR_MESSAGE_CHARS)
            upload.completed_at = datetime.now(timezone.utc)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not mark upload {upload_id} failed: {e}")

    def extract(
        self,
        db: Session,
        payload: RecipeExtractRequest,
        uploaded_by: Optional[str] = None,
    ) -> RecipeExtractResponse:
        self.validate_request(payload)

        upload = Upload(
            upload_type=payload.upload_type,
            raw_text=payload.raw_text,
            file_url=payload.file_url,
            source_url=payload.source_url,
            uploaded_by=uploaded_by,
            status=UPLOAD_PROCESSING,
        )
        try:
            db.add(upload)
            db.commit()
            db.refresh(upload)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to create upload: {e}") from e

        upload_id = upload.id
        logger.info(f"Extracting upload={upload_id} type={payload.upload_type}")

        try:
            source = self.resolve_source(payload)
            knowledge_context = build_knowledge_context(db)
            result = self._generate(knowledge_context, source)
            extracted, raw = self._parse(result)
            normalized = normalize_extraction(extracted)
            if normalized.dropped_ingredients:
                logger.info(f"Upload {upload_id}: dropped {normalized.dropped_ingredients} to fit ingredient cap")
            recipe, analysis = self._persist(db, upload, normalized, raw, result)
        except NoshError as e:
            logger.error(f"Extraction failed for upload={upload_id}: {e}")
            self._fail(db, upload_id, e.context.get("reason") or e.message)
            raise
        except SQLAlchemyError as e:
            logger.error(f"Persisting extraction failed for upload={upload_id}: {e}")
            self._fail(db, upload_id, f"Database error: {e}")
            raise PersistenceError("Failed to save extracted recipe", upload_id=upload_id) from e
        except Exception as e:
            logger.error(f"Unexpected extraction failure for upload={upload_id}: {e}")
            self._fail(db, upload_id, f"{e.__class__.__name__}: {e}")
            raise

        recipe_id = recipe.id
        logger.info(f"Extracted recipe={recipe.id} slug={recipe.slug} from upload={upload_id}")

        summary = None
        if analysis is not None:
            summary = SacredSummary(
                hero=analysis.hero_ingredient,
                quality=analysis.quality_score,
                confidence=analysis.confidence,
                sacred_count=len(analysis.sacred_ingredients or []),
                adaptations=len(analysis.adaptations_made or []),
            )
            self.learner.learn(db, recipe.cuisine)

        return RecipeExtractResponse(recipe_id=recipe_id, upload_id=upload_id, sacred_analysis=summary)


recipe_extractor = RecipeExtractor()
