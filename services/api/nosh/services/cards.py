"""Workflow card generation for a persisted recipe.

The card set of a recipe is replaced wholesale: either the new set of 4-6
validated cards is committed, or the previous set stays as it was.
"""

import json
import logging
import re
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..ai.parsing import Invalid, Valid, parse_generation_output, validate_into
from ..ai.prompts import CARDS_PROMPT, NO_SACRED_MARKER
from ..core.ai_client import ai_client, ChatMessage, GenerationResult
from ..core.text import clean_md, clean_md_list, normalize_name
from ..exceptions import NotFoundError, ParseError, PersistenceError, ValidationError
from ..infra.locks import redis_lock, cards_lock_key
from ..models import Recipe, SacredAnalysis, WorkflowCard, PIPELINE_CARDS_READY
from ..schemas import GenerateCardsResponse
from ..schemas_generation import CardSetPayload, WorkflowCardPayload
from ..settings import settings

logger = logging.getLogger("nosh.cards")

MIN_CARDS = 4
MAX_CARDS = 6
CARD_TYPES = ("prep", "technique", "simmer", "finish", "serve")
VAGUE_MARKERS = frozenset({"done", "ready", "cooked", "finished", "complete"})


def is_vague_marker(marker: Optional[str]) -> bool:
    s = normalize_name(marker).strip(" .!")
    return not s or s in VAGUE_MARKERS


def extract_card_list(data) -> Optional[list]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("cards"), list):
        return data["cards"]
    return None


def contains_words(text: str, phrase: str) -> bool:
    """True if ``phrase`` occurs in ``text`` as whole words ('oil' is not in 'boil')."""
    if not phrase:
        return False
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def match_ingredient(name: str, ingredient_names: list[str]) -> Optional[str]:
    """Canonical recipe ingredient for a callout name: exact, then whole-word containment."""
    key = normalize_name(name)
    if not key:
        return None
    for candidate in ingredient_names:
        if normalize_name(candidate) == key:
            return candidate
    for candidate in ingredient_names:
        ckey = normalize_name(candidate)
        if ckey and (contains_words(ckey, key) or contains_words(key, ckey)):
            return candidate
    return None


def validate_cards(cards: list[WorkflowCardPayload]) -> None:
    if not MIN_CARDS <= len(cards) <= MAX_CARDS:
        raise ParseError(
            f"Expected {MIN_CARDS}-{MAX_CARDS} cards, got {len(cards)}",
            card_count=len(cards),
        )
    for idx, card in enumerate(cards, start=1):
        if is_vague_marker(card.success_marker):
            raise ParseError(
                f"Card {idx} has a missing or vague success marker",
                success_marker=card.success_marker,
            )


def normalize_cards(cards: list[WorkflowCardPayload], ingredient_names: list[str]) -> list[dict]:
    """Renumber, clamp and reconcile callouts with the recipe's ingredient list."""
    out = []
    for number, card in enumerate(cards, start=1):
        callouts = []
        seen = set()
        for callout in card.ingredients_used:
            canonical = match_ingredient(callout.name, ingredient_names)
            if canonical is None or canonical in seen:
                continue
            seen.add(canonical)
            callouts.append({"name": canonical, "qty": callout.qty, "action": callout.action})

        card_type = (card.card_type or "").lower()
        out.append({
            "card_number": number,
            "title": clean_md(card.title)[:120] or f"STEP {number}",
            "card_type": card_type if card_type in CARD_TYPES else "technique",
            "heat_level": max(0, min(card.heat_level or 0, 3)),
            "instructions": clean_md_list(card.instructions),
            "success_marker": card.success_marker.strip(),
            "timer_seconds": card.timer_seconds if card.timer_seconds and card.timer_seconds > 0 else None,
            "parallel_task": card.parallel_task,
            "pro_tip": card.pro_tip,
            "technique_icon": card.technique_icon,
            "ingredients_used": callouts,
        })

    used = {c["name"] for card in out for c in card["ingredients_used"]}
    for name in ingredient_names:
        if name in used:
            continue
        key = normalize_name(name)
        target = next(
            (card for card in out if any(contains_words(normalize_name(line), key) for line in card["instructions"])),
            out[0],
        )
        target["ingredients_used"].append({"name": name, "qty": None, "action": None})
        used.add(name)

    return out


# --- Prompt rendering ---

def _format_quantity(ing) -> str:
    qty = ""
    if ing.quantity is not None:
        qty = f"{ing.quantity:g}"
        if ing.unit:
            qty += f" {ing.unit}"
        qty += " "
    return qty


def render_recipe(recipe: Recipe) -> str:
    lines = [
        f"Recipe: {recipe.title}",
        f"Cuisine: {recipe.cuisine} | Vessel: {recipe.vessel} | Total time: {recipe.total_time_minutes} min | Serves: {recipe.serves}",
        "Ingredients:",
    ]
    for ing in recipe.ingredients:
        tags = []
        if ing.is_sacred:
            tags.append("SACRED")
        if ing.is_pantry_staple:
            tags.append("staple")
        suffix = f" ({', '.join(tags)})" if tags else ""
        lines.append(f"- {_format_quantity(ing)}{ing.name}{suffix}")
    if recipe.tips:
        lines.append("Tips:")
        lines.extend(f"- {t}" for t in recipe.tips)
    return "\n".join(lines)


def render_sacred_context(analysis: Optional[SacredAnalysis]) -> str:
    if analysis is None:
        return NO_SACRED_MARKER

    sacred = "; ".join(
        f"{s.get('ingredient')} ({s.get('reason')})" if s.get("reason") else str(s.get("ingredient"))
        for s in analysis.sacred_ingredients or []
    )
    sides = ", ".join(analysis.side_tasks_needed or [])
    return "\n".join([
        f"Hero ingredient: {analysis.hero_ingredient or 'unknown'}",
        f"Sacred ingredients: {sacred or 'none'}",
        f"Sacred technique: {analysis.sacred_technique or 'none'}",
        f"Flavour profile: {analysis.sacred_flavour_profile or 'none'}",
        f"Side tasks: {sides or 'none'}",
        f"One-pot feasible: {'yes' if analysis.one_pot_feasible else 'no'}",
    ])


# --- Mock generation ---

def _mock_cards(recipe: Recipe, analysis: Optional[SacredAnalysis]) -> dict:
    """Five heuristic cards covering every ingredient. Used when AI mode is mock."""
    ingredients = list(recipe.ingredients)
    first = [i for i in ingredients if i.is_sacred or normalize_name(i.name).endswith("oil")]
    staples = [i for i in ingredients if i.is_pantry_staple and i not in first]
    rest = [i for i in ingredients if i not in first and i not in staples]
    half = (len(rest) + 1) // 2

    def callouts(items, action):
        return [{"name": i.name, "qty": _format_quantity(i).strip() or None, "action": action} for i in items]

    technique = (analysis.sacred_technique if analysis else None) or "sear"
    side_tasks = (analysis.side_tasks_needed if analysis else None) or []
    simmer_minutes = max(5, (recipe.cook_time_minutes or recipe.total_time_minutes) - 10)

    return {"cards": [
        {
            "title": "HEAT & START",
            "card_type": "technique",
            "heat_level": 3,
            "instructions": [f"Heat the {recipe.vessel} over high heat.", f"Start the {technique} with the key ingredients."],
            "success_marker": "Edges are golden and it smells toasty",
            "technique_icon": "flame",
            "ingredients_used": callouts(first, "sear"),
        },
        {
            "title": "BUILD FLAVOUR",
            "card_type": "technique",
            "heat_level": 2,
            "instructions": ["Add the aromatics and spices.", "Stir until fragrant."],
            "success_marker": "Kitchen smells fragrant and the spices have darkened slightly",
            "technique_icon": "stir",
            "ingredients_used": callouts(rest[:half], "add"),
        },
        {
            "title": "SIMMER",
            "card_type": "simmer",
            "heat_level": 1,
            "instructions": ["Add the remaining ingredients.", "Cover and simmer gently."],
            "success_marker": "Sauce has thickened and coats the back of a spoon",
            "timer_seconds": simmer_minutes * 60,
            "parallel_task": f"Meanwhile, cook the {side_tasks[0]}." if side_tasks else None,
            "technique_icon": "timer",
            "ingredients_used": callouts(rest[half:], "simmer"),
        },
        {
            "title": "FINISH",
            "card_type": "finish",
            "heat_level": 0,
            "instructions": ["Take off the heat.", "Season to taste."],
            "success_marker": "A taste is bright and well seasoned",
            "technique_icon": "spoon",
            "ingredients_used": callouts(staples, "season"),
        },
        {
            "title": "SERVE",
            "card_type": "serve",
            "heat_level": 0,
            "instructions": ["Spoon into bowls.", "Serve straight away."],
            "success_marker": "Bowls are steaming and glossy",
            "technique_icon": "plate",
            "ingredients_used": [],
        },
    ]}


# --- Generator ---

class WorkflowCardGenerator:
    def _generate(self, recipe: Recipe, analysis: Optional[SacredAnalysis]) -> GenerationResult:
        if ai_client.mode == "mock":
            return GenerationResult(content=json.dumps(_mock_cards(recipe, analysis)), model="mock")

        messages = [
            ChatMessage(role="system", content=CARDS_PROMPT.format(sacred_context=render_sacred_context(analysis))),
            ChatMessage(role="user", content=render_recipe(recipe)),
        ]
        return ai_client.chat(
            messages,
            temperature=settings.cards_temperature,
            response_schema=CardSetPayload,
        )

    def parse_cards(self, result: GenerationResult, ingredient_names: list[str]) -> list[dict]:
        parsed = parse_generation_output(result.content or "")
        if isinstance(parsed, Invalid):
            raise ParseError(f"Failed to parse card output: {parsed.reason}", snippet=parsed.snippet)

        raw_cards = extract_card_list(parsed.data)
        if raw_cards is None:
            raise ParseError("Card output must be a list or an object with a 'cards' list")

        validated = validate_into(Valid({"cards": raw_cards}), CardSetPayload)
        if isinstance(validated, Invalid):
            raise ParseError(f"Failed to parse card output: {validated.reason}", snippet=validated.snippet)

        cards = validated.data.cards
        validate_cards(cards)
        return normalize_cards(cards, ingredient_names)

    def _replace_cards(self, db: Session, recipe: Recipe, cards: list[dict]) -> None:
        try:
            recipe.workflow_cards.clear()
            db.flush()
            for card in cards:
                recipe.workflow_cards.append(WorkflowCard(**card))
            recipe.pipeline_status = PIPELINE_CARDS_READY
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store cards for recipe={recipe.id}: {e}")
            raise PersistenceError("Failed to store workflow cards", recipe_id=recipe.id) from e

    def generate(self, db: Session, recipe_id: Optional[str]) -> GenerateCardsResponse:
        """
        (Re)generate the workflow cards of a recipe.

        Raises:
            ValidationError: recipe_id missing
            NotFoundError: unknown recipe
            ConcurrencyConflictError: another generation holds the recipe lock
            UpstreamGenerationError / RateLimitedError: generation failed
            ParseError: output unusable; existing cards untouched
        """
        if not recipe_id:
            raise ValidationError("recipe_id is required")

        recipe = db.get(Recipe, recipe_id)
        if recipe is None:
            raise NotFoundError("Recipe not found", recipe_id=recipe_id)

        with redis_lock(cards_lock_key(recipe.id), settings.cards_lock_ttl_sec):
            analysis = recipe.sacred_analysis
            ingredient_names = [i.name for i in recipe.ingredients]

            result = self._generate(recipe, analysis)
            cards = self.parse_cards(result, ingredient_names)
            self._replace_cards(db, recipe, cards)

        logger.info(f"Generated {len(cards)} cards for recipe={recipe_id} (sacred_aware={analysis is not None})")
        return GenerateCardsResponse(
            recipe_id=recipe_id,
            card_count=len(cards),
            sacred_aware=analysis is not None,
        )


card_generator = WorkflowCardGenerator()
