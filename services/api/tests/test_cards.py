import json
from unittest.mock import patch

import pytest

from conftest import OPERATOR_HEADERS, fake_ai, generation
from nosh.exceptions import ParseError
from nosh.infra.locks import cards_lock_key
from nosh.models import Ingredient, Recipe, SacredAnalysis, WorkflowCard
from nosh.schemas_generation import WorkflowCardPayload
from nosh.services.cards import (
    is_vague_marker,
    match_ingredient,
    normalize_cards,
    validate_cards,
)


def make_recipe(db, with_analysis=True, recipe_id="recipe-1"):
    recipe = Recipe(id=recipe_id, title="Pad Kra Pao", slug=f"pad-kra-pao-{recipe_id}", cuisine="Thai")
    for idx, name in enumerate(["Chicken mince", "Holy basil", "Fish sauce", "Garlic", "Vegetable oil"]):
        recipe.ingredients.append(Ingredient(
            name=name,
            sort_order=idx,
            is_sacred=name == "Holy basil",
            is_pantry_staple=name == "Vegetable oil",
        ))
    if with_analysis:
        recipe.sacred_analysis = SacredAnalysis(
            cuisine="Thai",
            hero_ingredient="Holy basil",
            sacred_ingredients=[{"ingredient": "Holy basil", "reason": "Named after it"}],
            sacred_technique="wok stir-fry",
            side_tasks_needed=["rice"],
        )
    db.add(recipe)
    db.commit()
    return recipe


def card(title, marker="Garlic smells nutty and is pale gold", **extra):
    return {
        "title": title,
        "card_type": extra.pop("card_type", "technique"),
        "heat_level": extra.pop("heat_level", 2),
        "instructions": extra.pop("instructions", [f"{title.title()} everything"]),
        "success_marker": marker,
        **extra,
    }


def five_cards():
    return [
        card("SEAR", instructions=["Fry the garlic in hot oil.", "Add the chicken mince."],
             ingredients_used=[{"name": "garlic", "qty": "4 cloves", "action": "smash"},
                               {"name": "chicken", "qty": "500 g", "action": "fry"}]),
        card("SEASON", ingredients_used=[{"name": "Fish Sauce", "qty": "2 tbsp", "action": "splash"},
                                          {"name": "truffle oil", "action": "drizzle"}]),
        card("SIMMER", card_type="simmer", heat_level=1, timer_seconds=0, parallel_task="Cook the rice"),
        card("BASIL", card_type="finish", heat_level=7, instructions=["Toss through the holy basil."]),
        card("SERVE", card_type="plating", heat_level=0, timer_seconds=120),
    ]


# --- Validation / normalization ---

def test_vague_markers():
    for marker in ("done", "Ready!", " cooked ", "Finished.", "complete", "", None):
        assert is_vague_marker(marker)
    assert not is_vague_marker("Edges are crisp and golden")


def test_match_ingredient_exact_then_containment():
    names = ["Chicken mince", "Holy basil", "Fish sauce"]
    assert match_ingredient("fish sauce", names) == "Fish sauce"
    assert match_ingredient("chicken", names) == "Chicken mince"
    assert match_ingredient("thai holy basil", names) == "Holy basil"
    assert match_ingredient("truffle oil", names) is None

    # Whole words only
    assert match_ingredient("salt", ["Unsalted butter", "Eggplant"]) is None
    assert match_ingredient("egg", ["Unsalted butter", "Eggplant"]) is None
    assert match_ingredient("butter", ["Unsalted butter", "Eggplant"]) == "Unsalted butter"


def test_uncovered_ingredient_not_attached_by_partial_word():
    raw = [
        card("HEAT", instructions=["Heat the pan."]),
        card("BOIL", instructions=["Bring the pot to a boil."]),
        card("SIMMER", instructions=["Cover and simmer."]),
        card("FINISH", instructions=["Drizzle over the oil."]),
    ]
    cards = normalize_cards([WorkflowCardPayload(**c) for c in raw], ["Oil"])

    assert cards[1]["ingredients_used"] == []
    assert [i["name"] for i in cards[3]["ingredients_used"]] == ["Oil"]


@pytest.mark.parametrize("count", [3, 7])
def test_card_count_outside_range_rejected(count):
    cards = [WorkflowCardPayload(**card(f"STEP {n}")) for n in range(count)]
    with pytest.raises(ParseError):
        validate_cards(cards)


def test_vague_success_marker_rejected():
    raw = five_cards()
    raw[2]["success_marker"] = "Done"
    with pytest.raises(ParseError):
        validate_cards([WorkflowCardPayload(**c) for c in raw])


def test_normalize_cards():
    names = ["Chicken mince", "Holy basil", "Fish sauce", "Garlic", "Vegetable oil"]
    cards = normalize_cards([WorkflowCardPayload(**c) for c in five_cards()], names)

    assert [c["card_number"] for c in cards] == [1, 2, 3, 4, 5]
    assert cards[2]["timer_seconds"] is None
    assert cards[4]["timer_seconds"] == 120
    assert cards[3]["heat_level"] == 3
    assert cards[4]["card_type"] == "technique"

    assert [i["name"] for i in cards[0]["ingredients_used"]][:2] == ["Garlic", "Chicken mince"]
    assert [i["name"] for i in cards[1]["ingredients_used"]] == ["Fish sauce"]
    # Uncovered ingredients: mentioned in instructions -> that card, else card 1
    assert "Holy basil" in [i["name"] for i in cards[3]["ingredients_used"]]
    assert "Vegetable oil" in [i["name"] for i in cards[0]["ingredients_used"]]

    used = [i["name"] for c in cards for i in c["ingredients_used"]]
    assert sorted(used) == sorted(names)


# --- Generation ---

def test_generate_cards_replaces_existing_set(client, db_session):
    recipe = make_recipe(db_session)
    db_session.add(WorkflowCard(recipe_id=recipe.id, card_number=1, title="OLD", success_marker="old marker"))
    db_session.commit()

    fake = fake_ai(generation({"cards": five_cards()}))
    with patch("nosh.services.cards.ai_client", fake):
        resp = client.post("/api/recipe-generate-cards", json={"recipe_id": recipe.id}, headers=OPERATOR_HEADERS)

    assert resp.status_code == 200, resp.text
    assert resp.json() == {"recipe_id": recipe.id, "card_count": 5, "sacred_aware": True}

    db_session.expire_all()
    cards = db_session.query(WorkflowCard).filter_by(recipe_id=recipe.id).order_by(WorkflowCard.card_number).all()
    assert [c.title for c in cards] == ["SEAR", "SEASON", "SIMMER", "BASIL", "SERVE"]
    assert db_session.get(Recipe, recipe.id).pipeline_status == "cards_ready"

    system_prompt = fake.chat.call_args.args[0][0].content
    assert "Hero ingredient: Holy basil" in system_prompt
    assert "Side tasks: rice" in system_prompt
    user_prompt = fake.chat.call_args.args[0][1].content
    assert "- Holy basil (SACRED)" in user_prompt


def test_generate_cards_accepts_bare_list(client, db_session):
    recipe = make_recipe(db_session)
    with patch("nosh.services.cards.ai_client", fake_ai(generation(five_cards()))):
        resp = client.post("/api/recipe-generate-cards", json={"recipe_id": recipe.id}, headers=OPERATOR_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["card_count"] == 5


def test_generate_cards_without_sacred_analysis(client, db_session):
    recipe = make_recipe(db_session, with_analysis=False)
    fake = fake_ai(generation({"cards": five_cards()[:4]}))
    with patch("nosh.services.cards.ai_client", fake):
        resp = client.post("/api/recipe-generate-cards", json={"recipe_id": recipe.id}, headers=OPERATOR_HEADERS)

    assert resp.status_code == 200
    assert resp.json()["sacred_aware"] is False
    assert 4 <= resp.json()["card_count"] <= 6
    assert "No sacred analysis available" in fake.chat.call_args.args[0][0].content


def test_parse_failure_keeps_previous_cards(client, db_session):
    recipe = make_recipe(db_session)
    db_session.add(WorkflowCard(recipe_id=recipe.id, card_number=1, title="OLD", success_marker="old marker"))
    db_session.commit()

    with patch("nosh.services.cards.ai_client", fake_ai(generation("not json at all"))):
        resp = client.post("/api/recipe-generate-cards", json={"recipe_id": recipe.id}, headers=OPERATOR_HEADERS)
    assert resp.status_code == 502

    with patch("nosh.services.cards.ai_client", fake_ai(generation({"cards": five_cards()[:3]}))):
        resp = client.post("/api/recipe-generate-cards", json={"recipe_id": recipe.id}, headers=OPERATOR_HEADERS)
    assert resp.status_code == 502

    db_session.expire_all()
    cards = db_session.query(WorkflowCard).filter_by(recipe_id=recipe.id).all()
    assert [c.title for c in cards] == ["OLD"]
    assert db_session.get(Recipe, recipe.id).pipeline_status == "extracted"


def test_generate_cards_conflict_when_locked(client, db_session, mock_redis):
    recipe = make_recipe(db_session)
    mock_redis.set(cards_lock_key(recipe.id), "other-worker", ex=60)

    fake = fake_ai(generation({"cards": five_cards()}))
    with patch("nosh.services.cards.ai_client", fake):
        resp = client.post("/api/recipe-generate-cards", json={"recipe_id": recipe.id}, headers=OPERATOR_HEADERS)

    assert resp.status_code == 409
    assert fake.chat.call_count == 0
    assert db_session.query(WorkflowCard).count() == 0


def test_generate_cards_errors(client, db_session):
    assert client.post("/api/recipe-generate-cards", json={}, headers=OPERATOR_HEADERS).status_code == 400
    assert client.post("/api/recipe-generate-cards", json={"recipe_id": "missing"}, headers=OPERATOR_HEADERS).status_code == 404
    assert client.post("/api/recipe-generate-cards", json={"recipe_id": "missing"}).status_code == 403

    resp = client.post("/api/recipe-generate-cards", json={"recipe_id": ["a", "b"]}, headers=OPERATOR_HEADERS)
    assert resp.status_code == 400
    assert list(resp.json()) == ["error"]


def test_mock_mode_cards_cover_every_ingredient(client, db_session):
    recipe = make_recipe(db_session)
    resp = client.post("/api/recipe-generate-cards", json={"recipe_id": recipe.id}, headers=OPERATOR_HEADERS)
    assert resp.status_code == 200, resp.text
    assert resp.json()["card_count"] == 5

    body = client.get(f"/api/recipes/{recipe.id}").json()
    cards = body["workflow_cards"]
    assert [c["card_type"] for c in cards] == ["technique", "technique", "simmer", "finish", "serve"]
    assert cards[2]["parallel_task"] == "Meanwhile, cook the rice."
    used = {i["name"] for c in cards for i in c["ingredients_used"]}
    assert used == {i["name"] for i in body["ingredients"]}
