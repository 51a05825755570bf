from nosh.ai.parsing import Invalid, Valid, parse_generation_output, validate_into
from nosh.schemas_generation import ExtractedRecipe, CardSetPayload

def test_parse_plain_json():
    result = parse_generation_output('{"title": "Dal"}')
    assert isinstance(result, Valid)
    assert result.data == {"title": "Dal"}

def test_parse_fenced_json():
    result = parse_generation_output('```json\n{"title": "Dal"}\n```')
    assert isinstance(result, Valid)
    assert result.data["title"] == "Dal"

def test_parse_json_embedded_in_prose():
    result = parse_generation_output('Here you go: {"title": "Dal"} Enjoy!')
    assert isinstance(result, Valid)
    assert result.data["title"] == "Dal"

def test_parse_garbled_is_invalid_with_snippet():
    text = "Sorry, I can't help with that " * 20
    result = parse_generation_output(text)
    assert isinstance(result, Invalid)
    assert result.reason.startswith("JSON parse error")
    assert len(result.snippet) == 200

def test_parse_empty_is_invalid():
    assert isinstance(parse_generation_output(""), Invalid)
    assert isinstance(parse_generation_output(None), Invalid)

def test_validate_coerces_lenient_numbers():
    result = validate_into(Valid({
        "title": "Dal",
        "serves": "4",
        "total_time_minutes": "35 minutes",
        "ingredients": [{"name": "Red lentils", "quantity": "1 1/2", "unit": "cups"}, "Salt"],
        "sacred_analysis": {
            "sacred_ingredients": ["Red lentils"],
            "flexible_ingredients": [{"ingredient": "Coriander", "can_remove": "true", "substitute": "null"}],
            "one_pot_feasible": None,
            "risk_level": "EXTREME",
        },
    }), ExtractedRecipe)

    assert isinstance(result, Valid)
    recipe = result.data
    assert recipe.serves == 4
    assert recipe.total_time_minutes == 35
    assert recipe.ingredients[0].quantity == 1.5
    assert recipe.ingredients[1].name == "Salt"
    sa = recipe.sacred_analysis
    assert sa.sacred_ingredients[0].ingredient == "Red lentils"
    assert sa.flexible_ingredients[0].can_remove is True
    assert sa.flexible_ingredients[0].substitute is None
    assert sa.one_pot_feasible is True
    assert sa.risk_level == "low"


def test_validate_drops_nameless_entries_and_accepts_name_key():
    result = validate_into(Valid({
        "title": "Dal",
        "sacred_analysis": {
            "sacred_ingredients": [
                {"ingredient": "Red lentils", "reason": "It is the dal"},
                {"ingredient": None, "reason": "?"},
                {"reason": "no name at all"},
            ],
            "flexible_ingredients": [{"name": "coriander", "can_remove": True}, {"ingredient": "  "}],
        },
    }), ExtractedRecipe)

    assert isinstance(result, Valid)
    sa = result.data.sacred_analysis
    assert [s.ingredient for s in sa.sacred_ingredients] == ["Red lentils"]
    assert [f.ingredient for f in sa.flexible_ingredients] == ["coriander"]
    assert sa.flexible_ingredients[0].can_remove is True

def test_validate_schema_failure_is_invalid():
    result = validate_into(Valid({"cards": [{"instructions": ["Stir"]}]}), CardSetPayload)
    assert isinstance(result, Invalid)
    assert "Schema validation error" in result.reason

def test_validate_passes_invalid_through():
    bad = Invalid("JSON parse error: x", "x")
    assert validate_into(bad, ExtractedRecipe) is bad
