"""Normalization rules applied to extraction output before persistence."""
from datetime import datetime

import pytest

from nosh.exceptions import ValidationError
from nosh.schemas import RecipeExtractRequest
from nosh.schemas_generation import ExtractedRecipe
from nosh.services.extraction import (
    RecipeExtractor,
    cap_ingredients,
    clamp_total_minutes,
    fallback_title,
    is_pantry_staple,
    normalize_extraction,
    unique_slug,
    _mock_extraction,
)
from nosh.models import Recipe


def _ing(name, sort_order, is_sacred=False, staple=False):
    return {"name": name, "is_sacred": is_sacred, "is_pantry_staple": staple, "sort_order": sort_order}


def test_fallback_title_format():
    assert fallback_title(datetime(2026, 3, 7)) == "Unnamed 07/03/26"


def test_clamp_total_minutes():
    assert clamp_total_minutes(None) == 30
    assert clamp_total_minutes(0) == 30
    assert clamp_total_minutes(45) == 45
    assert clamp_total_minutes(90) == 60
    assert clamp_total_minutes(-5) == 1


def test_pantry_staples():
    assert is_pantry_staple("Salt")
    assert is_pantry_staple("  Black   Pepper ")
    assert is_pantry_staple("Olive oil")
    assert is_pantry_staple("Ghee", flagged=True)
    assert not is_pantry_staple("Ghee")
    assert not is_pantry_staple("Sesame oil")


def test_cap_keeps_all_when_under_limit():
    items = [_ing(f"i{n}", n) for n in range(12)] + [_ing("salt", 12, staple=True)]
    kept, dropped = cap_ingredients(items)
    assert kept == items
    assert dropped == []


def test_cap_prefers_sacred_then_sort_order():
    items = [_ing(f"i{n}", n) for n in range(14)]
    items.append(_ing("lemongrass", 20, is_sacred=True))
    items.append(_ing("water", 21, staple=True))

    kept, dropped = cap_ingredients(items)

    kept_names = [i["name"] for i in kept]
    assert "lemongrass" in kept_names
    assert "water" in kept_names
    assert sum(1 for i in kept if not i["is_pantry_staple"]) == 12
    # Highest sort orders go first
    assert [i["name"] for i in dropped] == ["i11", "i12", "i13"]


def test_normalize_applies_defaults():
    extracted = ExtractedRecipe.model_validate({
        "title": None,
        "ingredients": [{"name": "Chickpeas"}],
    })
    out = normalize_extraction(extracted, now=datetime(2026, 1, 2))

    r = out.recipe_fields
    assert r["title"] == "Unnamed 02/01/26"
    assert r["vessel"] == "pot"
    assert r["cuisine"] == "Other"
    assert r["serves"] == 4
    assert r["difficulty"] == 2
    assert r["spice_level"] == 1
    assert r["adventure_level"] == 1
    assert r["total_time_minutes"] == 30
    assert out.analysis_fields is None


def test_normalize_keeps_zero_spice():
    extracted = ExtractedRecipe.model_validate({"title": "Congee", "spice_level": 0})
    assert normalize_extraction(extracted).recipe_fields["spice_level"] == 0


def test_normalize_sacred_flags_and_hero_fallback():
    extracted = ExtractedRecipe.model_validate({
        "title": "**Green Curry**",
        "cuisine": "thai",
        "ingredients": [
            {"name": "Green curry paste"},
            {"name": "Coconut milk"},
            {"name": "Salt"},
        ],
        "sacred_analysis": {
            "hero_ingredient": None,
            "sacred_ingredients": [{"ingredient": "green curry paste", "reason": "Defines the dish"}],
            "risk_level": "medium",
        },
    })
    out = normalize_extraction(extracted)

    assert out.recipe_fields["title"] == "Green Curry"
    assert out.recipe_fields["cuisine"] == "Thai"
    by_name = {i["name"]: i for i in out.ingredients}
    assert by_name["Green curry paste"]["is_sacred"] is True
    assert by_name["Coconut milk"]["is_sacred"] is False
    assert by_name["Salt"]["is_pantry_staple"] is True

    sa = out.analysis_fields
    assert sa["cuisine"] == "Thai"
    assert sa["hero_ingredient"] == "green curry paste"
    assert sa["risk_level"] == "medium"
    assert sa["one_pot_feasible"] is True
    assert sa["compressed_ingredient_count"] == 3


def test_normalize_records_dropped_ingredients_as_adaptations():
    extracted = ExtractedRecipe.model_validate({
        "title": "Everything Stew",
        "ingredients": [{"name": f"Veg {n}", "sort_order": n} for n in range(15)],
        "sacred_analysis": {"adaptations_made": [{"change": "Merged soy sauces", "impact": "none"}]},
    })
    out = normalize_extraction(extracted)

    assert len(out.ingredients) == 12
    assert out.dropped_ingredients == ["Veg 12", "Veg 13", "Veg 14"]
    adaptations = out.analysis_fields["adaptations_made"]
    assert adaptations[0]["change"] == "Merged soy sauces"
    assert [a["change"] for a in adaptations[1:]] == ["Removed Veg 12", "Removed Veg 13", "Removed Veg 14"]
    assert all(a["impact"] == "minor" for a in adaptations[1:])
    assert out.analysis_fields["original_ingredient_count"] == 15


def test_unique_slug_appends_counter_on_collision(db_session, monkeypatch):
    monkeypatch.setattr("nosh.services.extraction.time.time_ns", lambda: 1_000_000_000)
    first = unique_slug(db_session, "Pad Thai")
    db_session.add(Recipe(title="Pad Thai", slug=first))
    db_session.commit()

    second = unique_slug(db_session, "Pad Thai")
    assert first.startswith("pad-thai-")
    assert second == f"{first}-2"


@pytest.mark.parametrize("payload", [
    {"upload_type": "text", "raw_text": "   "},
    {"upload_type": "url"},
    {"upload_type": "pdf", "raw_text": "not a file"},
    {"upload_type": "image", "file_url": ""},
])
def test_validate_request_rejects_missing_content(payload):
    with pytest.raises(ValidationError):
        RecipeExtractor().validate_request(RecipeExtractRequest(**payload))


@pytest.mark.parametrize("file_url", [
    "data:application/pdf;base64,JVBERi0xLjQK",
    "data:image/png;base64,@@@",
])
def test_validate_request_rejects_non_image_inline_data(file_url):
    with pytest.raises(ValidationError) as exc:
        RecipeExtractor().validate_request(RecipeExtractRequest(upload_type="pdf", file_url=file_url))
    assert exc.value.message == "Inline file data must be an image"


def test_resolve_file_reference_and_inline_image():
    extractor = RecipeExtractor()

    pdf = extractor.resolve_source(RecipeExtractRequest(upload_type="pdf", file_url="https://files.example/r.pdf"))
    assert pdf.text == "[File uploaded at: https://files.example/r.pdf] Please extract the recipe from this content."
    assert pdf.images == []

    image = extractor.resolve_source(RecipeExtractRequest(upload_type="image", file_url="data:image/png;base64,aGVsbG8="))
    assert image.images[0].mime_type == "image/png"
    assert image.images[0].data == b"hello"


def test_mock_extraction_reads_title_and_bullets():
    data = _mock_extraction("Lentil Soup\n- 1 cup red lentils\n- 2 carrots\nSimmer until soft.")
    assert data["title"] == "Lentil Soup"
    assert [i["name"] for i in data["ingredients"]] == ["red lentils", "carrots"]
    assert data["ingredients"][0]["unit"] == "cup"
    assert data["sacred_analysis"]["hero_ingredient"] == "red lentils"
