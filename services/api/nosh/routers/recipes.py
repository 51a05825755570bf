"""Read-only views of pipeline output.

Endpoints:
- GET /api/recipes/{id} - Recipe with ingredients, sacred analysis and cards
- GET /api/uploads/{id} - Upload status and diagnostics
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..exceptions import NotFoundError
from ..models import Recipe, Upload
from ..schemas import RecipeOut, UploadOut

router = APIRouter()


@router.get("/recipes/{recipe_id}", response_model=RecipeOut)
def get_recipe(recipe_id: str, db: Session = Depends(get_db)):
    recipe = (
        db.query(Recipe)
        .options(
            selectinload(Recipe.ingredients),
            selectinload(Recipe.sacred_analysis),
            selectinload(Recipe.workflow_cards),
        )
        .filter(Recipe.id == recipe_id)
        .first()
    )
    if not recipe:
        raise NotFoundError("Recipe not found", recipe_id=recipe_id)
    return recipe


@router.get("/uploads/{upload_id}", response_model=UploadOut)
def get_upload(upload_id: str, db: Session = Depends(get_db)):
    upload = db.get(Upload, upload_id)
    if not upload:
        raise NotFoundError("Upload not found", upload_id=upload_id)
    return upload
