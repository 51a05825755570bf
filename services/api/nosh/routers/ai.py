from fastapi import APIRouter

from ..core.ai_client import ai_client
from ..settings import settings

router = APIRouter(prefix="/ai", tags=["ai"])


@router.get("/status")
def get_ai_status():
    """Debug endpoint for AI availability."""
    return {
        "ai_mode": settings.ai_mode,
        "model_text": settings.gemini_text_model,
        "available": ai_client.is_available(),
        "has_api_key": bool(settings.gemini_api_key),
        "quota_exceeded": ai_client.quota_exceeded,
        "last_error": ai_client.last_error,
        "last_error_at": ai_client.last_error_at,
    }
