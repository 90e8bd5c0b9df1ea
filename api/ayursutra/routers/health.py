import logging

from fastapi import APIRouter

from ayursutra.config import settings
from ayursutra.dependencies import SessionDep
from ayursutra.models.model_manager import model_manager
from ayursutra.schemas.health import HealthResponse

logger = logging.getLogger("ayursutra")
router = APIRouter()

VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(session_mgr: SessionDep):
    """Server status, loaded models and GPU VRAM.

    Reports `degraded` when no generation API key is configured: every
    exchange would then end with the fallback reply.
    """
    generation_ok = bool(settings.gemini_api_key)

    return HealthResponse(
        status="healthy" if generation_ok else "degraded",
        version=VERSION,
        models_loaded=model_manager.loaded_models(),
        vram=model_manager.vram_usage(),
        active_sessions=len(session_mgr),
        generation_configured=generation_ok,
        translation_provider=settings.translation_provider,
    )
