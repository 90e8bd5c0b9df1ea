import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ayursutra.config import settings
from ayursutra.dependencies import close_clients
from ayursutra.models.model_manager import model_manager
from ayursutra.routers import chat, conversation, health, sessions, translate

logger = logging.getLogger("ayursutra")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("AyurSutra Assistant starting up")
    logger.info("Generation model: %s", settings.gemini_model)
    logger.info("Translation provider: %s", settings.translation_provider)
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set, every exchange will get the fallback reply")

    yield

    logger.info("AyurSutra Assistant shutting down")
    await close_clients()
    model_manager.unload_all()


API_DESCRIPTION = """
# AyurSutra Assistant API

Multilingual wellness assistant for patients in Ayurvedic treatment.

## Pipeline

**Text:** message (patient language) → translate to English → Gemini →
translate back → reply (with medical disclaimer)

**Voice:** PCM audio → Whisper STT → transcript; replies can be read
aloud with MMS-TTS.

## Languages

Any BCP-47 tag is accepted. The reference UI offers:

| Tag | Language |
|-----|----------|
| `en-US` | English |
| `hi-IN` | Hindi |
| `mr-IN` | Marathi |
"""

app = FastAPI(
    title="AyurSutra Assistant API",
    description=API_DESCRIPTION,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "health", "description": "Server and model status"},
        {"name": "sessions", "description": "Open, inspect and close assistant conversations"},
        {"name": "chat", "description": "Typed questions to the assistant"},
        {"name": "translate", "description": "Translation bridge"},
        {"name": "conversation", "description": "Real-time text and voice conversation (WebSocket)"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.prometheus_enabled:
    from ayursutra.middleware.metrics import setup_metrics

    setup_metrics(app)

app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(sessions.router, prefix="/api/v1", tags=["sessions"])
app.include_router(chat.router, prefix="/api/v1", tags=["chat"])
app.include_router(translate.router, prefix="/api/v1", tags=["translate"])
app.include_router(conversation.router, prefix="/api/v1", tags=["conversation"])
