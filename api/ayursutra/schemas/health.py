from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str
    models_loaded: list[str]
    vram: dict
    active_sessions: int
    generation_configured: bool
    translation_provider: str
