from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # API
    log_level: str = "info"

    # Gemini generation service
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    generation_timeout_s: float = 20.0

    # Translation bridge: tagging | google | nllb
    translation_provider: str = "tagging"
    translation_timeout_s: float = 10.0
    google_translate_api_key: str = ""
    google_translate_url: str = "https://translation.googleapis.com/language/translate/v2"
    nllb_model_id: str = "facebook/nllb-200-distilled-600M"

    # Whole exchange, covers both translations and generation
    exchange_timeout_s: float = 45.0

    # Patient context for the system prompt
    patient_name: str = "Priya"
    treatment_plan: List[str] = ["Abhyanga", "Shirodhara", "Herbal Steam Baths"]
    treatment_goals: List[str] = ["stress reduction", "improving digestion"]

    # Voice capture
    voice_enabled: bool = True
    whisper_model_id: str = "openai/whisper-small"
    recognition_languages: List[str] = ["en", "hi"]
    min_speech_s: float = 0.5
    max_utterance_s: int = 30

    # Speech playback
    tts_enabled: bool = True
    tts_models: dict[str, str] = {
        "en": "facebook/mms-tts-eng",
        "hi": "facebook/mms-tts-hin",
        "mr": "facebook/mms-tts-mar",
    }
    tts_max_chars: int = 500  # per synthesized chunk, long replies are split

    # Sessions
    session_ttl_s: int = 1800
    default_language: str = "en-US"

    # Monitoring
    prometheus_enabled: bool = True

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Limits
    message_max_chars: int = 2000
    upload_max_bytes: int = 10 * 1024 * 1024  # 10 MB

    model_config = {
        "env_file": ["../.env", ".env"],
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
