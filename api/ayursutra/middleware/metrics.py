from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

PIPELINE_STAGE_DURATION = Histogram(
    "ayursutra_pipeline_stage_duration_seconds",
    "Exchange stage duration",
    ["stage"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0],
)

EXCHANGES = Counter(
    "ayursutra_exchanges_total",
    "Completed assistant exchanges",
    ["outcome"],
)

EXCHANGE_FAILURES = Counter(
    "ayursutra_exchange_failures_total",
    "Exchanges that ended with the fallback reply",
    ["stage", "error"],
)

GENERATION_REQUESTS = Counter(
    "ayursutra_generation_requests_total",
    "Calls to the text generation service",
    ["status"],
)

TRANSLATION_REQUESTS = Counter(
    "ayursutra_translation_requests_total",
    "Calls to the translation provider",
    ["provider", "status"],
)

VOICE_CAPTURES = Counter(
    "ayursutra_voice_captures_total",
    "Voice capture attempts",
    ["outcome"],
)

SPEECH_PLAYBACKS = Counter(
    "ayursutra_speech_playbacks_total",
    "Synthesized assistant replies",
    ["status"],
)

MODELS_LOADED = Gauge(
    "ayursutra_models_loaded",
    "Number of loaded ML models",
)

ACTIVE_SESSIONS = Gauge(
    "ayursutra_active_sessions",
    "Open conversation sessions",
)

ACTIVE_WEBSOCKETS = Gauge(
    "ayursutra_active_websockets",
    "Active WebSocket connections",
)


def setup_metrics(app):
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/docs", "/openapi.json"],
    ).instrument(app).expose(app, endpoint="/metrics")
