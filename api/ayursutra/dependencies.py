import logging
from typing import Annotated

import httpx
from fastapi import Depends

from ayursutra.config import settings
from ayursutra.models.llm_cloud import GeminiLLM, default_system_prompt, load_llm_cloud
from ayursutra.services.playback import SpeechSynthesizer, build_synthesizer
from ayursutra.services.session import SessionManager
from ayursutra.services.translation import TranslationBridge, build_provider
from ayursutra.services.voice import SpeechRecognizer, build_recognizer

logger = logging.getLogger("ayursutra")

_http_client: httpx.AsyncClient | None = None
_bridge: TranslationBridge | None = None
_llm: GeminiLLM | None = None
_session_manager: SessionManager | None = None


def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient()
    return _http_client


def get_translation_bridge() -> TranslationBridge:
    global _bridge
    if _bridge is None:
        provider = build_provider(settings.translation_provider, get_http_client())
        logger.info("Translation provider: %s", provider.name)
        _bridge = TranslationBridge(provider)
    return _bridge


def get_llm() -> GeminiLLM:
    global _llm
    if _llm is None:
        _llm = load_llm_cloud(get_http_client())
    return _llm


def get_session_manager() -> SessionManager:
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager(
            get_translation_bridge(), get_llm(), default_system_prompt()
        )
    return _session_manager


def get_recognizer() -> SpeechRecognizer:
    return build_recognizer()


def get_synthesizer() -> SpeechSynthesizer:
    return build_synthesizer()


async def close_clients():
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


BridgeDep = Annotated[TranslationBridge, Depends(get_translation_bridge)]
SessionDep = Annotated[SessionManager, Depends(get_session_manager)]
RecognizerDep = Annotated[SpeechRecognizer, Depends(get_recognizer)]
SynthesizerDep = Annotated[SpeechSynthesizer, Depends(get_synthesizer)]
