import abc
import asyncio
import logging
import time

import httpx

from ayursutra.config import settings
from ayursutra.errors import TranslationFailed
from ayursutra.middleware.metrics import PIPELINE_STAGE_DURATION, TRANSLATION_REQUESTS
from ayursutra.models.model_manager import model_manager
from ayursutra.services.language import is_english, primary_subtag, same_language

logger = logging.getLogger("ayursutra")


class TranslationProvider(abc.ABC):
    name: str

    @abc.abstractmethod
    async def translate(self, text: str, source: str, target: str) -> str:  # pragma: no cover - interface
        ...


class TaggingProvider(TranslationProvider):
    """Stand-in provider: prefixes the text with the target language code."""

    name = "tagging"

    async def translate(self, text: str, source: str, target: str) -> str:
        if is_english(target):
            return text
        return f"[{primary_subtag(target)}] {text}"


class GoogleTranslateProvider(TranslationProvider):
    """Cloud Translation v2 REST API."""

    name = "google"

    def __init__(self, client: httpx.AsyncClient, api_key: str, url: str):
        self._client = client
        self._api_key = api_key
        self._url = url

    async def translate(self, text: str, source: str, target: str) -> str:
        if not self._api_key:
            raise TranslationFailed("Google Translate API key is not configured")
        try:
            response = await self._client.post(
                self._url,
                params={"key": self._api_key},
                json={
                    "q": text,
                    "source": primary_subtag(source),
                    "target": primary_subtag(target),
                    "format": "text",
                },
            )
        except httpx.HTTPError as e:
            raise TranslationFailed(f"Translation request failed: {e}") from e

        if response.status_code >= 400:
            raise TranslationFailed(
                f"Translation API error: {response.status_code} - {response.text}"
            )
        try:
            return response.json()["data"]["translations"][0]["translatedText"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TranslationFailed(f"Malformed translation response: {e}") from e


class NLLBProvider(TranslationProvider):
    """Local NLLB-200 model, loaded on first use."""

    name = "nllb"

    async def translate(self, text: str, source: str, target: str) -> str:
        from ayursutra.models.translator import LANG_MAP, load_translator

        src, tgt = primary_subtag(source), primary_subtag(target)
        if src not in LANG_MAP or tgt not in LANG_MAP:
            raise TranslationFailed(f"NLLB has no mapping for {source} -> {target}")

        translator = await model_manager.get_or_load("translator", load_translator)
        return await model_manager.run(translator.translate, text, src, tgt)


class TranslationBridge:
    """Translates between the session language and English.

    English -> English (and any same-language pair) is the identity and
    never touches the provider. Anything else goes through the provider
    and must come back non-empty; a failing provider raises
    TranslationFailed instead of handing back the untranslated text.
    """

    def __init__(self, provider: TranslationProvider, timeout_s: float | None = None):
        self.provider = provider
        self.timeout_s = timeout_s if timeout_s is not None else settings.translation_timeout_s

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        if is_english(target_lang) and is_english(source_lang):
            return text
        if same_language(source_lang, target_lang) or not text.strip():
            return text

        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self.provider.translate(text, source_lang, target_lang),
                timeout=self.timeout_s,
            )
        except TranslationFailed:
            TRANSLATION_REQUESTS.labels(provider=self.provider.name, status="error").inc()
            raise
        except asyncio.TimeoutError as e:
            TRANSLATION_REQUESTS.labels(provider=self.provider.name, status="timeout").inc()
            raise TranslationFailed(
                f"Translation {source_lang} -> {target_lang} timed out after {self.timeout_s}s"
            ) from e
        except Exception as e:
            TRANSLATION_REQUESTS.labels(provider=self.provider.name, status="error").inc()
            raise TranslationFailed(f"Translation provider error: {e}") from e

        if not result or not result.strip():
            TRANSLATION_REQUESTS.labels(provider=self.provider.name, status="empty").inc()
            raise TranslationFailed(
                f"Translation {source_lang} -> {target_lang} returned no text"
            )

        elapsed = time.perf_counter() - start
        TRANSLATION_REQUESTS.labels(provider=self.provider.name, status="ok").inc()
        PIPELINE_STAGE_DURATION.labels(stage="translate").observe(elapsed)
        logger.info(
            "[TRANSLATE] %s -> %s via %s (%dms)",
            source_lang, target_lang, self.provider.name, round(elapsed * 1000),
        )
        return result


def build_provider(name: str, client: httpx.AsyncClient | None = None) -> TranslationProvider:
    name = (name or "").lower()
    if name == "tagging":
        return TaggingProvider()
    if name == "google":
        return GoogleTranslateProvider(
            client or httpx.AsyncClient(),
            settings.google_translate_api_key,
            settings.google_translate_url,
        )
    if name == "nllb":
        return NLLBProvider()
    raise ValueError(f"Unknown translation provider: {name}")
