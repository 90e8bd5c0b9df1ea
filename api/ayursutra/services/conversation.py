import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ayursutra.config import settings
from ayursutra.errors import EmptyResponse
from ayursutra.middleware.metrics import (
    EXCHANGE_FAILURES,
    EXCHANGES,
    PIPELINE_STAGE_DURATION,
)
from ayursutra.services.language import is_english, is_valid_tag
from ayursutra.services.playback import SpeechPlaybackService
from ayursutra.services.safety import (
    DISCLAIMER,
    EMPTY_REPLY,
    apology_for,
    ensure_disclaimer,
    strip_disclaimer,
    vetted_disclaimer,
)
from ayursutra.services.translation import TranslationBridge

logger = logging.getLogger("ayursutra")

ENGLISH = "en-US"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    text: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "text": self.text}


class ExchangeStage(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    TRANSLATING_TO_ENGLISH = "translating_to_english"
    GENERATING = "generating"
    TRANSLATING_TO_SOURCE = "translating_to_source"


@dataclass
class Exchange:
    text: str
    language: str
    stage: ExchangeStage = ExchangeStage.SUBMITTING
    english_query: str | None = None
    english_reply: str | None = None
    reply: str | None = None


class GenerationClient(Protocol):
    async def generate(self, system_prompt: str, message: str) -> str: ...


class ConversationSession:
    """History, language and in-flight flag of one open assistant view."""

    def __init__(self, session_id: str, language: str = ENGLISH):
        self.session_id = session_id
        self.language = language
        self.in_flight = False
        self._history: list[ChatMessage] = []
        self.last_active = time.monotonic()

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        return tuple(self._history)

    def set_language(self, language: str):
        if not is_valid_tag(language):
            raise ValueError(f"Invalid language tag: {language!r}")
        self.language = language

    def record(self, message: ChatMessage):
        self._history.append(message)
        self.last_active = time.monotonic()


class ConversationOrchestrator:
    """Runs one exchange at a time for a session.

    user text -> (translate to English) -> generate -> (translate back)
    -> assistant message. Every exchange ends with exactly one assistant
    message: the reply, or an apology when any stage failed or the whole
    exchange exceeded ``exchange_timeout_s``.
    """

    def __init__(
        self,
        session: ConversationSession,
        bridge: TranslationBridge,
        llm: GenerationClient,
        system_prompt: str,
        exchange_timeout_s: float | None = None,
    ):
        self.session = session
        self.bridge = bridge
        self.llm = llm
        self.system_prompt = system_prompt
        self.exchange_timeout_s = (
            exchange_timeout_s if exchange_timeout_s is not None else settings.exchange_timeout_s
        )
        self.current: Exchange | None = None
        self._task: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self.session.in_flight

    async def submit(
        self, text: str, playback: SpeechPlaybackService | None = None
    ) -> ChatMessage | None:
        """Start an exchange and wait for its assistant message.

        Returns None without doing anything when the text is blank or an
        exchange is already running. Once started, the exchange runs to
        completion even if the caller stops waiting.
        """
        if self.session.in_flight or not text or not text.strip():
            return None

        self.session.in_flight = True
        exchange = Exchange(text=text, language=self.session.language)
        self.current = exchange
        self.session.record(ChatMessage(Role.USER, text))
        self._task = asyncio.ensure_future(self._run(exchange, playback))
        return await asyncio.shield(self._task)

    async def _run(self, exchange: Exchange, playback: SpeechPlaybackService | None) -> ChatMessage:
        start = time.perf_counter()
        try:
            try:
                reply = await asyncio.wait_for(
                    self._exchange(exchange), timeout=self.exchange_timeout_s
                )
                outcome = "ok"
            except Exception as e:
                stage = exchange.stage.value
                logger.warning(
                    "[EXCHANGE] %s failed at %s: %s: %s",
                    self.session.session_id, stage, type(e).__name__, e,
                )
                EXCHANGE_FAILURES.labels(stage=stage, error=type(e).__name__).inc()
                reply = apology_for(exchange.language)
                outcome = "fallback"

            message = ChatMessage(Role.ASSISTANT, reply)
            self.session.record(message)
            EXCHANGES.labels(outcome=outcome).inc()
            logger.info(
                "[EXCHANGE] %s %s in %dms",
                self.session.session_id, outcome, round((time.perf_counter() - start) * 1000),
            )
        finally:
            exchange.stage = ExchangeStage.IDLE
            self.session.in_flight = False
            self.current = None

        if playback is not None:
            playback.speak(message.text, exchange.language)
        return message

    async def _exchange(self, exchange: Exchange) -> str:
        language = exchange.language

        exchange.stage = ExchangeStage.TRANSLATING_TO_ENGLISH
        if is_english(language):
            exchange.english_query = exchange.text
        else:
            exchange.english_query = await self._timed(
                "translate_in", self.bridge.translate(exchange.text, language, ENGLISH)
            )

        exchange.stage = ExchangeStage.GENERATING
        try:
            reply = await self._timed(
                "generate", self.llm.generate(self.system_prompt, exchange.english_query)
            )
        except EmptyResponse:
            logger.warning("[EXCHANGE] Empty generation response, using placeholder")
            reply = EMPTY_REPLY
        exchange.english_reply = ensure_disclaimer(reply)

        exchange.stage = ExchangeStage.TRANSLATING_TO_SOURCE
        if is_english(language):
            exchange.reply = exchange.english_reply
        else:
            exchange.reply = await self._timed(
                "translate_out", self._localize(exchange.english_reply, language)
            )
        return exchange.reply

    async def _localize(self, english_reply: str, language: str) -> str:
        """Translate the reply body and re-attach the disclaimer in ``language``.

        Languages without a vetted disclaimer get it translated in its own
        call, so such an exchange makes three bridge calls instead of two.
        """
        body = strip_disclaimer(english_reply)
        translated = await self.bridge.translate(body, ENGLISH, language) if body else ""
        disclaimer = vetted_disclaimer(language)
        if disclaimer is None:
            disclaimer = await self.bridge.translate(DISCLAIMER, ENGLISH, language)
        return f"{translated} {disclaimer}".strip()

    @staticmethod
    async def _timed(stage: str, coro):
        start = time.perf_counter()
        result = await coro
        PIPELINE_STAGE_DURATION.labels(stage=stage).observe(time.perf_counter() - start)
        return result

    async def wait(self):
        """Wait for the running exchange, if any, to reach its terminal state."""
        if self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
