import abc
import asyncio
import logging
import re
import textwrap
import time
from typing import Awaitable, Callable

from ayursutra.config import settings
from ayursutra.errors import CapabilityUnavailable, Unsupported
from ayursutra.middleware.metrics import PIPELINE_STAGE_DURATION, SPEECH_PLAYBACKS
from ayursutra.models.model_manager import model_manager
from ayursutra.services.language import primary_subtag

logger = logging.getLogger("ayursutra")

AudioSink = Callable[[bytes, str, str], Awaitable[None]]
Notifier = Callable[[str], Awaitable[None]]

TTS_UNAVAILABLE = "Sorry, text-to-speech is not available."

# Latin and Devanagari sentence ends
_SENTENCE_END = re.compile(r"(?<=[.!?।])\s+")


def split_for_speech(text: str, max_chars: int) -> list[str]:
    """Split text into chunks of at most ``max_chars``, on sentence ends where possible.

    Nothing is dropped: joining the chunks with spaces gives back the text
    (modulo whitespace), so the trailing disclaimer is always spoken.
    """
    chunks: list[str] = []
    current = ""
    for sentence in _SENTENCE_END.split(text.strip()):
        for piece in textwrap.wrap(sentence, max_chars):
            if current and len(current) + 1 + len(piece) <= max_chars:
                current = f"{current} {piece}"
            else:
                if current:
                    chunks.append(current)
                current = piece
    if current:
        chunks.append(current)
    return chunks


class SpeechSynthesizer(abc.ABC):
    available = True

    @abc.abstractmethod
    async def synthesize(self, text: str, language: str) -> bytes:
        """Render text as WAV bytes."""


class UnavailableSynthesizer(SpeechSynthesizer):
    available = False

    async def synthesize(self, text: str, language: str) -> bytes:
        raise CapabilityUnavailable(TTS_UNAVAILABLE)


class MMSSynthesizer(SpeechSynthesizer):
    """One MMS-TTS voice per primary language subtag, loaded on demand."""

    def __init__(self, voices: dict[str, str], max_chars: int):
        self.voices = voices
        self.max_chars = max_chars

    async def synthesize(self, text: str, language: str) -> bytes:
        from ayursutra.models.tts import tts_loader

        lang = primary_subtag(language)
        model_id = self.voices.get(lang)
        if model_id is None:
            raise Unsupported(f"No voice for {language}", language=language)

        tts = await model_manager.get_or_load(f"tts:{lang}", tts_loader(model_id))
        chunks = split_for_speech(text, self.max_chars)
        if not chunks:
            raise ValueError("Nothing to speak")
        return await model_manager.run(tts.synthesize, chunks)


def build_synthesizer() -> SpeechSynthesizer:
    if not settings.tts_enabled:
        return UnavailableSynthesizer()
    return MMSSynthesizer(settings.tts_models, settings.tts_max_chars)


class SpeechPlaybackService:
    """Fire-and-forget speech output.

    ``speak`` only enqueues. A single worker renders the queue in order
    and hands each clip to ``sink``; failures become notices and never
    reach the caller.
    """

    def __init__(self, synthesizer: SpeechSynthesizer, sink: AudioSink, notify: Notifier):
        self._synthesizer = synthesizer
        self._sink = sink
        self._notify = notify
        self._queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    def speak(self, text: str, language: str) -> None:
        if not self._synthesizer.available:
            self._schedule_notice(TTS_UNAVAILABLE)
            return
        self._queue.put_nowait((text, language))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.ensure_future(self._run())

    async def _run(self):
        while True:
            text, language = await self._queue.get()
            try:
                start = time.perf_counter()
                audio = await self._synthesizer.synthesize(text, language)
                elapsed = time.perf_counter() - start
                PIPELINE_STAGE_DURATION.labels(stage="tts").observe(elapsed)
                logger.info("[TTS] %s: %d bytes (%dms)", language, len(audio), round(elapsed * 1000))
                await self._sink(audio, text, language)
                SPEECH_PLAYBACKS.labels(status="ok").inc()
            except Unsupported:
                SPEECH_PLAYBACKS.labels(status="unsupported").inc()
                await self._notify(
                    f"Sorry, spoken replies are not available for {language}."
                )
            except CapabilityUnavailable as e:
                SPEECH_PLAYBACKS.labels(status="unavailable").inc()
                await self._notify(str(e))
            except Exception as e:
                SPEECH_PLAYBACKS.labels(status="error").inc()
                logger.error("[TTS] Playback failed: %s", e, exc_info=True)
                await self._notify("Sorry, the reply could not be read aloud.")
            finally:
                self._queue.task_done()

    def _schedule_notice(self, message: str):
        task = asyncio.ensure_future(self._notify(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self):
        """Wait until everything spoken so far has been rendered."""
        await self._queue.join()
        if self._pending:
            await asyncio.gather(*self._pending)

    def close(self):
        if self._worker is not None:
            self._worker.cancel()
            self._worker = None
