"""Voice capture: one utterance per activation.

A ``SpeechRecognizer`` is the platform capability. It is either available
(``WhisperRecognizer``, fed with PCM frames from the client) or not
(``UnavailableRecognizer``). The ``VoiceCaptureController`` owns it and
runs at most one capture at a time, with toggle semantics: activating
while listening stops the capture without producing a transcript.
"""

import abc
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np

from ayursutra.config import settings
from ayursutra.errors import (
    AssistantError,
    CapabilityUnavailable,
    CapturedEmpty,
    LanguageNotSupported,
    RecognitionError,
    Unsupported,
)
from ayursutra.middleware.metrics import VOICE_CAPTURES
from ayursutra.models.model_manager import model_manager
from ayursutra.services.audio import (
    SAMPLE_RATE,
    AudioValidationError,
    duration_s,
    pcm_bytes_to_float32,
)
from ayursutra.services.language import is_english, primary_subtag

logger = logging.getLogger("ayursutra")

# ~640ms of silence at 320ms chunks ends the utterance
SILENCE_CHUNKS_TO_END = 2


class VoiceState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


class Recognition(abc.ABC):
    """A single, non-continuous recognition attempt."""

    def feed(self, pcm: bytes) -> None:
        pass

    def finish(self) -> None:
        pass

    @abc.abstractmethod
    async def run(self) -> str | None:
        """Return the best transcript, or None when no speech was heard."""

    def close(self) -> None:
        pass


class SpeechRecognizer(abc.ABC):
    available = True

    @abc.abstractmethod
    def start(self, language: str) -> Recognition:
        """Begin a recognition in ``language``; raises Unsupported if rejected."""


class UnavailableRecognizer(SpeechRecognizer):
    available = False

    def start(self, language: str) -> Recognition:
        raise CapabilityUnavailable("Sorry, voice recognition is not available.")


class UtteranceBuffer:
    """Accumulates PCM chunks and detects end-of-speech via silence."""

    def __init__(self):
        self.chunks: list[np.ndarray] = []
        self.silence_frames = 0
        self.speech_started = False

    def add_chunk(self, pcm: np.ndarray, is_speech: bool) -> bool:
        """Add a chunk. Returns True when the utterance is complete."""
        if is_speech:
            self.speech_started = True
            self.silence_frames = 0
            self.chunks.append(pcm)
        elif self.speech_started:
            self.silence_frames += 1
            self.chunks.append(pcm)
            if self.silence_frames >= SILENCE_CHUNKS_TO_END:
                return True
        return False

    @property
    def samples(self) -> int:
        return sum(len(c) for c in self.chunks)

    def get_audio(self) -> np.ndarray:
        if not self.chunks:
            return np.array([], dtype=np.float32)
        return np.concatenate(self.chunks)


class WhisperRecognition(Recognition):
    def __init__(self, language: str, min_speech_s: float, max_utterance_s: float):
        self.language = language
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._buffer = UtteranceBuffer()
        self._min_samples = int(min_speech_s * SAMPLE_RATE)
        self._max_samples = int(max_utterance_s * SAMPLE_RATE)

    def feed(self, pcm: bytes) -> None:
        self._queue.put_nowait(pcm)

    def finish(self) -> None:
        self._queue.put_nowait(None)

    async def run(self) -> str | None:
        from ayursutra.models.stt import load_stt
        from ayursutra.models.vad import load_vad

        vad = await model_manager.get_or_load("vad", load_vad)
        stt = await model_manager.get_or_load("stt", load_stt)

        while True:
            data = await self._queue.get()
            if data is None:
                break
            try:
                pcm = pcm_bytes_to_float32(data)
            except AudioValidationError as e:
                raise RecognitionError(str(e)) from e
            is_speech = await asyncio.to_thread(vad.is_speech, pcm)
            if self._buffer.add_chunk(pcm, is_speech):
                break
            if self._buffer.samples >= self._max_samples:
                logger.info("[VOICE] Utterance hit %.0fs limit", self._max_samples / SAMPLE_RATE)
                break

        if not self._buffer.speech_started or self._buffer.samples < self._min_samples:
            return None

        audio = self._buffer.get_audio()
        logger.info("[VOICE] Transcribing %.1fs of audio (%s)", duration_s(audio), self.language)
        return await model_manager.run(stt.transcribe, audio, self.language)


class WhisperRecognizer(SpeechRecognizer):
    def __init__(self, languages: list[str], min_speech_s: float, max_utterance_s: float):
        self.languages = {primary_subtag(lang) for lang in languages}
        self.min_speech_s = min_speech_s
        self.max_utterance_s = max_utterance_s

    def start(self, language: str) -> Recognition:
        lang = primary_subtag(language)
        if lang not in self.languages:
            raise Unsupported(f"No speech recognition for {language}", language=language)
        return WhisperRecognition(lang, self.min_speech_s, self.max_utterance_s)


def build_recognizer() -> SpeechRecognizer:
    if not settings.voice_enabled:
        return UnavailableRecognizer()
    return WhisperRecognizer(
        settings.recognition_languages, settings.min_speech_s, settings.max_utterance_s
    )


@dataclass
class VoiceSession:
    language: str
    recognition: Recognition
    task: asyncio.Task


StateListener = Callable[[VoiceState, str | None], None]


class VoiceCaptureController:
    def __init__(self, recognizer: SpeechRecognizer, on_state: StateListener | None = None):
        self._recognizer = recognizer
        self._on_state = on_state
        self._session: VoiceSession | None = None

    @property
    def state(self) -> VoiceState:
        return VoiceState.LISTENING if self._session is not None else VoiceState.IDLE

    @property
    def is_listening(self) -> bool:
        return self._session is not None

    @property
    def language(self) -> str | None:
        return self._session.language if self._session else None

    def feed(self, pcm: bytes) -> None:
        """Pass client audio to the active capture; dropped while idle."""
        if self._session is not None:
            self._session.recognition.feed(pcm)

    def end_utterance(self) -> None:
        if self._session is not None:
            self._session.recognition.finish()

    def cancel(self) -> None:
        if self._session is not None:
            logger.info("[VOICE] Capture cancelled (%s)", self._session.language)
            self._session.task.cancel()

    async def activate(self, language: str) -> str | None:
        """Capture one utterance and return its transcript.

        Returns None when the capture was cancelled, including when this
        call itself toggled off a capture in progress.
        """
        if self._session is not None:
            self.cancel()
            return None

        if not self._recognizer.available:
            VOICE_CAPTURES.labels(outcome="unavailable").inc()
            raise CapabilityUnavailable("Sorry, voice recognition is not available.")

        try:
            recognition = self._recognizer.start(language)
        except Unsupported as e:
            VOICE_CAPTURES.labels(outcome="unsupported").inc()
            if is_english(language):
                raise
            raise LanguageNotSupported(language) from e
        except AssistantError:
            raise
        except Exception as e:
            VOICE_CAPTURES.labels(outcome="error").inc()
            raise RecognitionError(f"Speech recognition start error: {e}") from e

        session = VoiceSession(language, recognition, asyncio.ensure_future(recognition.run()))
        self._session = session
        logger.info("[VOICE] Listening (%s)", language)
        self._notify(VoiceState.LISTENING, language)

        try:
            await asyncio.wait({session.task})
        finally:
            if not session.task.done():
                session.task.cancel()
            if self._session is session:
                self._session = None
            recognition.close()
            self._notify(VoiceState.IDLE, None)

        if session.task.cancelled():
            VOICE_CAPTURES.labels(outcome="cancelled").inc()
            return None

        exc = session.task.exception()
        if isinstance(exc, Unsupported):
            VOICE_CAPTURES.labels(outcome="unsupported").inc()
            if is_english(language) or isinstance(exc, LanguageNotSupported):
                raise exc
            raise LanguageNotSupported(language) from exc
        if isinstance(exc, AssistantError):
            VOICE_CAPTURES.labels(outcome="error").inc()
            raise exc
        if exc is not None:
            VOICE_CAPTURES.labels(outcome="error").inc()
            logger.error("[VOICE] Speech recognition error: %s", exc)
            raise RecognitionError(str(exc)) from exc

        transcript = (session.task.result() or "").strip()
        if not transcript:
            VOICE_CAPTURES.labels(outcome="empty").inc()
            raise CapturedEmpty("No speech was detected.")

        VOICE_CAPTURES.labels(outcome="ok").inc()
        return transcript

    def _notify(self, state: VoiceState, language: str | None):
        if self._on_state is not None:
            self._on_state(state, language)

    def close(self) -> None:
        self.cancel()
