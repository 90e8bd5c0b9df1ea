import asyncio

import pytest

from ayursutra.errors import Unsupported
from ayursutra.services.conversation import ConversationOrchestrator, ConversationSession
from ayursutra.services.language import primary_subtag
from ayursutra.services.playback import SpeechSynthesizer
from ayursutra.services.safety import DISCLAIMER
from ayursutra.services.translation import TranslationBridge, TranslationProvider
from ayursutra.services.voice import Recognition, SpeechRecognizer

REPLY = f"Try slow, deep breathing before your Shirodhara session. {DISCLAIMER}"


class RecordingProvider(TranslationProvider):
    name = "recording"

    def __init__(self, calls: list, fail: bool = False):
        self.calls = calls
        self.fail = fail

    async def translate(self, text, source, target):
        self.calls.append(("translate", source, target, text))
        if self.fail:
            raise RuntimeError("provider down")
        return f"[{target}] {text}"


class StubLLM:
    def __init__(self, calls: list, reply: str = REPLY, error: Exception | None = None):
        self.calls = calls
        self.reply = reply
        self.error = error
        self.gate: asyncio.Event | None = None
        self.prompts: list[str] = []

    async def generate(self, system_prompt, message):
        self.calls.append(("generate", message))
        self.prompts.append(system_prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


class StubRecognition(Recognition):
    def __init__(self, transcript, error):
        self.transcript = transcript
        self.error = error
        self.frames: list[bytes] = []
        self.closed = False
        self._done = asyncio.Event()

    def feed(self, pcm):
        self.frames.append(pcm)

    def finish(self):
        self._done.set()

    async def run(self):
        await self._done.wait()
        if self.error is not None:
            raise self.error
        return self.transcript

    def close(self):
        self.closed = True


class StubRecognizer(SpeechRecognizer):
    def __init__(self, languages=("en",), transcript="I feel stressed", error=None):
        self.languages = set(languages)
        self.transcript = transcript
        self.error = error
        self.started: list[StubRecognition] = []

    def start(self, language):
        if primary_subtag(language) not in self.languages:
            raise Unsupported(f"No recognition for {language}", language=language)
        recognition = StubRecognition(self.transcript, self.error)
        self.started.append(recognition)
        return recognition


class StubSynthesizer(SpeechSynthesizer):
    def __init__(self, fail_on: set[str] | None = None):
        self.spoken: list[tuple[str, str]] = []
        self.fail_on = fail_on or set()

    async def synthesize(self, text, language):
        if text in self.fail_on:
            raise RuntimeError("vocoder crashed")
        self.spoken.append((text, language))
        return b"RIFF" + text.encode()


@pytest.fixture
def calls():
    return []


@pytest.fixture
def make_orchestrator(calls):
    def make(language="en-US", reply=REPLY, error=None, translate_fail=False, timeout=5.0):
        llm = StubLLM(calls, reply=reply, error=error)
        bridge = TranslationBridge(RecordingProvider(calls, fail=translate_fail), timeout_s=timeout)
        session = ConversationSession("test-session", language)
        orchestrator = ConversationOrchestrator(
            session, bridge, llm, "system prompt", exchange_timeout_s=timeout
        )
        return orchestrator, llm

    return make


async def wait_until(predicate, attempts: int = 200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
