import asyncio
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from ayursutra.dependencies import RecognizerDep, SessionDep, SynthesizerDep
from ayursutra.errors import (
    CapabilityUnavailable,
    CapturedEmpty,
    RecognitionError,
    Unsupported,
)
from ayursutra.middleware.metrics import ACTIVE_WEBSOCKETS
from ayursutra.services.audio import wav_to_base64
from ayursutra.services.conversation import ConversationOrchestrator
from ayursutra.services.playback import SpeechPlaybackService, SpeechSynthesizer
from ayursutra.services.voice import SpeechRecognizer, VoiceCaptureController, VoiceState

logger = logging.getLogger("ayursutra")
router = APIRouter()

NOT_HEARD = "Sorry, I didn't catch that. Please try again."
VOICE_FAILED = "Sorry, voice input stopped unexpectedly. Please try again or type your question."
STILL_ANSWERING = "Please wait, I'm still answering your previous message."


class ConversationConnection:
    """One open assistant view: text, voice capture and spoken replies."""

    def __init__(
        self,
        ws: WebSocket,
        orchestrator: ConversationOrchestrator,
        recognizer: SpeechRecognizer,
        synthesizer: SpeechSynthesizer,
    ):
        self.ws = ws
        self.orchestrator = orchestrator
        self.voice = VoiceCaptureController(recognizer, on_state=self.on_voice_state)
        self.playback = SpeechPlaybackService(synthesizer, self.play, self.notice)
        self._tasks: set[asyncio.Task] = set()

    @property
    def session(self):
        return self.orchestrator.session

    async def send(self, event: dict):
        try:
            await self.ws.send_json(event)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug("Dropped %s event on closed socket: %s", event.get("type"), e)

    async def notice(self, text: str):
        await self.send({"type": "notice", "text": text})

    async def play(self, audio: bytes, text: str, language: str):
        await self.send({
            "type": "reply_audio",
            "audio": wav_to_base64(audio),
            "text": text,
            "language": language,
        })

    def spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def send_history(self):
        await self.send({
            "type": "history",
            "history": [m.to_dict() for m in self.session.history],
        })

    async def ask(self, text: str, speak: bool):
        if self.voice.is_listening:
            await self.notice("Please finish or stop voice input first.")
            return
        if self.orchestrator.in_flight:
            await self.reject_busy()
            return
        if not text or not text.strip():
            return
        self.spawn(self._exchange(text, speak))

    async def reject_busy(self):
        await self.send({"type": "busy", "value": True})
        await self.notice(STILL_ANSWERING)

    async def _exchange(self, text: str, speak: bool):
        await self.send({"type": "busy", "value": True})
        reply = await self.orchestrator.submit(text, self.playback if speak else None)
        if reply is None:
            # another message got the exchange first, it will clear busy
            await self.notice(STILL_ANSWERING)
            return
        await self.send({"type": "reply_text", "text": reply.text, "language": self.session.language})
        await self.send_history()
        await self.send({"type": "busy", "value": False})

    def toggle_listening(self):
        if self.voice.is_listening:
            self.voice.cancel()
            return
        self.spawn(self._capture(self.session.language))

    def on_voice_state(self, state: VoiceState, language: str | None):
        self.spawn(self.send({
            "type": "listening",
            "value": state == VoiceState.LISTENING,
            "language": language,
        }))

    async def _capture(self, language: str):
        transcript = None
        try:
            transcript = await self.voice.activate(language)
        except Unsupported as e:
            await self.notice(str(e))
        except CapabilityUnavailable as e:
            await self.notice(str(e))
        except CapturedEmpty:
            await self.notice(NOT_HEARD)
        except RecognitionError as e:
            logger.warning("[VOICE] Recognition error: %s", e)
            await self.notice(VOICE_FAILED)

        if transcript:
            await self.send({"type": "transcript", "text": transcript, "language": language})

    async def handle_text(self, raw: str):
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await self.send({"type": "error", "error": "Invalid JSON"})
            return

        kind = msg.get("type")
        if kind == "message":
            await self.ask(msg.get("text", ""), bool(msg.get("speak", False)))
        elif kind == "listen":
            self.toggle_listening()
        elif kind == "end":
            self.voice.end_utterance()
        elif kind == "language":
            try:
                self.session.set_language(str(msg.get("value", "")))
            except ValueError as e:
                await self.send({"type": "error", "error": str(e)})
                return
            await self.send({"type": "language", "value": self.session.language})
        else:
            await self.send({"type": "error", "error": f"Unknown message type: {kind}"})

    async def close(self):
        self.voice.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.playback.close()


@router.websocket("/conversation")
async def conversation_ws(
    ws: WebSocket,
    session_mgr: SessionDep,
    recognizer: RecognizerDep,
    synthesizer: SynthesizerDep,
    session_id: str = Query(default=""),
    language: str = Query(default=""),
):
    await ws.accept()
    ACTIVE_WEBSOCKETS.inc()

    orchestrator = session_mgr.get(session_id) if session_id else None
    if orchestrator is None:
        try:
            orchestrator = session_mgr.create(language or None)
        except ValueError as e:
            await ws.send_json({"type": "error", "error": str(e)})
            await ws.close(code=4002, reason="Invalid language")
            ACTIVE_WEBSOCKETS.dec()
            return

    conn = ConversationConnection(ws, orchestrator, recognizer, synthesizer)
    sid = orchestrator.session.session_id

    await conn.send({"type": "session", "session_id": sid, "language": orchestrator.session.language})
    await conn.send_history()

    try:
        while True:
            data = await ws.receive()
            if data["type"] == "websocket.disconnect":
                break
            if data.get("text") is not None:
                await conn.handle_text(data["text"])
            elif data.get("bytes") is not None:
                conn.voice.feed(data["bytes"])

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error: %s", e, exc_info=True)
        await conn.send({"type": "error", "error": "Internal error"})
    finally:
        logger.info("WebSocket disconnected: %s", sid)
        await conn.close()
        session_mgr.delete(sid)
        ACTIVE_WEBSOCKETS.dec()
