import logging
import time
import uuid

from ayursutra.config import settings
from ayursutra.middleware.metrics import ACTIVE_SESSIONS
from ayursutra.services.conversation import ConversationOrchestrator, ConversationSession, GenerationClient
from ayursutra.services.translation import TranslationBridge

logger = logging.getLogger("ayursutra")


class SessionManager:
    """In-memory registry of open assistant views.

    Sessions are never persisted: they go away on delete, or once idle
    for longer than ``ttl_s`` with no exchange running.
    """

    def __init__(
        self,
        bridge: TranslationBridge,
        llm: GenerationClient,
        system_prompt: str,
        ttl_s: int | None = None,
    ):
        self._bridge = bridge
        self._llm = llm
        self._system_prompt = system_prompt
        self._ttl_s = ttl_s if ttl_s is not None else settings.session_ttl_s
        self._sessions: dict[str, ConversationOrchestrator] = {}

    def create(self, language: str | None = None) -> ConversationOrchestrator:
        session = ConversationSession(str(uuid.uuid4()))
        session.set_language(language or settings.default_language)
        orchestrator = ConversationOrchestrator(
            session, self._bridge, self._llm, self._system_prompt
        )
        self._sessions[session.session_id] = orchestrator
        ACTIVE_SESSIONS.set(len(self._sessions))
        logger.info("Session created: %s (%s)", session.session_id, session.language)
        return orchestrator

    def get(self, session_id: str) -> ConversationOrchestrator | None:
        self.purge_expired()
        orchestrator = self._sessions.get(session_id)
        if orchestrator is not None:
            orchestrator.session.last_active = time.monotonic()
        return orchestrator

    def exists(self, session_id: str) -> bool:
        return self.get(session_id) is not None

    def delete(self, session_id: str) -> bool:
        orchestrator = self._sessions.pop(session_id, None)
        ACTIVE_SESSIONS.set(len(self._sessions))
        if orchestrator is None:
            return False
        logger.info("Session closed: %s", session_id)
        return True

    def purge_expired(self) -> int:
        now = time.monotonic()
        expired = [
            sid for sid, orch in self._sessions.items()
            if not orch.in_flight and now - orch.session.last_active > self._ttl_s
        ]
        for sid in expired:
            del self._sessions[sid]
            logger.info("Session expired: %s", sid)
        if expired:
            ACTIVE_SESSIONS.set(len(self._sessions))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
