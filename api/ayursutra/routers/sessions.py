import logging

from fastapi import APIRouter, HTTPException, Response

from ayursutra.dependencies import SessionDep
from ayursutra.schemas.session import LanguageUpdate, SessionCreate, SessionResponse
from ayursutra.services.conversation import ConversationOrchestrator

logger = logging.getLogger("ayursutra")
router = APIRouter()


def session_response(orchestrator: ConversationOrchestrator) -> SessionResponse:
    session = orchestrator.session
    return SessionResponse(
        session_id=session.session_id,
        language=session.language,
        in_flight=session.in_flight,
        history=[m.to_dict() for m in session.history],
    )


def get_or_404(session_mgr, session_id: str) -> ConversationOrchestrator:
    orchestrator = session_mgr.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return orchestrator


@router.post("/sessions", response_model=SessionResponse, status_code=201, summary="Open the assistant")
async def create_session(req: SessionCreate, session_mgr: SessionDep):
    """Opens an empty conversation, optionally in a given language.

    **Example:** `{"language": "hi-IN"}`
    """
    try:
        orchestrator = session_mgr.create(req.language)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return session_response(orchestrator)


@router.get("/sessions/{session_id}", response_model=SessionResponse, summary="Conversation state")
async def get_session(session_id: str, session_mgr: SessionDep):
    return session_response(get_or_404(session_mgr, session_id))


@router.put("/sessions/{session_id}/language", response_model=SessionResponse, summary="Change language")
async def set_language(session_id: str, req: LanguageUpdate, session_mgr: SessionDep):
    """Switches the session language. An exchange already running keeps
    the language it started with.
    """
    orchestrator = get_or_404(session_mgr, session_id)
    try:
        orchestrator.session.set_language(req.language)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return session_response(orchestrator)


@router.delete("/sessions/{session_id}", status_code=204, summary="Close the assistant")
async def delete_session(session_id: str, session_mgr: SessionDep):
    """Discards the conversation. Nothing is kept."""
    if not session_mgr.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)
