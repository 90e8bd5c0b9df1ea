import logging
import time

from fastapi import APIRouter, HTTPException

from ayursutra.config import settings
from ayursutra.dependencies import SessionDep
from ayursutra.schemas.chat import ChatRequest, ChatResponse

logger = logging.getLogger("ayursutra")
router = APIRouter()


@router.post("/chat", response_model=ChatResponse, summary="Ask the assistant")
async def chat(req: ChatRequest, session_mgr: SessionDep):
    """Sends a typed message and waits for the assistant's reply.

    Non-English messages are translated to English for the model and the
    reply is translated back. If anything fails along the way the reply is
    a short apology rather than an error.

    Returns `409` while a previous message of the same session is still
    being answered.

    **Example:** `{"message": "मुझे तनाव है", "language": "hi-IN"}`
    """
    if not req.message or not req.message.strip():
        raise HTTPException(status_code=422, detail="Message must not be empty")
    if len(req.message) > settings.message_max_chars:
        raise HTTPException(
            status_code=422,
            detail=f"Message exceeds {settings.message_max_chars} character limit",
        )

    orchestrator = None
    if req.session_id is not None:
        orchestrator = session_mgr.get(req.session_id)
    try:
        if orchestrator is None:
            orchestrator = session_mgr.create(req.language)
        elif req.language:
            orchestrator.session.set_language(req.language)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if orchestrator.in_flight:
        raise HTTPException(status_code=409, detail="Still answering the previous message")

    start = time.perf_counter()
    reply = await orchestrator.submit(req.message)
    processing_ms = (time.perf_counter() - start) * 1000
    if reply is None:
        raise HTTPException(status_code=409, detail="Still answering the previous message")

    session = orchestrator.session
    return ChatResponse(
        reply=reply.text,
        session_id=session.session_id,
        language=session.language,
        history=[m.to_dict() for m in session.history],
        in_flight=session.in_flight,
        processing_ms=round(processing_ms),
    )
