import logging
import time

from fastapi import APIRouter, HTTPException

from ayursutra.dependencies import BridgeDep
from ayursutra.errors import TranslationFailed
from ayursutra.schemas.translate import TranslateRequest, TranslateResponse
from ayursutra.services.language import is_valid_tag

logger = logging.getLogger("ayursutra")
router = APIRouter()


@router.post("/translate", response_model=TranslateResponse, summary="Translate text")
async def translate(req: TranslateRequest, bridge: BridgeDep):
    """Runs the translation bridge directly.

    English to English is returned as is.

    **Example:** `{"text": "Drink warm water", "source": "en-US", "target": "mr-IN"}`
    """
    for tag in (req.source, req.target):
        if not is_valid_tag(tag):
            raise HTTPException(status_code=422, detail=f"Invalid language tag: {tag!r}")

    start = time.perf_counter()
    try:
        translation = await bridge.translate(req.text, req.source, req.target)
    except TranslationFailed as e:
        logger.warning("Translation failed: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    processing_ms = (time.perf_counter() - start) * 1000

    return TranslateResponse(
        translation=translation,
        source=req.source,
        target=req.target,
        provider=bridge.provider.name,
        processing_ms=round(processing_ms),
    )
