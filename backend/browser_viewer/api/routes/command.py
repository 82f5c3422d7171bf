"""
Direct command execution and natural-language translation
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
import logging

from browser_viewer import config
from browser_viewer.api.deps import get_coordinator, get_translator
from browser_viewer.schemas.session import CommandRequest, NlpRequest
from browser_viewer.services.nlp_translator import NlpTranslator, TranslationError
from browser_viewer.services.session_coordinator import SessionCoordinator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["command"])


@router.post("/command")
async def run_command(
    body: CommandRequest,
    coordinator: SessionCoordinator = Depends(get_coordinator)
):
    """Run a CLI command directly: no broadcast, no history"""
    if not body.command or not body.command.strip():
        raise HTTPException(status_code=400, detail="Command is required")

    output = await coordinator.executor.execute(body.command.strip(), max_output=config.DIRECT_MAX_OUTPUT_BYTES)
    payload = {"stdout": output.stdout, "stderr": output.stderr}
    if not output.ok:
        return JSONResponse(status_code=500, content=payload)
    return payload


@router.post("/nlp")
async def translate(
    body: NlpRequest,
    translator: NlpTranslator = Depends(get_translator)
):
    if not body.input or not body.input.strip():
        raise HTTPException(status_code=400, detail="Input is required")

    try:
        translation = await translator.translate(body.input, snapshot=body.snapshot)
    except TranslationError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if translation.type == "direct":
        return {"type": "direct", "command": translation.command}
    return {"type": "nlp", "original": translation.original, "command": translation.command}
