"""
Command injection for non-viewer callers (chat assistants, scheduled jobs)
"""

from fastapi import APIRouter, Depends, HTTPException
import logging

from browser_viewer.api.deps import get_coordinator
from browser_viewer.models.session import SessionSource
from browser_viewer.schemas.session import HookRequest, HookResponse
from browser_viewer.services.session_coordinator import SessionCoordinator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["hook"])


@router.post("/hook", response_model=HookResponse, response_model_exclude_none=True)
async def run_hook(
    body: HookRequest,
    coordinator: SessionCoordinator = Depends(get_coordinator)
):
    """
    Run a command inside the named active session, creating it if needed.
    The command goes through the same protocol as viewer commands, so every
    connected viewer sees it live.
    """
    if not body.command or not body.command.strip():
        raise HTTPException(status_code=400, detail="command is required")
    if not body.sessionName or not body.sessionName.strip():
        raise HTTPException(status_code=400, detail="sessionName is required")

    source = SessionSource.CRON if body.source == "cron" else SessionSource.CHAT
    outcome = await coordinator.run_hook(body.sessionName.strip(), body.command.strip(), source)
    action = outcome.action

    logger.info(f"[Hook] {source.value} ran {action.command!r} in '{outcome.session.name}'")
    return HookResponse(
        ok=True,
        session_id=outcome.session.id,
        action_id=action.persisted_id,
        result=action.result,
        error=action.error,
        screenshot_path=action.screenshot_path,
    )
