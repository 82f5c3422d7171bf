from fastapi import APIRouter, Depends

from browser_viewer.api.deps import get_coordinator
from browser_viewer.services.session_coordinator import SessionCoordinator

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/status")
async def get_status(coordinator: SessionCoordinator = Depends(get_coordinator)):
    """Point-in-time live state for callers that do not hold a WebSocket"""
    state = coordinator.state
    return {
        **state.status_payload().model_dump(by_alias=True),
        "actionsCount": len(state.actions),
        "activeSessionId": state.active_session_id,
        "viewers": coordinator.hub.viewer_count,
    }
