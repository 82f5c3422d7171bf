"""
Session history endpoints - list/search, create, detail, update, delete
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from typing import Optional
import logging

from browser_viewer.api.deps import get_coordinator, get_store
from browser_viewer.models.session import SessionSource
from browser_viewer.schemas.session import SessionCreate, SessionUpdate
from browser_viewer.services.session_coordinator import SessionCoordinator
from browser_viewer.services.session_store import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["sessions"])


@router.get("/sessions")
async def list_sessions(
    q: Optional[str] = Query(None, description="Substring of the name or creation date (YYYY-MM-DD)"),
    store: SessionStore = Depends(get_store)
):
    sessions = await store.search_sessions(q) if q else await store.list_sessions()
    return {"sessions": [s.model_dump(mode="json") for s in sessions]}


@router.post("/sessions", status_code=201)
async def create_session(
    body: SessionCreate,
    coordinator: SessionCoordinator = Depends(get_coordinator)
):
    """Create a session without making it the viewer's active one"""
    if not body.name or not body.name.strip():
        raise HTTPException(status_code=400, detail="Name is required")

    session = await coordinator.add_session(body.name.strip(), body.source or SessionSource.VIEWER)
    return {"session": session.model_dump(mode="json")}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_store)):
    """Session row plus its full action history in replay order"""
    session = await store.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    actions = await store.get_session_actions(session_id)
    return {
        "session": session.model_dump(mode="json"),
        "actions": [a.model_dump(mode="json") for a in actions],
    }


@router.patch("/sessions/{session_id}")
async def update_session(
    session_id: str,
    body: SessionUpdate,
    coordinator: SessionCoordinator = Depends(get_coordinator)
):
    if body.name is not None and not body.name.strip():
        raise HTTPException(status_code=400, detail="Name cannot be empty")

    try:
        session = await coordinator.update_session(
            session_id,
            name=body.name.strip() if body.name is not None else None,
            status=body.status
        )
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Another active session already uses this name")

    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"session": session.model_dump(mode="json")}


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    coordinator: SessionCoordinator = Depends(get_coordinator)
):
    """Delete the session, its actions and its screenshot directory"""
    if not await coordinator.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True}
