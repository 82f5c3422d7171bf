"""
Stored screenshot files, served from the session screenshot root only
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
import logging

from browser_viewer.api.deps import get_coordinator
from browser_viewer.services.screenshot_service import ForbiddenPathError
from browser_viewer.services.session_coordinator import SessionCoordinator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["screenshots"])


@router.get("/screenshots/{file_path:path}")
async def serve_screenshot(
    file_path: str,
    coordinator: SessionCoordinator = Depends(get_coordinator)
):
    """Serve ``<session_id>/<filename>`` as stored on an action's screenshot_path"""
    try:
        full_path = coordinator.screenshots.resolve(file_path)
    except ForbiddenPathError:
        logger.warning(f"[Screenshots] Rejected path outside root: {file_path!r}")
        raise HTTPException(status_code=403, detail="Forbidden")

    if not full_path.is_file():
        raise HTTPException(status_code=404, detail="Not found")

    return FileResponse(
        path=str(full_path),
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=31536000, immutable"}
    )
