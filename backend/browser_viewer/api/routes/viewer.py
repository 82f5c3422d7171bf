"""
Viewer WebSocket - live status, screenshots and action stream; commands in
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from functools import partial
from typing import Set
import asyncio
from pydantic import ValidationError
import logging

from browser_viewer.api.deps import get_coordinator
from browser_viewer.schemas.events import (
    ClickAtMessage,
    CloseSessionMessage,
    CommandMessage,
    CreateSessionMessage,
    RenameSessionMessage,
    SnapshotRequestMessage,
    SwitchSessionMessage,
    client_message_adapter,
)
from browser_viewer.services.session_coordinator import SessionCoordinator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["viewer"])


async def dispatch(coordinator: SessionCoordinator, websocket: WebSocket, message) -> None:
    if isinstance(message, CommandMessage):
        await coordinator.run_command(message.command.strip(), nlp_input=message.original)
    elif isinstance(message, SnapshotRequestMessage):
        await coordinator.send_snapshot(websocket)
    elif isinstance(message, ClickAtMessage):
        await coordinator.click_at(message.x, message.y)
    elif isinstance(message, CreateSessionMessage):
        await coordinator.create_session(message.name.strip())
    elif isinstance(message, CloseSessionMessage):
        await coordinator.close_session()
    elif isinstance(message, SwitchSessionMessage):
        await coordinator.switch_session(message.session_id)
    elif isinstance(message, RenameSessionMessage):
        await coordinator.rename_session(message.name.strip())


def _log_failure(message_type: str, task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None and not isinstance(error, WebSocketDisconnect):
        logger.error(f"[Viewer] Handler for '{message_type}' failed: {error}", exc_info=error)


@router.websocket("/ws")
async def viewer_websocket(websocket: WebSocket):
    coordinator = get_coordinator(websocket)
    hub = coordinator.hub

    tasks: Set[asyncio.Task] = set()

    await hub.connect(websocket)
    try:
        await coordinator.handle_connect(websocket)

        # Each message runs as its own task, started in arrival order, so a slow
        # command does not hold up later messages from the same viewer
        while True:
            raw = await websocket.receive_text()

            try:
                message = client_message_adapter.validate_json(raw)
            except ValidationError as e:
                logger.warning(f"[Viewer] Ignoring malformed message {raw[:200]!r}: {e.error_count()} errors")
                continue

            task = asyncio.create_task(dispatch(coordinator, websocket, message))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
            task.add_done_callback(partial(_log_failure, message.type))

    except WebSocketDisconnect:
        logger.info("[Viewer] WebSocket disconnected")
    except Exception as e:
        logger.error(f"[Viewer] WebSocket error: {e}")
    finally:
        hub.disconnect(websocket)
        for task in list(tasks):
            task.cancel()
