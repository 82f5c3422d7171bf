"""
Session Coordinator - ties command execution, live state, persistence and
viewer broadcast together.

Handlers run on the event loop and suspend at every CLI call, file access and
store query, so commands from different viewers (or the hook endpoint) can
interleave. There is no lock around the browser or the live state: the last
writer wins. Store failures propagate out of the handler that hit them, after
the live state was left as it was; CLI failures are only ever recorded on the
action's ``error``.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from fastapi import WebSocket

from browser_viewer import config
from browser_viewer.models.session import SessionSource, SessionStatus
from browser_viewer.schemas.events import (
    ActionEvent,
    ActionUpdateEvent,
    ActionsClearEvent,
    ScreenshotEvent,
    SessionInfoEvent,
    SessionsListEvent,
    SnapshotEvent,
    StatusEvent,
    command_type,
)
from browser_viewer.schemas.session import SessionOut
from browser_viewer.services.command_executor import CommandExecutor, CommandOutput, PageOpen
from browser_viewer.services.live_state import LiveAction, LiveState
from browser_viewer.services.screenshot_service import ScreenshotCapturer, ScreenshotStore
from browser_viewer.services.session_store import SessionStore
from browser_viewer.services.viewer_hub import ViewerHub

logger = logging.getLogger(__name__)

SNAPSHOT_COMMAND = "snapshot -i -c"


@dataclass
class HookOutcome:
    session: SessionOut
    action: LiveAction


def _provisional_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class SessionCoordinator:
    def __init__(
        self,
        store: SessionStore,
        executor: CommandExecutor,
        capturer: ScreenshotCapturer,
        screenshots: ScreenshotStore,
        hub: ViewerHub,
        state: Optional[LiveState] = None,
        click_settle_delay: float = config.CLICK_SETTLE_DELAY
    ):
        self.store = store
        self.executor = executor
        self.capturer = capturer
        self.screenshots = screenshots
        self.hub = hub
        self.state = state or LiveState()
        self.click_settle_delay = click_settle_delay
        # Serializes hook find-or-create so concurrent callers share one session
        self._hook_lock = asyncio.Lock()

    # --- viewers ---

    async def handle_connect(self, websocket: WebSocket) -> None:
        """Bring a new viewer up to date: status, screenshot, session, sessions, buffered actions"""
        active = None
        if self.state.active_session_id:
            active = await self.store.get_session(self.state.active_session_id)
        sessions = await self.store.list_sessions()

        await self.hub.send(websocket, StatusEvent(data=self.state.status_payload()))
        if self.state.last_screenshot:
            await self.hub.send(websocket, ScreenshotEvent(data=self.state.last_screenshot))
        if active:
            await self.hub.send(websocket, SessionInfoEvent.of(active))
        await self.hub.send(websocket, SessionsListEvent.of(sessions))
        for action in self.state.recent_actions():
            await self.hub.send(websocket, ActionEvent(data=action.to_payload()))

    async def send_snapshot(self, websocket: WebSocket) -> None:
        """Fetch the accessibility tree and send it to the viewer that asked"""
        output = await self.executor.execute(SNAPSHOT_COMMAND)
        self.state.snapshot_tree = output.stdout
        await self.hub.send(websocket, SnapshotEvent(data=output.stdout))

    async def broadcast_sessions(self) -> None:
        await self.hub.broadcast(SessionsListEvent.of(await self.store.list_sessions()))

    # --- session lifecycle ---

    async def create_session(self, name: str, source: SessionSource = SessionSource.VIEWER) -> SessionOut:
        session = await self.store.create_session(name, source)
        sessions = await self.store.list_sessions()

        self.state.active_session_id = session.id
        self.state.clear_actions()
        self.state.last_screenshot = ""
        logger.info(f"[Session] '{name}' ({session.id}) is now active")

        await self.hub.broadcast(SessionInfoEvent.of(session))
        await self.hub.broadcast(SessionsListEvent.of(sessions))
        await self.hub.broadcast(ActionsClearEvent())
        return session

    async def add_session(self, name: str, source: SessionSource = SessionSource.VIEWER) -> SessionOut:
        """REST-side create: the new session does not become the viewer's active one.
        Creating it closes any active session with the same name, so the live
        session is dropped when it was that one.
        """
        active_id = self.state.active_session_id
        session = await self.store.create_session(name, source)

        if active_id and self.state.active_session_id == active_id:
            active = await self.store.get_session(active_id)
            if not active or active.status == SessionStatus.CLOSED:
                self.state.active_session_id = None
                logger.info(f"[Session] Active session {active_id} closed by new session '{name}'")
                await self.hub.broadcast(SessionInfoEvent.of(None))

        await self.broadcast_sessions()
        return session

    async def close_session(self) -> None:
        session_id = self.state.active_session_id
        if not session_id:
            return

        await self.store.update_session(session_id, status=SessionStatus.CLOSED)
        sessions = await self.store.list_sessions()

        # Another handler may have switched sessions while the store was busy
        if self.state.active_session_id == session_id:
            self.state.active_session_id = None
        logger.info(f"[Session] Closed {session_id}")

        await self.hub.broadcast(SessionInfoEvent.of(None))
        await self.hub.broadcast(SessionsListEvent.of(sessions))

    async def switch_session(self, session_id: str) -> bool:
        """Make a stored session active and replay its history; unknown ids are ignored"""
        session = await self.store.get_session(session_id)
        if not session:
            logger.info(f"[Session] Ignoring switch to unknown session {session_id}")
            return False

        history = [LiveAction.from_row(row) for row in await self.store.get_session_actions(session_id)]

        self.state.active_session_id = session.id
        self.state.replace_actions(history)
        logger.info(f"[Session] Switched to '{session.name}' ({session.id}), {len(history)} actions")

        await self.hub.broadcast(SessionInfoEvent.of(session))
        await self.hub.broadcast(ActionsClearEvent())
        for action in history:
            await self.hub.broadcast(ActionEvent(data=action.to_payload()))
        return True

    async def rename_session(self, name: str) -> None:
        session_id = self.state.active_session_id
        if not session_id:
            return

        await self.store.update_session(session_id, name=name)
        session = await self.store.get_session(session_id)
        sessions = await self.store.list_sessions()

        if session and self.state.active_session_id == session.id:
            await self.hub.broadcast(SessionInfoEvent.of(session))
        await self.hub.broadcast(SessionsListEvent.of(sessions))

    async def update_session(self, session_id: str, name: Optional[str] = None,
                             status: Optional[SessionStatus] = None) -> Optional[SessionOut]:
        """REST-side partial update; keeps viewers and the active session in step"""
        if not await self.store.update_session(session_id, name=name, status=status):
            return None
        session = await self.store.get_session(session_id)
        sessions = await self.store.list_sessions()

        if session and self.state.active_session_id == session.id:
            if session.status == SessionStatus.CLOSED:
                self.state.active_session_id = None
                await self.hub.broadcast(SessionInfoEvent.of(None))
            else:
                await self.hub.broadcast(SessionInfoEvent.of(session))
        await self.hub.broadcast(SessionsListEvent.of(sessions))
        return session

    async def delete_session(self, session_id: str) -> bool:
        """Hard delete the row (actions cascade) and then its screenshot directory"""
        if not await self.store.delete_session(session_id):
            return False
        await self.screenshots.delete_session(session_id)
        sessions = await self.store.list_sessions()

        if self.state.active_session_id == session_id:
            self.state.active_session_id = None
            await self.hub.broadcast(SessionInfoEvent.of(None))
        await self.hub.broadcast(SessionsListEvent.of(sessions))
        return True

    # --- commands ---

    async def run_command(self, command: str, nlp_input: Optional[str] = None) -> LiveAction:
        """Execute a viewer command against the active session (if any)"""
        return await self._run_action(
            command,
            steps=[command],
            session_id=self.state.active_session_id,
            nlp_input=nlp_input
        )

    async def click_at(self, x: float, y: float) -> LiveAction:
        """Click at screenshot pixel coordinates via a mouse move/down/up sequence"""
        px, py = int(round(x)), int(round(y))
        steps = [f"mouse move {px} {py}", "mouse down", "mouse up"]
        return await self._run_action(
            " && ".join(steps),
            steps=steps,
            session_id=self.state.active_session_id,
            action_type="click",
            settle_delay=self.click_settle_delay
        )

    async def run_hook(self, session_name: str, command: str,
                       source: SessionSource = SessionSource.CHAT) -> HookOutcome:
        """Find-or-create the named active session, then run the command against it"""
        async with self._hook_lock:
            session = await self.store.get_active_session_by_name(session_name)
            created = session is None
            if created:
                session = await self.store.create_session(session_name, source)
                logger.info(f"[Hook] Created session '{session_name}' for {session.source.value}")
        if created:
            await self.broadcast_sessions()

        action = await self._run_action(command, steps=[command], session_id=session.id)
        return HookOutcome(session=session, action=action)

    async def refresh_status(self) -> None:
        """Re-read the browser URL/title into the live state and broadcast it"""
        page = await self.executor.probe_page()
        self.state.apply_page_state(page)
        await self.hub.broadcast(StatusEvent(data=self.state.status_payload()))

    async def warm_up(self) -> None:
        """Initial probe at startup so the first viewer sees the current page"""
        page = await self.executor.probe_page()
        self.state.apply_page_state(page)
        if isinstance(page, PageOpen):
            screenshot = await self.capturer.capture()
            if screenshot:
                self.state.last_screenshot = screenshot
        logger.info(f"[Viewer] Browser open: {self.state.is_open} {self.state.current_url}")

    async def _run_action(
        self,
        command: str,
        steps: Sequence[str],
        session_id: Optional[str],
        action_type: Optional[str] = None,
        settle_delay: float = 0,
        nlp_input: Optional[str] = None
    ) -> LiveAction:
        action = LiveAction(
            id=_provisional_id(),
            type=action_type or command_type(command),
            command=command,
            timestamp=int(time.time() * 1000),
            session_id=session_id,
            nlp_input=nlp_input,
        )

        # Accepted: every viewer sees the pending action before anything runs
        await self.hub.broadcast(ActionEvent(data=action.to_payload()))
        self.state.push_action(action)
        logger.info(f"[Command] {command!r} (session={session_id})")

        if session_id:
            row = await self.store.insert_action(session_id, command)
            action.persisted_id = row.id

        try:
            output = await self._execute_steps(steps)
            action.result = output.stdout or "OK"
            action.error = output.stderr or None

            if settle_delay:
                await asyncio.sleep(settle_delay)

            await self.refresh_status()
            if self.state.is_open:
                action.url = self.state.current_url or None
                action.page_title = self.state.page_title or None

            screenshot = await self.capturer.capture()
            if screenshot:
                self.state.last_screenshot = screenshot
                await self.hub.broadcast(ScreenshotEvent(data=screenshot))
                if session_id:
                    action.screenshot_path = await self.screenshots.save(session_id, screenshot)
        except Exception as e:
            logger.exception(f"[Command] {command!r} failed")
            action.error = str(e) or e.__class__.__name__

        if action.persisted_id:
            await self.store.update_action(
                action.persisted_id,
                result=action.result,
                error=action.error,
                screenshot_path=action.screenshot_path,
                url=action.url,
                page_title=action.page_title,
            )

        await self.hub.broadcast(ActionUpdateEvent(data=action.update_payload()))
        return action

    async def _execute_steps(self, steps: Sequence[str]) -> CommandOutput:
        """Run steps in order, stopping at the first failure; outputs are joined"""
        outputs: List[Tuple[str, str]] = []
        for step in steps:
            output = await self.executor.execute(step)
            outputs.append((output.stdout.strip(), output.stderr.strip()))
            if output.stderr or not output.ok:
                break

        stdout = "\n".join(out for out, _ in outputs if out)
        stderr = "\n".join(err for _, err in outputs if err)
        if len(steps) == 1:
            # Single commands keep the CLI's output untouched
            return output
        return CommandOutput(stdout=stdout, stderr=stderr, exit_code=output.exit_code)
