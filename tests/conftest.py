"""Shared fixtures: a scripted agent-browser stand-in, fake viewer sockets and a temp store."""

import asyncio
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from browser_viewer.database.database import build_engine, build_session_factory, init_db
from browser_viewer.services.command_executor import CommandExecutor, CommandOutput
from browser_viewer.services.screenshot_service import ScreenshotCapturer, ScreenshotStore
from browser_viewer.services.session_coordinator import SessionCoordinator
from browser_viewer.services.session_store import SessionStore
from browser_viewer.services.viewer_hub import ViewerHub

# Smallest valid PNG header plus a marker, enough for byte-identity checks
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"fake-screenshot-body"

EXAMPLE_TITLE = "Example Domain"


class FakeExecutor(CommandExecutor):
    """Plays the agent-browser CLI: tracks one page and records every command"""

    def __init__(self):
        super().__init__(binary="agent-browser", timeout=5)
        self.calls: List[str] = []
        self.is_open = False
        self.url = ""
        self.title = ""
        self.fail_with: Optional[Exception] = None
        self.delays: Dict[str, float] = {}

    async def execute(self, command: str, max_output: Optional[int] = None) -> CommandOutput:
        self.calls.append(command)
        if self.fail_with and not command.startswith(("get ", "screenshot ")):
            raise self.fail_with

        verb, _, rest = command.partition(" ")
        if verb in self.delays:
            await asyncio.sleep(self.delays[verb])

        if verb == "open":
            self.is_open, self.url, self.title = True, rest, EXAMPLE_TITLE
            return CommandOutput(stdout=f"Opened {rest}", stderr="", exit_code=0)

        if verb == "close":
            self.is_open, self.url, self.title = False, "", ""
            return CommandOutput(stdout="Browser closed", stderr="", exit_code=0)

        if verb == "get":
            if not self.is_open:
                return CommandOutput(stdout="", stderr="Error: No browser running", exit_code=1)
            value = self.url if rest == "url" else self.title
            return CommandOutput(stdout=f"{value}\n", stderr="", exit_code=0)

        if verb == "screenshot":
            if self.is_open:
                with open(rest, "wb") as f:
                    f.write(PNG_BYTES)
            return CommandOutput(stdout="", stderr="", exit_code=0)

        if verb == "snapshot":
            return CommandOutput(stdout='- heading "Example Domain" [ref=e1]', stderr="", exit_code=0)

        if verb in ("mouse", "click", "scroll", "wait"):
            return CommandOutput(stdout="", stderr="", exit_code=0)

        return CommandOutput(stdout="", stderr=f"Unknown command: {verb}", exit_code=1)

    def commands(self, prefix: str) -> List[str]:
        return [c for c in self.calls if c.startswith(prefix)]


class FakeWebSocket:
    """Collects what the hub sends to one viewer"""

    def __init__(self, broken: bool = False):
        self.sent: List[dict] = []
        self.accepted = False
        self.closed = False
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_json(self, message: dict):
        if self.broken:
            raise RuntimeError("socket is gone")
        self.sent.append(message)

    async def close(self):
        self.closed = True

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]

    def of_type(self, event: str) -> List[dict]:
        return [m["data"] for m in self.sent if m["type"] == event]


def sqlite_url(tmp_path, name: str = "viewer.db") -> str:
    return f"sqlite+aiosqlite:///{tmp_path / name}"


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(sqlite_url(tmp_path), poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return SessionStore(build_session_factory(engine))


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def screenshot_store(tmp_path):
    screenshots = ScreenshotStore(str(tmp_path / "screenshots"))
    screenshots.ensure_root()
    return screenshots


@pytest.fixture
def capturer(executor, tmp_path):
    tmp_dir = tmp_path / "capture-tmp"
    tmp_dir.mkdir()
    return ScreenshotCapturer(executor, tmp_dir=str(tmp_dir))


@pytest.fixture
def coordinator(store, executor, capturer, screenshot_store):
    return SessionCoordinator(
        store=store,
        executor=executor,
        capturer=capturer,
        screenshots=screenshot_store,
        hub=ViewerHub(),
        click_settle_delay=0,
    )


@pytest_asyncio.fixture
async def viewer(coordinator):
    websocket = FakeWebSocket()
    await coordinator.hub.connect(websocket)
    return websocket
