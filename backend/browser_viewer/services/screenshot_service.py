"""
Screenshot capture (temp file -> data URI) and the per-session screenshot store
"""

import asyncio
import base64
import logging
import os
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import Optional, Set

from browser_viewer import config
from browser_viewer.services.command_executor import CommandExecutor

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/png;base64,"
_DATA_URI_RE = re.compile(r"^data:image/\w+;base64,")


class ForbiddenPathError(ValueError):
    """Raised when a path would resolve outside the screenshots root"""


class ScreenshotCapturer:
    """Asks the CLI for a screenshot and returns it as a data URI, or "" on any failure"""

    def __init__(self, executor: CommandExecutor, tmp_dir: str = config.SCREENSHOT_TMP_DIR):
        self.executor = executor
        self.tmp_dir = tmp_dir
        self._cleanup_tasks: Set[asyncio.Task] = set()

    async def capture(self) -> str:
        tmp_path = os.path.join(
            self.tmp_dir,
            f"agent-browser-screenshot-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}.png"
        )
        try:
            await self.executor.execute(f"screenshot {tmp_path}")
            if not os.path.exists(tmp_path):
                return ""
            image = await asyncio.to_thread(Path(tmp_path).read_bytes)
        except Exception as e:
            logger.debug(f"[Screenshot] Capture failed: {e}")
            return ""
        finally:
            self._schedule_cleanup(tmp_path)

        if not image:
            return ""
        return DATA_URI_PREFIX + base64.b64encode(image).decode("ascii")

    def _schedule_cleanup(self, path: str) -> None:
        task = asyncio.create_task(asyncio.to_thread(_remove_quietly, path))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"[Screenshot] Could not remove temp file {path}: {e}")


class ScreenshotStore:
    """Session screenshots on disk: ``<root>/<session_id>/<epoch_ms>.png``"""

    def __init__(self, root: str = config.SCREENSHOTS_DIR):
        self.root = Path(root).resolve()

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _session_dir(self, session_id: str) -> Path:
        directory = (self.root / session_id).resolve()
        if directory.parent != self.root:
            raise ForbiddenPathError(f"Invalid session id: {session_id!r}")
        return directory

    async def save(self, session_id: str, data_uri: str) -> Optional[str]:
        """Persist a data URI for a session; returns the path relative to the root"""
        if not data_uri or not _DATA_URI_RE.match(data_uri):
            return None

        try:
            directory = self._session_dir(session_id)
            raw = base64.b64decode(_DATA_URI_RE.sub("", data_uri, count=1))
            filename = await asyncio.to_thread(_write_unique, directory, raw)
        except Exception as e:
            logger.warning(f"[Screenshot] Failed to save screenshot for session {session_id}: {e}")
            return None

        return f"{session_id}/{filename}"

    def resolve(self, relative_path: str) -> Path:
        """Map a stored relative path back to a file under the root"""
        resolved = (self.root / relative_path).resolve()
        if resolved == self.root or not resolved.is_relative_to(self.root):
            raise ForbiddenPathError(f"Path escapes screenshot root: {relative_path!r}")
        return resolved

    async def delete_session(self, session_id: str) -> None:
        """Remove one session's screenshot directory and nothing else"""
        directory = self._session_dir(session_id)
        await asyncio.to_thread(shutil.rmtree, directory, ignore_errors=True)
        logger.info(f"[Screenshot] Removed {directory}")


def _write_unique(directory: Path, raw: bytes) -> str:
    directory.mkdir(parents=True, exist_ok=True)
    stamp = int(time.time() * 1000)
    filename = f"{stamp}.png"
    suffix = 1
    # Exclusive create so two captures in the same millisecond get distinct files
    while True:
        try:
            with open(directory / filename, "xb") as f:
                f.write(raw)
            return filename
        except FileExistsError:
            filename = f"{stamp}-{suffix}.png"
            suffix += 1
