"""
Command Executor - runs agent-browser CLI commands as subprocesses

Every call spawns exactly one process. Failures (non-zero exit, timeout,
oversized output, spawn errors) come back as populated ``stderr`` instead of
exceptions, so callers can record them on an action without special cases.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from browser_viewer import config

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024

# Markers agent-browser prints when there is no page to talk to
_NO_BROWSER_MARKERS = ("no browser", "browser not", "not running", "no page")


@dataclass
class CommandOutput:
    stdout: str
    stderr: str
    exit_code: Optional[int] = None
    timed_out: bool = False
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.truncated


@dataclass(frozen=True)
class PageOpen:
    url: str
    title: str


@dataclass(frozen=True)
class NoBrowser:
    reason: str = ""


@dataclass(frozen=True)
class ToolError:
    message: str


PageState = Union[PageOpen, NoBrowser, ToolError]


class CommandExecutor:
    def __init__(
        self,
        binary: str = config.AGENT_BROWSER_BIN,
        timeout: float = config.COMMAND_TIMEOUT,
        max_output: int = config.MAX_OUTPUT_BYTES
    ):
        self.binary = binary
        self.timeout = timeout
        self.max_output = max_output

    async def execute(self, command: str, max_output: Optional[int] = None) -> CommandOutput:
        """Run ``<binary> <command>`` through the shell and collect its output"""
        limit = max_output or self.max_output
        full_command = f"{self.binary} {command}"

        try:
            proc = await asyncio.create_subprocess_shell(
                full_command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            logger.error(f"[Executor] Failed to spawn '{full_command}': {e}")
            return CommandOutput(stdout="", stderr=str(e) or "Failed to start command")

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        timed_out = False
        truncated = False

        try:
            truncated = await asyncio.wait_for(
                self._collect(proc, stdout_buf, stderr_buf, limit),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            timed_out = True
            _kill(proc)
            await proc.wait()
            logger.warning(f"[Executor] '{command}' timed out after {self.timeout}s")

        stdout = stdout_buf.decode("utf-8", errors="replace")
        stderr = stderr_buf.decode("utf-8", errors="replace")
        exit_code = proc.returncode

        if timed_out:
            stderr = stderr or f"Command timed out after {self.timeout:g}s"
        elif truncated:
            stderr = stderr or f"Command output exceeded {limit} bytes"
        elif exit_code != 0 and not stderr:
            stderr = f"Command failed with exit code {exit_code}"

        return CommandOutput(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            timed_out=timed_out,
            truncated=truncated
        )

    async def _collect(self, proc, stdout_buf: bytearray, stderr_buf: bytearray, limit: int) -> bool:
        pending = {
            asyncio.create_task(_drain(proc.stdout, stdout_buf, limit)),
            asyncio.create_task(_drain(proc.stderr, stderr_buf, limit)),
        }
        overflowed = False
        try:
            while pending and not overflowed:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                overflowed = any(task.result() for task in done)
        finally:
            for task in pending:
                task.cancel()

        if overflowed:
            _kill(proc)
        await proc.wait()
        return overflowed

    async def probe_page(self) -> PageState:
        """Ask the CLI for the current URL and title and classify the answer"""
        url_output, title_output = await asyncio.gather(
            self.execute("get url"),
            self.execute("get title")
        )
        return classify_page_probe(url_output, title_output)


def classify_page_probe(url_output: CommandOutput, title_output: CommandOutput) -> PageState:
    url = url_output.stdout.strip()
    combined = f"{url}\n{url_output.stderr}".lower()

    if any(marker in combined for marker in _NO_BROWSER_MARKERS):
        return NoBrowser(reason=(url_output.stderr or url).strip())

    if not url_output.ok:
        return ToolError(message=(url_output.stderr or url or "get url failed").strip())

    if not url:
        return NoBrowser(reason="empty url")

    # Older CLI builds print errors on stdout with a zero exit status
    if url.lower().startswith("error") or "error:" in url.lower():
        return ToolError(message=url)

    title = title_output.stdout.strip() if title_output.ok else ""
    return PageOpen(url=url, title=title)


async def _drain(stream: asyncio.StreamReader, buf: bytearray, limit: int) -> bool:
    """Read a pipe into ``buf`` up to ``limit`` bytes; True if the limit was hit"""
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return False
        room = limit - len(buf)
        if len(chunk) > room:
            buf.extend(chunk[:room])
            return True
        buf.extend(chunk)


def _kill(proc) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
