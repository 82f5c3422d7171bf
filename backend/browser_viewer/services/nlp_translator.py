"""
Natural language -> agent-browser command translation

Direct commands pass straight through; anything else is sent to an
Anthropic-style ``/v1/messages`` endpoint with a system prompt describing the CLI.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from browser_viewer import config

logger = logging.getLogger(__name__)

KNOWN_COMMANDS = {
    "open", "click", "dblclick", "fill", "type", "screenshot", "scroll",
    "hover", "press", "select", "snapshot", "reload", "back", "forward",
    "close", "eval", "wait", "drag", "focus", "check", "uncheck", "mouse",
    "get", "find", "tap", "swipe",
}

SNAPSHOT_CONTEXT_CHARS = 4000

SYSTEM_PROMPT = """You are a command translator for agent-browser CLI. Convert natural language instructions to agent-browser CLI commands.

Available commands:
- open <url> - Navigate to URL
- click <selector> - Click element (e.g. click @e5)
- dblclick <selector> - Double click
- fill <selector> <text> - Fill input field
- type <text> - Type text
- press <key> - Press key (Enter, Tab, Escape, etc.)
- screenshot [path] [--full] - Take screenshot
- scroll <direction> <amount> - Scroll (up/down/left/right, amount in pixels)
- hover <selector> - Hover over element
- select <selector> <value> - Select dropdown option
- snapshot - Get accessibility tree
- reload - Reload page
- back - Go back
- forward - Go forward
- close - Close browser
- eval <js> - Execute JavaScript
- wait <ms> - Wait milliseconds
- find role <role> click --name "<name>" - Find element by role and click
- find label "<label>" fill "<value>" - Find element by label and fill
- get url - Get current URL
- get title - Get page title
- mouse move <x> <y> - Move mouse

Reply with ONLY the command, nothing else. No explanation, no markdown, no quotes, no backticks.

Examples:
- "go to google" -> open https://www.google.com
- "scroll down" -> scroll down 500
- "click the submit button" -> find role button click --name "Submit"
- "type hello in the search box" -> find role textbox fill "hello"
- "take a screenshot" -> screenshot
- "full page screenshot" -> screenshot --full
- "go back" -> back
- "reload the page" -> reload
- "press enter" -> press Enter
- "wait 2 seconds" -> wait 2000"""


class TranslationError(Exception):
    """The translation endpoint failed or gave no usable answer"""


@dataclass
class Translation:
    type: str  # "direct" or "nlp"
    command: str
    original: Optional[str] = None


def is_direct_command(text: str) -> bool:
    words = text.strip().split()
    return bool(words) and words[0].lower() in KNOWN_COMMANDS


def clean_command(text: str) -> str:
    """Strip markdown fences/backticks a model may wrap its answer in"""
    cleaned = re.sub(r"^```\w*\n?", "", text.strip())
    cleaned = re.sub(r"\n?```$", "", cleaned)
    return cleaned.strip().strip("`").strip()


class NlpTranslator:
    def __init__(
        self,
        api_url: str = config.NLP_API_URL,
        model: str = config.NLP_MODEL,
        timeout: float = config.NLP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def translate(self, text: str, snapshot: Optional[str] = None) -> Translation:
        if is_direct_command(text):
            return Translation(type="direct", command=text.strip())

        content = text
        if snapshot:
            content = (
                f"Current page accessibility tree:\n{snapshot[:SNAPSHOT_CONTEXT_CHARS]}\n\n"
                f"User request: {text}"
            )

        body = {
            "model": self.model,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": 200,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=body)
        except httpx.HTTPError as e:
            logger.error(f"[NLP] Request to {self.api_url} failed: {e}")
            raise TranslationError(f"AI API error: {e}") from e

        if response.status_code >= 400:
            raise TranslationError(f"AI API error: {response.status_code} {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise TranslationError("AI returned invalid JSON") from e
        blocks = (data.get("content") if isinstance(data, dict) else None) or []

        answer = next(
            (b.get("text") for b in blocks if isinstance(b, dict) and b.get("type") == "text" and b.get("text")),
            None
        )
        command = clean_command(answer) if answer else ""
        if not command:
            raise TranslationError("AI returned empty response")

        logger.info(f"[NLP] {text!r} -> {command!r}")
        return Translation(type="nlp", command=command, original=text)
