"""
Live session state - what a viewer should see right now

A cache in front of the store: the current browser status, the last
screenshot, a bounded ring of recent actions and the active session id.
Owned by one SessionCoordinator; nothing else writes to it.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, List, Optional

from browser_viewer import config
from browser_viewer.schemas.events import ActionPayload, ActionUpdatePayload, StatusPayload
from browser_viewer.schemas.session import ActionOut
from browser_viewer.services.command_executor import PageOpen, PageState


@dataclass
class LiveAction:
    # Client-visible id: provisional for live commands, the row id for replayed history
    id: str
    type: str
    command: str
    timestamp: int
    session_id: Optional[str] = None
    persisted_id: Optional[str] = None
    result: Optional[str] = None
    error: Optional[str] = None
    screenshot_path: Optional[str] = None
    url: Optional[str] = None
    page_title: Optional[str] = None
    nlp_input: Optional[str] = None

    @classmethod
    def from_row(cls, row: ActionOut) -> "LiveAction":
        payload = ActionPayload.from_row(row)
        return cls(persisted_id=row.id, **payload.model_dump(exclude={"nlp_input"}))

    def to_payload(self) -> ActionPayload:
        return ActionPayload(
            id=self.id,
            type=self.type,
            command=self.command,
            timestamp=self.timestamp,
            session_id=self.session_id,
            result=self.result,
            error=self.error,
            screenshot_path=self.screenshot_path,
            url=self.url,
            page_title=self.page_title,
            nlp_input=self.nlp_input,
        )

    def update_payload(self) -> ActionUpdatePayload:
        return ActionUpdatePayload(
            id=self.id,
            result=self.result,
            error=self.error,
            screenshot_path=self.screenshot_path,
            url=self.url,
            page_title=self.page_title,
        )


@dataclass
class LiveState:
    is_open: bool = False
    current_url: str = ""
    page_title: str = ""
    last_screenshot: str = ""
    snapshot_tree: str = ""
    active_session_id: Optional[str] = None
    buffer_limit: int = config.ACTION_BUFFER_LIMIT
    actions: Deque[LiveAction] = field(default_factory=deque)

    def __post_init__(self):
        self.actions = deque(self.actions, maxlen=self.buffer_limit)

    def push_action(self, action: LiveAction) -> None:
        """Append, evicting the oldest entry past the buffer limit"""
        self.actions.append(action)

    def replace_actions(self, actions: Iterable[LiveAction]) -> None:
        self.actions = deque(actions, maxlen=self.buffer_limit)

    def clear_actions(self) -> None:
        self.actions.clear()

    def recent_actions(self) -> List[LiveAction]:
        return list(self.actions)

    def apply_page_state(self, page: PageState) -> None:
        if isinstance(page, PageOpen):
            self.is_open = True
            self.current_url = page.url
            self.page_title = page.title
        else:
            self.is_open = False

    def status_payload(self) -> StatusPayload:
        return StatusPayload(is_open=self.is_open, current_url=self.current_url, page_title=self.page_title)
