"""
Real-time wire messages.

Server -> viewer frames are ``{"type": <event>, "data": <payload>}``; viewer ->
server frames are flat objects tagged by ``type``. Store rows are converted to
wire payloads only through the ``from_row`` constructors below.
"""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, Any, ClassVar, List, Literal, Optional, Union

from browser_viewer.schemas.session import ActionOut, SessionOut, SessionSummary


# --- payloads ---

class StatusPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_open: bool = Field(alias="isOpen")
    current_url: str = Field(alias="currentUrl")
    page_title: str = Field(alias="pageTitle")


class ActionPayload(BaseModel):
    id: str
    type: str
    command: str
    timestamp: int
    session_id: Optional[str] = None
    result: Optional[str] = None
    error: Optional[str] = None
    screenshot_path: Optional[str] = None
    url: Optional[str] = None
    page_title: Optional[str] = None
    nlp_input: Optional[str] = None

    @classmethod
    def from_row(cls, row: ActionOut) -> "ActionPayload":
        return cls(
            id=row.id,
            type=command_type(row.command),
            command=row.command,
            timestamp=row.timestamp,
            session_id=row.session_id,
            result=row.result,
            error=row.error,
            screenshot_path=row.screenshot_path,
            url=row.url,
            page_title=row.page_title,
        )


class ActionUpdatePayload(BaseModel):
    id: str
    result: Optional[str] = None
    error: Optional[str] = None
    screenshot_path: Optional[str] = None
    url: Optional[str] = None
    page_title: Optional[str] = None


class SessionPayload(BaseModel):
    id: str
    name: str
    source: str
    status: str
    created_at: int
    updated_at: int

    @classmethod
    def from_row(cls, row: SessionOut) -> "SessionPayload":
        return cls(
            id=row.id,
            name=row.name,
            source=row.source.value,
            status=row.status.value,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class SessionSummaryPayload(SessionPayload):
    action_count: int
    last_screenshot: Optional[str] = None

    @classmethod
    def from_row(cls, row: SessionSummary) -> "SessionSummaryPayload":
        base = SessionPayload.from_row(row).model_dump()
        return cls(**base, action_count=row.action_count, last_screenshot=row.last_screenshot)


def command_type(command: str) -> str:
    """First word of a command, e.g. ``open`` for ``open https://example.com``"""
    parts = command.split()
    return parts[0] if parts else ""


# --- server -> viewer events ---

def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


class ServerEvent(BaseModel):
    event: ClassVar[str]
    data: Any = None

    def to_wire(self) -> dict:
        return {"type": self.event, "data": _dump(self.data)}


class StatusEvent(ServerEvent):
    event: ClassVar[str] = "status"
    data: StatusPayload


class ScreenshotEvent(ServerEvent):
    event: ClassVar[str] = "screenshot"
    data: str


class ActionEvent(ServerEvent):
    event: ClassVar[str] = "action"
    data: ActionPayload


class ActionUpdateEvent(ServerEvent):
    event: ClassVar[str] = "action-update"
    data: ActionUpdatePayload


class SnapshotEvent(ServerEvent):
    event: ClassVar[str] = "snapshot"
    data: str


class SessionInfoEvent(ServerEvent):
    event: ClassVar[str] = "session-info"
    data: Optional[SessionPayload] = None

    @classmethod
    def of(cls, session: Optional[SessionOut]) -> "SessionInfoEvent":
        return cls(data=SessionPayload.from_row(session) if session else None)


class SessionsListEvent(ServerEvent):
    event: ClassVar[str] = "sessions-list"
    data: List[SessionSummaryPayload]

    @classmethod
    def of(cls, sessions: List[SessionSummary]) -> "SessionsListEvent":
        return cls(data=[SessionSummaryPayload.from_row(s) for s in sessions])


class ActionsClearEvent(ServerEvent):
    event: ClassVar[str] = "actions-clear"
    data: None = None


# --- viewer -> server messages ---

class CommandMessage(BaseModel):
    type: Literal["command"]
    command: str = Field(min_length=1)
    original: Optional[str] = None


class SnapshotRequestMessage(BaseModel):
    type: Literal["snapshot-request"]


class ClickAtMessage(BaseModel):
    type: Literal["click-at"]
    x: float
    y: float


class CreateSessionMessage(BaseModel):
    type: Literal["create-session"]
    name: str = Field(min_length=1)


class CloseSessionMessage(BaseModel):
    type: Literal["close-session"]


class SwitchSessionMessage(BaseModel):
    type: Literal["switch-session"]
    session_id: str


class RenameSessionMessage(BaseModel):
    type: Literal["rename-session"]
    name: str = Field(min_length=1)


ClientMessage = Annotated[
    Union[
        CommandMessage,
        SnapshotRequestMessage,
        ClickAtMessage,
        CreateSessionMessage,
        CloseSessionMessage,
        SwitchSessionMessage,
        RenameSessionMessage,
    ],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)
