from pydantic import BaseModel
from typing import Optional, List

from browser_viewer.models.session import SessionSource, SessionStatus


class SessionOut(BaseModel):
    id: str
    name: str
    source: SessionSource
    status: SessionStatus
    created_at: int
    updated_at: int

    class Config:
        from_attributes = True


class SessionSummary(SessionOut):
    action_count: int = 0
    last_screenshot: Optional[str] = None


class ActionOut(BaseModel):
    id: str
    session_id: str
    command: str
    result: Optional[str] = None
    error: Optional[str] = None
    screenshot_path: Optional[str] = None
    url: Optional[str] = None
    page_title: Optional[str] = None
    timestamp: int

    class Config:
        from_attributes = True


# Request bodies. Required fields are optional here so routes can answer
# with a 400 and a readable message instead of a validation dump.

class SessionCreate(BaseModel):
    name: Optional[str] = None
    source: Optional[SessionSource] = None


class SessionUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[SessionStatus] = None


class SessionDetail(BaseModel):
    session: SessionOut
    actions: List[ActionOut]


class HookRequest(BaseModel):
    sessionName: Optional[str] = None
    command: Optional[str] = None
    source: Optional[str] = None


class HookResponse(BaseModel):
    ok: bool = True
    session_id: str
    action_id: Optional[str] = None
    result: Optional[str] = None
    error: Optional[str] = None
    screenshot_path: Optional[str] = None


class CommandRequest(BaseModel):
    command: Optional[str] = None


class NlpRequest(BaseModel):
    input: Optional[str] = None
    snapshot: Optional[str] = None
