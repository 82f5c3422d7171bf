"""
Session Store - sessions and their recorded actions in SQLite
"""

import logging
import time
import uuid
from typing import List, Optional

from sqlalchemy import String, delete, func, literal_column, or_, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from browser_viewer.models.action import Action
from browser_viewer.models.session import BrowsingSession, SessionSource, SessionStatus
from browser_viewer.schemas.session import ActionOut, SessionOut, SessionSummary

logger = logging.getLogger(__name__)

# Fields an action may receive once its command has finished
ACTION_RESULT_FIELDS = ("result", "error", "screenshot_path", "url", "page_title")

_UNSET = object()


class SessionStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory
        self._last_ms = 0

    def _now_ms(self) -> int:
        # Never step backwards, so replay order survives wall-clock adjustments
        self._last_ms = max(int(time.time() * 1000), self._last_ms)
        return self._last_ms

    # --- sessions ---

    async def create_session(self, name: str, source: SessionSource = SessionSource.VIEWER) -> SessionOut:
        """Insert a new active session; an older active session with the same name is closed"""
        now = self._now_ms()
        async with self._session_factory() as db:
            await db.execute(
                update(BrowsingSession)
                .where(BrowsingSession.name == name, BrowsingSession.status == SessionStatus.ACTIVE)
                .values(status=SessionStatus.CLOSED, updated_at=now)
            )
            session = BrowsingSession(
                id=str(uuid.uuid4()),
                name=name,
                source=SessionSource(source),
                status=SessionStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            db.add(session)
            await db.commit()
            logger.info(f"[Store] Created session {session.id} '{name}' ({session.source.value})")
            return SessionOut.model_validate(session)

    async def get_session(self, session_id: str) -> Optional[SessionOut]:
        async with self._session_factory() as db:
            session = await db.get(BrowsingSession, session_id)
            return SessionOut.model_validate(session) if session else None

    async def list_sessions(self) -> List[SessionSummary]:
        """All sessions, most recently updated first, with action count and last screenshot"""
        async with self._session_factory() as db:
            result = await db.execute(_summary_query())
            return [_summary(row) for row in result.all()]

    async def search_sessions(self, query: str) -> List[SessionSummary]:
        """Case-insensitive substring match on the name or the YYYY-MM-DD creation date"""
        needle = query.strip().lower()
        created_date = func.date(BrowsingSession.created_at / 1000, "unixepoch", type_=String)
        stmt = _summary_query().where(
            or_(
                func.lower(BrowsingSession.name, type_=String).contains(needle, autoescape=True),
                created_date.contains(needle, autoescape=True),
            )
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [_summary(row) for row in result.all()]

    async def update_session(self, session_id: str, name: Optional[str] = None,
                             status: Optional[SessionStatus] = None) -> bool:
        """Partial update; always bumps updated_at. False if the session does not exist"""
        values = {"updated_at": self._now_ms()}
        if name is not None:
            values["name"] = name
        if status is not None:
            values["status"] = SessionStatus(status)

        async with self._session_factory() as db:
            result = await db.execute(
                update(BrowsingSession).where(BrowsingSession.id == session_id).values(**values)
            )
            await db.commit()
            return result.rowcount > 0

    async def delete_session(self, session_id: str) -> bool:
        """Hard delete; actions go with it through the foreign key cascade"""
        async with self._session_factory() as db:
            result = await db.execute(delete(BrowsingSession).where(BrowsingSession.id == session_id))
            await db.commit()
            if result.rowcount:
                logger.info(f"[Store] Deleted session {session_id}")
            return result.rowcount > 0

    async def get_active_session_by_name(self, name: str) -> Optional[SessionOut]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(BrowsingSession)
                .where(BrowsingSession.name == name, BrowsingSession.status == SessionStatus.ACTIVE)
                .order_by(BrowsingSession.updated_at.desc())
                .limit(1)
            )
            session = result.scalars().first()
            return SessionOut.model_validate(session) if session else None

    # --- actions ---

    async def insert_action(self, session_id: str, command: str, **fields) -> ActionOut:
        """Record an accepted command before it runs; bumps the session's updated_at"""
        unknown = set(fields) - set(ACTION_RESULT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown action fields: {sorted(unknown)}")

        now = self._now_ms()
        async with self._session_factory() as db:
            action = Action(
                id=str(uuid.uuid4()),
                session_id=session_id,
                command=command,
                timestamp=now,
                **{field: fields.get(field) for field in ACTION_RESULT_FIELDS}
            )
            db.add(action)
            await db.execute(
                update(BrowsingSession).where(BrowsingSession.id == session_id).values(updated_at=now)
            )
            await db.commit()
            return ActionOut.model_validate(action)

    async def update_action(self, action_id: str, result=_UNSET, error=_UNSET, screenshot_path=_UNSET,
                            url=_UNSET, page_title=_UNSET) -> bool:
        """Set only the given fields (None is a value); False when nothing was given or matched"""
        given = {
            "result": result,
            "error": error,
            "screenshot_path": screenshot_path,
            "url": url,
            "page_title": page_title,
        }
        values = {k: v for k, v in given.items() if v is not _UNSET}
        if not values:
            return False

        async with self._session_factory() as db:
            res = await db.execute(update(Action).where(Action.id == action_id).values(**values))
            await db.commit()
            return res.rowcount > 0

    async def get_session_actions(self, session_id: str) -> List[ActionOut]:
        """Replay order: timestamp, then insertion order for same-millisecond rows"""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Action)
                .where(Action.session_id == session_id)
                .order_by(Action.timestamp.asc(), literal_column("actions.rowid").asc())
            )
            return [ActionOut.model_validate(a) for a in result.scalars().all()]


def _summary_query():
    action_count = (
        select(func.count(Action.id))
        .where(Action.session_id == BrowsingSession.id)
        .correlate(BrowsingSession)
        .scalar_subquery()
    )
    last_screenshot = (
        select(Action.screenshot_path)
        .where(Action.session_id == BrowsingSession.id, Action.screenshot_path.is_not(None))
        .order_by(Action.timestamp.desc(), literal_column("actions.rowid").desc())
        .limit(1)
        .correlate(BrowsingSession)
        .scalar_subquery()
    )
    return (
        select(
            BrowsingSession,
            action_count.label("action_count"),
            last_screenshot.label("last_screenshot"),
        )
        .order_by(BrowsingSession.updated_at.desc(), BrowsingSession.created_at.desc())
    )


def _summary(row) -> SessionSummary:
    session, action_count, last_screenshot = row
    return SessionSummary(
        **SessionOut.model_validate(session).model_dump(),
        action_count=action_count or 0,
        last_screenshot=last_screenshot,
    )
