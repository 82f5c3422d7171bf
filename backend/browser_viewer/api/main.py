from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import asyncio
from typing import Optional

from browser_viewer import config
from browser_viewer.api.routes import command, hook, screenshots, sessions, status, viewer
from browser_viewer.database.database import build_engine, build_session_factory, init_db
from browser_viewer.services.command_executor import CommandExecutor
from browser_viewer.services.nlp_translator import NlpTranslator
from browser_viewer.services.screenshot_service import ScreenshotCapturer, ScreenshotStore
from browser_viewer.services.session_coordinator import SessionCoordinator
from browser_viewer.services.session_store import SessionStore
from browser_viewer.services.viewer_hub import ViewerHub

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(
    database_url: str = config.DATABASE_URL,
    screenshots_dir: str = config.SCREENSHOTS_DIR,
    executor: Optional[CommandExecutor] = None,
    translator: Optional[NlpTranslator] = None,
    warm_up: bool = True,
    engine_options: Optional[dict] = None
) -> FastAPI:
    app = FastAPI(
        title="Agent Browser Viewer",
        description="Live view and session recording for the agent-browser CLI",
        version="1.0.0"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    engine = build_engine(database_url, **(engine_options or {}))
    executor = executor or CommandExecutor()
    screenshot_store = ScreenshotStore(screenshots_dir)

    app.state.engine = engine
    app.state.translator = translator or NlpTranslator()
    app.state.coordinator = SessionCoordinator(
        store=SessionStore(build_session_factory(engine)),
        executor=executor,
        capturer=ScreenshotCapturer(executor),
        screenshots=screenshot_store,
        hub=ViewerHub(),
    )

    app.include_router(sessions.router)
    app.include_router(screenshots.router)
    app.include_router(hook.router)
    app.include_router(status.router)
    app.include_router(command.router)
    app.include_router(viewer.router)

    @app.on_event("startup")
    async def startup():
        """Create storage, then probe the browser in the background"""
        screenshot_store.ensure_root()
        await init_db(engine)
        logger.info("[✓] Database initialized")

        if warm_up:
            app.state.warm_up_task = asyncio.create_task(app.state.coordinator.warm_up())

    @app.on_event("shutdown")
    async def shutdown():
        """Clean up on shutdown"""
        await app.state.coordinator.hub.close_all()
        await engine.dispose()
        logger.info("[✓] Shutdown complete")

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "ok", "service": "browser-viewer"}

    return app


app = create_app()
