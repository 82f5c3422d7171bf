"""REST surface, driven in-process through httpx's ASGI transport."""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from browser_viewer.api.main import create_app
from browser_viewer.database.database import init_db
from browser_viewer.services.nlp_translator import NlpTranslator
from conftest import PNG_BYTES, FakeExecutor, FakeWebSocket, sqlite_url


def nlp_handler(request):
    return httpx.Response(200, json={"content": [{"type": "text", "text": "scroll down 500"}]})


@pytest_asyncio.fixture
async def app(tmp_path):
    app = create_app(
        database_url=sqlite_url(tmp_path, "api.db"),
        screenshots_dir=str(tmp_path / "screenshots"),
        executor=FakeExecutor(),
        translator=NlpTranslator(api_url="http://nlp.test/v1/messages",
                                 transport=httpx.MockTransport(nlp_handler)),
        warm_up=False,
        engine_options={"poolclass": NullPool},
    )
    # The ASGI transport does not run startup handlers
    app.state.coordinator.screenshots.ensure_root()
    await init_db(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create(client, name: str, **extra) -> dict:
    response = await client.post("/api/sessions", json={"name": name, **extra})
    assert response.status_code == 201
    return response.json()["session"]


class TestHook:
    @pytest.mark.asyncio
    async def test_hook_records_command_and_screenshot(self, client):
        response = await client.post("/api/hook", json={
            "sessionName": "assistant",
            "command": "open https://example.com",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["result"] == "Opened https://example.com"
        assert "error" not in body

        detail = (await client.get(f"/api/sessions/{body['session_id']}")).json()
        assert detail["session"]["source"] == "chat"
        assert detail["session"]["status"] == "active"
        [action] = detail["actions"]
        assert action["id"] == body["action_id"]
        assert action["screenshot_path"] == body["screenshot_path"]

        image = await client.get(f"/api/screenshots/{body['screenshot_path']}")
        assert image.status_code == 200
        assert image.headers["content-type"] == "image/png"
        assert image.content == PNG_BYTES

    @pytest.mark.asyncio
    async def test_hook_reuses_the_named_session(self, client):
        payload = {"sessionName": "nightly", "command": "scroll down 100", "source": "cron"}
        first = (await client.post("/api/hook", json=payload)).json()
        second = (await client.post("/api/hook", json=payload)).json()

        assert first["session_id"] == second["session_id"]
        assert first["action_id"] != second["action_id"]
        detail = (await client.get(f"/api/sessions/{first['session_id']}")).json()
        assert detail["session"]["source"] == "cron"
        assert len(detail["actions"]) == 2

    @pytest.mark.asyncio
    async def test_hook_reports_cli_errors_in_body(self, client):
        body = (await client.post("/api/hook", json={"sessionName": "x", "command": "get url"})).json()
        assert body["ok"] is True
        assert "No browser" in body["error"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload, message", [
        ({"sessionName": "x"}, "command is required"),
        ({"sessionName": "x", "command": "  "}, "command is required"),
        ({"command": "open https://example.com"}, "sessionName is required"),
    ])
    async def test_hook_validation(self, client, payload, message):
        response = await client.post("/api/hook", json=payload)
        assert response.status_code == 400
        assert response.json() == {"detail": message}

    @pytest.mark.asyncio
    async def test_hook_is_broadcast_to_viewers(self, app, client):
        viewer = FakeWebSocket()
        await app.state.coordinator.hub.connect(viewer)

        await client.post("/api/hook", json={"sessionName": "watched", "command": "open https://example.com"})

        assert viewer.types() == ["sessions-list", "action", "status", "screenshot", "action-update"]


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_list_and_search(self, client):
        alpha = await create(client, "Alpha run")
        await create(client, "beta run", source="cron")

        listed = (await client.get("/api/sessions")).json()["sessions"]
        assert {s["name"] for s in listed} == {"Alpha run", "beta run"}
        assert all(s["action_count"] == 0 for s in listed)

        found = (await client.get("/api/sessions", params={"q": "ALPHA"})).json()["sessions"]
        assert [s["id"] for s in found] == [alpha["id"]]

    @pytest.mark.asyncio
    async def test_create_does_not_change_the_active_session(self, app, client):
        await create(client, "background")
        assert app.state.coordinator.state.active_session_id is None

    @pytest.mark.asyncio
    async def test_create_with_live_session_name_clears_it(self, app, client):
        coordinator = app.state.coordinator
        viewer = FakeWebSocket()
        await coordinator.hub.connect(viewer)
        live = await coordinator.create_session("demo")
        viewer.sent.clear()

        created = await create(client, "demo")

        assert created["id"] != live.id
        assert coordinator.state.active_session_id is None
        assert viewer.of_type("session-info") == [None]
        old = (await client.get(f"/api/sessions/{live.id}")).json()["session"]
        assert old["status"] == "closed"

    @pytest.mark.asyncio
    async def test_create_requires_a_name(self, client):
        response = await client.post("/api/sessions", json={"name": " "})
        assert response.status_code == 400
        assert response.json() == {"detail": "Name is required"}

    @pytest.mark.asyncio
    async def test_unknown_session(self, client):
        assert (await client.get("/api/sessions/missing")).status_code == 404
        assert (await client.patch("/api/sessions/missing", json={"name": "x"})).status_code == 404
        assert (await client.delete("/api/sessions/missing")).status_code == 404

    @pytest.mark.asyncio
    async def test_rename_and_close(self, client):
        session = await create(client, "draft")

        renamed = await client.patch(f"/api/sessions/{session['id']}", json={"name": "final"})
        assert renamed.status_code == 200
        assert renamed.json()["session"]["name"] == "final"

        closed = await client.patch(f"/api/sessions/{session['id']}", json={"status": "closed"})
        assert closed.json()["session"]["status"] == "closed"

    @pytest.mark.asyncio
    async def test_rename_onto_active_name_conflicts(self, client):
        await create(client, "taken")
        other = await create(client, "other")

        response = await client.patch(f"/api/sessions/{other['id']}", json={"name": "taken"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_status_is_rejected(self, client):
        session = await create(client, "strict")
        response = await client.patch(f"/api/sessions/{session['id']}", json={"status": "paused"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete(self, client):
        hooked = (await client.post("/api/hook", json={
            "sessionName": "temporary",
            "command": "open https://example.com",
        })).json()

        response = await client.delete(f"/api/sessions/{hooked['session_id']}")
        assert response.json() == {"ok": True}
        assert (await client.get(f"/api/sessions/{hooked['session_id']}")).status_code == 404
        assert (await client.get(f"/api/screenshots/{hooked['screenshot_path']}")).status_code == 404


class TestScreenshots:
    @pytest.mark.asyncio
    async def test_traversal_is_forbidden(self, client):
        response = await client.get("/api/screenshots/..%2F..%2Fetc%2Fpasswd")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_file(self, client):
        response = await client.get("/api/screenshots/some-session/123.png")
        assert response.status_code == 404


class TestStatusAndCommands:
    @pytest.mark.asyncio
    async def test_status(self, app, client):
        await app.state.coordinator.hub.connect(FakeWebSocket())
        await client.post("/api/hook", json={"sessionName": "s", "command": "open https://example.com"})

        status = (await client.get("/api/status")).json()
        assert status == {
            "isOpen": True,
            "currentUrl": "https://example.com",
            "pageTitle": "Example Domain",
            "actionsCount": 1,
            "activeSessionId": None,
            "viewers": 1,
        }

    @pytest.mark.asyncio
    async def test_direct_command_is_not_recorded(self, app, client):
        response = await client.post("/api/command", json={"command": "open https://example.com"})

        assert response.status_code == 200
        assert response.json() == {"stdout": "Opened https://example.com", "stderr": ""}
        assert len(app.state.coordinator.state.actions) == 0

    @pytest.mark.asyncio
    async def test_direct_command_failure(self, client):
        response = await client.post("/api/command", json={"command": "get url"})
        assert response.status_code == 500
        assert "No browser" in response.json()["stderr"]

    @pytest.mark.asyncio
    async def test_direct_command_requires_command(self, client):
        assert (await client.post("/api/command", json={})).status_code == 400

    @pytest.mark.asyncio
    async def test_nlp(self, client):
        direct = (await client.post("/api/nlp", json={"input": "open https://example.com"})).json()
        assert direct == {"type": "direct", "command": "open https://example.com"}

        translated = (await client.post("/api/nlp", json={"input": "scroll a bit"})).json()
        assert translated == {"type": "nlp", "original": "scroll a bit", "command": "scroll down 500"}

    @pytest.mark.asyncio
    async def test_health(self, client):
        assert (await client.get("/health")).json() == {"status": "ok", "service": "browser-viewer"}
