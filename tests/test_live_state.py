from browser_viewer.schemas.session import ActionOut
from browser_viewer.services.command_executor import NoBrowser, PageOpen, ToolError
from browser_viewer.services.live_state import LiveAction, LiveState


def make_action(i: int) -> LiveAction:
    return LiveAction(id=f"a{i}", type="scroll", command=f"scroll down {i}", timestamp=i)


def test_buffer_keeps_the_most_recent_200():
    state = LiveState()
    for i in range(201):
        state.push_action(make_action(i))

    recent = state.recent_actions()
    assert len(recent) == 200
    assert recent[0].id == "a1"
    assert recent[-1].id == "a200"


def test_replace_actions_respects_the_limit():
    state = LiveState(buffer_limit=3)
    state.replace_actions(make_action(i) for i in range(10))
    assert [a.id for a in state.recent_actions()] == ["a7", "a8", "a9"]

    state.clear_actions()
    assert state.recent_actions() == []


def test_page_state_updates_status():
    state = LiveState()
    state.apply_page_state(PageOpen(url="https://example.com", title="Example Domain"))

    assert state.status_payload().model_dump(by_alias=True) == {
        "isOpen": True,
        "currentUrl": "https://example.com",
        "pageTitle": "Example Domain",
    }


def test_failed_probe_closes_but_keeps_last_url():
    state = LiveState()
    state.apply_page_state(PageOpen(url="https://example.com", title="Example Domain"))

    state.apply_page_state(NoBrowser())
    assert not state.is_open
    assert state.current_url == "https://example.com"

    state.apply_page_state(PageOpen(url="https://example.org", title=""))
    state.apply_page_state(ToolError(message="daemon crashed"))
    assert not state.is_open


def test_action_from_row_uses_the_row_id():
    row = ActionOut(
        id="row-1",
        session_id="s1",
        command="open https://example.com",
        result="Opened",
        timestamp=42,
    )

    action = LiveAction.from_row(row)

    assert action.id == action.persisted_id == "row-1"
    assert action.type == "open"
    assert action.session_id == "s1"
    assert action.update_payload().model_dump(exclude_none=True) == {"id": "row-1", "result": "Opened"}
