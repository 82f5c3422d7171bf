import json

import httpx
import pytest

from browser_viewer.services.nlp_translator import (
    SNAPSHOT_CONTEXT_CHARS,
    NlpTranslator,
    TranslationError,
    clean_command,
    is_direct_command,
)


def translator_for(handler) -> NlpTranslator:
    return NlpTranslator(api_url="http://nlp.test/v1/messages", model="test-model",
                         transport=httpx.MockTransport(handler))


def reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


def test_direct_commands_are_recognised():
    assert is_direct_command("open https://example.com")
    assert is_direct_command("  Scroll down 500")
    assert not is_direct_command("go to google")
    assert not is_direct_command("")


def test_clean_command_strips_markdown():
    assert clean_command("```\nopen https://example.com\n```") == "open https://example.com"
    assert clean_command("`press Enter`") == "press Enter"


@pytest.mark.asyncio
async def test_direct_command_skips_the_model():
    def handler(request):
        raise AssertionError("model should not be called")

    translation = await translator_for(handler).translate("open https://example.com")
    assert translation.type == "direct"
    assert translation.command == "open https://example.com"


@pytest.mark.asyncio
async def test_natural_language_is_translated():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return reply("```bash\nopen https://www.google.com\n```")

    translation = await translator_for(handler).translate("go to google")

    assert translation.type == "nlp"
    assert translation.command == "open https://www.google.com"
    assert translation.original == "go to google"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["messages"] == [{"role": "user", "content": "go to google"}]


@pytest.mark.asyncio
async def test_snapshot_context_is_truncated():
    seen = {}

    def handler(request):
        seen["content"] = json.loads(request.content)["messages"][0]["content"]
        return reply("click @e1")

    snapshot = "x" * (SNAPSHOT_CONTEXT_CHARS + 500)
    await translator_for(handler).translate("click the first link", snapshot=snapshot)

    assert "x" * SNAPSHOT_CONTEXT_CHARS in seen["content"]
    assert "x" * (SNAPSHOT_CONTEXT_CHARS + 1) not in seen["content"]
    assert seen["content"].endswith("User request: click the first link")


@pytest.mark.asyncio
async def test_upstream_error_raises():
    with pytest.raises(TranslationError):
        await translator_for(lambda request: httpx.Response(500, text="boom")).translate("go to google")


@pytest.mark.asyncio
async def test_empty_answer_raises():
    with pytest.raises(TranslationError):
        await translator_for(lambda request: reply("   ")).translate("go to google")


@pytest.mark.asyncio
async def test_connection_error_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TranslationError):
        await translator_for(handler).translate("go to google")
