from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from nosh.ai.utils import normalize_model_id, parse_data_url
from nosh.core.ai_client import (
    AIClient,
    ChatMessage,
    InlineImage,
    build_contents,
    is_rate_limit_error,
)
from nosh.exceptions import RateLimitedError, UpstreamGenerationError


def test_build_contents_maps_roles_and_images():
    system, contents = build_contents([
        ChatMessage(role="system", content="You are NOSH."),
        ChatMessage(role="system", content="Be brief."),
        ChatMessage(role="user", content="Extract this", images=[InlineImage(mime_type="image/png", data=b"\x89PNG")]),
        ChatMessage(role="assistant", content="{}"),
    ])

    assert system == "You are NOSH.\n\nBe brief."
    assert [c.role for c in contents] == ["user", "model"]
    assert contents[0].parts[0].text == "Extract this"
    assert contents[0].parts[1].inline_data.mime_type == "image/png"
    assert contents[0].parts[1].inline_data.data == b"\x89PNG"


def test_rate_limit_classification():
    assert is_rate_limit_error(SimpleNamespace(code=429))
    assert is_rate_limit_error(Exception("429 RESOURCE_EXHAUSTED"))
    assert is_rate_limit_error(Exception("You exceeded your current quota"))
    assert not is_rate_limit_error(Exception("500 INTERNAL"))


def _client_with(side_effect=None, response=None):
    client = AIClient()
    client.mode = "gemini"
    client._client = MagicMock()
    if side_effect is not None:
        client._client.models.generate_content.side_effect = side_effect
    else:
        client._client.models.generate_content.return_value = response
    return client


def test_chat_returns_text_and_usage():
    response = SimpleNamespace(
        text='{"title": "Dal"}',
        parsed=None,
        usage_metadata=SimpleNamespace(prompt_token_count=100, candidates_token_count=20, total_token_count=120),
    )
    client = _client_with(response=response)

    result = client.chat([ChatMessage(role="user", content="hi")], temperature=0.3, json_output=True, model="google/gemini-2.5-flash")

    assert result.content == '{"title": "Dal"}'
    assert result.model == "gemini-2.5-flash"
    assert result.usage.total_tokens == 120
    config = client._client.models.generate_content.call_args.kwargs["config"]
    assert config.response_mime_type == "application/json"
    assert config.temperature == 0.3


def test_chat_rate_limited():
    client = _client_with(side_effect=Exception("429 RESOURCE_EXHAUSTED: quota"))
    with pytest.raises(RateLimitedError):
        client.chat([ChatMessage(role="user", content="hi")])
    assert client.quota_exceeded is True
    assert client.last_error.startswith("Exception")


def test_chat_upstream_error():
    client = _client_with(side_effect=Exception("503 UNAVAILABLE"))
    with pytest.raises(UpstreamGenerationError) as exc:
        client.chat([ChatMessage(role="user", content="hi")])
    assert not isinstance(exc.value, RateLimitedError)


def test_chat_unavailable_in_mock_mode():
    client = AIClient()
    client.mode = "mock"
    with pytest.raises(UpstreamGenerationError):
        client.chat([ChatMessage(role="user", content="hi")])


def test_normalize_model_id():
    assert normalize_model_id('model="gemini-2.5-flash"') == "gemini-2.5-flash"
    assert normalize_model_id("google/gemini-2.5-flash") == "gemini-2.5-flash"
    assert normalize_model_id(" gemini-2.5-pro ") == "gemini-2.5-pro"


def test_parse_data_url():
    assert parse_data_url("data:image/jpeg;base64,aGVsbG8=") == ("image/jpeg", b"hello")
    assert parse_data_url("data:,plain%20text") == ("application/octet-stream", b"plain text")
    assert parse_data_url("https://example.com/a.png") is None
    assert parse_data_url("data:image/png;base64,@@@") is None


def test_ai_status(client):
    body = client.get("/api/ai/status").json()
    assert body["ai_mode"] == "mock"
    assert body["available"] is False
