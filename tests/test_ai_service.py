import pytest

import ai_service
from ai_service import AIServiceError, ChatService
from config import get_settings


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(get_settings(), "ai_api_key", "test-key")
    calls = []

    def fake_post(url, payload, *, api_key, timeout):
        calls.append({"url": url, "payload": payload, "api_key": api_key})
        return {"choices": [{"message": {"content": "  Save 20% of income.  "}}]}

    monkeypatch.setattr(ai_service, "_post_completion", fake_post)
    return calls


def test_chat_relays_messages_with_fixed_parameters(configured) -> None:
    messages = [
        {"role": "system", "content": "You are helpful."},
        {"role": "user", "content": "How do I budget?"},
    ]
    reply = ChatService().chat(messages)

    assert reply.success is True
    assert reply.message == "Save 20% of income."
    payload = configured[0]["payload"]
    assert payload["messages"] == messages
    assert payload["model"] == "deepseek-ai/DeepSeek-V3"
    assert payload["temperature"] == 0.7
    assert payload["max_tokens"] == 500
    assert configured[0]["api_key"] == "test-key"


def test_provider_failure_becomes_unsuccessful_reply(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "ai_api_key", "test-key")

    def boom(url, payload, *, api_key, timeout):
        raise AIServiceError("AI provider returned HTTP 502")

    monkeypatch.setattr(ai_service, "_post_completion", boom)
    reply = ChatService().chat([{"role": "user", "content": "hi"}])

    assert reply.success is False
    assert "502" in reply.message


def test_empty_content_and_missing_key(monkeypatch) -> None:
    assert ChatService().chat([{"role": "user", "content": "hi"}]).success is False
    assert ChatService().chat([]).message.startswith("Messages array is required")

    monkeypatch.setattr(get_settings(), "ai_api_key", "test-key")
    monkeypatch.setattr(
        ai_service,
        "_post_completion",
        lambda url, payload, *, api_key, timeout: {"choices": [{"message": {"content": " "}}]},
    )
    reply = ChatService().chat([{"role": "user", "content": "hi"}])
    assert reply == ai_service.ChatReply(False, "No content in AI response")


def test_advice_wraps_context_in_prompt(configured) -> None:
    reply = ChatService().advice("I spend too much on takeout")

    assert reply.success is True
    sent = configured[0]["payload"]["messages"]
    assert len(sent) == 1
    assert sent[0]["role"] == "user"
    assert "I spend too much on takeout" in sent[0]["content"]
    assert "financial advisor" in sent[0]["content"]


class _BrokenResponse:
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def read(self):
        raise ConnectionResetError("peer reset")


def test_connection_dropped_mid_read_becomes_unsuccessful_reply(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "ai_api_key", "test-key")
    monkeypatch.setattr(ai_service, "urlopen", lambda req, timeout: _BrokenResponse())

    reply = ChatService().chat([{"role": "user", "content": "hi"}])

    assert reply == ai_service.ChatReply(False, "Failed to get response from AI service")


def test_non_text_content_becomes_unsuccessful_reply(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "ai_api_key", "test-key")
    monkeypatch.setattr(
        ai_service,
        "_post_completion",
        lambda url, payload, *, api_key, timeout: {"choices": [{"message": {"content": 42}}]},
    )

    reply = ChatService().chat([{"role": "user", "content": "hi"}])

    assert reply == ai_service.ChatReply(False, "No content in AI response")
