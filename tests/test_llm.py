import pytest
import requests

from voiceloop import config
from voiceloop import llm as llm_mod
from voiceloop.errors import GenerationError
from voiceloop.llm import EchoClient, LLMClient


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


def reply(text):
    return FakeResponse({"choices": [{"message": {"role": "assistant", "content": text}}]})


@pytest.fixture
def posts(monkeypatch):
    calls = []
    replies = []

    def fake_post(url, json, headers, timeout):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return replies.pop(0)

    monkeypatch.setattr(llm_mod.requests, "post", fake_post)
    return calls, replies


def test_single_turn(posts, monkeypatch):
    monkeypatch.setattr(config, "LLM_BASE_URL", "http://llm/v1")
    monkeypatch.setattr(config, "LLM_API_KEY", "secret")
    calls, replies = posts
    replies.append(reply("  Hello, I am your assistant.  "))

    assert LLMClient().send("Say hello") == "Hello, I am your assistant."
    call = calls[0]
    assert call["url"] == "http://llm/v1/chat/completions"
    assert call["headers"] == {"Authorization": "Bearer secret"}
    assert call["json"]["messages"][0]["role"] == "system"
    assert call["json"]["messages"][-1] == {"role": "user", "content": "Say hello"}


def test_multi_turn_keeps_history(posts):
    calls, replies = posts
    replies.extend([reply("Nice to meet you, Robot."), reply("Your name is Robot.")])
    client = LLMClient()
    client.send("My name is Robot.")
    client.send("What is my name?")

    messages = calls[1]["json"]["messages"]
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[2]["content"] == "Nice to meet you, Robot."
    assert len(client.history) == 4


def test_history_is_capped(posts):
    calls, replies = posts
    replies.extend(reply(f"answer {i}") for i in range(5))
    client = LLMClient(history_turns=2)
    for i in range(5):
        client.send(f"question {i}")
    history = client.history
    assert len(history) == 4
    assert history[0] == {"role": "user", "content": "question 3"}
    assert history[-1] == {"role": "assistant", "content": "answer 4"}


def test_failure_leaves_history_untouched(posts):
    calls, replies = posts
    replies.extend([reply("ok"), FakeResponse({}, status=429)])
    client = LLMClient()
    client.send("first")
    with pytest.raises(GenerationError):
        client.send("second")
    assert [m["content"] for m in client.history] == ["first", "ok"]


def test_malformed_response(posts):
    calls, replies = posts
    replies.append(FakeResponse({"choices": []}))
    with pytest.raises(GenerationError):
        LLMClient().send("hi")


def test_network_error(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(llm_mod.requests, "post", fake_post)
    with pytest.raises(GenerationError):
        LLMClient().send("hi")


def test_reset_clears_history(posts):
    calls, replies = posts
    replies.append(reply("ok"))
    client = LLMClient()
    client.send("hi")
    client.reset()
    assert client.history == []


def test_echo_client():
    assert EchoClient().send("turn it up") == "I heard you say: turn it up"
