import base64
import io
import wave

import pytest
import requests

from voiceloop import asr as asr_mod
from voiceloop.asr import ASRClient
from voiceloop.errors import TranscriptionError

from conftest import tone


class FakeResponse:
    def __init__(self, payload=None, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def test_transcribe_posts_wav_and_trims(monkeypatch):
    sent = {}

    def fake_post(url, json, timeout):
        sent.update(url=url, body=json, timeout=timeout)
        return FakeResponse({"text": "  hello isis \n"})

    monkeypatch.setattr(asr_mod.requests, "post", fake_post)
    pcm = tone(1000, samples=16000)
    text = ASRClient(endpoint="http://asr/asr", timeout=7).transcribe(pcm)

    assert text == "hello isis"
    assert sent["url"] == "http://asr/asr"
    assert sent["timeout"] == 7
    with wave.open(io.BytesIO(base64.b64decode(sent["body"]["wav_base64"]))) as wf:
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert wf.readframes(wf.getnframes()) == pcm


@pytest.mark.parametrize("payload", [{"text": ""}, {"text": None}, {}])
def test_missing_text_is_empty(monkeypatch, payload):
    monkeypatch.setattr(asr_mod.requests, "post", lambda *a, **k: FakeResponse(payload))
    assert ASRClient().transcribe(b"") == ""


def test_http_error_raises(monkeypatch):
    monkeypatch.setattr(asr_mod.requests, "post", lambda *a, **k: FakeResponse({}, status=500))
    with pytest.raises(TranscriptionError):
        ASRClient().transcribe(tone(1))


def test_timeout_raises(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(asr_mod.requests, "post", fake_post)
    with pytest.raises(TranscriptionError):
        ASRClient().transcribe(tone(1))


def test_bad_json_raises(monkeypatch):
    monkeypatch.setattr(asr_mod.requests, "post", lambda *a, **k: FakeResponse(ValueError("not json")))
    with pytest.raises(TranscriptionError):
        ASRClient().transcribe(tone(1))
