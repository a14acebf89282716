import logging
import re
from typing import Optional

import requests

from . import config
from .errors import SynthesisError

log = logging.getLogger(__name__)


_SPEECH_CLEANUP = [
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),  # [label](url) -> label
    (re.compile(r"^\s*[-*]\s+", re.MULTILINE), ""),  # list markers
    (re.compile(r"[^\w\s.,!?;:'\"/()-]+"), ""),  # markup, emoji, symbols
    (re.compile(r"\s+"), " "),
]


def clean_for_tts(text: str) -> str:
    """Reduce an LLM reply to plain words and sentence punctuation."""
    for pattern, replacement in _SPEECH_CLEANUP:
        text = pattern.sub(replacement, text)
    return text.strip()


class TTSClient:
    """Send text to the TTS service and return WAV bytes."""

    def __init__(self, endpoint: str = config.TTS_ENDPOINT, voice: str = config.TTS_VOICE):
        self._endpoint = endpoint
        self._voice = voice

    def synthesize(self, text: str, timeout: Optional[float] = None) -> bytes:
        payload = {
            "target_text": text,
            "voice_type": self._voice,
            "stream": False,
        }
        try:
            resp = requests.post(
                self._endpoint,
                json=payload,
                timeout=timeout if timeout is not None else config.TTS_TIMEOUT,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise SynthesisError(f"TTS request failed: {exc}") from exc
        if not resp.content:
            raise SynthesisError("TTS returned no audio")
        log.debug("TTS received %d bytes for %r", len(resp.content), text)
        return resp.content


class Speaker:
    """Synthesis plus playback: speak() returns once the audio has played."""

    def __init__(self, tts: TTSClient, player):
        self._tts = tts
        self._player = player

    def synthesize_to_buffer(self, text: str) -> bytes:
        return self._tts.synthesize(text)

    def speak(self, text: str):
        if not text.strip():
            return
        log.info("Speaking: %r", text)
        audio = self._tts.synthesize(text)
        try:
            self._player.play(audio)
        except OSError as exc:
            raise SynthesisError(f"playback failed: {exc}") from exc

    def stop(self):
        self._player.stop()
