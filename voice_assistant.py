#!/usr/bin/env python3
"""
Voice Assistant — entry point
------------------------------
Flow: Mic → silence endpointing → ASR → wake phrase → command → LLM → TTS → Speaker

Run directly:   python voice_assistant.py
Installed:      voiceloop

Configuration:
  Put settings in a .env file in the working directory or export them as
  environment variables (env vars override .env values). See voiceloop/config.py.

Useful settings:
  VOLUME_THRESHOLD    — peak amplitude counted as speech (default 400)
  WAKE_PHRASE         — phrase that activates the assistant (default "isis")
  TEST_MODE=true      — echo commands back instead of calling the LLM
  CALIBRATE_ON_START  — measure noise and speech levels at startup
"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the directory the assistant is launched from.
# If .env does not exist this is a no-op.
load_dotenv(dotenv_path=Path.cwd() / ".env")

from voiceloop import config
from voiceloop.errors import ConfigError, StreamError

log = logging.getLogger("voice_assistant")


def _setup_logging() -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers: list = [logging.StreamHandler(sys.stdout)]
    try:
        handlers.append(logging.FileHandler(config.LOG_FILE))
    except (PermissionError, FileNotFoundError):
        pass  # no write access to log file; stdout only
    logging.basicConfig(level=config.LOG_LEVEL, format=fmt, handlers=handlers)


def main() -> int:
    _setup_logging()
    try:
        config.validate()
    except ConfigError as exc:
        log.critical("Invalid configuration: %s", exc)
        return 1

    # Imported here so a broken audio stack is reported like any other startup fault.
    from voiceloop.asr import ASRClient
    from voiceloop.audio import AudioPlayer
    from voiceloop.capture import MicrophoneCapture
    from voiceloop.daemon import VoiceAssistantDaemon
    from voiceloop.listener import ContinuousListener
    from voiceloop.llm import EchoClient, LLMClient
    from voiceloop.tts import Speaker, TTSClient

    mic = MicrophoneCapture()
    player = AudioPlayer()
    try:
        daemon = VoiceAssistantDaemon(
            listener=ContinuousListener(ASRClient()),
            source=mic,
            speaker=Speaker(TTSClient(), player),
            llm=EchoClient() if config.TEST_MODE else LLMClient(),
        )
        daemon.run()
    except StreamError as exc:
        log.critical("Audio capture unavailable: %s", exc)
        return 1
    finally:
        mic.terminate()
        player.terminate()
    return 0


if __name__ == "__main__":
    sys.exit(main())
