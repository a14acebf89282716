import logging
import re
import signal
import threading
from typing import List, Optional

from . import config
from .calibration import calibrate
from .errors import (GenerationError, ListenTimeout, StreamError, SynthesisError,
                     TranscriptionError)
from .tts import clean_for_tts

log = logging.getLogger(__name__)

_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


def split_sentences(text: str) -> List[str]:
    """Split *text* into sentence-like units; the whole text if it has no terminator."""
    sentences = [s.strip() for s in _SENTENCE.findall(text) if s.strip()]
    if sentences:
        return sentences
    return [text.strip()] if text.strip() else []


def is_affirmative(text: str) -> bool:
    normalized = text.lower().strip()
    return any(token in normalized for token in config.AFFIRMATIVE_TOKENS)


def is_reset_request(text: str) -> bool:
    normalized = text.lower().strip()
    return any(phrase in normalized for phrase in config.RESET_PHRASES)


class VoiceAssistantDaemon:
    """
    Drives the conversation cycle on top of a ContinuousListener:

      wake word → "Yes" → settle → command → LLM → reply in pairs of
      sentences, asking "Should I continue?" between pairs → repeat

    Every step blocks the next. Command transcription, generation and
    synthesis failures end the cycle with a spoken apology. A capture
    stream failure restarts the listener on a fresh subscription.
    """

    def __init__(self, listener, source, speaker, llm):
        self._listener = listener
        self._source = source
        self._speaker = speaker
        self._llm = llm
        self._stop = threading.Event()

    # ── cycle ────────────────────────────────────────────────────────────────

    def run_cycle(self):
        """One wake → command → reply round. Raises StreamError if capture fails."""
        if self._await_wake_word() is None:
            return
        log.info("Wake word acknowledged.")
        try:
            self._speaker.speak(config.WAKE_WORD_ACK_PHRASE)
            # Let the acknowledgment's echo die down before capturing.
            self._stop.wait(config.ACK_SETTLE_S)

            log.info("Listening for command …")
            try:
                user_text = self._listener.listen_for_command(timeout=config.COMMAND_LISTEN_TIMEOUT_S)
            except TranscriptionError as exc:
                log.error("Command transcription failed: %s", exc)
                self._speak_error()
                return

            if not user_text.strip():
                log.info("No speech detected.")
                self._speaker.speak(config.NO_SPEECH_PHRASE)
                return
            log.info("User said: %s", user_text)

            if is_reset_request(user_text):
                self._llm.reset()
                self._speaker.speak(config.RESET_ACK_PHRASE)
                return

            reply = self._llm.send(user_text)
            log.info("Assistant: %s", reply)
            self._speak_reply(reply)
        except GenerationError as exc:
            log.error("Generation failed: %s", exc)
            self._speak_error()
        except SynthesisError as exc:
            log.error("Synthesis failed: %s", exc)
            self._speak_error()

    def _await_wake_word(self) -> Optional[str]:
        log.info("Listening for wake word %r …", config.WAKE_PHRASE)
        while not self._stop.is_set():
            try:
                return self._listener.listen_for_wake_word(timeout=config.WAKE_LISTEN_TIMEOUT_S)
            except ListenTimeout:
                log.debug("No wake word yet, re-arming.")
        return None

    def _speak_reply(self, reply: str):
        sentences = split_sentences(clean_for_tts(reply))
        if not sentences:
            log.warning("Empty reply, nothing to speak.")
            return
        step = config.SENTENCES_PER_CHUNK
        for start in range(0, len(sentences), step):
            self._speaker.speak(" ".join(sentences[start:start + step]))
            if start + step >= len(sentences):
                break
            self._speaker.speak(config.CONTINUE_PROMPT)
            if not self._confirm():
                self._speaker.speak(config.STOP_PHRASE)
                break

    def _confirm(self) -> bool:
        try:
            answer = self._listener.capture_fixed(config.CONFIRM_CAPTURE_S)
        except TranscriptionError as exc:
            log.warning("Could not transcribe confirmation: %s", exc)
            return False
        log.info("User response: %r", answer)
        return is_affirmative(answer)

    def _speak_error(self):
        """Speak an apology so the user knows something went wrong."""
        try:
            self._speaker.speak(config.ERROR_PHRASE)
        except SynthesisError as exc:
            log.warning("Could not speak error message: %s", exc)

    # ── lifecycle ─────────────────────────────────────────────────────────────

    def run(self):
        log.info("Voice Assistant starting …")
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._signal_handler)

        self._listener.start(self._source)
        try:
            if config.CALIBRATE_ON_START:
                try:
                    calibrate(self._listener, self._speaker, window_s=config.CALIBRATION_WINDOW_S)
                except SynthesisError as exc:
                    log.warning("Calibration aborted (%s), keeping threshold %d.",
                                exc, self._listener.volume_threshold)
            log.info("Say %r to activate. Press Ctrl-C to stop.", config.WAKE_PHRASE)
            while not self._stop.is_set():
                try:
                    self.run_cycle()
                except StreamError as exc:
                    if self._stop.is_set():
                        break
                    log.error("Capture stream failed (%s), restarting in %.0fs …",
                              exc, config.STREAM_RESTART_DELAY_S)
                    self._listener.stop()
                    self._stop.wait(config.STREAM_RESTART_DELAY_S)
                    if not self._stop.is_set():
                        self._listener.start(self._source)
                    continue
                self._stop.wait(config.CYCLE_PAUSE_S)
        finally:
            self._shutdown()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self):
        self._stop.set()
        self._speaker.stop()
        self._listener.stop()

    def _signal_handler(self, signum, frame):
        log.info("Received signal %d, shutting down …", signum)
        self._stop.set()
        # The interrupted frame may be holding the listener lock.
        threading.Thread(target=self.stop, name="shutdown", daemon=True).start()

    def _shutdown(self):
        log.info("Shutting down …")
        self._listener.close()
        log.info("Voice Assistant stopped.")
