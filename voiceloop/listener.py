import enum
import logging
import threading
import time
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, List, Optional

from . import config
from .endpoint import Endpoint, EndpointDetector, peak_amplitude
from .errors import ListenTimeout, StreamError, TranscriptionError

log = logging.getLogger(__name__)


class ListenMode(enum.Enum):
    WAKE_WORD = "wake_word"
    COMMAND = "command"


class ContinuousListener:
    """
    Turns one long-lived microphone subscription into discrete utterances.

    The capture thread pushes every chunk through an EndpointDetector and
    buffers it. When the detector reports a boundary and speech was heard
    since the previous one, the buffered audio is handed to the transcriber
    on a single worker thread and the result is routed by mode:

      WAKE_WORD — the pending result resolves only when the transcript
                  contains the wake phrase. Other transcripts and
                  transcription errors are logged and listening continues.
      COMMAND   — the first transcript resolves the pending result, even an
                  empty one. A transcription error fails it.

    Modes are switched only by the caller (begin_listening and the blocking
    listen_* wrappers). Each call starts a new turn: buffer, detector,
    in-flight flag and pending result are all reset, and results produced
    for an older turn are discarded. While nothing is waiting for a result
    chunks are still read, then dropped.

    The recording device is never reopened between turns. If the capture
    source fails, the pending result fails with StreamError and the listener
    stays dead until start() is called again.
    """

    _HEARTBEAT_CHUNKS = 300

    def __init__(
        self,
        transcriber,
        volume_threshold: int = config.VOLUME_THRESHOLD,
        silence_duration: float = config.SILENCE_DURATION_S,
        wake_phrase: str = config.WAKE_PHRASE,
        wake_phrase_alt: Optional[str] = config.WAKE_PHRASE_ALT,
        startup_skip: int = config.STARTUP_SKIP_CHUNKS,
        command_skip: int = config.COMMAND_SKIP_CHUNKS,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None,
    ):
        self._transcriber = transcriber
        self._detector = EndpointDetector(volume_threshold, silence_duration, startup_skip)
        self._wake_phrase = wake_phrase.lower().strip()
        self._wake_phrase_alt = (wake_phrase_alt or "").lower().strip()
        self._command_skip = command_skip
        self._clock = clock
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="transcribe")

        self._lock = threading.Lock()
        self._mode = ListenMode.WAKE_WORD
        self._buffer: List[bytes] = []
        self._pending: Optional[Future] = None
        self._turn = 0
        self._processing = False
        self._inflight: Optional[threading.Event] = None
        self._meter: Optional[List[int]] = None

        self._source = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._stream_error: Optional[StreamError] = None
        self._chunks_seen = 0

    # ── properties ───────────────────────────────────────────────────────────

    @property
    def mode(self) -> ListenMode:
        return self._mode

    @property
    def listening(self) -> bool:
        """True while a listen request is waiting for its result."""
        with self._lock:
            return self._pending is not None

    @property
    def buffered_bytes(self) -> int:
        with self._lock:
            return sum(len(c) for c in self._buffer)

    @property
    def volume_threshold(self) -> int:
        return self._detector.volume_threshold

    @volume_threshold.setter
    def volume_threshold(self, value: int):
        with self._lock:
            self._detector.volume_threshold = value
        log.info("Volume threshold set to %d.", value)

    # ── lifecycle ────────────────────────────────────────────────────────────

    def start(self, source):
        """Subscribe to *source* and start feeding chunks from a capture thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("listener already started")
        with self._lock:
            self._stream_error = None
        self._source = source
        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, name="capture", daemon=True)
        self._thread.start()
        log.info("Continuous capture started (threshold=%d, silence=%.1fs).",
                 self._detector.volume_threshold, self._detector.silence_duration)

    def stop(self):
        self._running = False
        if self._source is not None:
            self._source.unsubscribe()
        if self._thread is not None:
            self._thread.join(timeout=3)
            self._thread = None
        self._fail_stream(StreamError("capture stopped"))
        log.info("Continuous capture stopped.")

    def close(self):
        self.stop()
        self._executor.shutdown(wait=False)

    def _capture_loop(self):
        try:
            for chunk in self._source.subscribe():
                if not self._running:
                    return
                self.feed(chunk)
        except StreamError as exc:
            log.error("Capture stream failed: %s", exc)
            self._fail_stream(exc)
            return
        except Exception as exc:
            log.error("Capture stream failed: %s", exc)
            self._fail_stream(StreamError(f"capture source failed: {exc}"))
            return
        if self._running:
            log.error("Capture stream ended unexpectedly.")
            self._fail_stream(StreamError("capture source ended"))

    def _fail_stream(self, error: StreamError):
        with self._lock:
            if self._running:
                self._stream_error = error
            pending, self._pending = self._pending, None
            self._turn += 1
            self._buffer = []
        if pending is not None and not pending.done():
            pending.set_exception(error)

    # ── listen requests ──────────────────────────────────────────────────────

    def begin_listening(self, mode: ListenMode, volume_threshold: Optional[int] = None) -> Future:
        """Switch to *mode*, reset all turn state and return the new pending result."""
        leading = self._command_skip if mode is ListenMode.COMMAND else 0
        pending: Future = Future()
        with self._lock:
            if self._stream_error is not None:
                raise self._stream_error
            previous, self._pending = self._pending, pending
            self._turn += 1
            self._mode = mode
            self._buffer = []
            self._processing = False
            self._inflight = None
            self._detector.reset(leading_skip=leading, volume_threshold=volume_threshold)
        if previous is not None:
            previous.cancel()
        log.debug("Listening in %s mode (turn %d).", mode.value, self._turn)
        return pending

    def listen_for_wake_word(self, timeout: Optional[float] = None) -> str:
        """Block until an utterance containing the wake phrase is heard; returns its transcript."""
        pending = self.begin_listening(ListenMode.WAKE_WORD)
        try:
            return pending.result(timeout=timeout)
        except FutureTimeout:
            pass
        # An utterance still being transcribed may hold the wake phrase:
        # let it finish before giving up on this turn.
        with self._lock:
            inflight = self._inflight if self._pending is pending else None
        if inflight is not None:
            log.debug("Wake listen expired during transcription, waiting for it.")
            inflight.wait()
        self._disarm(pending)
        if pending.done():
            return pending.result()
        raise ListenTimeout(f"no wake phrase within {timeout}s")

    def listen_for_command(self, timeout: Optional[float] = None) -> str:
        """Block until the first utterance completes. A silent timeout yields ''."""
        pending = self.begin_listening(ListenMode.COMMAND)
        try:
            return pending.result(timeout=timeout)
        except FutureTimeout:
            self._disarm(pending)
            log.info("Command listen timed out after %ss.", timeout)
            return ""

    def capture_fixed(self, duration: float) -> str:
        """Record for *duration* seconds with endpointing disabled, then transcribe.

        Raises StreamError if the capture source fails meanwhile and
        TranscriptionError if transcription fails.
        """
        pending = self.begin_listening(ListenMode.COMMAND, volume_threshold=0)
        try:
            pending.result(timeout=duration)
        except FutureTimeout:
            pass
        except CancelledError:
            return ""
        with self._lock:
            if self._pending is not pending:
                return ""
            audio = b"".join(self._buffer)
            self._buffer = []
            self._pending = None
        if not audio:
            return ""
        log.info("Fixed capture: transcribing %d bytes …", len(audio))
        return self._executor.submit(self._transcriber.transcribe, audio).result() or ""

    def measure_peak(self, duration: float) -> int:
        """Return the loudest chunk peak seen over the next *duration* seconds."""
        with self._lock:
            if self._stream_error is not None:
                raise self._stream_error
            self._meter = []
        time.sleep(duration)
        with self._lock:
            peaks, self._meter = self._meter, None
        return max(peaks, default=0)

    def _disarm(self, pending: Future):
        with self._lock:
            if self._pending is pending:
                self._pending = None
                self._buffer = []

    # ── chunk handling ───────────────────────────────────────────────────────

    def feed(self, chunk: bytes, now: Optional[float] = None):
        """Process one chunk in arrival order."""
        if now is None:
            now = self._clock()
        with self._lock:
            self._chunks_seen += 1
            if self._meter is not None:
                self._meter.append(peak_amplitude(chunk))
                return
            if self._pending is None:
                return

            result = self._detector.process(chunk, now)
            if result is Endpoint.SKIP:
                return
            self._buffer.append(chunk)
            if self._chunks_seen % self._HEARTBEAT_CHUNKS == 0:
                log.debug("Listening (%s): %d chunks buffered, last peak %d.",
                          self._mode.value, len(self._buffer), self._detector.last_peak)
            if result is not Endpoint.BOUNDARY:
                return

            has_speech = self._detector.has_speech
            audio = b"".join(self._buffer)
            self._buffer = []
            self._detector.end_utterance()
            if not has_speech:
                log.debug("Silence-only utterance discarded (%d bytes).", len(audio))
                return
            if self._processing:
                log.info("Utterance dropped: previous transcription still running.")
                return
            self._processing = True
            self._inflight = finished = threading.Event()
            turn, mode = self._turn, self._mode

        log.info("Utterance complete (%d bytes), transcribing (%s) …", len(audio), mode.value)
        self._executor.submit(self._transcribe_utterance, turn, mode, audio, finished)

    def _transcribe_utterance(self, turn: int, mode: ListenMode, audio: bytes, finished: threading.Event):
        try:
            try:
                text = self._transcriber.transcribe(audio) or ""
            except TranscriptionError as exc:
                if mode is ListenMode.WAKE_WORD:
                    log.warning("Transcription failed while waiting for wake word: %s", exc)
                else:
                    self._settle(turn, error=exc)
                return

            if mode is ListenMode.COMMAND:
                self._settle(turn, text=text)
            elif self.matches_wake_phrase(text):
                log.info("Wake phrase heard: %r", text)
                self._settle(turn, text=text)
            elif text.strip():
                log.info("Heard: %r (no wake phrase)", text)
        finally:
            with self._lock:
                if turn == self._turn:
                    self._processing = False
            finished.set()

    def _settle(self, turn: int, text: Optional[str] = None, error: Optional[Exception] = None) -> bool:
        """Fulfil the pending result for *turn* exactly once."""
        with self._lock:
            if turn != self._turn or self._pending is None:
                return False
            pending, self._pending = self._pending, None
        if pending.done():
            return False
        if error is not None:
            pending.set_exception(error)
        else:
            pending.set_result(text)
        return True

    def matches_wake_phrase(self, text: str) -> bool:
        normalized = text.lower().strip()
        if not normalized:
            return False
        if self._wake_phrase in normalized:
            return True
        return bool(self._wake_phrase_alt) and self._wake_phrase_alt in normalized
