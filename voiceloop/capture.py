import logging
import threading
from typing import Iterator

import pyaudio

from . import config
from .errors import StreamError

log = logging.getLogger(__name__)


class MicrophoneCapture:
    """
    Long-lived microphone subscription.

    subscribe() opens the input stream once and yields raw 16-bit mono PCM
    chunks (MIC_CHUNK_SAMPLES samples at 16 kHz) until unsubscribe() is
    called. Reading never pauses between listen turns; callers that have
    nothing to do with a chunk simply drop it, which keeps the PyAudio
    buffer drained.

    Transient read errors (input overflow and friends) are logged and
    skipped. MIC_MAX_READ_ERRORS consecutive failures raise StreamError.
    """

    def __init__(self, chunk_samples: int = config.MIC_CHUNK_SAMPLES):
        self._chunk_samples = chunk_samples
        self._pa = pyaudio.PyAudio()
        self._stream = None
        self._lock = threading.Lock()
        self._subscribed = threading.Event()

    def _open(self):
        open_kwargs = dict(
            format=pyaudio.paInt16,
            channels=config.MIC_CHANNELS,
            rate=config.MIC_SAMPLE_RATE,
            input=True,
            frames_per_buffer=self._chunk_samples,
        )
        if config.MIC_DEVICE_INDEX >= 0:
            open_kwargs["input_device_index"] = config.MIC_DEVICE_INDEX
        try:
            self._stream = self._pa.open(**open_kwargs)
        except OSError as exc:
            raise StreamError(f"cannot open microphone: {exc}") from exc
        log.info("Microphone opened (%d Hz, %d samples/chunk, device=%s).",
                 config.MIC_SAMPLE_RATE, self._chunk_samples,
                 config.MIC_DEVICE_INDEX if config.MIC_DEVICE_INDEX >= 0 else "default")

    def subscribe(self) -> Iterator[bytes]:
        with self._lock:
            if self._subscribed.is_set():
                raise StreamError("microphone already subscribed")
            self._open()
            self._subscribed.set()

        errors = 0
        try:
            while self._subscribed.is_set():
                try:
                    frame = self._stream.read(self._chunk_samples, exception_on_overflow=False)
                except OSError as exc:
                    errors += 1
                    log.warning("Audio read error (%d in a row): %s", errors, exc)
                    if errors >= config.MIC_MAX_READ_ERRORS:
                        raise StreamError(f"microphone read failed {errors} times: {exc}") from exc
                    continue
                errors = 0
                yield frame
        finally:
            self._close()

    def unsubscribe(self):
        self._subscribed.clear()

    def _close(self):
        with self._lock:
            self._subscribed.clear()
            if self._stream is not None:
                try:
                    self._stream.stop_stream()
                    self._stream.close()
                except OSError as exc:
                    log.warning("Error closing microphone: %s", exc)
                self._stream = None
        log.info("Microphone closed.")

    def terminate(self):
        self.unsubscribe()
        self._pa.terminate()
