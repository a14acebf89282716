import threading
from concurrent.futures import Executor, Future

import numpy as np
import pytest

from voiceloop.listener import ContinuousListener


class InlineExecutor(Executor):
    """Runs submitted work immediately in the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class FakeTranscriber:
    """Returns scripted transcripts in order, then *default*. Exceptions are raised."""

    def __init__(self, *results, default=""):
        self.results = list(results)
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def transcribe(self, pcm_bytes):
        with self._lock:
            self.calls.append(pcm_bytes)
            result = self.results.pop(0) if self.results else self.default
        if callable(result):
            result = result()
        if isinstance(result, Exception):
            raise result
        return result


class FakeSource:
    """Emits *chunk* every *interval* seconds until unsubscribed."""

    def __init__(self, chunk, interval=0.01):
        self.chunk = chunk
        self.interval = interval
        self._stop = threading.Event()

    def subscribe(self):
        self._stop.clear()
        while not self._stop.wait(self.interval):
            yield self.chunk

    def unsubscribe(self):
        self._stop.set()


def tone(peak, samples=1600):
    return np.full(samples, peak, dtype="<i2").tobytes()


@pytest.fixture
def make_listener():
    def _make(*results, default="", executor=None, **kwargs):
        transcriber = FakeTranscriber(*results, default=default)
        options = dict(
            volume_threshold=900,
            silence_duration=0.5,
            wake_phrase="isis",
            wake_phrase_alt="ice is",
            startup_skip=1,
            command_skip=5,
            executor=executor or InlineExecutor(),
        )
        options.update(kwargs)
        return ContinuousListener(transcriber, **options), transcriber
    return _make
