"""
Silence-based utterance endpointing.

The detector looks at one chunk at a time and decides whether the current
utterance has ended. Loudness is the chunk's peak absolute sample value, not
its RMS energy: brief loud transients count as speech and steady moderate
noise below the threshold counts as silence.

An utterance ends once below-threshold chunks have persisted for
``silence_duration`` seconds. Any loud chunk restarts that countdown from zero.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .pcm import as_samples

log = logging.getLogger(__name__)


class Endpoint(enum.Enum):
    SKIP = "skip"           # leading chunk, ignored entirely
    CONTINUE = "continue"
    BOUNDARY = "boundary"


def peak_amplitude(chunk: bytes) -> int:
    """Full-wave rectified maximum of a 16-bit PCM chunk."""
    samples = as_samples(chunk)
    if samples.size == 0:
        return 0
    # Widen first: abs(-32768) does not fit in int16.
    return int(np.abs(samples.astype(np.int32)).max())


@dataclass
class SilenceTracker:
    silence_start: Optional[float] = None
    chunk_index: int = 0


class EndpointDetector:

    def __init__(self, volume_threshold: int, silence_duration: float, startup_skip: int = 1):
        self.volume_threshold = volume_threshold
        self.silence_duration = silence_duration
        self.startup_skip = startup_skip
        self.tracker = SilenceTracker()
        self.has_speech = False
        self.last_peak = 0
        self._leading_skip = startup_skip
        self._threshold = volume_threshold

    @property
    def threshold(self) -> int:
        """Threshold in effect for the current turn."""
        return self._threshold

    def reset(self, leading_skip: int = 0, volume_threshold: Optional[int] = None):
        """Start a new turn. *volume_threshold* overrides the configured one until the next reset."""
        self.tracker = SilenceTracker()
        self.has_speech = False
        self.last_peak = 0
        self._leading_skip = max(self.startup_skip, leading_skip)
        self._threshold = self.volume_threshold if volume_threshold is None else volume_threshold

    def end_utterance(self):
        """Clear per-utterance state after a boundary. The chunk index keeps counting."""
        self.tracker.silence_start = None
        self.has_speech = False

    def process(self, chunk: bytes, now: float) -> Endpoint:
        self.tracker.chunk_index += 1
        if self.tracker.chunk_index <= self._leading_skip:
            return Endpoint.SKIP

        peak = peak_amplitude(chunk)
        self.last_peak = peak

        if peak >= self._threshold:
            self.has_speech = True
            self.tracker.silence_start = None
            return Endpoint.CONTINUE

        if self.tracker.silence_start is None:
            self.tracker.silence_start = now
            return Endpoint.CONTINUE

        if now - self.tracker.silence_start >= self.silence_duration:
            log.debug("Silence for %.2fs after chunk %d (peak=%d).",
                      now - self.tracker.silence_start, self.tracker.chunk_index, peak)
            self.tracker.silence_start = None
            return Endpoint.BOUNDARY
        return Endpoint.CONTINUE
