"""Helpers for the 16-bit little-endian PCM that flows between capture, ASR and playback."""
import io
import wave

import numpy as np

from . import config

SAMPLE_WIDTH = 2
_INT16 = np.iinfo(np.int16)


def as_samples(pcm: bytes) -> np.ndarray:
    """int16 view of *pcm*; an odd trailing byte is ignored."""
    return np.frombuffer(pcm, dtype="<i2", count=len(pcm) // SAMPLE_WIDTH)


def apply_gain(pcm: bytes, gain: float) -> bytes:
    if gain == 1.0:
        return pcm
    scaled = np.rint(as_samples(pcm) * gain)
    return np.clip(scaled, _INT16.min, _INT16.max).astype("<i2").tobytes()


def pcm_to_wav(pcm: bytes, sample_rate: int = config.MIC_SAMPLE_RATE,
               channels: int = config.MIC_CHANNELS) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setparams((channels, SAMPLE_WIDTH, sample_rate, 0, "NONE", "not compressed"))
        wav.writeframes(pcm)
    return buf.getvalue()
