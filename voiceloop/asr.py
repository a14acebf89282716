import base64
import logging
import time

import requests

from . import config
from .errors import TranscriptionError
from .pcm import pcm_to_wav

log = logging.getLogger(__name__)


class ASRClient:
    """Send buffered PCM to the ASR service and return transcribed text."""

    def __init__(self, endpoint: str = config.ASR_ENDPOINT, timeout: float = config.ASR_TIMEOUT):
        self._endpoint = endpoint
        self._timeout = timeout

    def transcribe(self, pcm_bytes: bytes) -> str:
        """Return the transcript of 16 kHz mono PCM, possibly ''."""
        wav = pcm_to_wav(pcm_bytes)
        b64 = base64.b64encode(wav).decode()
        t0 = time.time()
        try:
            resp = requests.post(
                self._endpoint,
                json={"wav_base64": b64},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            text = resp.json().get("text") or ""
        except requests.RequestException as exc:
            raise TranscriptionError(f"ASR request failed: {exc}") from exc
        except (ValueError, AttributeError) as exc:
            raise TranscriptionError(f"ASR unexpected response: {exc}") from exc
        text = str(text).strip()
        log.info("ASR: %.1fs of audio in %.0f ms → %r",
                 len(pcm_bytes) / (2 * config.MIC_SAMPLE_RATE), (time.time() - t0) * 1000, text)
        return text
