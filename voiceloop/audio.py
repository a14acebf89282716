import io
import logging
import threading
import wave

import pyaudio

from . import config
from .pcm import apply_gain

log = logging.getLogger(__name__)


class AudioPlayer:
    """Plays WAV audio bytes through the system speaker (blocking)."""

    def __init__(self):
        self._pa = pyaudio.PyAudio()
        self._lock = threading.Lock()
        self._stop = threading.Event()

    def play(self, wav_bytes: bytes):
        with self._lock:
            self._stop.clear()
            stream = None
            try:
                with wave.open(io.BytesIO(wav_bytes), "rb") as wf:
                    open_kwargs = dict(
                        format=self._pa.get_format_from_width(wf.getsampwidth()),
                        channels=wf.getnchannels(),
                        rate=wf.getframerate(),
                        output=True,
                    )
                    if config.SPK_DEVICE_INDEX >= 0:
                        open_kwargs["output_device_index"] = config.SPK_DEVICE_INDEX
                    frames = apply_gain(wf.readframes(wf.getnframes()), config.TTS_VOLUME_GAIN)
                    duration_s = wf.getnframes() / wf.getframerate()
                    frame_bytes = wf.getsampwidth() * wf.getnchannels()
                stream = self._pa.open(**open_kwargs)

                # Write from a daemon thread so a wedged device cannot hang
                # the session: the join below enforces a hard ceiling.
                step = config.SPK_CHUNK_FRAMES * frame_bytes

                def _write_loop():
                    try:
                        for offset in range(0, len(frames), step):
                            if self._stop.is_set():
                                log.info("Playback stopped.")
                                return
                            stream.write(frames[offset: offset + step])
                    except OSError as exc:
                        log.error("Playback write error: %s", exc)

                t = threading.Thread(target=_write_loop, daemon=True)
                t.start()
                t.join(timeout=duration_s + 10)
                if t.is_alive():
                    self._stop.set()
                    log.warning("Playback timed out after %.1fs, aborting.", duration_s + 10)

            except (wave.Error, EOFError) as exc:
                log.error("Cannot play audio: %s", exc)
            finally:
                if stream is not None:
                    try:
                        stream.stop_stream()
                        stream.close()
                    except OSError as exc:
                        log.warning("Error closing speaker stream: %s", exc)

    def stop(self):
        self._stop.set()

    def terminate(self):
        self.stop()
        self._pa.terminate()
