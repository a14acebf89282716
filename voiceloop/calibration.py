import logging
import time
from dataclasses import dataclass

log = logging.getLogger(__name__)

FULL_SCALE = 32767
MIN_FRACTION = 0.01
MAX_FRACTION = 0.5
NOISE_HEADROOM = 0.3


@dataclass
class Calibration:
    noise_peak: int
    speech_peak: int
    threshold: int


def threshold_between(noise_peak: int, speech_peak: int) -> int:
    """Pick a threshold 30% of the way from the noise floor to speaking level.

    Clamped to 1%-50% of full scale: higher values stop silence detection
    from ever seeing speech, lower ones trigger on hiss.
    """
    threshold = noise_peak + (speech_peak - noise_peak) * NOISE_HEADROOM
    lo, hi = FULL_SCALE * MIN_FRACTION, FULL_SCALE * MAX_FRACTION
    if threshold > hi:
        log.warning("Calibrated threshold too high (%.0f), capping at %.0f.", threshold, hi)
        threshold = hi
    elif threshold < lo:
        log.warning("Calibrated threshold too low (%.0f), raising to %.0f.", threshold, lo)
        threshold = lo
    return int(round(threshold))


def calibrate(listener, speaker=None, window_s: float = 3.0, pause_s: float = 1.0) -> Calibration:
    """Measure background noise then speaking volume on the live listener and apply the result."""
    if speaker is not None:
        speaker.speak("Calibrating. Please be quiet.")
    log.info("Calibration: measuring background noise for %.0fs, please be quiet …", window_s)
    noise = listener.measure_peak(window_s)
    log.info("Calibration: background noise peak %d.", noise)

    time.sleep(pause_s)

    if speaker is not None:
        speaker.speak("Now please say something.")
    log.info("Calibration: measuring speaking volume for %.0fs, please talk …", window_s)
    speech = listener.measure_peak(window_s)
    log.info("Calibration: speaking peak %d.", speech)

    result = Calibration(noise, speech, threshold_between(noise, speech))
    listener.volume_threshold = result.threshold
    log.info("Calibration: threshold %d (%.1f%% of full scale).",
             result.threshold, 100.0 * result.threshold / FULL_SCALE)
    return result
