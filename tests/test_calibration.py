import pytest

from voiceloop import calibration as cal_mod
from voiceloop.calibration import calibrate, threshold_between


@pytest.mark.parametrize("noise, speech, expected", [
    (300, 10300, 3300),      # 30% of the way from noise to speech
    (0, 100, 328),           # raised to 1% of full scale
    (20000, 32767, 16384),   # capped at 50% of full scale
])
def test_threshold_between(noise, speech, expected):
    assert threshold_between(noise, speech) == expected


class FakeListener:
    def __init__(self, peaks):
        self.peaks = list(peaks)
        self.windows = []
        self.volume_threshold = 400

    def measure_peak(self, duration):
        self.windows.append(duration)
        return self.peaks.pop(0)


class FakeSpeaker:
    def __init__(self):
        self.spoken = []

    def speak(self, text):
        self.spoken.append(text)


def test_calibrate_applies_threshold(monkeypatch):
    monkeypatch.setattr(cal_mod.time, "sleep", lambda s: None)
    listener = FakeListener([500, 8500])
    speaker = FakeSpeaker()
    result = calibrate(listener, speaker, window_s=2)
    assert result.noise_peak == 500
    assert result.speech_peak == 8500
    assert result.threshold == 2900
    assert listener.volume_threshold == 2900
    assert listener.windows == [2, 2]
    assert len(speaker.spoken) == 2
