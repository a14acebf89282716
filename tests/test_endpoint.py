import numpy as np

from voiceloop.endpoint import Endpoint, EndpointDetector, peak_amplitude

from conftest import tone

LOUD = tone(5000)
QUIET = tone(100)


def run(detector, chunks, step=0.25, t0=0.0):
    return [detector.process(c, t0 + i * step) for i, c in enumerate(chunks)]


def test_peak_is_rectified_maximum():
    chunk = np.array([0, 120, -32768, 5], dtype="<i2").tobytes()
    assert peak_amplitude(chunk) == 32768
    assert peak_amplitude(b"") == 0
    # trailing odd byte is ignored
    assert peak_amplitude(np.array([-300], dtype="<i2").tobytes() + b"\x7f") == 300


def test_loud_stream_never_ends():
    detector = EndpointDetector(900, 0.5, startup_skip=0)
    results = run(detector, [LOUD] * 200)
    assert Endpoint.BOUNDARY not in results
    assert detector.has_speech


def test_single_silence_run_fires_once_when_duration_reached():
    detector = EndpointDetector(900, 1.0, startup_skip=0)
    # loud at t=0, silence from t=0.25; 1.0s elapses at t=1.25 (index 5)
    results = run(detector, [LOUD] + [QUIET] * 6)
    assert results.index(Endpoint.BOUNDARY) == 5
    assert results.count(Endpoint.BOUNDARY) == 1


def test_interrupted_silence_is_not_summed():
    detector = EndpointDetector(900, 1.0, startup_skip=0)
    chunks = [LOUD] + [QUIET] * 4 + [LOUD] + [QUIET] * 4
    results = run(detector, chunks)
    # 0.75s of silence on each side of the interruption, 1.5s in total
    assert Endpoint.BOUNDARY not in results


def test_end_to_end_boundary_at_chunk_35():
    detector = EndpointDetector(900, 1.5, startup_skip=1)
    detector.reset()
    chunks = [LOUD] * 20 + [QUIET] * 16
    results = [detector.process(c, i / 10) for i, c in enumerate(chunks)]
    assert results[0] is Endpoint.SKIP
    assert results[35] is Endpoint.BOUNDARY
    assert results.count(Endpoint.BOUNDARY) == 1


def test_silence_only_boundaries_carry_no_speech():
    detector = EndpointDetector(900, 0.5, startup_skip=1)
    for i in range(40):
        result = detector.process(QUIET, i * 0.25)
        if result is Endpoint.BOUNDARY:
            assert not detector.has_speech
            detector.end_utterance()
    assert not detector.has_speech


def test_zero_threshold_disables_endpointing():
    detector = EndpointDetector(0, 0.25, startup_skip=0)
    results = run(detector, [tone(0)] * 100)
    assert Endpoint.BOUNDARY not in results


def test_leading_chunks_are_skipped_per_turn():
    detector = EndpointDetector(900, 0.5, startup_skip=1)
    detector.reset(leading_skip=5)
    results = run(detector, [LOUD] * 7)
    assert results[:5] == [Endpoint.SKIP] * 5
    assert results[5:] == [Endpoint.CONTINUE] * 2

    detector.reset()
    results = run(detector, [LOUD] * 3)
    assert results == [Endpoint.SKIP, Endpoint.CONTINUE, Endpoint.CONTINUE]


def test_skipped_chunks_do_not_count_as_speech():
    detector = EndpointDetector(900, 0.5, startup_skip=1)
    detector.reset()
    assert detector.process(LOUD, 0.0) is Endpoint.SKIP
    assert not detector.has_speech
    assert detector.last_peak == 0


def test_reset_clears_timer_and_speech():
    detector = EndpointDetector(900, 0.5, startup_skip=0)
    run(detector, [LOUD, QUIET, QUIET])
    assert detector.tracker.silence_start is not None
    detector.reset()
    assert detector.tracker.silence_start is None
    assert detector.tracker.chunk_index == 0
    assert not detector.has_speech


def test_threshold_override_lasts_one_turn():
    detector = EndpointDetector(900, 0.5)
    detector.reset(volume_threshold=0)
    assert detector.threshold == 0
    detector.reset()
    assert detector.threshold == 900
