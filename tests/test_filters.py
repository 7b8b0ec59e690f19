import numpy as np
import pytest

from sigflow.flow.lib.filters import (
    BiquadCascade, COEFFS, create_filter, filter_key)

RATE = 500


def tone(freq, n=3000, rate=RATE):
    t = np.arange(n) / rate
    return np.sin(2*np.pi*freq*t)


def test_filter_keys():
    assert filter_key('notch', 60) == 'notch-60'
    assert filter_key('highpass', 1) == 'hp-1.0'
    with pytest.raises(ValueError):
        filter_key('bandstop', 50)


def test_unknown_filter():
    assert create_filter('lp-15.0', RATE) is None
    assert create_filter('notch-50', 1000) is None
    assert create_filter('notch-50', 250) is not None


def test_streaming_matches_block():
    signal = tone(10, 400) + 0.5*tone(50, 400)
    block = create_filter('notch-50', RATE).process_block(signal)
    streaming = create_filter('notch-50', RATE)
    values = [streaming.process(v) for v in signal]
    assert np.allclose(values, block)

    # state carries across blocks
    pieces = create_filter('notch-50', RATE)
    joined = np.concatenate([pieces.process_block(signal[:150]),
                             pieces.process_block(signal[150:])])
    assert np.allclose(joined, block)


def test_notch_removes_mains():
    out = create_filter('notch-50', RATE).process_block(tone(50))
    assert np.max(np.abs(out[-500:])) < 0.05


def test_notch_passes_alpha():
    out = create_filter('notch-50', RATE).process_block(tone(10))
    peak = np.max(np.abs(out[-500:]))
    assert 0.8 < peak < 1.2


def test_reset():
    cascade = BiquadCascade(COEFFS[RATE]['hp-1.0'])
    first = cascade.process_block(np.ones(20))
    cascade.reset()
    assert np.allclose(cascade.process_block(np.ones(20)), first)
    assert cascade.process_block([]).size == 0
