"""
Spectral measures used by the FFT, Bandpower, Spiderplot and Candle
widgets.

Band powers are sums of squared FFT magnitudes over the bins that fall
inside each EEG band.  The DC bin is never counted.
"""
from collections import OrderedDict

import numpy as np
from scipy.signal import welch

try:
    from typing import Dict, Sequence
except ImportError:
    pass

#: Frequency bands in Hz, in display order.
BANDS = OrderedDict([
    ('delta', (0.5, 4.0)),
    ('theta', (4.0, 8.0)),
    ('alpha', (8.0, 12.0)),
    ('beta', (12.0, 30.0)),
    ('gamma', (30.0, 45.0)),
])

DEFAULT_SAMPLING_RATE = 500
DEFAULT_FFT_SIZE = 256
DB_FLOOR = -120.0


def is_power_of_two(n):
    return n > 0 and (n & (n - 1)) == 0


def next_power_of_two(n):
    v = 1
    while v < n:
        v <<= 1
    return v


def fft_magnitudes(signal, size=None):
    # type: (Sequence[float], int) -> np.ndarray
    """
    Single-sided FFT magnitudes of *signal*.

    *size* must be a power of two and match the length of *signal*.
    Returns *size/2* values scaled by 2/*size*, so that a unit amplitude
    sinusoid on a bin centre has magnitude 1.
    """
    signal = np.asarray(signal, dtype=float)
    if size is None:
        size = len(signal)
    if not is_power_of_two(size):
        raise ValueError("FFT size must be a power of two")
    if len(signal) != size:
        raise ValueError("input length %d must equal FFT size %d"
                         % (len(signal), size))
    spectrum = np.fft.fft(signal)
    return np.abs(spectrum[:size//2]) / (size/2)


def band_power(mags, band, sampling_rate=DEFAULT_SAMPLING_RATE,
               fft_size=DEFAULT_FFT_SIZE):
    """
    Sum of squared magnitudes over the bins of *band* = (f_lo, f_hi).

    Bins are chosen by rounding the band edges inward, and the DC bin is
    excluded.  Returns 0 if the band contains no bins.
    """
    resolution = sampling_rate / fft_size
    start = max(1, int(np.ceil(band[0] / resolution)))
    end = min(len(mags) - 1, int(np.floor(band[1] / resolution)))
    if end < start:
        return 0.0
    selected = np.asarray(mags[start:end+1], dtype=float)
    return float(np.sum(selected**2))


def _fit(signal, size):
    # right align the most recent samples, zero padding on the left
    buf = np.zeros(size)
    if signal is not None and len(signal) > 0:
        recent = np.asarray(signal, dtype=float)[-size:]
        buf[size-len(recent):] = recent
    return buf


def _relative(raw, total):
    rel = OrderedDict()
    for name, value in raw.items():
        v = value / total if total > 0 else 0.0
        rel[name] = max(0.0, v) if np.isfinite(v) else 0.0
    return rel


def compute_band_powers(signal, sampling_rate=DEFAULT_SAMPLING_RATE,
                        fft_size=DEFAULT_FFT_SIZE):
    """
    Raw and relative band powers of the last *fft_size* samples of
    *signal*.

    Returns a dict with *raw* and *relative* entries, each an ordered
    mapping of band name to value.  Relative powers are fractions of the
    summed band powers.
    """
    mags = fft_magnitudes(_fit(signal, fft_size), fft_size)
    raw = OrderedDict()
    for name, band in BANDS.items():
        value = band_power(mags, band, sampling_rate, fft_size)
        raw[name] = value if np.isfinite(value) and value >= 0 else 0.0
    total = sum(raw.values())
    return {'raw': raw, 'relative': _relative(raw, total)}


def compute_band_powers_welch(signal, sampling_rate=DEFAULT_SAMPLING_RATE,
                              fft_size=DEFAULT_FFT_SIZE, segment_length=None,
                              overlap=0.5, mains_freq=50.0):
    """
    Band powers from a Welch averaged power spectral density.

    The density comes from :func:`scipy.signal.welch` with Hann windowed
    segments of *segment_length* samples overlapping by *overlap*, each
    padded to *fft_size* points.  Signals shorter than one segment are
    zero padded on the left.  The total used for relative power leaves
    out DC and the bins within 1 Hz of *mains_freq*.

    Returns a dict with *raw*, *relative* and *dB* mappings; decibel values
    are floored at -120 dB.
    """
    overlap = min(max(overlap, 0.0), 0.9)
    if not is_power_of_two(fft_size):
        fft_size = next_power_of_two(fft_size)
    if segment_length is None:
        segment_length = min(fft_size, 256)
    seg_len = min(max(4, int(segment_length)), fft_size)

    sig = np.asarray(signal, dtype=float)
    if len(sig) < seg_len:
        sig = _fit(sig, seg_len)
    freqs, psd = welch(sig, fs=sampling_rate, window='hann', nperseg=seg_len,
                       noverlap=int(seg_len*overlap), nfft=fft_size,
                       detrend=False, scaling='density')
    df = freqs[1] - freqs[0]

    raw = OrderedDict()
    for name, (f_lo, f_hi) in BANDS.items():
        start = max(1, int(np.ceil(f_lo / df)))
        end = min(len(psd) - 1, int(np.floor(f_hi / df)))
        value = float(np.sum(psd[start:end+1]) * df) if end >= start else 0.0
        raw[name] = value if np.isfinite(value) and value > 0 else 0.0

    bins = np.arange(len(psd))
    mains_bin = int(round(mains_freq / df))
    radius = max(1, int(round(1.0 / df)))
    keep = (bins >= 1) & (np.abs(bins - mains_bin) > radius) & np.isfinite(psd) & (psd > 0)
    total = float(np.sum(psd[keep]) * df)

    relative = OrderedDict((k, min(1.0, v)) for k, v in _relative(raw, total).items())
    db = OrderedDict()
    for name, value in raw.items():
        v = 10*np.log10(max(value, 1e-12))
        db[name] = round(float(v), 2) if np.isfinite(v) else DB_FLOOR
    return {'raw': raw, 'relative': relative, 'dB': db}


class BandSmoother(object):
    """
    Moving average of band values over the last *window* updates.

    The window starts filled with zeros; use :meth:`prefill` to seed it
    with a first estimate instead.
    """
    def __init__(self, window=128, bands=None):
        self.window = max(1, int(window))
        self.bands = list(bands if bands is not None else BANDS.keys())
        self._buffers = dict((b, np.zeros(self.window)) for b in self.bands)
        self._sums = dict((b, 0.0) for b in self.bands)
        self._index = 0

    def update(self, values):
        # type: (Dict[str, float]) -> None
        for band, value in values.items():
            if band not in self._buffers:
                continue
            old = self._buffers[band][self._index]
            self._sums[band] += value - old
            self._buffers[band][self._index] = value
        self._index = (self._index + 1) % self.window

    def prefill(self, values):
        for band in self.bands:
            v = values.get(band, 0.0)
            self._buffers[band].fill(v)
            self._sums[band] = v * self.window
        self._index = 0

    def values(self):
        return OrderedDict((b, self._sums[b] / self.window) for b in self.bands)


def candle_brightness(power, threshold=0.0, min_visible=0.06):
    """
    Flame brightness in [0, 1] for a band power given as a percentage.

    Powers at or below *threshold* (clamped to 0-100) give 0.  Above it,
    brightness rises along a 0.7 power curve and never drops below
    *min_visible*.
    """
    threshold = min(max(threshold, 0.0), 100.0)
    min_visible = min(max(min_visible, 0.0), 1.0)
    raw = float(power) if np.isfinite(power) else 0.0
    linear = (raw - threshold) / max(1.0, 100.0 - threshold)
    curved = linear**0.7 if linear > 0 else 0.0
    return max(min_visible, min(1.0, curved)) if curved > 0 else 0.0


def test_band_power_bins():
    mags = np.ones(128)
    # 500 Hz / 256 points gives 1.953 Hz bins; alpha covers bins 5 and 6
    assert band_power(mags, BANDS['alpha']) == 2.0
    assert band_power(mags, (0.0, 0.5)) == 0.0
