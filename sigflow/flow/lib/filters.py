"""
Biquad cascade filters driven by coefficient tables.

Each filter is a list of second-order sections stored as
(b0, b1, b2, a1, a2) with the leading denominator coefficient a0 = 1.
Sections are applied in order, using the direct form II recurrence::

    x = input - a1*z1 - a2*z2
    output = b0*x + b1*z1 + b2*z2

New filters are added by extending *COEFFS*; the processing code does
not change.
"""
import numpy as np
from scipy.signal import sosfilt

try:
    from typing import Dict, List, Optional, Tuple
except ImportError:
    pass

#: sampling rate -> filter key -> sections
COEFFS = {
    500: {
        'notch-50': [
            (0.96508099, -1.56202714, 0.96508099, -1.56858163, 0.96424138),
            (1.0, -1.61854514, 1.0, -1.61100358, 0.96592171),
        ],
        'notch-60': [
            (0.96508099, -1.40747202, 0.96508099, -1.40810535, 0.96443153),
            (1.0, -1.45839783, 1.0, -1.45687509, 0.96573127),
        ],
        'hp-0.01': [(0.99990838, -1.99981676, 0.99990838, -1.99981669, 0.99981683)],
        'hp-0.02': [(0.99981675, -1.99963351, 0.99981675, -1.99963318, 0.99963385)],
        'hp-0.05': [(0.99954186, -1.99908372, 0.99954186, -1.99908205, 0.99908539)],
        'hp-0.1': [(0.99908372, -1.99816744, 0.99908372, -1.99816246, 0.99817242)],
        'hp-0.2': [(0.99816745, -1.99633491, 0.99816745, -1.99631790, 0.99635192)],
        'hp-0.5': [(0.99556697, -1.99113394, 0.99556697, -1.99111429, 0.99115360)],
        'hp-1.0': [(0.99115360, -1.98230719, 0.99115360, -1.98222893, 0.98238545)],
        'hp-2.0': [(0.98238544, -1.96477088, 0.98238544, -1.96446058, 0.96508117)],
        'hp-5.0': [(0.95654323, -1.91308645, 0.95654323, -1.91119707, 0.91497583)],
        'hp-10.0': [(0.91497583, -1.82995167, 0.91497583, -1.82660694, 0.83329639)],
        'lp-10.0': [(0.00362168, 0.00724336, 0.00362168, -1.82269493, 0.83718165)],
        'lp-20.0': [(0.01335920, 0.02671840, 0.01335920, -1.64745998, 0.70089678)],
        'lp-30.0': [(0.02785977, 0.05571953, 0.02785977, -1.47548044, 0.58691951)],
        'lp-50.0': [(0.06646074, 0.13292149, 0.06646074, -1.14298050, 0.41280160)],
        'lp-70.0': [(0.10926967, 0.21853934, 0.10926967, -0.78734302, 0.28518928)],
    },
    250: {
        'notch-50': [
            (0.93137886, -0.57635175, 0.93137886, -0.53127491, 0.93061518),
            (1.0, -0.61881558, 1.0, -0.66243374, 0.93214913),
        ],
        'notch-60': [
            (0.93137886, -0.11711144, 0.93137886, -0.05269865, 0.93123336),
            (1.0, -0.12573985, 1.0, -0.18985625, 0.93153034),
        ],
    },
}  # type: Dict[int, Dict[str, List[Tuple[float, float, float, float, float]]]]


def filter_key(filter_type, cutoff):
    # type: (str, float) -> str
    """
    Table key for a filter, such as "notch-50", "hp-0.5" or "lp-30.0".
    """
    if filter_type == 'notch':
        return "notch-%d" % int(round(cutoff))
    elif filter_type == 'highpass':
        return "hp-%s" % float(cutoff)
    elif filter_type == 'lowpass':
        return "lp-%s" % float(cutoff)
    raise ValueError("unknown filter type %r" % (filter_type,))


def sos_matrix(sections):
    """
    Convert (b0, b1, b2, a1, a2) sections to the n x 6 second order
    sections array used by :func:`scipy.signal.sosfilt`.
    """
    sos = np.empty((len(sections), 6))
    for k, (b0, b1, b2, a1, a2) in enumerate(sections):
        sos[k] = (b0, b1, b2, 1.0, a1, a2)
    return sos


class BiquadCascade(object):
    """
    Streaming filter made from a cascade of second-order sections.

    Filter state is carried between calls, so feeding a signal in pieces
    gives the same output as feeding it all at once.
    """
    def __init__(self, sections):
        self.sos = sos_matrix(sections)
        self.reset()

    def reset(self):
        self._zi = np.zeros((self.sos.shape[0], 2))

    def process(self, value):
        # type: (float) -> float
        """Filter a single sample."""
        return float(self.process_block([value])[0])

    def process_block(self, values):
        """Filter a sequence of samples, returning an array."""
        values = np.asarray(values, dtype=float)
        if values.size == 0:
            return values
        out, self._zi = sosfilt(self.sos, values, zi=self._zi)
        return out


def create_filter(key, sampling_rate):
    # type: (str, int) -> Optional[BiquadCascade]
    """
    Return a fresh :class:`BiquadCascade` for the table entry *key* at
    *sampling_rate*, or None if there are no coefficients for that pair.
    """
    sections = COEFFS.get(int(sampling_rate), {}).get(key, None)
    if sections is None:
        return None
    return BiquadCascade(sections)


def test_filter_key():
    assert filter_key('notch', 50.0) == 'notch-50'
    assert filter_key('highpass', 0.5) == 'hp-0.5'
    assert filter_key('lowpass', 30) == 'lp-30.0'
    assert create_filter('hp-10.0', 500) is not None
    assert create_filter('hp-10.0', 250) is None
