"""
Runtime widgets created when a flow is played.

Each materialized instance gets a widget with a *receive(values, source)*
input used by the forwarding engine.  *values* is either a single number
(the latest value of a channel) or a batch of frames published by another
widget, where each frame is a number or a vector of numbers.  *source*
is the endpoint the values came from, so widgets with several inputs keep
a separate lane per input.

Filter and Envelope widgets transform their input and publish the result
on the hub under their own id.  Sink widgets keep the state needed to
draw them; :meth:`Widget.state` returns it as plain data.
"""
import numbers
from collections import OrderedDict, deque

import numpy as np

from .core import NodeKind
from .lib.filters import create_filter, filter_key
from .lib.spectrum import (
    BANDS, BandSmoother, fft_magnitudes, compute_band_powers,
    compute_band_powers_welch, candle_brightness)


def frames(values):
    """
    Split forwarded *values* into a list of frames, each a list of floats.
    """
    if isinstance(values, numbers.Real):
        return [[float(values)]]
    result = []
    for frame in values:
        if isinstance(frame, numbers.Real):
            result.append([float(frame)])
        else:
            result.append([float(v) for v in frame])
    return result


def _output(frame):
    return frame[0] if len(frame) == 1 else list(frame)


class Widget(object):
    kind = None

    def __init__(self, endpoint, config, hub=None):
        self.endpoint = endpoint
        self.config = config
        self.hub = hub
        self.received = 0

    def receive(self, values, source=None):
        for frame in frames(values):
            self.received += 1
            self.process(frame, source)

    def process(self, frame, source):
        pass

    def publish(self, value):
        if self.hub is not None:
            self.hub.publish_widget_outputs(self.endpoint, value)

    def state(self):
        return {'id': self.endpoint, 'kind': self.kind.value,
                'received': self.received}

    def close(self):
        pass


class FilterWidget(Widget):
    """
    Biquad filter applied to every lane of the input.  Inputs for which no
    coefficients exist pass through unchanged.
    """
    kind = NodeKind.FILTER

    def __init__(self, endpoint, config, hub=None):
        Widget.__init__(self, endpoint, config, hub)
        self.key = filter_key(config.filter_type, config.cutoff)
        self.available = create_filter(self.key, config.sampling_rate) is not None
        self._cascades = {}

    def _cascade(self, lane):
        if lane not in self._cascades:
            self._cascades[lane] = create_filter(self.key, self.config.sampling_rate)
        return self._cascades[lane]

    def process(self, frame, source):
        out = []
        for index, value in enumerate(frame):
            cascade = self._cascade((source, index))
            out.append(cascade.process(value) if cascade is not None else value)
        self.publish(_output(out))


class EnvelopeWidget(Widget):
    """
    Moving average of the absolute input, scaled by *gain*, for each lane.
    Publishes the vector of current envelopes, one entry per lane in the
    order lanes were first seen.
    """
    kind = NodeKind.ENVELOPE

    def __init__(self, endpoint, config, hub=None):
        Widget.__init__(self, endpoint, config, hub)
        self.size = max(4, int(config.buffer_size))
        self._lanes = OrderedDict()

    def process(self, frame, source):
        for index, value in enumerate(frame):
            lane = self._lanes.get((source, index), None)
            if lane is None:
                lane = self._lanes[(source, index)] = deque([0.0]*self.size, maxlen=self.size)
            lane.append(abs(value))
        self.publish(self.values())

    def values(self):
        return [float(np.mean(lane)) * self.config.gain for lane in self._lanes.values()]

    def state(self):
        result = Widget.state(self)
        result['values'] = self.values()
        return result


class PlotWidget(Widget):
    """
    Scrolling traces, one per lane.  An aggregated plot shows several Plot
    instances; each instance feeds the plot through :meth:`lane`.
    """
    kind = NodeKind.PLOT

    def __init__(self, endpoint, config, hub=None):
        Widget.__init__(self, endpoint, config, hub)
        self.size = int(config.buffer_size)
        self.traces = OrderedDict()

    def lane(self, member):
        return PlotInput(self, member)

    def append(self, member, frame, source):
        self.received += 1
        for index, value in enumerate(frame):
            key = "%s:%s:%d" % (member, source, index)
            trace = self.traces.get(key, None)
            if trace is None:
                trace = self.traces[key] = deque(maxlen=self.size)
            trace.append(value)

    def receive(self, values, source=None):
        for frame in frames(values):
            self.append(self.endpoint, frame, source)

    def state(self):
        result = Widget.state(self)
        result['traces'] = dict((k, list(v)) for k, v in self.traces.items())
        return result


class PlotInput(object):
    """Input of one Plot instance into a shared :class:`PlotWidget`."""
    def __init__(self, plot, member):
        self.plot = plot
        self.member = member

    def receive(self, values, source=None):
        for frame in frames(values):
            self.plot.append(self.member, frame, source)

    def state(self):
        return self.plot.state()

    def close(self):
        pass


class _SpectrumWidget(Widget):
    """Rolling window of the first input lane."""
    def __init__(self, endpoint, config, hub=None):
        Widget.__init__(self, endpoint, config, hub)
        self.fft_size = int(config.fft_size)
        self.window = deque([0.0]*self.fft_size, maxlen=self.fft_size)
        self._source = None

    def process(self, frame, source):
        if self._source is None:
            self._source = source
        if source == self._source:
            self.window.append(frame[0])


class FFTWidget(_SpectrumWidget):
    kind = NodeKind.FFT

    def magnitudes(self):
        return fft_magnitudes(np.array(self.window), self.fft_size)

    def state(self):
        result = Widget.state(self)
        result['magnitudes'] = self.magnitudes().tolist()
        result['resolution'] = self.config.sampling_rate / self.fft_size
        return result


class SpiderplotWidget(_SpectrumWidget):
    kind = NodeKind.SPIDERPLOT

    def relative(self):
        powers = compute_band_powers(list(self.window), self.config.sampling_rate,
                                     self.fft_size)
        return powers['relative']

    def state(self):
        result = Widget.state(self)
        result['bands'] = dict(self.relative())
        return result


class BandpowerWidget(_SpectrumWidget):
    """
    Smoothed relative band powers in percent.  Every *update_interval*
    samples the powers are recomputed, smoothed and published as a vector
    in :data:`BANDS` order for downstream widgets such as a Candle.
    The state also carries the absolute Welch band powers in dB.
    """
    kind = NodeKind.BANDPOWER
    update_interval = 32

    def __init__(self, endpoint, config, hub=None):
        _SpectrumWidget.__init__(self, endpoint, config, hub)
        self.smoother = BandSmoother(config.smoother_window)
        self._pending = 0
        self._primed = False

    def process(self, frame, source):
        _SpectrumWidget.process(self, frame, source)
        self._pending += 1
        if self._pending >= self.update_interval:
            self._pending = 0
            self.update()

    def update(self):
        powers = compute_band_powers(list(self.window), self.config.sampling_rate,
                                     self.fft_size)
        percent = dict((k, 100.0*v) for k, v in powers['relative'].items())
        if self._primed:
            self.smoother.update(percent)
        else:
            self.smoother.prefill(percent)
            self._primed = True
        values = self.smoother.values()
        self.publish([values[band] for band in BANDS])
        return values

    def state(self):
        result = Widget.state(self)
        result['bands'] = dict(self.smoother.values())
        welch = compute_band_powers_welch(list(self.window), self.config.sampling_rate,
                                          self.fft_size)
        result['dB'] = dict(welch['dB'])
        return result


class CandleWidget(Widget):
    """
    Brightness from a band power in percent.  Band power vectors, as
    published by a Bandpower widget, are reduced to the configured band;
    plain numbers are used as is.
    """
    kind = NodeKind.CANDLE

    def __init__(self, endpoint, config, hub=None):
        Widget.__init__(self, endpoint, config, hub)
        if config.band not in BANDS:
            raise ValueError("unknown band %r" % config.band)
        self.band_index = list(BANDS).index(config.band)
        self.power = 0.0
        self.brightness = 0.0

    def process(self, frame, source):
        if len(frame) == len(BANDS):
            power = frame[self.band_index]
        else:
            power = frame[0]
        self.power = power
        self.brightness = candle_brightness(power, self.config.threshold,
                                            self.config.min_visible)

    def state(self):
        result = Widget.state(self)
        result.update(power=self.power, brightness=self.brightness)
        return result


class ChannelWidget(Widget):
    """
    Trace of a channel that feeds no sink.  The forwarding engine adds the
    widget to the targets of its channel, so the latest value of each
    sample batch is appended.
    """
    kind = NodeKind.CHANNEL

    def __init__(self, endpoint, config, hub=None, size=512):
        Widget.__init__(self, endpoint, config, hub)
        self.trace = deque(maxlen=size)

    def process(self, frame, source):
        self.trace.append(frame[0])

    def state(self):
        result = Widget.state(self)
        result['trace'] = list(self.trace)
        return result


WIDGET_TYPES = {
    NodeKind.CHANNEL: ChannelWidget,
    NodeKind.FILTER: FilterWidget,
    NodeKind.ENVELOPE: EnvelopeWidget,
    NodeKind.PLOT: PlotWidget,
    NodeKind.SPIDERPLOT: SpiderplotWidget,
    NodeKind.FFT: FFTWidget,
    NodeKind.BANDPOWER: BandpowerWidget,
    NodeKind.CANDLE: CandleWidget,
}


def build_widget(graph, endpoint, hub=None):
    """
    Create the widget for *endpoint* of *graph*, using the config of the
    node which owns it.
    """
    node = graph.node(graph.owner_of(endpoint))
    return WIDGET_TYPES[node.kind](endpoint, node.config, hub)
