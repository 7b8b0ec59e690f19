"""
In-process sample hub.

The hub is the meeting point between the acquisition layer and the flow.
Acquisition code calls :meth:`SampleHub.add_sample` for every sample record
and :meth:`SampleHub.flush` once per display frame.  Each flush delivers
the queued records as one batch to every sample subscriber.  Widgets
publish derived values under their own id with
:meth:`SampleHub.publish_widget_outputs`, and anyone may listen for them
with :meth:`SampleHub.subscribe_to_widget_outputs`.

A sample record is a mapping from channel key ("ch0", "ch1", ...) to a
number, optionally with *timestamp* and *counter* entries.  The counter
is an 8-bit packet counter; gaps in it are reported as missing samples.
"""
import re
import logging
from collections import deque, defaultdict

from .core import MAX_CHANNELS

#: Number of recent samples kept by the hub.
BUFFER_SIZE = 512

COUNTER_MODULUS = 256

CHANNEL_KEY = re.compile(r'^ch(\d+)$')


class SampleHub(object):
    """
    Batching sample provider with per-subscriber error isolation.

    *buffer_size* : int
        number of recent samples kept for :attr:`samples`; defaults to
        the module level *BUFFER_SIZE*.
    """
    def __init__(self, buffer_size=None):
        self.buffer_size = int(buffer_size if buffer_size else BUFFER_SIZE)
        self._buffer = deque(maxlen=self.buffer_size)
        self._pending = []
        self._batch_subscribers = []
        self._output_subscribers = defaultdict(list)
        self._registered = None
        self._last_counter = None
        self.missing = 0

    @property
    def samples(self):
        return list(self._buffer)

    @property
    def registered_channels(self):
        return None if self._registered is None else sorted(self._registered)

    def register_channel_indices(self, indices):
        """
        Only pass values for channels in *indices*; values for any other
        channel key are replaced by 0.  Use None to pass every channel.
        """
        if indices is None:
            self._registered = None
            return
        registered = set()
        for index in indices:
            index = int(index)
            if not 0 <= index < MAX_CHANNELS:
                raise ValueError("channel index %d out of range" % index)
            registered.add(index)
        self._registered = registered

    def set_registered_channels(self, graph, endpoints):
        """
        Register the channels behind the Channel node or instance ids in
        *endpoints*, looking up each channel index in *graph*.
        """
        indices = []
        for endpoint in endpoints:
            owner = graph.owner_of(endpoint)
            if owner is None:
                raise ValueError("unknown channel %r" % (endpoint,))
            indices.append(graph.nodes[owner].config.index)
        self.register_channel_indices(indices)

    def _mask(self, sample):
        record = dict(sample)
        if self._registered is None:
            return record
        for key in record:
            match = CHANNEL_KEY.match(key)
            if match and int(match.group(1)) not in self._registered:
                record[key] = 0
        return record

    def add_sample(self, sample):
        self._pending.append(self._mask(sample))

    def add_samples(self, samples):
        for sample in samples:
            self.add_sample(sample)

    def _check_counters(self, batch):
        for sample in batch:
            counter = sample.get('counter', None)
            if counter is None:
                continue
            counter = int(counter) % COUNTER_MODULUS
            if self._last_counter is not None:
                gap = (counter - self._last_counter + COUNTER_MODULUS) % COUNTER_MODULUS
                if gap > 1:
                    self.missing += gap - 1
                    logging.warning("missing %d samples between counters %d and %d",
                                    gap - 1, self._last_counter, counter)
            self._last_counter = counter

    def flush(self):
        """
        Deliver queued samples to the sample subscribers.  Returns the
        number of samples delivered.
        """
        if not self._pending:
            return 0
        batch, self._pending = self._pending, []
        self._check_counters(batch)
        self._buffer.extend(batch)
        for callback in list(self._batch_subscribers):
            try:
                callback(list(batch))
            except Exception:
                logging.warning("sample subscriber %r failed", callback, exc_info=True)
        return len(batch)

    def push(self, samples):
        """Queue *samples* and flush them as a single batch."""
        self.add_samples(samples)
        return self.flush()

    def clear(self):
        self._buffer.clear()
        self._pending = []
        self._last_counter = None
        self.missing = 0

    def subscribe_to_sample_batches(self, callback):
        """
        Call *callback(batch)* with each flushed batch of sample records.
        Returns a function which removes the subscription.
        """
        token = [callback]
        self._batch_subscribers.append(callback)
        def unsubscribe():
            if token:
                self._batch_subscribers.remove(token.pop())
        return unsubscribe

    def subscribe_to_widget_outputs(self, source_id, callback):
        """
        Call *callback(values)* whenever *source_id* publishes.  Returns a
        function which removes the subscription.
        """
        token = [callback]
        self._output_subscribers[source_id].append(callback)
        def unsubscribe():
            if token:
                subscribers = self._output_subscribers[source_id]
                subscribers.remove(token.pop())
                if not subscribers:
                    del self._output_subscribers[source_id]
        return unsubscribe

    def publish_widget_outputs(self, source_id, value):
        """
        Send *value*, a number or a vector of numbers, to the listeners
        for *source_id* as a one element batch.
        """
        for callback in list(self._output_subscribers.get(source_id, ())):
            try:
                callback([value])
            except Exception:
                logging.warning("output subscriber for %s failed", source_id,
                                exc_info=True)

    def subscriber_count(self):
        return len(self._batch_subscribers)

    def output_subscriber_count(self, source_id=None):
        if source_id is not None:
            return len(self._output_subscribers.get(source_id, ()))
        return sum(len(v) for v in self._output_subscribers.values())
