"""
Live forwarding of samples and widget outputs along flow edges.

A :class:`ForwardingEngine` is either stopped or running.  Starting it
reads the edges of the graph once and subscribes to the sample provider:

* edges leaving a Channel are grouped by channel, with one sample batch
  subscription per channel.  The latest value of the channel in each batch
  is pushed to every target of that channel;
* channel tiles in the instance registry join the targets of their
  channel, so a channel never has more than one subscription;
* edges leaving any other node are grouped by publisher instance, with
  one output subscription per publisher.  Each batch the publisher emits
  is pushed verbatim to every target.

The provider is any object with *subscribe_to_sample_batches*,
*subscribe_to_widget_outputs* and *publish_widget_outputs* methods, such
as :class:`.hub.SampleHub`.
"""
import logging
import numbers
from collections import OrderedDict

from .core import NodeKind
from .errors import ForwardCallbackError
from .resolve import InstanceRegistry, channel_sources


def latest_value(batch, key):
    """
    Last numeric value of *key* in a batch of sample records, or None if
    no record carries a number for *key*.
    """
    for sample in reversed(batch):
        value = sample.get(key, None)
        if isinstance(value, numbers.Real) and not isinstance(value, bool):
            return value
    return None


class ForwardingEngine(object):
    """
    Subscription table for one play session of a flow.

    *graph* : :class:`.core.FlowGraph`
        flow whose edges are forwarded.

    *provider* : object
        sample and widget output provider.

    *registry* : :class:`.resolve.InstanceRegistry`
        materialized instances.  Targets found in the registry receive
        values through the *receive* method of their widget; other
        targets are published through the provider under their own id.
    """
    def __init__(self, graph, provider, registry=None):
        self.graph = graph
        self.provider = provider
        self.registry = registry if registry is not None else InstanceRegistry()
        self.running = False
        self.delivered = 0
        self.dropped = 0
        self.last_error = None
        self._keys = []
        self._channel_targets = OrderedDict()
        self._publisher_targets = OrderedDict()
        self._unsubscribe = []

    @property
    def subscription_keys(self):
        return tuple(self._keys)

    @property
    def channel_targets(self):
        return OrderedDict((k, tuple(v)) for k, v in self._channel_targets.items())

    @property
    def publisher_targets(self):
        return OrderedDict((k, tuple(v)) for k, v in self._publisher_targets.items())

    def start(self):
        """
        Subscribe to the provider for every edge of the graph.

        A running engine is stopped first, so calling start twice never
        leaves duplicate subscriptions.
        """
        self.stop()
        graph = self.graph
        for edge in graph.edges:
            key = edge.key
            if key in self._keys:
                continue
            source_kind = graph.kind_of(edge.source)
            target_kind = graph.kind_of(edge.target)
            if source_kind is None or target_kind is None:
                continue
            if target_kind is NodeKind.CHANNEL:
                continue
            if source_kind is NodeKind.CHANNEL:
                self._add_target(self._channel_targets,
                                 graph.owner_of(edge.source), edge.target)
            else:
                publishers = self.registry.publishers_for(edge.source)
                for publisher in publishers:
                    self._add_target(self._publisher_targets, publisher, edge.target)
                if not publishers:
                    # source is not on the dashboard; feed the target
                    # from the channels behind the source instead
                    for channel in channel_sources(graph, edge.source, self.registry):
                        self._add_target(self._channel_targets,
                                         graph.owner_of(channel), edge.target)
            self._keys.append(key)

        # channel tiles on the dashboard share their channel's subscription
        for entry in self.registry:
            if entry.kind is NodeKind.CHANNEL and entry.node_id in graph.nodes:
                key = "%s=>%s" % (entry.node_id, entry.endpoint)
                if key not in self._keys:
                    self._add_target(self._channel_targets, entry.node_id,
                                     entry.endpoint)
                    self._keys.append(key)

        for channel_id in self._channel_targets:
            channel_key = graph.nodes[channel_id].config.key
            callback = self._channel_callback(channel_id, channel_key)
            self._unsubscribe.append(self.provider.subscribe_to_sample_batches(callback))
        for publisher in self._publisher_targets:
            callback = self._output_callback(publisher)
            self._unsubscribe.append(
                self.provider.subscribe_to_widget_outputs(publisher, callback))
        self.running = True
        logging.info("forwarding %d edges from %d channels and %d publishers",
                     len(self._keys), len(self._channel_targets),
                     len(self._publisher_targets))

    def stop(self):
        """Remove every subscription.  Does nothing if already stopped."""
        handles, self._unsubscribe = self._unsubscribe, []
        for unsubscribe in handles:
            try:
                unsubscribe()
            except Exception:
                logging.warning("unsubscribe failed", exc_info=True)
        self._keys = []
        self._channel_targets = OrderedDict()
        self._publisher_targets = OrderedDict()
        self.running = False

    @staticmethod
    def _add_target(table, source, target):
        targets = table.setdefault(source, [])
        if target not in targets:
            targets.append(target)

    def _channel_callback(self, channel_id, channel_key):
        targets = self._channel_targets[channel_id]
        def on_batch(batch):
            value = latest_value(batch, channel_key)
            if value is None:
                return
            for target in list(targets):
                self._deliver(channel_id, target, value)
        return on_batch

    def _output_callback(self, publisher):
        targets = self._publisher_targets[publisher]
        def on_output(values):
            for target in list(targets):
                self._deliver(publisher, target, values)
        return on_output

    def _deliver(self, source, target, value):
        entries = self.registry.matching(target)
        receivers = [e.widget for e in entries if e.widget is not None]
        if not receivers:
            receivers = [None]
        for widget in receivers:
            try:
                if widget is None:
                    self.provider.publish_widget_outputs(target, value)
                else:
                    widget.receive(value, source=source)
                self.delivered += 1
            except Exception as exc:
                self.dropped += 1
                self.last_error = ForwardCallbackError("%s=>%s" % (source, target), exc)
                logging.debug("forwarding failed: %s", self.last_error)
