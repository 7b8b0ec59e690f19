import pytest

from sigflow.flow.core import NodeKind
from sigflow.flow.errors import ForwardCallbackError
from sigflow.flow.forward import ForwardingEngine, latest_value
from sigflow.flow.resolve import InstanceRegistry


class Recorder(object):
    def __init__(self):
        self.values = []

    def receive(self, values, source=None):
        self.values.append((source, values))


class Broken(object):
    def receive(self, values, source=None):
        raise RuntimeError("widget failed")


def fan_out_graph(graph):
    graph.add_node(NodeKind.CHANNEL)
    graph.add_node(NodeKind.PLOT)
    graph.add_node(NodeKind.FFT)
    graph.add_node(NodeKind.SPIDERPLOT)
    graph.add_connection('channel-0', 'plot-1-1')
    graph.add_connection('channel-0-1', 'fft-1')
    graph.add_connection('channel-0', 'spider-1')
    return graph


def test_latest_value():
    batch = [{'ch0': 1.0}, {'ch0': 2.0, 'ch1': 5}, {'ch1': 6}]
    assert latest_value(batch, 'ch0') == 2.0
    assert latest_value(batch, 'ch1') == 6
    assert latest_value(batch, 'ch2') is None
    assert latest_value([{'ch0': True}], 'ch0') is None


def test_channel_fan_out(graph, provider):
    fan_out_graph(graph)
    engine = ForwardingEngine(graph, provider)
    engine.start()
    assert engine.running
    assert len(provider.sample_callbacks) == 1
    assert engine.channel_targets['channel-0'] == ('plot-1-1', 'fft-1', 'spider-1')
    assert set(engine.subscription_keys) == {
        'channel-0=>plot-1-1', 'channel-0-1=>fft-1', 'channel-0=>spider-1'}
    provider.emit_samples([{'ch0': 1.0}, {'ch0': 2.5, 'ch1': 9.0}])
    assert provider.published == [
        ('plot-1-1', 2.5), ('fft-1', 2.5), ('spider-1', 2.5)]


def test_restart_does_not_duplicate(graph, provider):
    fan_out_graph(graph)
    engine = ForwardingEngine(graph, provider)
    engine.start()
    engine.start()
    assert len(provider.sample_callbacks) == 1
    assert len(engine.subscription_keys) == 3


def test_stop_is_idempotent(graph, provider):
    fan_out_graph(graph)
    engine = ForwardingEngine(graph, provider)
    engine.stop()
    engine.start()
    engine.stop()
    assert not engine.running
    assert provider.sample_callbacks == []
    assert engine.subscription_keys == ()
    engine.stop()
    provider.emit_samples([{'ch0': 1.0}])
    assert provider.published == []


def test_publisher_subscription_per_instance(graph, provider):
    graph.add_node(NodeKind.CHANNEL)
    graph.add_node(NodeKind.FILTER)
    graph.add_node(NodeKind.PLOT)
    graph.add_node(NodeKind.FFT)
    graph.add_connection('filter-1', 'plot-1-1')
    graph.add_connection('filter-1', 'fft-1')
    registry = InstanceRegistry()
    registry.register('filter-1', 'filter-1', NodeKind.FILTER)
    engine = ForwardingEngine(graph, provider, registry)
    engine.start()
    assert provider.output_subscriptions() == 1
    assert len(provider.sample_callbacks) == 0
    assert engine.publisher_targets['filter-1'] == ('plot-1-1', 'fft-1')
    provider.emit_output('filter-1', [0.1, 0.2])
    assert provider.published == [('plot-1-1', [0.1, 0.2]), ('fft-1', [0.1, 0.2])]


def test_unmaterialized_source_falls_back_to_channels(graph, provider):
    graph.add_node(NodeKind.CHANNEL)
    graph.add_node(NodeKind.FILTER)
    graph.add_node(NodeKind.FFT)
    graph.add_connection('channel-0', 'filter-1')
    graph.add_connection('filter-1', 'fft-1')
    engine = ForwardingEngine(graph, provider)
    engine.start()
    assert len(provider.sample_callbacks) == 1
    assert provider.output_subscriptions() == 0
    assert engine.channel_targets['channel-0'] == ('filter-1', 'fft-1')


def test_registered_targets_receive(graph, provider):
    fan_out_graph(graph)
    registry = InstanceRegistry()
    plot, fft = Recorder(), Recorder()
    registry.register('plot-1-1', 'plot-1', NodeKind.PLOT, plot)
    registry.register('fft-1', 'fft-1', NodeKind.FFT, fft)
    engine = ForwardingEngine(graph, provider, registry)
    engine.start()
    provider.emit_samples([{'ch0': 4.0}])
    assert plot.values == [('channel-0', 4.0)]
    assert fft.values == [('channel-0', 4.0)]
    # spider-1 is not materialized; its value goes out through the provider
    assert provider.published == [('spider-1', 4.0)]


def test_failing_target_is_isolated(graph, provider):
    fan_out_graph(graph)
    registry = InstanceRegistry()
    good = Recorder()
    registry.register('plot-1-1', 'plot-1', NodeKind.PLOT, Broken())
    registry.register('fft-1', 'fft-1', NodeKind.FFT, good)
    engine = ForwardingEngine(graph, provider, registry)
    engine.start()
    provider.emit_samples([{'ch0': 1.5}])
    provider.emit_samples([{'ch0': 2.5}])
    assert good.values == [('channel-0', 1.5), ('channel-0', 2.5)]
    assert engine.dropped == 2
    assert isinstance(engine.last_error, ForwardCallbackError)
    assert engine.last_error.key == 'channel-0=>plot-1-1'


def test_edges_removed_before_start_are_ignored(graph, provider):
    fan_out_graph(graph)
    graph.remove_node('fft-1')
    engine = ForwardingEngine(graph, provider)
    engine.start()
    assert engine.channel_targets['channel-0'] == ('plot-1-1', 'spider-1')


def test_two_channels_two_subscriptions(graph, provider):
    graph.add_node(NodeKind.CHANNEL)
    graph.add_node(NodeKind.CHANNEL, {'index': 1})
    graph.add_node(NodeKind.PLOT)
    graph.add_instance('plot-1')
    graph.add_connection('channel-0', 'plot-1-1')
    graph.add_connection('channel-1', 'plot-1-2')
    engine = ForwardingEngine(graph, provider)
    engine.start()
    assert len(provider.sample_callbacks) == 2
    provider.emit_samples([{'ch0': 1.0, 'ch1': -1.0}])
    assert sorted(provider.published) == [('plot-1-1', 1.0), ('plot-1-2', -1.0)]


def test_channel_tile_shares_channel_subscription(graph, provider):
    graph.add_node(NodeKind.CHANNEL)
    graph.add_node(NodeKind.FILTER)
    graph.add_connection('channel-0', 'filter-1')
    registry = InstanceRegistry()
    tile = Recorder()
    registry.register('channel-0-1', 'channel-0', NodeKind.CHANNEL, tile)
    engine = ForwardingEngine(graph, provider, registry)
    engine.start()
    assert len(provider.sample_callbacks) == 1
    assert engine.channel_targets['channel-0'] == ('filter-1', 'channel-0-1')
    provider.emit_samples([{'ch0': 3.0}])
    assert tile.values == [('channel-0', 3.0)]
    engine.start()
    assert len(provider.sample_callbacks) == 1
    assert engine.subscription_keys.count('channel-0=>channel-0-1') == 1


def test_failing_lane_does_not_block_other_lanes(graph, provider):
    graph.add_node(NodeKind.CHANNEL)
    graph.add_node(NodeKind.PLOT)
    graph.add_instance('plot-1')
    graph.add_connection('channel-0', 'plot-1')
    registry = InstanceRegistry()
    good = Recorder()
    registry.register('plot-1-1', 'plot-1', NodeKind.PLOT, Broken())
    registry.register('plot-1-2', 'plot-1', NodeKind.PLOT, good)
    engine = ForwardingEngine(graph, provider, registry)
    engine.start()
    provider.emit_samples([{'ch0': 0.5}])
    assert good.values == [('channel-0', 0.5)]
    assert (engine.delivered, engine.dropped) == (1, 1)
