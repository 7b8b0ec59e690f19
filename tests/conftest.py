from collections import defaultdict

import pytest

from sigflow.flow.core import FlowGraph
from sigflow.flow.hub import SampleHub


class FakeProvider(object):
    """Sample provider which records subscriptions and publications."""
    def __init__(self):
        self.sample_callbacks = []
        self.output_callbacks = defaultdict(list)
        self.published = []

    def subscribe_to_sample_batches(self, callback):
        self.sample_callbacks.append(callback)
        def unsubscribe():
            if callback in self.sample_callbacks:
                self.sample_callbacks.remove(callback)
        return unsubscribe

    def subscribe_to_widget_outputs(self, source_id, callback):
        self.output_callbacks[source_id].append(callback)
        def unsubscribe():
            if callback in self.output_callbacks[source_id]:
                self.output_callbacks[source_id].remove(callback)
        return unsubscribe

    def publish_widget_outputs(self, target_id, value):
        self.published.append((target_id, value))

    def output_subscriptions(self):
        return sum(len(v) for v in self.output_callbacks.values())

    def emit_samples(self, batch):
        for callback in list(self.sample_callbacks):
            callback(batch)

    def emit_output(self, source_id, values):
        for callback in list(self.output_callbacks[source_id]):
            callback(values)


@pytest.fixture
def graph():
    return FlowGraph()


@pytest.fixture
def hub():
    return SampleHub()


@pytest.fixture
def provider():
    return FakeProvider()
