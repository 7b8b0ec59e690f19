"""
Upstream source resolution.

A sink on the dashboard may be fed through any number of Filter and
Envelope transforms.  :func:`resolve_sources` walks back through those
transforms to find the sources that really feed it: the channels, plus
any non-transform node (such as a Bandpower feeding a Candle).

Edges are matched to an endpoint three ways, in order: edges ending at
the endpoint itself, edges ending at the node that owns the endpoint
(for instances such as "plot-1-2" of "plot-1"), and edges ending at the
type-level id of the endpoint's kind (such as "bandpower").
"""
from collections import OrderedDict, namedtuple

from .core import NodeKind, TYPE_LEVEL_IDS

RegistryEntry = namedtuple('RegistryEntry', ['endpoint', 'node_id', 'kind', 'widget'])


class InstanceRegistry(object):
    """
    Materialized instances currently on the dashboard.

    Every entry records the node the instance came from, so that lookups
    never depend on the structure of the id string.
    """
    def __init__(self):
        self._entries = OrderedDict()

    def __contains__(self, endpoint):
        return endpoint in self._entries

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.values())

    def register(self, endpoint, node_id, kind, widget=None):
        entry = RegistryEntry(endpoint, node_id, NodeKind(kind), widget)
        self._entries[endpoint] = entry
        return entry

    def unregister(self, endpoint):
        self._entries.pop(endpoint, None)

    def clear(self):
        self._entries.clear()

    def entry(self, endpoint):
        return self._entries.get(endpoint, None)

    def node_of(self, endpoint):
        entry = self._entries.get(endpoint, None)
        return entry.node_id if entry is not None else None

    def widget(self, endpoint):
        entry = self._entries.get(endpoint, None)
        return entry.widget if entry is not None else None

    def matching(self, endpoint):
        """
        Registered instances standing for *endpoint*: the instance itself
        if registered, else the instances of the node *endpoint*, else all
        instances of the kind when *endpoint* is a type-level id.
        """
        if endpoint in self._entries:
            return [self._entries[endpoint]]
        owned = [e for e in self._entries.values() if e.node_id == endpoint]
        if owned:
            return owned
        if endpoint in TYPE_LEVEL_IDS:
            kind = NodeKind(endpoint)
            return [e for e in self._entries.values() if e.kind is kind]
        return []

    def publishers_for(self, source_id):
        return [entry.endpoint for entry in self.matching(source_id)]


def _match_targets(graph, target_id, registry):
    targets = [target_id]
    owner = registry.node_of(target_id) if registry is not None else None
    if owner is None:
        owner = graph.owner_of(target_id)
    if owner is not None and owner != target_id:
        targets.append(owner)
    kind = graph.kind_of(target_id)
    if kind is None and registry is not None and target_id in registry:
        kind = registry.entry(target_id).kind
    if kind is not None and kind.value not in targets:
        targets.append(kind.value)
    return targets


def upstream_sources(graph, target_id, registry=None):
    """
    Sources feeding *target_id* in order of discovery.

    See :func:`resolve_sources`.
    """
    found = []
    visited = set()

    def walk(endpoint):
        if endpoint in visited:
            return
        visited.add(endpoint)
        targets = _match_targets(graph, endpoint, registry)
        for tier in targets:
            for edge in graph.incoming(tier):
                source = edge.source
                kind = graph.kind_of(source)
                if kind is not None and kind.pass_through:
                    walk(source)
                elif source not in found:
                    found.append(source)

    walk(target_id)
    return found


def resolve_sources(graph, target_id, registry=None):
    """
    Return the set of sources feeding *target_id*.

    Channel sources end the walk.  Filter and Envelope nodes are
    transparent: their own inputs are resolved in their place, so they
    never appear in the result.  Any other source is returned as is.

    The walk has no side effects.  Each endpoint is visited once, so a
    cycle through transforms ends rather than recursing forever.
    *registry* (an :class:`InstanceRegistry`) supplies the owning node
    for materialized instances that are not in *graph*.
    """
    return set(upstream_sources(graph, target_id, registry))


def channel_sources(graph, target_id, registry=None):
    """Channel endpoints among the sources of *target_id*."""
    return [s for s in upstream_sources(graph, target_id, registry)
            if graph.kind_of(s) is NodeKind.CHANNEL]
