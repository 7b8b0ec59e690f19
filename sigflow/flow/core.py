"""
Core class definitions
"""
import numbers
from dataclasses import dataclass, field, fields, asdict
from collections import OrderedDict
from enum import Enum

from .errors import ConstraintViolation, LimitExceeded, InvariantViolation

#: Maximum number of instances held by a multi-instance node.
MAX_INSTANCES = 8

#: Largest number of acquisition channels.
MAX_CHANNELS = 16

#: Defaults for nodes which do not set their own sampling rate or FFT size.
SAMPLING_RATE = 500
FFT_SIZE = 256

FILTER_TYPES = ('notch', 'highpass', 'lowpass')


class NodeKind(Enum):
    """
    Node types available on the flow canvas.

    The value of each member is also the *type-level* identifier for the
    kind, which may be used as a connection target before any node of
    that kind exists (see :meth:`FlowGraph.add_connection`).
    """
    CHANNEL = 'channel'
    FILTER = 'filter'
    ENVELOPE = 'envelope'
    PLOT = 'plot'
    SPIDERPLOT = 'spiderplot'
    FFT = 'fft'
    BANDPOWER = 'bandpower'
    CANDLE = 'candle'

    @property
    def prefix(self):
        return 'spider' if self is NodeKind.SPIDERPLOT else self.value

    @property
    def multi_instance(self):
        return self in (NodeKind.CHANNEL, NodeKind.PLOT)

    @property
    def pass_through(self):
        return self in (NodeKind.FILTER, NodeKind.ENVELOPE)

    @property
    def materializable(self):
        return self in (NodeKind.PLOT, NodeKind.SPIDERPLOT, NodeKind.FFT,
                        NodeKind.BANDPOWER, NodeKind.CANDLE)


TYPE_LEVEL_IDS = frozenset(k.value for k in NodeKind)


@dataclass
class ChannelConfig:
    index: int = 0

    @property
    def key(self):
        """Sample record key carrying this channel, e.g. "ch0"."""
        return "ch%d" % self.index


@dataclass
class FilterConfig:
    filter_type: str = 'notch'
    cutoff: float = 50.0
    sampling_rate: int = 500


@dataclass
class EnvelopeConfig:
    buffer_size: int = 32
    gain: float = 12.0


@dataclass
class PlotConfig:
    buffer_size: int = 512


@dataclass
class SpiderplotConfig:
    sampling_rate: int = 500
    fft_size: int = 256


@dataclass
class FFTConfig:
    sampling_rate: int = 500
    fft_size: int = 256


@dataclass
class BandpowerConfig:
    sampling_rate: int = 500
    fft_size: int = 256
    smoother_window: int = 128


@dataclass
class CandleConfig:
    band: str = 'beta'
    threshold: float = 0.0
    min_visible: float = 0.06


CONFIG_TYPES = {
    NodeKind.CHANNEL: ChannelConfig,
    NodeKind.FILTER: FilterConfig,
    NodeKind.ENVELOPE: EnvelopeConfig,
    NodeKind.PLOT: PlotConfig,
    NodeKind.SPIDERPLOT: SpiderplotConfig,
    NodeKind.FFT: FFTConfig,
    NodeKind.BANDPOWER: BandpowerConfig,
    NodeKind.CANDLE: CandleConfig,
}


def lookup_kind(kind):
    """
    Return the :class:`NodeKind` for *kind*, which may be a member or
    its string value.
    """
    if isinstance(kind, NodeKind):
        return kind
    try:
        return NodeKind(kind)
    except ValueError:
        raise ConstraintViolation("Unknown node kind %r" % (kind,))


def _field_defaults(cls):
    defaults = dict((f.name, f.default) for f in fields(cls))
    # rate and FFT size follow the configured defaults
    if 'sampling_rate' in defaults:
        defaults['sampling_rate'] = int(SAMPLING_RATE)
    if 'fft_size' in defaults:
        defaults['fft_size'] = int(FFT_SIZE)
    return defaults


def _convert(kind, name, value, target_type):
    if target_type is not str and isinstance(value, (bool, str)):
        raise ConstraintViolation("%s config %s must be numeric"
                                  % (kind.value, name))
    if target_type is int and isinstance(value, numbers.Real):
        if not float(value).is_integer():
            raise ConstraintViolation("%s config %s must be a whole number, not %r"
                                      % (kind.value, name, value))
    try:
        return target_type(value)
    except (TypeError, ValueError, OverflowError):
        raise ConstraintViolation("Bad value %r for %s config %s"
                                  % (value, kind.value, name))


def config_from_dict(kind, data=None):
    """
    Build the config object for *kind* from the mapping *data*.

    Missing fields take their default values; *sampling_rate* and
    *fft_size* default to the module level *SAMPLING_RATE* and *FFT_SIZE*.
    Unknown fields, values that cannot be converted to the type of the
    default, and fractional values for whole number fields raise
    :class:`ConstraintViolation`.
    """
    kind = lookup_kind(kind)
    cls = CONFIG_TYPES[kind]
    if isinstance(data, cls):
        data = asdict(data)
    elif data is None:
        data = {}
    elif not hasattr(data, 'items'):
        raise ConstraintViolation("%s config must be a mapping" % kind.value)
    defaults = _field_defaults(cls)
    unknown = set(data) - set(defaults)
    if unknown:
        raise ConstraintViolation("Unknown %s config fields: %s"
                                  % (kind.value, ", ".join(sorted(unknown))))
    values = dict(defaults)
    for name, value in data.items():
        values[name] = _convert(kind, name, value, type(defaults[name]))
    config = cls(**values)
    if kind is NodeKind.CHANNEL and not 0 <= config.index < MAX_CHANNELS:
        raise ConstraintViolation("Channel index %d is outside 0-%d"
                                  % (config.index, MAX_CHANNELS - 1))
    if kind is NodeKind.FILTER and config.filter_type not in FILTER_TYPES:
        raise ConstraintViolation("Unknown filter type %r" % config.filter_type)
    rate = getattr(config, "sampling_rate", None)
    if rate is not None and rate <= 0:
        raise ConstraintViolation("Sampling rate must be positive")
    fft_size = getattr(config, "fft_size", None)
    if fft_size is not None and (fft_size <= 0 or fft_size & (fft_size - 1)):
        raise ConstraintViolation("FFT size %d is not a power of two" % fft_size)
    return config


def config_to_dict(config):
    return asdict(config)


@dataclass
class Node:
    """
    A node on the flow canvas.

    *id* : string
        unique node id within the graph, such as "plot-1".

    *kind* : :class:`NodeKind`
        node type.

    *config* : dataclass
        settings for the node; the class depends on *kind*.

    *instances* : [string, ...]
        connectable instances of a multi-instance node, such as
        "plot-1-1".  Single-instance nodes have no separate instances;
        the node id itself is the endpoint.
    """
    id: str
    kind: NodeKind
    config: object
    instances: list = field(default_factory=list)
    next_instance: int = field(default=1, repr=False)

    def endpoints(self):
        return [self.id] + list(self.instances)

    def todict(self):
        return {
            'id': self.id,
            'kind': self.kind.value,
            'config': config_to_dict(self.config),
            'instances': list(self.instances),
        }


@dataclass(frozen=True)
class Edge:
    source: str
    target: str

    @property
    def key(self):
        return "%s=>%s" % (self.source, self.target)

    def todict(self):
        return {'from': self.source, 'to': self.target}


@dataclass(frozen=True)
class Position:
    """Layout position normalized to the unit square of the canvas."""
    left: float
    top: float

    @classmethod
    def clamped(cls, left, top):
        return cls(min(max(float(left), 0.0), 1.0),
                   min(max(float(top), 0.0), 1.0))

    def todict(self):
        return {'left': self.left, 'top': self.top}


class FlowGraph(object):
    """
    Nodes, instances and edges of a flow, with their layout positions.

    Every edit either succeeds completely or raises a
    :class:`.errors.FlowError` subclass and leaves the graph untouched.
    The following hold after any sequence of edits:

    * every edge joins two existing endpoints;
    * no two edges join the same endpoints in the same direction;
    * a Bandpower node has at most one incoming edge;
    * a Plot node has at least one instance;
    * no edge ends at a Channel;
    * no path of edges leads from a node back to itself.
    """
    def __init__(self):
        self.nodes = OrderedDict()
        self.edges = []
        self.positions = {}
        self._owner = {}

    def __contains__(self, endpoint):
        return endpoint in self._owner

    def __len__(self):
        return len(self.nodes)

    def node(self, node_id):
        try:
            return self.nodes[node_id]
        except KeyError:
            raise ConstraintViolation("Unknown node %r" % (node_id,))

    def owner_of(self, endpoint):
        """
        Return the id of the node holding *endpoint*, or None if the
        endpoint does not exist.
        """
        return self._owner.get(endpoint, None)

    def kind_of(self, endpoint):
        owner = self._owner.get(endpoint, None)
        return self.nodes[owner].kind if owner is not None else None

    def is_instance(self, endpoint):
        owner = self._owner.get(endpoint, None)
        return owner is not None and owner != endpoint

    def endpoints(self):
        return [e for node in self.nodes.values() for e in node.endpoints()]

    def nodes_of_kind(self, kind):
        kind = lookup_kind(kind)
        return [node for node in self.nodes.values() if node.kind is kind]

    def incoming(self, target):
        return [edge for edge in self.edges if edge.target == target]

    def outgoing(self, source):
        return [edge for edge in self.edges if edge.source == source]

    def has_edge(self, source, target):
        return Edge(source, target) in self.edges

    def _new_node_id(self, kind, config):
        if kind is NodeKind.CHANNEL:
            preferred = "channel-%d" % config.index
            if preferred not in self._owner:
                return preferred
        k = 1
        while "%s-%d" % (kind.prefix, k) in self._owner:
            k += 1
        return "%s-%d" % (kind.prefix, k)

    def _new_instance_id(self, node):
        while True:
            instance_id = "%s-%d" % (node.id, node.next_instance)
            node.next_instance += 1
            if instance_id not in self._owner:
                return instance_id

    def add_node(self, kind, config=None, node_id=None, instances=None):
        """
        Create a node of type *kind* and return its id.

        Multi-instance nodes are seeded with one instance.  When restoring
        a saved layout, *node_id* and *instances* give the ids to use;
        they must not already be in use.
        """
        kind = lookup_kind(kind)
        config = config_from_dict(kind, config)
        if node_id is None:
            node_id = self._new_node_id(kind, config)
        elif not isinstance(node_id, str) or not node_id:
            raise ConstraintViolation("Node id must be a non-empty string")
        elif node_id in self._owner or node_id in TYPE_LEVEL_IDS:
            raise ConstraintViolation("Node id %r already in use" % (node_id,))
        if instances:
            if not kind.multi_instance:
                raise ConstraintViolation("%s nodes have a single instance"
                                          % kind.value)
            instances = list(instances)
            if len(instances) > MAX_INSTANCES:
                raise LimitExceeded("%s has more than %d instances"
                                    % (node_id, MAX_INSTANCES))
            for instance_id in instances:
                if (not isinstance(instance_id, str) or not instance_id
                        or instance_id == node_id or instance_id in self._owner
                        or instance_id in TYPE_LEVEL_IDS
                        or instances.count(instance_id) > 1):
                    raise ConstraintViolation("Bad instance id %r for %s"
                                              % (instance_id, node_id))
        node = Node(node_id, kind, config)
        self.nodes[node_id] = node
        self._owner[node_id] = node_id
        if instances:
            for instance_id in instances:
                self._attach_instance(node, instance_id)
            node.next_instance = len(instances) + 1
        elif kind.multi_instance:
            self._attach_instance(node, self._new_instance_id(node))
        return node_id

    def _attach_instance(self, node, instance_id):
        node.instances.append(instance_id)
        self._owner[instance_id] = node.id

    def add_instance(self, node_id, instance_id=None):
        """
        Append an instance to the multi-instance node *node_id* and return
        the new instance id.

        Raises :class:`LimitExceeded` if the node already holds
        *MAX_INSTANCES* instances.
        """
        node = self.node(node_id)
        if not node.kind.multi_instance:
            raise ConstraintViolation("%s nodes have a single instance"
                                      % node.kind.value)
        if len(node.instances) >= MAX_INSTANCES:
            raise LimitExceeded("%s already has the maximum of %d instances"
                                % (node_id, MAX_INSTANCES))
        if instance_id is None:
            instance_id = self._new_instance_id(node)
        elif instance_id in self._owner:
            raise ConstraintViolation("Instance id %r already in use"
                                      % (instance_id,))
        self._attach_instance(node, instance_id)
        return instance_id

    def remove_instance(self, node_id, instance_id):
        """
        Remove *instance_id* from *node_id* along with its edges and
        layout position.

        The last instance of a Plot node cannot be removed.  Removing the
        last instance of a Channel removes the channel node itself.
        """
        node = self.node(node_id)
        if instance_id not in node.instances:
            raise ConstraintViolation("%r is not an instance of %s"
                                      % (instance_id, node_id))
        if len(node.instances) == 1:
            if node.kind is NodeKind.PLOT:
                raise InvariantViolation("A plot needs at least one instance")
            self.remove_node(node_id)
            return
        node.instances.remove(instance_id)
        del self._owner[instance_id]
        self._drop_references({instance_id})

    def remove_node(self, node_id):
        """
        Remove *node_id*, its instances, every edge touching any of them
        and their layout positions.
        """
        node = self.node(node_id)
        endpoints = set(node.endpoints())
        del self.nodes[node_id]
        for endpoint in endpoints:
            del self._owner[endpoint]
        self._drop_references(endpoints)

    def _drop_references(self, endpoints):
        self.edges = [edge for edge in self.edges
                      if edge.source not in endpoints
                      and edge.target not in endpoints]
        for endpoint in endpoints:
            self.positions.pop(endpoint, None)

    def add_connection(self, source, target):
        """
        Connect *source* to *target*, returning the list of edges added.

        *target* may be the type-level id "bandpower", in which case a new
        Bandpower node is created for each distinct channel feeding
        *source*.  If *source* has a single upstream channel (or none) the
        new node is connected to *source* itself, keeping any transforms
        in between.  If *source* merges several channels, each new node is
        connected directly to one of those channels, since a Bandpower
        measures a single channel.

        Connecting an edge which already exists is a no-op and returns an
        empty list.
        """
        if source not in self._owner:
            raise ConstraintViolation("Unknown connection source %r" % (source,))
        if target == NodeKind.BANDPOWER.value:
            return self._connect_new_bandpower(source)
        if target not in self._owner:
            raise ConstraintViolation("Unknown connection target %r" % (target,))
        if self._owner[source] == self._owner[target]:
            raise ConstraintViolation("Cannot connect %s to itself" % (source,))
        target_kind = self.kind_of(target)
        if target_kind is NodeKind.CHANNEL:
            raise ConstraintViolation("Channels do not accept inputs")
        edge = Edge(source, target)
        if edge in self.edges:
            return []
        if target_kind is NodeKind.BANDPOWER and self.incoming(target):
            raise ConstraintViolation("%s already has an input; a bandpower "
                                      "measures a single channel" % target)
        if self.reaches(target, source):
            raise ConstraintViolation("Connecting %s to %s would make a loop"
                                      % (source, target))
        self.edges.append(edge)
        return [edge]

    def reaches(self, start, goal):
        """
        True if values leaving the node of *start* can arrive at the node
        of *goal* by following edges.  Instances count as their node.
        """
        start, goal = self._owner.get(start, None), self._owner.get(goal, None)
        if start is None or goal is None:
            return False
        visited = set()
        pending = [start]
        while pending:
            node_id = pending.pop()
            if node_id == goal:
                return True
            if node_id in visited:
                continue
            visited.add(node_id)
            pending.extend(self._owner[edge.target] for edge in self.edges
                           if self._owner.get(edge.source, None) == node_id
                           and edge.target in self._owner)
        return False

    def _connect_new_bandpower(self, source):
        from .resolve import upstream_sources

        if self.kind_of(source).pass_through:
            sources = upstream_sources(self, source)
        else:
            sources = [source]
        if len(sources) <= 1:
            sources = [source]
        added = []
        for src in sources:
            node_id = self.add_node(NodeKind.BANDPOWER)
            edge = Edge(src, node_id)
            self.edges.append(edge)
            added.append(edge)
        return added

    def set_position(self, endpoint, left, top):
        if endpoint not in self._owner:
            raise ConstraintViolation("Unknown node %r" % (endpoint,))
        position = Position.clamped(left, top)
        self.positions[endpoint] = position
        return position

    def position(self, endpoint):
        return self.positions.get(endpoint, None)

    def check(self):
        """
        Raise :class:`InvariantViolation` if the graph structure is
        inconsistent.  Editing methods maintain these conditions; this
        is for checking graphs built by hand.
        """
        seen = set()
        for edge in self.edges:
            if edge.source not in self._owner or edge.target not in self._owner:
                raise InvariantViolation("Dangling edge %s" % edge.key)
            if edge in seen:
                raise InvariantViolation("Duplicate edge %s" % edge.key)
            seen.add(edge)
            if self.reaches(edge.target, edge.source):
                raise InvariantViolation("Edge %s is part of a loop" % edge.key)
        for node in self.nodes.values():
            if node.kind is NodeKind.BANDPOWER and len(self.incoming(node.id)) > 1:
                raise InvariantViolation("%s has several inputs" % node.id)
            if node.kind.multi_instance and not node.instances:
                raise InvariantViolation("%s has no instances" % node.id)
        for endpoint in self.positions:
            if endpoint not in self._owner:
                raise InvariantViolation("Position for missing node %s" % endpoint)


def test_ids():
    graph = FlowGraph()
    assert graph.add_node(NodeKind.CHANNEL, {'index': 2}) == 'channel-2'
    assert graph.add_node('plot') == 'plot-1'
    assert graph.node('plot-1').instances == ['plot-1-1']
    assert graph.add_instance('plot-1') == 'plot-1-2'
    assert graph.add_node(NodeKind.SPIDERPLOT) == 'spider-1'
    assert graph.node('spider-1').instances == []
