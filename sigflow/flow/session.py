"""
Flow editing session.

:class:`FlowSession` is the entry point used by the editor.  It owns the
graph, the sample hub and the forwarding engine, and turns rejected edits
into :class:`Notice` values so that nothing raises into the user
interface.
"""
import os
import logging
from collections import OrderedDict, namedtuple

from . import arrange as _arrange
from .arrange import GridSettings, arrange
from .core import FlowGraph, NodeKind
from .errors import FlowError
from .forward import ForwardingEngine
from .hub import SampleHub
from .resolve import InstanceRegistry
from .route import route, anchors
from .widgets import PlotWidget, build_widget
from . import store

Notice = namedtuple('Notice', ['ok', 'kind', 'message', 'value'])


def success(message, value=None):
    return Notice(True, 'success', message, value)


def failure(exc):
    return Notice(False, 'error', str(exc), None)


class FlowSession(object):
    """
    Editing and play state for one flow.

    *config* is a configuration dict as returned by
    :func:`.configure.load_config`; missing entries take the module
    defaults.
    """
    def __init__(self, config=None, hub=None):
        config = config if config is not None else {}
        self.config = config
        grid = config.get('grid', None)
        self.grid = GridSettings.fromdict(grid) if grid else _arrange.DEFAULT_GRID
        self.offset = config.get('arrange_offset', _arrange.DEFAULT_OFFSET)
        self.channel_count = config.get('channel_count', store.DEFAULT_CHANNEL_COUNT)
        self.hub = hub if hub is not None else SampleHub(config.get('sample_buffer_size', None))
        self.graph = FlowGraph()
        self.registry = InstanceRegistry()
        self.engine = ForwardingEngine(self.graph, self.hub, self.registry)
        self.tiles = []
        self.widgets = OrderedDict()

    @property
    def playing(self):
        return self.engine.running

    def _edit(self, message, action, *args):
        try:
            value = action(*args)
        except FlowError as exc:
            logging.info("rejected edit: %s", exc)
            return failure(exc)
        text = message(value) if callable(message) else message
        if self.playing:
            replay = self.play()
            if not replay.ok:
                return Notice(False, 'error', "%s, but the flow stopped: %s"
                              % (text, replay.message), value)
        return success(text, value)

    def add_node(self, kind, config=None, left=None, top=None):
        notice = self._edit(lambda node_id: "Added %s" % node_id,
                            self.graph.add_node, kind, config)
        if notice.value is not None and left is not None and top is not None:
            self.graph.set_position(notice.value, left, top)
        return notice

    def add_instance(self, node_id):
        return self._edit(lambda instance_id: "Added %s" % instance_id,
                          self.graph.add_instance, node_id)

    def remove_instance(self, node_id, instance_id):
        return self._edit("Removed %s" % instance_id,
                          self.graph.remove_instance, node_id, instance_id)

    def remove_node(self, node_id):
        return self._edit("Removed %s" % node_id, self.graph.remove_node, node_id)

    def connect(self, source, target):
        def message(edges):
            if not edges:
                return "%s is already connected to %s" % (source, target)
            return "Connected " + ", ".join(edge.key for edge in edges)
        return self._edit(message, self.graph.add_connection, source, target)

    def move(self, endpoint, left, top):
        try:
            position = self.graph.set_position(endpoint, left, top)
        except (FlowError, TypeError, ValueError) as exc:
            return failure(exc)
        return success("Moved %s" % endpoint, position)

    def set_grid(self, settings):
        try:
            self.grid = GridSettings.fromdict(settings)
        except ValueError as exc:
            return failure(exc)
        return success("Grid set to %dx%d" % (self.grid.cols, self.grid.rows), self.grid)

    def _materialize(self, tiles):
        graph = self.graph
        for tile in tiles:
            if tile.kind == NodeKind.PLOT.value:
                owner = graph.node(graph.owner_of(tile.members[0]))
                plot = PlotWidget(tile.id, owner.config, self.hub)
                self.widgets[tile.id] = plot
                for member in tile.members:
                    self.registry.register(member, graph.owner_of(member),
                                           NodeKind.PLOT, plot.lane(member))
            else:
                for member in tile.members:
                    widget = build_widget(graph, member, self.hub)
                    self.widgets[member] = widget
                    self.registry.register(member, graph.owner_of(member),
                                           graph.kind_of(member), widget)
        for node in graph.nodes.values():
            if node.kind.pass_through:
                widget = build_widget(graph, node.id, self.hub)
                self.widgets[node.id] = widget
                self.registry.register(node.id, node.id, node.kind, widget)

    def play(self):
        """
        Arrange the sinks on the dashboard and start forwarding samples.
        """
        self.stop()
        channels = [node.id for node in self.graph.nodes_of_kind(NodeKind.CHANNEL)]
        try:
            tiles = arrange(self.graph, self.grid, self.offset)
            self._materialize(tiles)
            self.hub.set_registered_channels(self.graph, channels)
        except (FlowError, ValueError) as exc:
            self.stop()
            return failure(exc)
        self.tiles = tiles
        self.engine.start()
        return success("Playing %d tiles" % len(tiles), tiles)

    def stop(self):
        was_playing = self.playing
        self.engine.stop()
        for widget in self.widgets.values():
            widget.close()
        self.widgets.clear()
        self.registry.clear()
        self.tiles = []
        return success("Stopped" if was_playing else "Not playing")

    def widget_states(self):
        return OrderedDict((k, w.state()) for k, w in self.widgets.items())

    def route_edges(self, boxes, step=None):
        """
        Paths for every edge whose ends both have a box in *boxes*, which
        maps endpoints to (left, top, width, height) in pixels.  Returns a
        mapping from edge key to SVG path data.
        """
        paths = OrderedDict()
        for edge in self.graph.edges:
            if edge.source not in boxes or edge.target not in boxes:
                continue
            start, end = anchors(boxes[edge.source], boxes[edge.target])
            paths[edge.key] = route(start, end, boxes,
                                    exclude_ids=(edge.source, edge.target),
                                    step=step)
        return paths

    def layout_document(self, now=None):
        return store.dump_layout(self.graph, self.grid, self.channel_count, now)

    def save_layout(self, directory=None, now=None):
        """
        Render the layout as JSON and return (filename, text).  If
        *directory* is given the file is also written there.
        """
        filename = store.layout_filename(now)
        text = store.dumps(self.graph, self.grid, self.channel_count, now)
        if directory is not None:
            with open(os.path.join(directory, filename), 'w') as fid:
                fid.write(text)
        return filename, text

    def load_layout(self, text):
        """
        Replace the flow with the layout in *text*.  The current flow is
        kept if the layout cannot be read at all.
        """
        try:
            report = store.loads(text)
        except FlowError as exc:
            return failure(exc)
        self.stop()
        self.graph = report.graph
        self.engine = ForwardingEngine(self.graph, self.hub, self.registry)
        if report.grid is not None:
            self.grid = report.grid
        self.channel_count = report.channel_count
        kind = 'info' if report.skipped else 'success'
        return Notice(True, kind, report.message(), report)
