"""
Save and restore flow layouts.

A layout is a JSON document holding the nodes, connections and canvas
positions of a flow together with the dashboard grid settings::

    {
        "version": "1.0",
        "exportDate": "2026-01-31T12:00:00+00:00",
        "nodes": [{"id": "channel-0", "kind": "channel",
                   "config": {"index": 0}, "instances": ["channel-0-1"]}, ...],
        "connections": [{"from": "channel-0-1", "to": "plot-1-1"}, ...],
        "modalPositions": {"channel-0": {"left": 0.1, "top": 0.2}, ...},
        "gridSettings": {"cols": 24, "rows": 16,
                         "cellWidth": 50, "cellHeight": 50},
        "channelCount": 3
    }

Older layouts store the nodes under "flowOptions"; these are accepted
when loading.  Loading checks each node, connection and position on its
own.  Entries which fail are skipped and counted in the
:class:`ImportReport`, so one bad entry does not lose the whole layout.
"""
import json
import math
import logging
from datetime import datetime

import pytz

from .core import FlowGraph, TYPE_LEVEL_IDS
from .arrange import GridSettings, DEFAULT_GRID
from .errors import FlowError, ImportValidationError, annotate_exception
from .hub import MAX_CHANNELS

LAYOUT_VERSION = '1.0'
DEFAULT_CHANNEL_COUNT = 3


class ImportReport(object):
    """
    Result of loading a layout.

    *graph* : :class:`.core.FlowGraph`
        the restored flow.

    *grid* : :class:`.arrange.GridSettings`
        grid settings from the layout, or None if they were missing or
        invalid.

    *channel_count* : int
        number of acquisition channels.

    *skipped_nodes*, *skipped_connections*, *skipped_positions* : int
        number of entries of each type which were dropped.

    *errors* : [string, ...]
        reason for each dropped entry.
    """
    def __init__(self, graph):
        self.graph = graph
        self.grid = None
        self.channel_count = DEFAULT_CHANNEL_COUNT
        self.skipped_nodes = 0
        self.skipped_connections = 0
        self.skipped_positions = 0
        self.errors = []

    @property
    def skipped(self):
        return self.skipped_nodes + self.skipped_connections + self.skipped_positions

    def message(self):
        text = "Loaded %d nodes and %d connections" % (
            len(self.graph.nodes), len(self.graph.edges))
        if self.skipped:
            text += "; %d items had errors and were skipped" % self.skipped
        return text

    def todict(self):
        return {
            'skipped': self.skipped,
            'skippedNodes': self.skipped_nodes,
            'skippedConnections': self.skipped_connections,
            'skippedPositions': self.skipped_positions,
            'errors': list(self.errors),
            'message': self.message(),
        }


def _now(now=None):
    return now if now is not None else datetime.now(pytz.utc)


def layout_filename(now=None):
    """Timestamped file name for a saved layout."""
    return "flow-layout-%s.json" % _now(now).strftime("%Y%m%dT%H%M%SZ")


def dump_layout(graph, grid=None, channel_count=DEFAULT_CHANNEL_COUNT, now=None):
    """Layout document for *graph* as a dict."""
    grid = grid if grid is not None else DEFAULT_GRID
    return {
        'version': LAYOUT_VERSION,
        'exportDate': _now(now).isoformat(),
        'nodes': [node.todict() for node in graph.nodes.values()],
        'connections': [edge.todict() for edge in graph.edges],
        'modalPositions': dict((k, p.todict()) for k, p in graph.positions.items()),
        'gridSettings': grid.todict(),
        'channelCount': channel_count,
    }


def dumps(graph, grid=None, channel_count=DEFAULT_CHANNEL_COUNT, now=None):
    return json.dumps(dump_layout(graph, grid, channel_count, now), indent=2)


def _is_number(value):
    return (isinstance(value, (int, float)) and not isinstance(value, bool)
            and math.isfinite(value))


def _load_node(graph, entry):
    if not isinstance(entry, dict):
        raise ImportValidationError("node entry is not an object")
    node_id = entry.get('id', None)
    kind = entry.get('kind', entry.get('type', None))
    instances = entry.get('instances', None)
    if instances is not None and not isinstance(instances, list):
        raise ImportValidationError("instances of %r is not a list" % (node_id,))
    if node_id is None:
        raise ImportValidationError("node entry has no id")
    graph.add_node(kind, entry.get('config', None), node_id=node_id,
                   instances=instances)


def _load_connection(graph, entry):
    if not isinstance(entry, dict):
        raise ImportValidationError("connection entry is not an object")
    source, target = entry.get('from', None), entry.get('to', None)
    if not isinstance(source, str) or not isinstance(target, str):
        raise ImportValidationError("connection needs from and to ids")
    if target in TYPE_LEVEL_IDS:
        raise ImportValidationError("connection to unresolved %r" % target)
    if not graph.add_connection(source, target):
        raise ImportValidationError("duplicate connection %s=>%s" % (source, target))


def _load_position(graph, endpoint, entry):
    if not isinstance(entry, dict):
        raise ImportValidationError("position is not an object")
    left, top = entry.get('left', None), entry.get('top', None)
    if not _is_number(left) or not _is_number(top):
        raise ImportValidationError("position needs numeric left and top")
    graph.set_position(endpoint, left, top)


def _skip(report, counter, context, exc):
    annotate_exception(context, exc)
    setattr(report, counter, getattr(report, counter) + 1)
    report.errors.append(str(exc))
    logging.info("layout import: %s", exc)


def load_layout(document):
    """
    Restore a flow from a layout *document* (a dict).

    Raises :class:`.errors.ImportValidationError` if the document is not an
    object or has no node list; other problems skip the offending entry.
    """
    if not isinstance(document, dict):
        raise ImportValidationError("layout is not a JSON object")
    nodes = document.get('nodes', document.get('flowOptions', None))
    if not isinstance(nodes, list):
        raise ImportValidationError("layout has no node list")
    version = document.get('version', LAYOUT_VERSION)
    if str(version).split('.')[0] != LAYOUT_VERSION.split('.')[0]:
        logging.warning("layout version %s may not load correctly", version)

    report = ImportReport(FlowGraph())
    graph = report.graph
    for k, entry in enumerate(nodes):
        try:
            _load_node(graph, entry)
        except (FlowError, ValueError, TypeError) as exc:
            _skip(report, 'skipped_nodes', "in node %d" % k, exc)

    connections = document.get('connections', [])
    if not isinstance(connections, list):
        report.errors.append("connections is not a list")
        connections = []
    for k, entry in enumerate(connections):
        try:
            _load_connection(graph, entry)
        except (FlowError, ValueError, TypeError) as exc:
            _skip(report, 'skipped_connections', "in connection %d" % k, exc)

    positions = document.get('modalPositions', {})
    if not isinstance(positions, dict):
        report.errors.append("modalPositions is not an object")
        positions = {}
    for endpoint, entry in positions.items():
        try:
            _load_position(graph, endpoint, entry)
        except (FlowError, ValueError, TypeError) as exc:
            _skip(report, 'skipped_positions', "at position %s" % endpoint, exc)

    grid = document.get('gridSettings', None)
    if isinstance(grid, dict):
        try:
            report.grid = GridSettings.fromdict(grid)
        except ValueError as exc:
            report.errors.append(str(exc))

    count = document.get('channelCount', None)
    if isinstance(count, int) and not isinstance(count, bool) and 0 < count <= MAX_CHANNELS:
        report.channel_count = count

    return report


def loads(text):
    """
    Restore a flow from layout JSON *text*, returning an
    :class:`ImportReport`.
    """
    try:
        document = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ImportValidationError("layout is not valid JSON: %s" % exc)
    return load_layout(document)
