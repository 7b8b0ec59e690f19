import json

from sigflow.flow import configure
from sigflow.flow.session import FlowSession

api_methods = []

_session = None

def expose(action):
    """
    Decorator which adds function to the list of methods to expose in the api.
    """
    api_methods.append(action.__name__)
    return action

def get_session():
    if _session is None:
        initialize()
    return _session

def _jsonable(value):
    if hasattr(value, 'todict'):
        return value.todict()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value

def _notice(notice):
    return {
        "ok": notice.ok,
        "kind": notice.kind,
        "message": notice.message,
        "value": _jsonable(notice.value),
    }

@expose
def get_graph():
    """
    Current flow: nodes, connections, canvas positions, grid settings and
    the dashboard tiles when playing.
    """
    session = get_session()
    graph = session.graph
    return {
        "nodes": [node.todict() for node in graph.nodes.values()],
        "connections": [edge.todict() for edge in graph.edges],
        "positions": dict((k, p.todict()) for k, p in graph.positions.items()),
        "gridSettings": session.grid.todict(),
        "channelCount": session.channel_count,
        "playing": session.playing,
        "tiles": [tile.todict() for tile in session.tiles],
    }

@expose
def add_node(kind, config=None, left=None, top=None):
    return _notice(get_session().add_node(kind, config, left, top))

@expose
def add_instance(node_id):
    return _notice(get_session().add_instance(node_id))

@expose
def remove_instance(node_id, instance_id):
    return _notice(get_session().remove_instance(node_id, instance_id))

@expose
def remove_node(node_id):
    return _notice(get_session().remove_node(node_id))

@expose
def connect(source, target):
    """
    Connect *source* to *target*.  *target* may be the type-level id
    "bandpower" to create a new Bandpower node for each channel behind
    *source*.
    """
    return _notice(get_session().connect(source, target))

@expose
def move_node(node_id, left, top):
    return _notice(get_session().move(node_id, float(left), float(top)))

@expose
def set_grid(settings):
    return _notice(get_session().set_grid(settings))

@expose
def play():
    return _notice(get_session().play())

@expose
def stop():
    return _notice(get_session().stop())

@expose
def widget_states():
    return get_session().widget_states()

@expose
def push_samples(samples):
    """
    Feed sample records {"ch0": value, ..., "counter": n} to the hub and
    flush them as one batch.
    """
    session = get_session()
    count = session.hub.push(samples)
    return {"delivered": count, "missing": session.hub.missing}

@expose
def route(boxes, step=None):
    """ json-rpc wrapper for edge routing

    boxes =
    {"channel-0": [left, top, width, height],
     "plot-1-1": [left, top, width, height],
     ...
    }

    Returns {"source=>target": "svg path data", ...} for every edge with
    both ends in *boxes*.
    """
    return get_session().route_edges(boxes, step=step)

@expose
def export_layout():
    filename, text = get_session().save_layout()
    return {"filename": filename, "layout": json.loads(text)}

@expose
def import_layout(layout):
    if not isinstance(layout, str):
        layout = json.dumps(layout)
    return _notice(get_session().load_layout(layout))

def initialize(config=None):
    global _session
    if config is None:
        config = configure.load_config(name="config", fallback=True)
    config = configure.apply_config(config)
    _session = FlowSession(config)
