"""
Dashboard tiling.

When a flow is played its sinks are laid out on the dashboard grid as
non-overlapping tiles which exactly fill the area to the right of and
below *offset* grid cells.
"""
from dataclasses import dataclass, asdict

import numpy as np

from .core import NodeKind
from .errors import LimitExceeded
from .resolve import upstream_sources


@dataclass(frozen=True)
class GridSettings:
    cols: int = 24
    rows: int = 16
    cell_width: float = 50
    cell_height: float = 50

    @classmethod
    def fromdict(cls, data):
        """
        Build from a mapping using either *cell_width* or *cellWidth*
        style keys.  All four values must be positive numbers.
        """
        values = {}
        for name, alt in (('cols', 'cols'), ('rows', 'rows'),
                          ('cell_width', 'cellWidth'), ('cell_height', 'cellHeight')):
            value = data.get(name, data.get(alt, None))
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
                raise ValueError("grid setting %s must be a positive number" % alt)
            values[name] = value
        values['cols'] = int(values['cols'])
        values['rows'] = int(values['rows'])
        return cls(**values)

    def todict(self):
        return {'cols': self.cols, 'rows': self.rows,
                'cellWidth': self.cell_width, 'cellHeight': self.cell_height}


@dataclass(frozen=True)
class Tile:
    """
    A tile on the dashboard grid.

    *members* lists the instances shown in the tile; the aggregated plot
    tile shows every Plot instance.
    """
    id: str
    x: int
    y: int
    width: int
    height: int
    kind: str
    members: tuple = ()

    def todict(self):
        data = asdict(self)
        data['members'] = list(self.members)
        return data


DEFAULT_GRID = GridSettings()
DEFAULT_OFFSET = 3


def routed_channels(graph):
    """
    Channel endpoints feeding a materializable sink, directly or through
    transforms.
    """
    routed = set()
    for node in graph.nodes.values():
        if not node.kind.materializable:
            continue
        for endpoint in (node.instances or [node.id]):
            for source in upstream_sources(graph, endpoint):
                if graph.kind_of(source) is NodeKind.CHANNEL:
                    routed.add(source)
    return routed


def tile_candidates(graph):
    """
    Return [(id, kind, members), ...] for the tiles needed by *graph*, in
    node order.
    """
    routed = routed_channels(graph)
    candidates = []
    plot_nodes = []
    plot_slot = None
    for node in graph.nodes.values():
        if node.kind is NodeKind.CHANNEL:
            for instance in node.instances:
                if instance not in routed and node.id not in routed:
                    candidates.append((instance, node.kind.value, (instance,)))
        elif node.kind is NodeKind.PLOT:
            if plot_slot is None:
                plot_slot = len(candidates)
                candidates.append(None)
            plot_nodes.append(node)
        elif node.kind.materializable:
            candidates.append((node.id, node.kind.value, (node.id,)))

    if plot_nodes:
        members = tuple(i for node in plot_nodes for i in node.instances)
        if len(members) == 1:
            tile_id = members[0]
        elif len(plot_nodes) == 1:
            tile_id = plot_nodes[0].id
        else:
            tile_id = NodeKind.PLOT.value
        candidates[plot_slot] = (tile_id, NodeKind.PLOT.value, members)
    return candidates


def split(total, parts):
    """
    Split *total* cells into *parts* integer sizes, giving the remainder
    one cell at a time to the leading parts.
    """
    sizes = np.full(parts, total // parts, dtype=int)
    sizes[:total % parts] += 1
    return sizes


def grid_shape(n, available_cols, available_rows):
    """
    Near square (cols, rows) for *n* tiles on the available area.
    """
    cols = int(np.floor(np.sqrt(n * available_cols / available_rows) + 0.5))
    cols = min(max(cols, 1), n)
    rows = int(np.ceil(n / cols))
    # drop columns that column-major filling would leave empty
    cols = int(np.ceil(n / rows))
    return cols, rows


def arrange(graph, grid=None, offset=None):
    """
    Tile the sinks of *graph* onto *grid*, returning a list of :class:`Tile`.

    Tiles fill the columns *offset* to *grid.cols* - 1 and the rows
    *offset* to *grid.rows* - 1.  They are placed column by column; each
    column is split evenly between the tiles placed in it, so the tiles
    always cover the area exactly.  The result depends only on the graph
    and the grid.
    """
    grid = grid if grid is not None else DEFAULT_GRID
    offset = offset if offset is not None else DEFAULT_OFFSET
    available_cols = grid.cols - offset
    available_rows = grid.rows - offset
    if available_cols <= 0 or available_rows <= 0:
        raise ValueError("offset %d leaves no room on a %dx%d grid"
                         % (offset, grid.cols, grid.rows))

    candidates = tile_candidates(graph)
    n = len(candidates)
    if n == 0:
        return []
    cols, rows = grid_shape(n, available_cols, available_rows)
    if cols > available_cols or rows > available_rows:
        raise LimitExceeded("%d tiles do not fit on a %dx%d grid"
                            % (n, available_cols, available_rows))

    widths = split(available_cols, cols)
    lefts = offset + np.concatenate(([0], np.cumsum(widths)[:-1]))
    tiles = []
    for col in range(cols):
        members = candidates[col*rows:(col+1)*rows]
        heights = split(available_rows, len(members))
        tops = offset + np.concatenate(([0], np.cumsum(heights)[:-1]))
        for (tile_id, kind, instances), top, height in zip(members, tops, heights):
            x = int(lefts[col])
            y = int(top)
            tiles.append(Tile(
                id=tile_id, x=x, y=y,
                width=int(min(widths[col], grid.cols - x)),
                height=int(min(height, grid.rows - y)),
                kind=kind, members=tuple(instances),
            ))
    return tiles


def coverage(tiles, grid, offset):
    """
    Count of tiles covering each cell of *grid*, for checking that an
    arrangement covers the area once.
    """
    cells = np.zeros((grid.rows, grid.cols), dtype=int)
    for tile in tiles:
        cells[tile.y:tile.y+tile.height, tile.x:tile.x+tile.width] += 1
    return cells[offset:, offset:]
