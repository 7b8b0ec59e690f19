import numpy as np
import pytest

from sigflow.flow.arrange import (
    GridSettings, Tile, arrange, coverage, split, grid_shape, routed_channels)
from sigflow.flow.core import FlowGraph, NodeKind
from sigflow.flow.errors import LimitExceeded

GRID = GridSettings(cols=24, rows=16, cell_width=50, cell_height=50)


def test_split_gives_remainder_to_leading_parts():
    assert split(21, 2).tolist() == [11, 10]
    assert split(13, 4).tolist() == [4, 3, 3, 3]
    assert split(10, 5).tolist() == [2, 2, 2, 2, 2]


def test_grid_shape():
    assert grid_shape(1, 21, 13) == (1, 1)
    assert grid_shape(2, 21, 13) == (2, 1)
    assert grid_shape(12, 21, 13) == (4, 3)
    # five tiles over four columns would leave the last column empty
    cols, rows = grid_shape(5, 40, 10)
    assert cols*rows >= 5 and (cols - 1)*rows < 5


def test_plot_instances_share_one_tile(graph):
    graph.add_node(NodeKind.CHANNEL, {'index': 0})
    graph.add_node(NodeKind.CHANNEL, {'index': 1})
    graph.add_node(NodeKind.PLOT)
    graph.add_instance('plot-1')
    graph.add_connection('channel-0', 'plot-1-1')
    graph.add_connection('channel-1', 'plot-1-2')
    tiles = arrange(graph, GRID, 3)
    assert tiles == [Tile('plot-1', 3, 3, 21, 13, 'plot', ('plot-1-1', 'plot-1-2'))]
    assert (coverage(tiles, GRID, 3) == 1).all()


def test_two_sinks_split_the_grid(graph):
    graph.add_node(NodeKind.CHANNEL, {'index': 0})
    graph.add_node(NodeKind.CHANNEL, {'index': 1})
    graph.add_node(NodeKind.FFT)
    graph.add_node(NodeKind.SPIDERPLOT)
    graph.add_connection('channel-0', 'fft-1')
    graph.add_connection('channel-1', 'spider-1')
    tiles = arrange(graph, GRID, 3)
    assert [(t.id, t.x, t.y, t.width, t.height) for t in tiles] == [
        ('fft-1', 3, 3, 11, 13), ('spider-1', 14, 3, 10, 13)]
    assert (coverage(tiles, GRID, 3) == 1).all()


def test_plot_nodes_aggregate(graph):
    graph.add_node(NodeKind.PLOT)
    graph.add_node(NodeKind.FFT)
    graph.add_node(NodeKind.PLOT)
    tiles = arrange(graph, GRID, 3)
    assert [t.id for t in tiles] == ['plot', 'fft-1']
    assert tiles[0].members == ('plot-1-1', 'plot-2-1')


def test_single_plot_instance_tile(graph):
    graph.add_node(NodeKind.PLOT)
    tiles = arrange(graph, GRID, 0)
    assert tiles == [Tile('plot-1-1', 0, 0, 24, 16, 'plot', ('plot-1-1',))]


def test_unrouted_channels_get_tiles(graph):
    graph.add_node(NodeKind.CHANNEL, {'index': 0})
    graph.add_node(NodeKind.CHANNEL, {'index': 1})
    graph.add_node(NodeKind.FILTER)
    graph.add_node(NodeKind.FFT)
    graph.add_connection('channel-0', 'filter-1')
    graph.add_connection('filter-1', 'fft-1')
    assert routed_channels(graph) == {'channel-0'}
    tiles = arrange(graph, GRID, 3)
    assert [(t.id, t.kind) for t in tiles] == [('channel-1-1', 'channel'), ('fft-1', 'fft')]


def test_transforms_do_not_get_tiles(graph):
    graph.add_node(NodeKind.FILTER)
    graph.add_node(NodeKind.ENVELOPE)
    assert arrange(graph, GRID, 3) == []


def test_offset_must_leave_room(graph):
    graph.add_node(NodeKind.FFT)
    with pytest.raises(ValueError):
        arrange(graph, GridSettings(cols=4, rows=4), 4)


def test_too_many_tiles(graph):
    for _ in range(5):
        graph.add_node(NodeKind.FFT)
    with pytest.raises(LimitExceeded):
        arrange(graph, GridSettings(cols=3, rows=3), 1)


@pytest.mark.parametrize("cols, rows, offset", [(24, 16, 3), (10, 10, 0), (7, 30, 2)])
@pytest.mark.parametrize("n", range(1, 13))
def test_exact_cover(n, cols, rows, offset):
    graph = FlowGraph()
    kinds = [NodeKind.FFT, NodeKind.SPIDERPLOT, NodeKind.BANDPOWER, NodeKind.CANDLE]
    for k in range(n):
        graph.add_node(kinds[k % len(kinds)])
    grid = GridSettings(cols=cols, rows=rows)
    tiles = arrange(graph, grid, offset)
    assert len(tiles) == n
    assert (coverage(tiles, grid, offset) == 1).all()
    assert coverage(tiles, grid, 0).sum() == (cols - offset)*(rows - offset)
    assert all(t.width > 0 and t.height > 0 for t in tiles)
    assert arrange(graph, grid, offset) == tiles


def test_grid_settings_from_dict():
    grid = GridSettings.fromdict({'cols': 12, 'rows': 8, 'cellWidth': 40, 'cellHeight': 30})
    assert grid == GridSettings(12, 8, 40, 30)
    assert grid.todict() == {'cols': 12, 'rows': 8, 'cellWidth': 40, 'cellHeight': 30}
    with pytest.raises(ValueError):
        GridSettings.fromdict({'cols': 12, 'rows': 0, 'cellWidth': 40, 'cellHeight': 30})
    with pytest.raises(ValueError):
        GridSettings.fromdict({'cols': '12', 'rows': 8, 'cellWidth': 40, 'cellHeight': 30})
