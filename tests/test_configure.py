import pytest

from sigflow.flow import configure, core, arrange, route, hub


@pytest.fixture
def restore_globals(monkeypatch):
    for module, name in ((core, 'MAX_INSTANCES'), (core, 'SAMPLING_RATE'),
                         (core, 'FFT_SIZE'), (arrange, 'DEFAULT_GRID'),
                         (arrange, 'DEFAULT_OFFSET'), (route, 'ROUTE_STEP'),
                         (route, 'MAX_STEPS'), (hub, 'BUFFER_SIZE')):
        monkeypatch.setattr(module, name, getattr(module, name))


def test_load_config():
    config = configure.load_config("default")
    assert config == configure.DEFAULT_CONFIG
    assert config is not configure.DEFAULT_CONFIG
    assert configure.load_config("no_such_config") == configure.DEFAULT_CONFIG
    with pytest.raises(ImportError):
        configure.load_config("no_such_config", fallback=False)


def test_apply_config(restore_globals):
    overrides = {
        'max_instances': 2,
        'grid': {'cols': 12, 'rows': 10, 'cell_width': 20, 'cell_height': 20},
        'arrange_offset': 1,
        'router': {'step': 25, 'max_steps': 5},
        'sample_buffer_size': 64,
        'sampling_rate': 250,
        'fft_size': 512,
    }
    config = configure.apply_config(user_overrides=overrides)
    assert config['max_instances'] == 2
    assert core.MAX_INSTANCES == 2
    assert arrange.DEFAULT_GRID == arrange.GridSettings(12, 10, 20, 20)
    assert arrange.DEFAULT_OFFSET == 1
    assert (route.ROUTE_STEP, route.MAX_STEPS) == (25, 5)
    assert hub.SampleHub().buffer_size == 64
    config = core.config_from_dict(core.NodeKind.FFT)
    assert (config.sampling_rate, config.fft_size) == (250, 512)

    graph = core.FlowGraph()
    graph.add_node(core.NodeKind.PLOT)
    graph.add_instance('plot-1')
    with pytest.raises(core.LimitExceeded):
        graph.add_instance('plot-1')


def test_defaults_unchanged(restore_globals):
    config = configure.apply_config()
    assert config == configure.DEFAULT_CONFIG
    assert core.MAX_INSTANCES == 8
    assert arrange.DEFAULT_GRID == arrange.GridSettings()


def test_bad_fft_size(restore_globals):
    with pytest.raises(ValueError):
        configure.apply_config(user_overrides={'fft_size': 300})
