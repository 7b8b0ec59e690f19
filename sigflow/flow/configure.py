import copy

from . import core, arrange, route, hub
from sigflow.configurations import default

DEFAULT_CONFIG = copy.deepcopy(default.config)

def load_config(name="config", fallback=True):
    """
    Look for configurations defined in the configurations directory
    if the name is not found, use the default configuration if fallback==True
    """
    import importlib

    try:
        config_module = importlib.import_module("sigflow.configurations.{name}".format(name=name))
        return copy.deepcopy(config_module.config)
    except ImportError:
        if fallback:
            return copy.deepcopy(DEFAULT_CONFIG)
        else:
            raise

def apply_config(user_config=None, user_overrides=None):
    """
    Copy configuration values into the module level defaults used by the
    flow engine.  Returns the merged configuration.
    """
    if user_config is not None:
        config = copy.deepcopy(user_config)
    else:
        config = copy.deepcopy(DEFAULT_CONFIG)

    if user_overrides is not None:
        config.update(user_overrides)

    core.MAX_INSTANCES = int(config.get("max_instances", core.MAX_INSTANCES))
    core.SAMPLING_RATE = int(config.get("sampling_rate", core.SAMPLING_RATE))
    core.FFT_SIZE = int(config.get("fft_size", core.FFT_SIZE))
    if core.FFT_SIZE <= 0 or core.FFT_SIZE & (core.FFT_SIZE - 1):
        raise ValueError("fft_size %d is not a power of two" % core.FFT_SIZE)

    grid = config.get("grid", None)
    if grid:
        arrange.DEFAULT_GRID = arrange.GridSettings.fromdict(grid)
    arrange.DEFAULT_OFFSET = int(config.get("arrange_offset", arrange.DEFAULT_OFFSET))

    router = config.get("router", {})
    route.ROUTE_STEP = router.get("step", route.ROUTE_STEP)
    route.MAX_STEPS = int(router.get("max_steps", route.MAX_STEPS))

    hub.BUFFER_SIZE = int(config.get("sample_buffer_size", hub.BUFFER_SIZE))

    return config
