#############################################################
# rename or copy this file to config.py if you make changes #
#############################################################

# change "host" to your fully-qualified domain name to run a
# remote server.  The default value of localhost will
# only allow connections from the same computer.

config = {
    # dashboard grid used when playing a flow
    "grid": {
        "cols": 24,
        "rows": 16,
        "cell_width": 50,
        "cell_height": 50,
    },
    # number of grid cells left free at the top/left of the dashboard
    "arrange_offset": 3,
    # edge routing on the editing canvas, in pixels
    "router": {
        "step": 50,
        "max_steps": 40,
    },
    # maximum number of instances held by a Channel or Plot node
    "max_instances": 8,
    # number of acquisition channels offered to the editor
    "channel_count": 3,
    # samples retained by the sample hub
    "sample_buffer_size": 512,
    # defaults for nodes which do not set their own
    "sampling_rate": 500,
    "fft_size": 256,
    # show tracebacks in RPC error responses
    "show_exceptions": False,
    "host": "localhost",
    "port": 8002,
}
