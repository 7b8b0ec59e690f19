"""
Signal flow architecture.

The flow architecture wires live acquisition channels through signal
transforms into display widgets on a dashboard.

A flow is a small directed graph (:class:`.core.FlowGraph`) of nodes.
Channel nodes are the sources; Filter and Envelope nodes are
pass-through transforms; Plot, Spiderplot, FFT, Bandpower and Candle
nodes are sinks.  Channel and Plot nodes may hold several instances,
each of which is an independent endpoint for connections.  The graph
validates every edit, so that a flow which has been built can always
be played.

Playing a flow does two things.  The sinks are tiled onto the
dashboard grid by :func:`.arrange.arrange`, and a
:class:`.forward.ForwardingEngine` subscribes to the sample hub
(:class:`.hub.SampleHub`) and pushes values from each source to the
materialized widgets (:mod:`.widgets`).  Upstream channels for any
endpoint are found with :func:`.resolve.resolve_sources`.

Edges between nodes on the editing canvas are drawn with
:func:`.route.route`, which steers around the other nodes.  Flows are
saved and restored with :mod:`.store`.
"""

__version__ = "0.3"
