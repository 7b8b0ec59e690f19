"""
Exceptions raised by the flow engine.

Editing operations raise a :class:`FlowError` subclass when the edit is
rejected.  The graph is left exactly as it was before the call, so the
caller only needs to report the message.
"""
import sys


class FlowError(Exception):
    """Base class for rejected flow operations."""


class ConstraintViolation(FlowError):
    """
    An edge or instance edit which the graph structure does not allow,
    such as connecting to an unknown endpoint or giving a Bandpower
    node a second input.
    """


class LimitExceeded(FlowError):
    """Too many instances requested for a node."""


class InvariantViolation(FlowError):
    """Edit would leave the graph without a required element."""


class ImportValidationError(FlowError):
    """Saved layout could not be read."""


class ForwardCallbackError(FlowError):
    """
    Delivery of a forwarded value failed.

    The forwarding engine records these and keeps going; they are never
    raised out of a subscription callback.
    """
    def __init__(self, key, cause):
        FlowError.__init__(self, "%s: %s" % (key, cause))
        self.key = key
        self.cause = cause


def annotate_exception(msg, exc=None):
    """
    Add an annotation to the current exception, which can then be forwarded
    to the caller using a bare "raise" statement to reraise the annotated
    exception.
    """
    if not exc:
        exc = sys.exc_info()[1]

    args = exc.args
    if not args:
        exc.args = (msg,)
    else:
        exc.args = tuple([" ".join((str(args[0]), msg))] + list(args[1:]))
