"""Exception types raised by the PoseNet backbone layer."""


class PoseNetError(Exception):
    """Base class for errors raised by posenet."""


class ConfigurationError(PoseNetError, ValueError):
    """A backbone or model config cannot be used as requested.

    Raised at construction time, e.g. when a graph was exported with a fixed
    spatial input size or an output stride is not supported.
    """


class ValidationError(PoseNetError, ValueError):
    """An input resolution does not satisfy the output stride constraint."""


class ShapeError(PoseNetError, ValueError):
    """A tensor does not have the shape the adapter expects."""
