"""Core components for posenet."""

from .errors import ConfigurationError, PoseNetError, ShapeError, ValidationError
from .interfaces import OutputBundle, OutputKeys
from .memory import MemoryInfo, TensorScope, TensorTracker, dispose, memory, track
from .registry import BACKBONE_REGISTRY, BackboneRegistry

__all__ = [
    "BACKBONE_REGISTRY",
    "BackboneRegistry",
    "ConfigurationError",
    "MemoryInfo",
    "OutputBundle",
    "OutputKeys",
    "PoseNetError",
    "ShapeError",
    "TensorScope",
    "TensorTracker",
    "ValidationError",
    "dispose",
    "memory",
    "track",
]
