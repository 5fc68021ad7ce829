"""PoseNet backbone adapters and input resolution helpers."""

from .backbones import BaseBackbone, MobileNet, ResNet
from .core import (
    ConfigurationError,
    OutputBundle,
    PoseNetError,
    ShapeError,
    ValidationError,
    memory,
)
from .keypoints import NUM_KEYPOINTS, PART_NAMES, POSE_CHAIN, KeypointIndex
from .model_loader import PoseNet, build_backbone, load_pose_model
from .resolution import (
    OUTPUT_STRIDES,
    InputResolution,
    assert_valid_resolution,
    get_valid_input_resolution,
    to_valid_input_resolution,
)
from .weights import ModelWeights

__all__ = [
    "NUM_KEYPOINTS",
    "OUTPUT_STRIDES",
    "PART_NAMES",
    "POSE_CHAIN",
    "BaseBackbone",
    "ConfigurationError",
    "InputResolution",
    "KeypointIndex",
    "MobileNet",
    "ModelWeights",
    "OutputBundle",
    "PoseNet",
    "PoseNetError",
    "ResNet",
    "ShapeError",
    "ValidationError",
    "assert_valid_resolution",
    "build_backbone",
    "get_valid_input_resolution",
    "load_pose_model",
    "memory",
    "to_valid_input_resolution",
]
