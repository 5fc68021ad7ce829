"""PoseNet backbone adapters."""

from .base import BaseBackbone
from .mobilenet import MobileNet
from .resnet import ResNet

__all__ = [
    "BaseBackbone",
    "MobileNet",
    "ResNet",
]
