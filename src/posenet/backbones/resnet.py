"""ResNet50 PoseNet backbone."""

import torch
from torch import Tensor

from posenet.core.interfaces import OutputKeys
from posenet.core.registry import BACKBONE_REGISTRY

from .base import BaseBackbone

# negated ImageNet channel means, RGB order
IMAGENET_MEAN_OFFSET = torch.tensor([-123.15, -115.90, -103.06], dtype=torch.float32)


@BACKBONE_REGISTRY.register("ResNet50")
class ResNet(BaseBackbone):
    """ResNet50 backbone, trained on mean-centered pixels without scaling."""

    RAW_OUTPUT_ORDER = (
        OutputKeys.DISPLACEMENT_FWD,
        OutputKeys.DISPLACEMENT_BWD,
        OutputKeys.OFFSETS,
        OutputKeys.HEATMAPS,
    )

    def preprocess(self, image: Tensor) -> Tensor:
        """Subtract the ImageNet channel means."""
        return image + IMAGENET_MEAN_OFFSET.to(device=image.device, dtype=image.dtype)
