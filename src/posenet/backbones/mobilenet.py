"""MobileNetV1 PoseNet backbone."""

from torch import Tensor

from posenet.core.interfaces import OutputKeys
from posenet.core.registry import BACKBONE_REGISTRY

from .base import BaseBackbone


@BACKBONE_REGISTRY.register("MobileNetV1")
class MobileNet(BaseBackbone):
    """MobileNetV1 backbone, trained on pixels scaled to [-1, 1]."""

    RAW_OUTPUT_ORDER = (
        OutputKeys.OFFSETS,
        OutputKeys.HEATMAPS,
        OutputKeys.DISPLACEMENT_FWD,
        OutputKeys.DISPLACEMENT_BWD,
    )

    def preprocess(self, image: Tensor) -> Tensor:
        """Normalize the pixels [0, 255] to be between [-1, 1]."""
        return image / 127.5 - 1.0
