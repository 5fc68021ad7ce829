"""Model/config loading for PoseNet backbones."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from types import TracebackType

import numpy as np
import torch
from torch import Tensor
from yacs.config import CfgNode

from .backbones import BaseBackbone
from .config import load_cfg_from_file, validate_model_config
from .core.errors import ConfigurationError, ValidationError
from .core.interfaces import OutputBundle
from .core.registry import BACKBONE_REGISTRY
from .graph import GraphModel, load_graph_model
from .resolution import InputResolution, assert_valid_resolution, get_valid_input_resolution

logger = logging.getLogger(__name__)


class PoseNet:
    """A backbone paired with the fixed input resolution it is run at.

    Images passed to ``predict`` must already be resized to
    ``input_resolution``.

    Args:
        backbone: Backbone adapter that owns the loaded graph.
        input_resolution: Valid (height, width) for the backbone output stride.
    """

    def __init__(self, backbone: BaseBackbone, input_resolution: tuple[int, int]) -> None:
        assert_valid_resolution(input_resolution, backbone.output_stride)
        self._backbone = backbone
        self._input_resolution = (int(input_resolution[0]), int(input_resolution[1]))

    @property
    def backbone(self) -> BaseBackbone:
        """The wrapped backbone adapter."""
        return self._backbone

    @property
    def input_resolution(self) -> tuple[int, int]:
        """Input (height, width) images must be resized to."""
        return self._input_resolution

    @property
    def output_stride(self) -> int:
        """Output stride of the backbone."""
        return self._backbone.output_stride

    def predict(self, image: np.ndarray | Tensor) -> OutputBundle:
        """Run the backbone on an image of size ``input_resolution``.

        Raises:
            ValidationError: If the image size does not match ``input_resolution``.
        """
        if tuple(image.shape[:2]) != self._input_resolution:
            raise ValidationError(
                f"Image size {tuple(image.shape[:2])} does not match the model input "
                f"resolution {self._input_resolution}; resize the image first"
            )
        return self._backbone.predict(image)

    def dispose(self) -> None:
        """Release the backbone and its graph."""
        self._backbone.dispose()

    def __enter__(self) -> PoseNet:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        self.dispose()
        return False


def build_backbone(architecture: str, model: GraphModel, output_stride: int) -> BaseBackbone:
    """Wrap a loaded graph in the backbone adapter registered for ``architecture``."""
    backbone_cls = BACKBONE_REGISTRY.get(architecture)
    logger.info(f"Building {backbone_cls.__name__} backbone | stride={output_stride}")
    return backbone_cls(model, output_stride)


def _resolve_config(config: CfgNode | str | Path) -> CfgNode:
    if isinstance(config, CfgNode):
        return config
    return load_cfg_from_file(config)


def load_pose_model(
    config: CfgNode | str | Path,
    model_file: str | Path | None = None,
    *,
    input_resolution: int | Mapping[str, int] | InputResolution | None = None,
    device: str | torch.device | None = None,
) -> PoseNet:
    """Load a PoseNet backbone from a config and a TorchScript graph.

    Args:
        config: Config node or path to a YAML config.
        model_file: Optional path to the graph. If omitted, uses cfg.MODEL.MODEL_FILE.
        input_resolution: Optional resolution override, a single size or a
            width/height pair. If omitted, uses cfg.MODEL.INPUT_RESOLUTION.
        device: Optional torch device override. If omitted, uses cfg.DEVICE.

    Returns:
        PoseNet with a valid input resolution for the configured output stride.
    """
    cfg = _resolve_config(config)
    validate_model_config(cfg)

    model_file = model_file if model_file is not None else cfg.MODEL.MODEL_FILE
    if not model_file:
        raise ConfigurationError(
            "No model file provided and cfg.MODEL.MODEL_FILE is empty. "
            "Set model_file or populate MODEL.MODEL_FILE in config."
        )

    output_stride = cfg.MODEL.OUTPUT_STRIDE
    if input_resolution is None:
        input_resolution = InputResolution(
            width=cfg.MODEL.INPUT_RESOLUTION.WIDTH,
            height=cfg.MODEL.INPUT_RESOLUTION.HEIGHT,
        )
    resolution = get_valid_input_resolution(input_resolution, output_stride)

    graph = load_graph_model(
        model_file,
        device=device if device is not None else cfg.DEVICE,
        input_shape=cfg.MODEL.INPUT_SHAPE,
    )
    try:
        backbone = build_backbone(cfg.MODEL.ARCHITECTURE, graph, output_stride)
    except ConfigurationError:
        graph.dispose()
        raise

    logger.info(
        f"Loaded {cfg.MODEL.ARCHITECTURE} | stride={output_stride} | resolution={resolution}"
        f" | multiplier={cfg.MODEL.MULTIPLIER} | quant_bytes={cfg.MODEL.QUANT_BYTES}"
    )
    return PoseNet(backbone, resolution)
