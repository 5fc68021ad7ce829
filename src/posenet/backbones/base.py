"""Shared adapter logic for PoseNet backbones."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

import numpy as np
import torch
from torch import Tensor

from posenet.core.errors import ConfigurationError, ShapeError
from posenet.core.interfaces import OutputBundle, OutputKeys
from posenet.core.memory import TensorScope
from posenet.graph import GraphModel
from posenet.resolution import OUTPUT_STRIDES

NUM_RAW_OUTPUTS = 4


def _as_tensor(image: np.ndarray | Tensor) -> Tensor:
    if isinstance(image, Tensor):
        return image
    return torch.as_tensor(np.ascontiguousarray(image))


def _check_image(image: Tensor) -> None:
    if image.ndim != 3 or image.shape[2] != 3:
        raise ShapeError(f"Expected image shape (H, W, 3), received {tuple(image.shape)}")


def to_float_if_int(image: Tensor) -> Tensor:
    """Return a float32 copy of integer images; float images are returned as-is."""
    if torch.is_floating_point(image):
        return image
    return image.to(torch.float32)


def _squeeze_batch(name: str, output: Tensor) -> Tensor:
    if output.ndim == 0 or output.shape[0] != 1:
        raise ShapeError(
            f"Expected {name} output with batch size 1, received shape {tuple(output.shape)}"
        )
    return output.squeeze(0)


class BaseBackbone(ABC):
    """Adapter between a loaded PoseNet graph and the canonical output bundle.

    Subclasses provide the architecture specific input normalization and the
    order in which their graph returns its four outputs.

    Args:
        model: Loaded graph whose spatial input dimensions are unconstrained.
        output_stride: Output stride the graph was exported with.
    """

    # raw graph output order, as OutputKeys names
    RAW_OUTPUT_ORDER: ClassVar[tuple[str, str, str, str]]

    def __init__(self, model: GraphModel, output_stride: int) -> None:
        input_shape = tuple(model.inputs[0].shape)
        if len(input_shape) != 4 or input_shape[1] != -1 or input_shape[2] != -1:
            raise ConfigurationError(
                f"Input shape {list(input_shape[1:3])} must both be -1; the graph "
                f"must accept any spatial size, received input shape {list(input_shape)}"
            )
        if output_stride not in OUTPUT_STRIDES:
            raise ConfigurationError(
                f"Output stride {output_stride} is not supported, "
                f"expected one of {list(OUTPUT_STRIDES)}"
            )
        self._model = model
        self._output_stride = output_stride

    @property
    def model(self) -> GraphModel:
        """The loaded graph owned by this backbone."""
        return self._model

    @property
    def output_stride(self) -> int:
        """Spatial downsampling factor of the backbone."""
        return self._output_stride

    @abstractmethod
    def preprocess(self, image: Tensor) -> Tensor:
        """Map a float (H, W, 3) image into the range the graph was trained on."""

    def normalize(self, image: np.ndarray | Tensor) -> Tensor:
        """Float conversion followed by the architecture normalization."""
        tensor = _as_tensor(image)
        _check_image(tensor)
        return self.preprocess(to_float_if_int(tensor))

    def predict(self, image: np.ndarray | Tensor) -> OutputBundle:
        """Run the backbone on a single (H, W, 3) image.

        Args:
            image: Image already resized to a valid input resolution, with an
                integer or floating point dtype. It is not modified.

        Returns:
            OutputBundle in canonical order. Only its four tensors remain
            tracked after the call; every intermediate tensor is released.

        Raises:
            ShapeError: If the image is not (H, W, 3) or the graph outputs do
                not match the expected count and layout.
        """
        with TensorScope(protect=(image,)) as scope:
            tensor = scope.track(_as_tensor(image))
            _check_image(tensor)
            as_float = scope.track(to_float_if_int(tensor))
            normalized = scope.track(self.preprocess(as_float))
            batch = scope.track(normalized.unsqueeze(0))

            raw_outputs = [scope.track(output) for output in self._model.predict(batch)]
            if len(raw_outputs) != NUM_RAW_OUTPUTS:
                raise ShapeError(
                    f"Expected {NUM_RAW_OUTPUTS} graph outputs, received {len(raw_outputs)}"
                )

            outputs = {
                name: scope.track(_squeeze_batch(name, output))
                for name, output in zip(self.RAW_OUTPUT_ORDER, raw_outputs, strict=True)
            }
            heatmap_scores = scope.track(torch.sigmoid(outputs[OutputKeys.HEATMAPS]))

            bundle = OutputBundle(
                heatmap_scores=heatmap_scores,
                offsets=outputs[OutputKeys.OFFSETS],
                displacement_fwd=outputs[OutputKeys.DISPLACEMENT_FWD],
                displacement_bwd=outputs[OutputKeys.DISPLACEMENT_BWD],
            )
            bundle.check_shapes()
            scope.keep(*bundle)

        return bundle

    def dispose(self) -> None:
        """Release the owned graph. The backbone must not be used afterwards."""
        self._model.dispose()
