"""Loaded network graphs that backbones run on."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import torch
from torch import Tensor

logger = logging.getLogger(__name__)

# (batch, height, width, channels); -1 marks a dimension of any size
DEFAULT_INPUT_SHAPE = (1, -1, -1, 3)


@dataclass(frozen=True)
class TensorSpec:
    """Declared name, shape and dtype of a graph input."""

    name: str
    shape: tuple[int, ...]
    dtype: str = "float32"


class GraphModel(Protocol):
    """What a backbone needs from a loaded network graph."""

    @property
    def inputs(self) -> Sequence[TensorSpec]: ...

    def predict(self, batch: Tensor) -> list[Tensor]: ...

    def dispose(self) -> None: ...


def resolve_device(device: str | torch.device | None) -> torch.device:
    """Map a device override to a torch device, defaulting to CUDA if available."""
    if device is None or device == "":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    return torch.device(device)


class TorchGraphModel:
    """Run a torch module as a channels-last, multi-output graph.

    The module is expected to take an NCHW float batch and return its outputs
    as a tuple, list or dict of NCHW tensors. Inputs and outputs of ``predict``
    are NHWC.

    Args:
        module: Loaded torch module, e.g. from ``torch.jit.load``.
        input_shape: Declared NHWC input shape; -1 marks a dimension of any size.
        device: Device to run on. Defaults to CUDA if available.
    """

    def __init__(
        self,
        module: torch.nn.Module,
        *,
        input_shape: Sequence[int] = DEFAULT_INPUT_SHAPE,
        device: str | torch.device | None = None,
    ) -> None:
        self._device = resolve_device(device)
        self._module: torch.nn.Module | None = module.to(self._device).eval()
        self._inputs = [TensorSpec(name="image", shape=tuple(int(d) for d in input_shape))]

    @property
    def inputs(self) -> list[TensorSpec]:
        """Declared graph inputs."""
        return self._inputs

    @property
    def device(self) -> torch.device:
        """Device the module runs on."""
        return self._device

    @property
    def is_disposed(self) -> bool:
        """Whether ``dispose`` has been called."""
        return self._module is None

    def predict(self, batch: Tensor) -> list[Tensor]:
        """Run the module on an NHWC batch and return NHWC outputs."""
        if self._module is None:
            raise RuntimeError("Graph model has been disposed.")

        with torch.no_grad():
            batch = batch.to(device=self._device, dtype=torch.float32)
            outputs = self._module(batch.permute(0, 3, 1, 2))

        if isinstance(outputs, Tensor):
            outputs = [outputs]
        elif isinstance(outputs, dict):
            outputs = list(outputs.values())
        return [output.permute(0, 2, 3, 1) for output in outputs]

    def dispose(self) -> None:
        """Drop the module and its parameters."""
        self._module = None
        if self._device.type == "cuda":
            torch.cuda.empty_cache()
        logger.debug(f"Disposed graph model on {self._device}")


def load_graph_model(
    model_file: str | Path,
    *,
    device: str | torch.device | None = None,
    input_shape: Sequence[int] = DEFAULT_INPUT_SHAPE,
) -> TorchGraphModel:
    """Load a TorchScript graph from disk.

    Args:
        model_file: Path to a TorchScript file saved with ``torch.jit.save``.
        device: Optional torch device override.
        input_shape: Declared NHWC input shape of the graph.

    Returns:
        TorchGraphModel ready for inference.
    """
    path = Path(model_file)
    if not path.is_file():
        raise FileNotFoundError(f"Model file not found: {path}")

    resolved_device = resolve_device(device)
    module = torch.jit.load(str(path), map_location=resolved_device)
    logger.info(f"Loaded graph model {path.name} on {resolved_device}")
    return TorchGraphModel(module, input_shape=input_shape, device=resolved_device)
