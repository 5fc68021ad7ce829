"""Name-keyed access to MobileNet checkpoint variables."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from torch import Tensor

from posenet.core.memory import dispose

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "MobilenetV1"


class ModelWeights:
    """Lookup of per-layer weights and biases from a flat variable mapping.

    Variables are keyed as ``"{prefix}/{layer_name}/{kind}"``, e.g.
    ``"MobilenetV1/Conv2d_0/weights"``. Completeness is not checked up front;
    a lookup for a missing layer raises ``KeyError``.

    Args:
        variables: Mapping of fully qualified variable name to tensor.
        prefix: Scope prefix shared by all variable names.
    """

    def __init__(self, variables: Mapping[str, Tensor], prefix: str = DEFAULT_PREFIX) -> None:
        self._variables: Mapping[str, Tensor] = MappingProxyType(dict(variables))
        self._prefix = prefix
        self._disposed = False

    def _lookup(self, layer_name: str, kind: str) -> Tensor:
        key = f"{self._prefix}/{layer_name}/{kind}"
        try:
            return self._variables[key]
        except KeyError:
            raise KeyError(f"No '{kind}' variable for layer '{layer_name}' (key '{key}')") from None

    def weights(self, layer_name: str) -> Tensor:
        """Convolution kernel of a layer."""
        return self._lookup(layer_name, "weights")

    def depthwise_bias(self, layer_name: str) -> Tensor:
        """Bias of a layer."""
        return self._lookup(layer_name, "biases")

    def conv_bias(self, layer_name: str) -> Tensor:
        """Bias of a convolution layer, same variable as ``depthwise_bias``."""
        return self.depthwise_bias(layer_name)

    def depthwise_weights(self, layer_name: str) -> Tensor:
        """Depthwise convolution kernel of a layer."""
        return self._lookup(layer_name, "depthwise_weights")

    def layer_names(self) -> list[str]:
        """Sorted names of the layers that have at least one variable."""
        prefix = f"{self._prefix}/"
        names = {
            key[len(prefix) :].rsplit("/", 1)[0]
            for key in self._variables
            if key.startswith(prefix) and key.count("/") >= 2
        }
        return sorted(names)

    def __len__(self) -> int:
        return len(self._variables)

    def dispose(self) -> None:
        """Release every variable. Must be called exactly once."""
        if self._disposed:
            raise RuntimeError("ModelWeights has already been disposed.")
        dispose(self._variables.values())
        logger.debug(f"Disposed {len(self._variables)} weight variables")
        self._variables = MappingProxyType({})
        self._disposed = True
