"""Backbone registry for posenet.

Maps architecture names (as they appear in model configs) to backbone classes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from .errors import ConfigurationError

T = TypeVar("T")


class BackboneRegistry:
    """Registry for backbone classes.

    Usage:
        @BACKBONE_REGISTRY.register("MobileNetV1")
        class MobileNet(BaseBackbone):
            ...

        # Later:
        backbone_cls = BACKBONE_REGISTRY.get("MobileNetV1")
    """

    def __init__(self) -> None:
        self._registry: dict[str, type] = {}

    def register(self, name: str) -> Callable[[T], T]:
        """Decorator to register a backbone class.

        Args:
            name: Architecture name for the backbone.

        Returns:
            Decorator function that registers the class.

        Raises:
            ValueError: If a backbone with this name is already registered.
        """

        def _register(cls: T) -> T:
            if name in self._registry:
                raise ValueError(f"Backbone '{name}' is already registered.")
            self._registry[name] = cls  # type: ignore[assignment]
            return cls

        return _register

    def get(self, name: str) -> type:
        """Retrieve a backbone class from the registry.

        Raises:
            ConfigurationError: If the architecture name is not registered.
        """
        if name not in self._registry:
            raise ConfigurationError(
                f"Unknown architecture '{name}'. "
                f"Registered architectures: {self.list_architectures()}"
            )
        return self._registry[name]

    def list_architectures(self) -> list[str]:
        """Sorted list of registered architecture names."""
        return sorted(self._registry.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._registry


BACKBONE_REGISTRY = BackboneRegistry()
