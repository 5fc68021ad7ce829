"""Input resolution helpers.

A backbone with output stride ``s`` maps an input of size ``n`` onto a grid of
``(n - 1) / s + 1`` cells. Resolutions are only valid when ``(n - 1)`` is a
multiple of ``s``; these helpers derive and check such resolutions.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass

from .core.errors import ValidationError

OUTPUT_STRIDES = (8, 16, 32)


@dataclass(frozen=True)
class InputResolution:
    """Requested input size with independent width and height."""

    width: int
    height: int


def is_valid_input_resolution(resolution: int, output_stride: int) -> bool:
    """Whether ``(resolution - 1)`` is divisible by ``output_stride``."""
    return (resolution - 1) % output_stride == 0


def to_valid_input_resolution(requested: float, output_stride: int) -> int:
    """Smallest valid resolution that is not smaller than ``requested``.

    Valid resolutions are returned unchanged. For the supported strides the
    result is always odd.

    Args:
        requested: Requested size in pixels, a non-negative number.
        output_stride: Backbone output stride.

    Returns:
        Resolution ``r >= requested`` with ``(r - 1) % output_stride == 0``.
    """
    resolution = math.ceil(requested)
    if is_valid_input_resolution(resolution, output_stride):
        return resolution
    return math.ceil((resolution - 1) / output_stride) * output_stride + 1


def assert_valid_resolution(resolution: tuple[int, int], output_stride: int) -> None:
    """Check that both dimensions of ``resolution`` are valid for the stride.

    Raises:
        ValidationError: If ``(v - 1) % output_stride != 0`` for either dimension.
    """
    height, width = resolution
    if not (
        is_valid_input_resolution(height, output_stride)
        and is_valid_input_resolution(width, output_stride)
    ):
        raise ValidationError(
            f"Input resolution {tuple(resolution)} is invalid for output stride "
            f"{output_stride}: (value - 1) must be divisible by {output_stride}. "
            f"Use to_valid_input_resolution() to pick a valid value."
        )


def get_valid_input_resolution(
    requested: int | Mapping[str, int] | InputResolution,
    output_stride: int,
) -> tuple[int, int]:
    """Turn a requested resolution into a valid (height, width) pair.

    Args:
        requested: A single size used for both dimensions, or a width/height
            pair given as a mapping or ``InputResolution``.
        output_stride: Backbone output stride.

    Returns:
        Tuple (height, width), each passed through ``to_valid_input_resolution``.
    """
    if isinstance(requested, InputResolution):
        height, width = requested.height, requested.width
    elif isinstance(requested, Mapping):
        try:
            height, width = requested["height"], requested["width"]
        except KeyError as exc:
            raise ValidationError(
                f"Resolution mapping must have 'width' and 'height', received {dict(requested)}"
            ) from exc
    else:
        height = width = requested

    if height <= 0 or width <= 0:
        raise ValidationError(
            f"Input resolution must be positive, received height={height}, width={width}"
        )

    return (
        to_valid_input_resolution(height, output_stride),
        to_valid_input_resolution(width, output_stride),
    )


def output_grid_shape(resolution: tuple[int, int], output_stride: int) -> tuple[int, int]:
    """Grid size (grid_h, grid_w) a backbone produces for a valid resolution."""
    assert_valid_resolution(resolution, output_stride)
    height, width = resolution
    return (height - 1) // output_stride + 1, (width - 1) // output_stride + 1
