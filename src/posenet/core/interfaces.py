"""Output contract shared by all PoseNet backbones."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from torch import Tensor

from .errors import ShapeError
from .memory import dispose

# =============================================================================
# Output Key Conventions
# =============================================================================


class OutputKeys:
    """Names of the four backbone outputs.

    Backbones describe the order of their raw graph outputs with these keys,
    so that reordering into the canonical bundle is a table lookup.
    """

    HEATMAPS = "heatmaps"
    OFFSETS = "offsets"
    DISPLACEMENT_FWD = "displacement_fwd"
    DISPLACEMENT_BWD = "displacement_bwd"

    # order of fields in OutputBundle
    CANONICAL_ORDER = (HEATMAPS, OFFSETS, DISPLACEMENT_FWD, DISPLACEMENT_BWD)


# =============================================================================
# Output Bundle
# =============================================================================


@dataclass(frozen=True)
class OutputBundle:
    """Per-image backbone outputs, each of shape (grid_h, grid_w, C).

    The caller owns the tensors and should call ``dispose`` once it is done
    with them.

    Attributes:
        heatmap_scores: Sigmoid keypoint confidences in [0, 1], C = K.
        offsets: Sub-grid offset vectors, C = 2K.
        displacement_fwd: Forward displacements along skeleton edges, C = 2(K - 1).
        displacement_bwd: Backward displacements along skeleton edges, C = 2(K - 1).
    """

    heatmap_scores: Tensor
    offsets: Tensor
    displacement_fwd: Tensor
    displacement_bwd: Tensor

    def __iter__(self) -> Iterator[Tensor]:
        yield self.heatmap_scores
        yield self.offsets
        yield self.displacement_fwd
        yield self.displacement_bwd

    @property
    def grid_shape(self) -> tuple[int, int]:
        """Spatial size (grid_h, grid_w) of the output maps."""
        return int(self.heatmap_scores.shape[0]), int(self.heatmap_scores.shape[1])

    @property
    def num_keypoints(self) -> int:
        """Number of keypoint types K."""
        return int(self.heatmap_scores.shape[-1])

    def check_shapes(self) -> None:
        """Verify the four maps share a grid and have consistent channel counts.

        Raises:
            ShapeError: If any map is not 3-D, the grids differ, or the
                channel counts are not (K, 2K, 2(K - 1), 2(K - 1)).
        """
        for name, tensor in zip(OutputKeys.CANONICAL_ORDER, self, strict=True):
            if tensor.ndim != 3:
                raise ShapeError(
                    f"Expected {name} with shape (H, W, C), received {tuple(tensor.shape)}"
                )
            if tuple(tensor.shape[:2]) != self.grid_shape:
                raise ShapeError(
                    f"{name} grid {tuple(tensor.shape[:2])} does not match "
                    f"heatmap grid {self.grid_shape}"
                )

        k = self.num_keypoints
        expected = {
            OutputKeys.OFFSETS: (self.offsets, 2 * k),
            OutputKeys.DISPLACEMENT_FWD: (self.displacement_fwd, 2 * (k - 1)),
            OutputKeys.DISPLACEMENT_BWD: (self.displacement_bwd, 2 * (k - 1)),
        }
        for name, (tensor, channels) in expected.items():
            if tensor.shape[-1] != channels:
                raise ShapeError(
                    f"Expected {name} to have {channels} channels for {k} keypoints, "
                    f"received {tensor.shape[-1]}"
                )

    def dispose(self) -> None:
        """Release all four tensors."""
        dispose(self)
