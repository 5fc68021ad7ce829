"""Shared fixtures for posenet tests."""

from collections.abc import Sequence

import pytest
import torch
import torch.nn as nn

from posenet.core.interfaces import OutputKeys
from posenet.graph import TensorSpec, TorchGraphModel
from posenet.keypoints import NUM_KEYPOINTS

# constant bias per head, so each output can be recognized after reordering
HEAD_BIAS = {
    OutputKeys.HEATMAPS: 2.0,
    OutputKeys.OFFSETS: 1.0,
    OutputKeys.DISPLACEMENT_FWD: -3.0,
    OutputKeys.DISPLACEMENT_BWD: 5.0,
}


def head_channels(num_keypoints: int = NUM_KEYPOINTS) -> dict[str, int]:
    """Channel count of each output for a model with ``num_keypoints``."""
    return {
        OutputKeys.HEATMAPS: num_keypoints,
        OutputKeys.OFFSETS: 2 * num_keypoints,
        OutputKeys.DISPLACEMENT_FWD: 2 * (num_keypoints - 1),
        OutputKeys.DISPLACEMENT_BWD: 2 * (num_keypoints - 1),
    }


class FakePoseNetModule(nn.Module):
    """Four strided 1x1 conv heads emitting constant maps in a fixed order."""

    def __init__(
        self,
        output_stride: int,
        raw_order: Sequence[str],
        num_keypoints: int = NUM_KEYPOINTS,
    ) -> None:
        super().__init__()
        channels = head_channels(num_keypoints)
        self.heads = nn.ModuleList()
        for name in raw_order:
            conv = nn.Conv2d(3, channels[name], kernel_size=1, stride=output_stride)
            nn.init.zeros_(conv.weight)
            nn.init.constant_(conv.bias, HEAD_BIAS[name])
            self.heads.append(conv)

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor, ...]:
        """Forward computation."""
        return tuple(head(x) for head in self.heads)


class StubGraph:
    """Graph returning canned outputs, for exercising adapter error paths."""

    def __init__(
        self,
        outputs: Sequence[torch.Tensor] = (),
        input_shape: tuple[int, ...] = (1, -1, -1, 3),
    ) -> None:
        self.inputs = [TensorSpec(name="image", shape=input_shape)]
        self.outputs = list(outputs)
        self.predict_calls = 0
        self.dispose_calls = 0

    def predict(self, batch: torch.Tensor) -> list[torch.Tensor]:
        self.predict_calls += 1
        return list(self.outputs)

    def dispose(self) -> None:
        self.dispose_calls += 1


@pytest.fixture
def make_graph():
    """Factory for CPU graphs emitting outputs in a given raw order."""

    def _make(output_stride: int, raw_order: Sequence[str]) -> TorchGraphModel:
        return TorchGraphModel(FakePoseNetModule(output_stride, raw_order), device="cpu")

    return _make


@pytest.fixture
def fake_module():
    """Factory for the constant-output conv module behind ``make_graph``."""
    return FakePoseNetModule


@pytest.fixture
def stub_graph():
    """Factory for graphs returning canned outputs."""
    return StubGraph


@pytest.fixture
def head_bias() -> dict[str, float]:
    """Constant value each fake head emits, keyed by output name."""
    return dict(HEAD_BIAS)
