"""Tests for the backbone predict contract, shared by both architectures."""

import gc
import weakref

import numpy as np
import pytest
import torch

from posenet.backbones import MobileNet, ResNet
from posenet.core.errors import ConfigurationError, ShapeError
from posenet.core.interfaces import OutputBundle, OutputKeys
from posenet.core.memory import memory
from posenet.keypoints import NUM_KEYPOINTS

BACKBONES = [MobileNet, ResNet]


@pytest.fixture(params=BACKBONES, ids=lambda cls: cls.__name__)
def backbone_cls(request):
    """Each backbone variant."""
    return request.param


def _backbone(backbone_cls, make_graph, output_stride: int = 32):
    return backbone_cls(make_graph(output_stride, backbone_cls.RAW_OUTPUT_ORDER), output_stride)


def test_predict_output_shapes_513_stride_32(backbone_cls, make_graph) -> None:
    """513x513 at stride 32 yields a 17x17 grid with the expected channels."""
    backbone = _backbone(backbone_cls, make_graph)
    image = torch.zeros(513, 513, 3)

    bundle = backbone.predict(image)

    assert isinstance(bundle, OutputBundle)
    assert bundle.heatmap_scores.shape == (17, 17, NUM_KEYPOINTS)
    assert bundle.offsets.shape == (17, 17, 2 * NUM_KEYPOINTS)
    assert bundle.displacement_fwd.shape == (17, 17, 2 * (NUM_KEYPOINTS - 1))
    assert bundle.displacement_bwd.shape == (17, 17, 2 * (NUM_KEYPOINTS - 1))
    bundle.dispose()


@pytest.mark.parametrize(
    "resolution,stride",
    [((257, 353), 16), ((129, 65), 8), ((417, 609), 32)],
)
def test_predict_grid_follows_resolution_and_stride(
    backbone_cls, make_graph, resolution, stride
) -> None:
    """Grid size is ((H - 1) / s + 1, (W - 1) / s + 1) for every output."""
    backbone = _backbone(backbone_cls, make_graph, output_stride=stride)
    height, width = resolution

    bundle = backbone.predict(torch.zeros(height, width, 3))

    expected_grid = ((height - 1) // stride + 1, (width - 1) // stride + 1)
    for tensor in bundle:
        assert tuple(tensor.shape[:2]) == expected_grid
    bundle.dispose()


def test_predict_reorders_raw_outputs(backbone_cls, make_graph, head_bias) -> None:
    """Outputs land in canonical order whatever the raw graph order is."""
    backbone = _backbone(backbone_cls, make_graph)

    bundle = backbone.predict(torch.zeros(65, 65, 3))

    expected_heatmap = torch.sigmoid(torch.tensor(head_bias[OutputKeys.HEATMAPS]))
    assert torch.allclose(bundle.heatmap_scores, expected_heatmap)
    assert torch.all(bundle.offsets == head_bias[OutputKeys.OFFSETS])
    assert torch.all(bundle.displacement_fwd == head_bias[OutputKeys.DISPLACEMENT_FWD])
    assert torch.all(bundle.displacement_bwd == head_bias[OutputKeys.DISPLACEMENT_BWD])
    bundle.dispose()


def test_heatmap_scores_are_bounded(backbone_cls, stub_graph) -> None:
    """Sigmoid maps arbitrary heatmap logits into [0, 1]; other maps are untouched."""
    raw = {
        OutputKeys.HEATMAPS: torch.linspace(-50, 50, 2 * 2 * 3).reshape(1, 2, 2, 3),
        OutputKeys.OFFSETS: torch.full((1, 2, 2, 6), -7.0),
        OutputKeys.DISPLACEMENT_FWD: torch.full((1, 2, 2, 4), 8.0),
        OutputKeys.DISPLACEMENT_BWD: torch.full((1, 2, 2, 4), 9.0),
    }
    graph = stub_graph([raw[name] for name in backbone_cls.RAW_OUTPUT_ORDER])
    backbone = backbone_cls(graph, 16)

    bundle = backbone.predict(torch.zeros(17, 17, 3))

    assert bundle.heatmap_scores.min() >= 0.0
    assert bundle.heatmap_scores.max() <= 1.0
    assert torch.allclose(bundle.heatmap_scores, torch.sigmoid(raw[OutputKeys.HEATMAPS][0]))
    assert torch.all(bundle.offsets == -7.0)
    bundle.dispose()


@pytest.mark.parametrize("dtype", [np.uint8, np.int32, np.float32, np.float64])
def test_predict_accepts_numpy_images(backbone_cls, make_graph, dtype) -> None:
    """Integer and float numpy images are accepted and left unmodified."""
    backbone = _backbone(backbone_cls, make_graph)
    image = np.full((33, 33, 3), 200, dtype=dtype)
    original = image.copy()

    bundle = backbone.predict(image)

    assert bundle.heatmap_scores.shape == (2, 2, NUM_KEYPOINTS)
    np.testing.assert_array_equal(image, original)
    bundle.dispose()


def test_predict_does_not_modify_tensor_input(backbone_cls, make_graph) -> None:
    """The caller's tensor is neither mutated nor tracked."""
    backbone = _backbone(backbone_cls, make_graph)
    image = torch.full((33, 33, 3), 100, dtype=torch.int32)
    original = image.clone()

    bundle = backbone.predict(image)

    assert image.dtype == torch.int32
    assert torch.equal(image, original)
    bundle.dispose()


def test_predict_releases_intermediates(backbone_cls, make_graph) -> None:
    """Each call leaves exactly the four bundle tensors live."""
    backbone = _backbone(backbone_cls, make_graph)
    image = np.zeros((513, 513, 3), dtype=np.uint8)

    before = memory().num_tensors
    first = backbone.predict(image)
    assert memory().num_tensors == before + 4

    second = backbone.predict(image)
    assert memory().num_tensors == before + 8

    first.dispose()
    second.dispose()
    assert memory().num_tensors == before


def test_predict_rejects_wrong_channel_count(backbone_cls, make_graph) -> None:
    """Images must have exactly three channels."""
    backbone = _backbone(backbone_cls, make_graph)
    before = memory().num_tensors

    with pytest.raises(ShapeError, match=r"Expected image shape \(H, W, 3\)"):
        backbone.predict(np.zeros((33, 33, 4), dtype=np.uint8))

    assert memory().num_tensors == before


def test_predict_rejects_wrong_output_count(backbone_cls, stub_graph) -> None:
    """A graph returning other than four outputs is a ShapeError, with nothing leaked."""
    graph = stub_graph([torch.zeros(1, 2, 2, 17)] * 3)
    backbone = backbone_cls(graph, 16)
    before = memory().num_tensors

    with pytest.raises(ShapeError, match="Expected 4 graph outputs, received 3"):
        backbone.predict(torch.zeros(17, 17, 3))

    assert memory().num_tensors == before


def test_predict_rejects_batch_size_other_than_one(backbone_cls, stub_graph) -> None:
    """Raw outputs must have a leading batch dimension of size 1."""
    graph = stub_graph([torch.zeros(2, 2, 2, 17) for _ in range(4)])
    backbone = backbone_cls(graph, 16)
    before = memory().num_tensors

    with pytest.raises(ShapeError, match="batch size 1"):
        backbone.predict(torch.zeros(17, 17, 3))

    assert memory().num_tensors == before


def test_predict_keeps_single_cell_grid(backbone_cls, stub_graph) -> None:
    """Only the batch dimension is removed, even for a 1x1 grid."""
    raw = [
        torch.zeros(1, 1, 1, 1),
        torch.zeros(1, 1, 1, 2),
        torch.zeros(1, 1, 1, 0),
        torch.zeros(1, 1, 1, 0),
    ]
    channels = {OutputKeys.HEATMAPS: 0, OutputKeys.OFFSETS: 1}
    ordered = [raw[channels.get(name, 2)] for name in backbone_cls.RAW_OUTPUT_ORDER]
    backbone = backbone_cls(stub_graph(ordered), 8)

    bundle = backbone.predict(torch.zeros(1, 1, 3))

    assert bundle.heatmap_scores.shape == (1, 1, 1)
    assert bundle.offsets.shape == (1, 1, 2)
    bundle.dispose()


@pytest.mark.parametrize("input_shape", [(1, 257, 257, 3), (1, -1, 257, 3), (1, 3)])
def test_construction_requires_wildcard_spatial_input(
    backbone_cls, stub_graph, input_shape
) -> None:
    """Graphs exported with a fixed spatial size are rejected."""
    with pytest.raises(ConfigurationError, match="must both be -1"):
        backbone_cls(stub_graph(input_shape=input_shape), 16)


@pytest.mark.parametrize("stride", [4, 12, 64])
def test_construction_rejects_unsupported_stride(backbone_cls, stub_graph, stride) -> None:
    """Only strides 8, 16 and 32 are supported."""
    with pytest.raises(ConfigurationError, match=f"Output stride {stride} is not supported"):
        backbone_cls(stub_graph(), stride)


def test_output_stride_and_dispose(backbone_cls, stub_graph) -> None:
    """Backbones expose their stride and dispose the graph they own."""
    graph = stub_graph()
    backbone = backbone_cls(graph, 8)

    assert backbone.output_stride == 8
    assert backbone.model is graph

    backbone.dispose()
    assert graph.dispose_calls == 1


def test_dropped_bundles_are_not_held_by_tracker(backbone_cls, make_graph) -> None:
    """Bundles dropped without dispose are freed and leave the live count."""
    backbone = _backbone(backbone_cls, make_graph)
    image = torch.zeros(65, 65, 3)
    before = memory().num_tensors

    for _ in range(3):
        bundle = backbone.predict(image)
    assert memory().num_tensors == before + 4

    heatmap_ref = weakref.ref(bundle.heatmap_scores)
    del bundle
    gc.collect()

    assert heatmap_ref() is None
    assert memory().num_tensors == before
