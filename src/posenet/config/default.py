"""Default YACS config for PoseNet models."""

from __future__ import annotations

from pathlib import Path

from yacs.config import CfgNode as CN

from posenet.core.errors import ConfigurationError

# output strides, multipliers and quantization widths checkpoints exist for
VALID_OUTPUT_STRIDES = {
    "MobileNetV1": (8, 16, 32),
    "ResNet50": (16, 32),
}
VALID_MULTIPLIERS = {
    "MobileNetV1": (0.50, 0.75, 1.0),
    "ResNet50": (1.0,),
}
VALID_QUANT_BYTES = (1, 2, 4)

_C = CN()

# empty selects CUDA when available
_C.DEVICE = ""

_C.MODEL = CN()
_C.MODEL.ARCHITECTURE = "MobileNetV1"
_C.MODEL.OUTPUT_STRIDE = 16
# MULTIPLIER and QUANT_BYTES describe the exported checkpoint in MODEL_FILE;
# they are validated and logged, the graph itself fixes width and precision
_C.MODEL.MULTIPLIER = 0.75
_C.MODEL.QUANT_BYTES = 4
_C.MODEL.MODEL_FILE = ""
# NHWC, -1 marks a dimension of any size
_C.MODEL.INPUT_SHAPE = [1, -1, -1, 3]

_C.MODEL.INPUT_RESOLUTION = CN()
_C.MODEL.INPUT_RESOLUTION.HEIGHT = 257
_C.MODEL.INPUT_RESOLUTION.WIDTH = 257


def get_cfg_defaults() -> CN:
    """Get a clone of default config."""
    return _C.clone()


def load_cfg_from_file(config_path: str | Path) -> CN:
    """Load a frozen config from a YAML file."""
    cfg = get_cfg_defaults()
    cfg.defrost()
    cfg.merge_from_file(str(config_path))
    cfg.freeze()
    return cfg


def validate_model_config(cfg: CN) -> None:
    """Check that a config names an architecture/stride/multiplier combination that exists.

    Raises:
        ConfigurationError: If any MODEL value is not supported.
    """
    architecture = cfg.MODEL.ARCHITECTURE
    if architecture not in VALID_OUTPUT_STRIDES:
        raise ConfigurationError(
            f"Invalid architecture '{architecture}'. "
            f"Should be one of {sorted(VALID_OUTPUT_STRIDES)}"
        )

    if cfg.MODEL.OUTPUT_STRIDE not in VALID_OUTPUT_STRIDES[architecture]:
        raise ConfigurationError(
            f"Invalid output stride {cfg.MODEL.OUTPUT_STRIDE} for {architecture}. "
            f"Should be one of {list(VALID_OUTPUT_STRIDES[architecture])}"
        )

    if cfg.MODEL.MULTIPLIER not in VALID_MULTIPLIERS[architecture]:
        raise ConfigurationError(
            f"Invalid multiplier {cfg.MODEL.MULTIPLIER} for {architecture}. "
            f"Should be one of {list(VALID_MULTIPLIERS[architecture])}"
        )

    if cfg.MODEL.QUANT_BYTES not in VALID_QUANT_BYTES:
        raise ConfigurationError(
            f"Invalid quant bytes {cfg.MODEL.QUANT_BYTES}. "
            f"Should be one of {list(VALID_QUANT_BYTES)}"
        )


cfg = get_cfg_defaults()
