"""Config helpers for PoseNet models."""

from .default import (
    VALID_MULTIPLIERS,
    VALID_OUTPUT_STRIDES,
    VALID_QUANT_BYTES,
    cfg,
    get_cfg_defaults,
    load_cfg_from_file,
    validate_model_config,
)

__all__ = [
    "VALID_MULTIPLIERS",
    "VALID_OUTPUT_STRIDES",
    "VALID_QUANT_BYTES",
    "cfg",
    "get_cfg_defaults",
    "load_cfg_from_file",
    "validate_model_config",
]
