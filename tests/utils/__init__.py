"""Test utilities for smollm_lite."""

from tests.utils.checkpoint import (
    export_hf_weights,
    tiny_config_dict,
    tiny_tokenizer_json,
)
from tests.utils.comparison import assert_tensors_close, assert_tokens_equal

__all__ = [
    # Comparison utilities
    "assert_tensors_close",
    "assert_tokens_equal",
    # Checkpoint builders
    "export_hf_weights",
    "tiny_config_dict",
    "tiny_tokenizer_json",
]
