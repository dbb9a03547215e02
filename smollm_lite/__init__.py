"""
smollm_lite: Single-model LLM inference engine for SmolLM2 checkpoints.

This package provides:
- Model lifecycle (load, query, clear) for one model at a time
- Llama-architecture forward pass with a KV cache
- Seeded sampling (greedy or temperature + top-p, with repetition penalty)
- Streaming text generation with per-fragment callbacks
"""

__version__ = "0.1.0"
__author__ = "smollm-lite contributors"

from smollm_lite.core.api import (
    clear_model,
    generate,
    generate_async,
    get_version,
    is_model_loaded,
    load_model,
    load_model_async,
    load_model_from_files,
)
from smollm_lite.core.config import EngineSettings, GenerationParams
from smollm_lite.core.errors import ErrorKind, SmolLMError

__all__ = [
    "ErrorKind",
    "SmolLMError",
    "EngineSettings",
    "GenerationParams",
    "clear_model",
    "generate",
    "generate_async",
    "get_version",
    "is_model_loaded",
    "load_model",
    "load_model_async",
    "load_model_from_files",
]
