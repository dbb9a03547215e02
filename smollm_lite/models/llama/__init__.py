"""
Llama model implementation for CPU inference.

Components:
- LlamaForCausalLM: Full decoder with LM head
- LlamaDecoderLayer: Transformer decoder layer
- LlamaAttention: Causal attention with GQA and RoPE
- LlamaMLP: Feed-forward network with SwiGLU activation
- KVCache: Position-addressed key/value cache
- Weight loading utilities for safetensors checkpoints
"""

from smollm_lite.models.llama.config import LlamaConfig
from smollm_lite.models.llama.kv_cache import KVCache
from smollm_lite.models.llama.model import LlamaForCausalLM
from smollm_lite.models.llama.weight_loader import build_model, load_and_map_weights

__all__ = [
    "LlamaConfig",
    "KVCache",
    "LlamaForCausalLM",
    "build_model",
    "load_and_map_weights",
]
