"""
Model implementations used as the numeric backend.

Provides:
- llama: Llama decoder (SmolLM2 family) with RoPE, GQA and a KV cache
"""

__all__ = []
