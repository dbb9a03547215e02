"""
RoPE (Rotary Position Embeddings) for the Llama decoder.

RoPE encodes position by rotating query and key channels by a
position-dependent angle, so attention scores depend only on relative
distance. HuggingFace Llama checkpoints store Q/K projections for the
"rotate half" layout: channel i is paired with channel i + head_dim // 2,
not with its neighbour.

References:
- RoFormer: Enhanced Transformer with Rotary Position Embedding
  https://arxiv.org/abs/2104.09864
"""

from typing import Tuple

import torch


def precompute_rope_tables(
    dim: int,
    end: int,
    theta: float = 10000.0,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Precompute cosine and sine tables for RoPE.

    Frequencies follow freq_i = theta^(-2i/dim) for i in [0, dim/2); each
    frequency is used for both halves of the head dimension.

    Args:
        dim: Dimension of each attention head (must be even)
        end: Number of positions to precompute
        theta: Base value for frequency computation

    Returns:
        Tuple of (cos, sin), each of shape [end, dim]
    """
    inv_freq = 1.0 / (theta ** (torch.arange(0, dim, 2, dtype=torch.float32) / dim))
    positions = torch.arange(end, dtype=torch.float32)

    # Shape: [end, dim // 2]
    angles = torch.outer(positions, inv_freq)

    # Shape: [end, dim]
    emb = torch.cat([angles, angles], dim=-1)
    return emb.cos(), emb.sin()


def rotate_half(x: torch.Tensor) -> torch.Tensor:
    """Map (x1, x2) halves of the last dimension to (-x2, x1)."""
    half = x.shape[-1] // 2
    x1 = x[..., :half]
    x2 = x[..., half:]
    return torch.cat([-x2, x1], dim=-1)


def apply_rotary_emb(
    q: torch.Tensor,
    k: torch.Tensor,
    cos: torch.Tensor,
    sin: torch.Tensor,
    position_offset: int = 0,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Apply rotary position embeddings to query and key tensors.

    Args:
        q: Query tensor of shape [batch_size, seq_len, num_heads, head_dim]
        k: Key tensor of shape [batch_size, seq_len, num_kv_heads, head_dim]
        cos: Cosine table of shape [end, head_dim]
        sin: Sine table of shape [end, head_dim]
        position_offset: Absolute position of the first token in q/k

    Returns:
        Tuple of (rotated_q, rotated_k) with same shapes as inputs

    Raises:
        ValueError: If the requested positions exceed the precomputed tables
    """
    seq_len = q.shape[1]
    if position_offset < 0 or position_offset + seq_len > cos.shape[0]:
        raise ValueError(
            f"positions [{position_offset}, {position_offset + seq_len}) exceed "
            f"the {cos.shape[0]} precomputed rotary positions"
        )

    # Broadcast over batch and head dimensions: [1, seq_len, 1, head_dim]
    cos_seq = cos[position_offset : position_offset + seq_len].unsqueeze(0).unsqueeze(2)
    sin_seq = sin[position_offset : position_offset + seq_len].unsqueeze(0).unsqueeze(2)

    q_out = q.float() * cos_seq + rotate_half(q.float()) * sin_seq
    k_out = k.float() * cos_seq + rotate_half(k.float()) * sin_seq

    return q_out.type_as(q), k_out.type_as(k)
