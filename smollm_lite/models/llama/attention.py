"""
Llama attention layer implementation.

This module implements causal self-attention with:
- Grouped-Query Attention (GQA) with configurable key-value head grouping
- Rotary Position Embeddings (RoPE)
- An optional KV cache for incremental decoding

The attention layer consists of:
- Q/K/V projection layers (nn.Linear)
- RoPE application to queries and keys
- Scaled dot-product attention with a causal mask
- Output projection layer
"""

from typing import Optional

import torch
import torch.nn as nn
import torch.nn.functional as F

from smollm_lite.models.llama.config import LlamaConfig
from smollm_lite.models.llama.kv_cache import KVCache
from smollm_lite.models.llama.rope import apply_rotary_emb


def causal_mask(seq_len: int, start_pos: int, device: torch.device) -> torch.Tensor:
    """Build an additive causal mask for a block of queries.

    Query i sits at absolute position ``start_pos + i`` and may attend to
    keys at positions 0 through ``start_pos + i``.

    Args:
        seq_len: Number of queries in the block.
        start_pos: Absolute position of the first query.
        device: Device for the mask.

    Returns:
        Tensor of shape [seq_len, start_pos + seq_len] holding 0 for allowed
        pairs and -inf for masked ones.
    """
    mask = torch.full((seq_len, start_pos + seq_len), float("-inf"), device=device)
    return torch.triu(mask, diagonal=start_pos + 1)


class LlamaAttention(nn.Module):
    """Llama self-attention with GQA and RoPE support.

    Attributes:
        config: Model configuration.
        layer_idx: Index of the owning decoder layer (selects the cache slot).
        num_heads: Number of query attention heads.
        num_key_value_heads: Number of key-value attention heads (for GQA).
        num_key_value_groups: Number of query heads per key-value head.
        head_dim: Dimension of each attention head.
    """

    def __init__(self, config: LlamaConfig, layer_idx: int = 0) -> None:
        super().__init__()

        self.config = config
        self.layer_idx = layer_idx

        self.num_heads = config.num_attention_heads
        self.num_key_value_heads = config.num_key_value_heads
        self.num_key_value_groups = self.num_heads // self.num_key_value_heads
        self.head_dim = config.head_dim

        # Q: hidden_size -> num_heads * head_dim
        self.q_proj = nn.Linear(config.hidden_size, self.num_heads * self.head_dim, bias=False)

        # K/V: hidden_size -> num_key_value_heads * head_dim (fewer heads under GQA)
        self.k_proj = nn.Linear(
            config.hidden_size, self.num_key_value_heads * self.head_dim, bias=False
        )
        self.v_proj = nn.Linear(
            config.hidden_size, self.num_key_value_heads * self.head_dim, bias=False
        )

        self.o_proj = nn.Linear(self.num_heads * self.head_dim, config.hidden_size, bias=False)

    def repeat_kv(self, hidden_states: torch.Tensor, n_rep: int) -> torch.Tensor:
        """Repeat key/value heads to match the number of query heads.

        Args:
            hidden_states: Tensor of shape [batch, num_kv_heads, seq_len, head_dim].
            n_rep: Number of times to repeat each KV head.

        Returns:
            Tensor of shape [batch, num_kv_heads * n_rep, seq_len, head_dim].

        Example:
            SmolLM2-135M has 9 query heads and 3 KV heads, so n_rep is 3 and
            each KV head serves three consecutive query heads.
        """
        if n_rep == 1:
            return hidden_states

        batch, num_key_value_heads, slen, head_dim = hidden_states.shape
        hidden_states = hidden_states[:, :, None, :, :].expand(
            batch, num_key_value_heads, n_rep, slen, head_dim
        )
        return hidden_states.reshape(batch, num_key_value_heads * n_rep, slen, head_dim)

    def forward(
        self,
        hidden_states: torch.Tensor,
        cos: torch.Tensor,
        sin: torch.Tensor,
        start_pos: int = 0,
        kv_cache: Optional[KVCache] = None,
    ) -> torch.Tensor:
        """Forward pass of causal self-attention.

        1. Project hidden states to Q/K/V
        2. Apply RoPE at absolute positions starting from ``start_pos``
        3. Write K/V into the cache and read back the full history
        4. Compute masked scaled dot-product attention with GQA
        5. Apply output projection

        Args:
            hidden_states: Input tensor of shape [batch_size, seq_len, hidden_size].
            cos: RoPE cosine table of shape [max_positions, head_dim].
            sin: RoPE sine table of shape [max_positions, head_dim].
            start_pos: Absolute position of the first input token.
            kv_cache: Cache to read and update. Without a cache the block is
                attended on its own, which only makes sense for start_pos 0.

        Returns:
            Attention output tensor of shape [batch_size, seq_len, hidden_size].
        """
        batch_size, seq_len, _ = hidden_states.shape

        # [batch_size, seq_len, heads, head_dim]
        q = self.q_proj(hidden_states).view(batch_size, seq_len, self.num_heads, self.head_dim)
        k = self.k_proj(hidden_states).view(
            batch_size, seq_len, self.num_key_value_heads, self.head_dim
        )
        v = self.v_proj(hidden_states).view(
            batch_size, seq_len, self.num_key_value_heads, self.head_dim
        )

        q, k = apply_rotary_emb(q, k, cos, sin, start_pos)

        # [batch_size, heads, seq_len, head_dim]
        q_t = q.transpose(1, 2)
        k_t = k.transpose(1, 2)
        v_t = v.transpose(1, 2)

        if kv_cache is not None:
            k_t, v_t = kv_cache.update(self.layer_idx, start_pos, k_t, v_t)

        k_repeated = self.repeat_kv(k_t, self.num_key_value_groups)
        v_repeated = self.repeat_kv(v_t, self.num_key_value_groups)

        # [batch_size, num_heads, seq_len, total_seq_len]
        scores = torch.matmul(q_t, k_repeated.transpose(-2, -1)) / (self.head_dim ** 0.5)

        # A single query at the newest position sees the whole history
        if seq_len > 1:
            past_len = k_repeated.shape[2] - seq_len
            scores = scores + causal_mask(seq_len, past_len, scores.device)

        attn_weights = F.softmax(scores.float(), dim=-1).type_as(q_t)
        attn_output = torch.matmul(attn_weights, v_repeated)

        # [batch_size, seq_len, num_heads * head_dim]
        attn_output = attn_output.transpose(1, 2).contiguous()
        attn_output = attn_output.view(batch_size, seq_len, self.num_heads * self.head_dim)

        return self.o_proj(attn_output)
