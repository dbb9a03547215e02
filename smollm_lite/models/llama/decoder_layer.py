"""
Llama decoder layer implementation.

The decoder layer follows the pre-norm architecture:
    x = x + attention(norm(x))
    x = x + mlp(norm(x))
"""

from typing import Optional

import torch
import torch.nn as nn

from smollm_lite.models.llama.attention import LlamaAttention
from smollm_lite.models.llama.config import LlamaConfig
from smollm_lite.models.llama.ffn import LlamaMLP
from smollm_lite.models.llama.kv_cache import KVCache
from smollm_lite.models.llama.rmsnorm import RMSNorm


class LlamaDecoderLayer(nn.Module):
    """Llama decoder layer with pre-norm residual blocks.

    Attributes:
        input_layernorm: RMSNorm layer applied before self-attention.
        self_attn: Causal self-attention with GQA and RoPE.
        post_attention_layernorm: RMSNorm layer applied before the MLP.
        mlp: Feed-forward network with SwiGLU activation.
    """

    def __init__(self, config: LlamaConfig, layer_idx: int = 0) -> None:
        super().__init__()

        self.layer_idx = layer_idx
        self.input_layernorm = RMSNorm(config.hidden_size, eps=config.rms_norm_eps)
        self.self_attn = LlamaAttention(config, layer_idx=layer_idx)
        self.post_attention_layernorm = RMSNorm(config.hidden_size, eps=config.rms_norm_eps)
        self.mlp = LlamaMLP(config)

    def forward(
        self,
        hidden_states: torch.Tensor,
        cos: torch.Tensor,
        sin: torch.Tensor,
        start_pos: int = 0,
        kv_cache: Optional[KVCache] = None,
    ) -> torch.Tensor:
        """Forward pass of the decoder layer.

        Args:
            hidden_states: Input tensor of shape [batch_size, seq_len, hidden_size].
            cos: RoPE cosine table.
            sin: RoPE sine table.
            start_pos: Absolute position of the first input token.
            kv_cache: Optional cache shared by all layers of the model.

        Returns:
            Output tensor of shape [batch_size, seq_len, hidden_size].
        """
        attn_output = self.self_attn(
            self.input_layernorm(hidden_states),
            cos,
            sin,
            start_pos=start_pos,
            kv_cache=kv_cache,
        )
        hidden_states = hidden_states + attn_output

        ffn_output = self.mlp(self.post_attention_layernorm(hidden_states))
        return hidden_states + ffn_output
