"""
Llama causal language model.

This module combines the pieces of the decoder into the numeric backend used
by the generation engine:
- Token embedding layer
- Stack of decoder layers
- Final layer normalization
- LM head producing logits over the vocabulary
"""

from typing import Optional

import torch
import torch.nn as nn

from smollm_lite.models.llama.config import LlamaConfig
from smollm_lite.models.llama.decoder_layer import LlamaDecoderLayer
from smollm_lite.models.llama.embedding import LlamaEmbedding
from smollm_lite.models.llama.kv_cache import KVCache
from smollm_lite.models.llama.lm_head import LlamaLMHead
from smollm_lite.models.llama.rmsnorm import RMSNorm
from smollm_lite.models.llama.rope import precompute_rope_tables


class LlamaForCausalLM(nn.Module):
    """Llama decoder with a language modeling head.

    Parameter names match HuggingFace checkpoints once the ``model.`` prefix
    is removed (see ``weight_loader``), with the embedding and LM head
    wrapped in their own modules.

    Attributes:
        config: Model configuration.
        embed_tokens: Token embedding layer.
        layers: List of decoder layers.
        norm: Final RMSNorm layer.
        lm_head: Projection to vocabulary logits.
        rope_cos: Precomputed RoPE cosine table (non-persistent buffer).
        rope_sin: Precomputed RoPE sine table (non-persistent buffer).
    """

    def __init__(self, config: LlamaConfig) -> None:
        super().__init__()

        self.config = config

        self.embed_tokens = LlamaEmbedding(config)
        self.layers = nn.ModuleList([
            LlamaDecoderLayer(config, layer_idx=layer_idx)
            for layer_idx in range(config.num_hidden_layers)
        ])
        self.norm = RMSNorm(config.hidden_size, eps=config.rms_norm_eps)
        self.lm_head = LlamaLMHead(config)

        if config.tie_word_embeddings:
            self.lm_head.tie_to(self.embed_tokens.weight)

        cos, sin = precompute_rope_tables(
            dim=config.head_dim,
            end=config.max_position_embeddings,
            theta=config.rope_theta,
        )
        self.register_buffer("rope_cos", cos, persistent=False)
        self.register_buffer("rope_sin", sin, persistent=False)

    def forward(
        self,
        input_ids: torch.Tensor,
        start_pos: int = 0,
        kv_cache: Optional[KVCache] = None,
    ) -> torch.Tensor:
        """Run the decoder over a block of tokens.

        Args:
            input_ids: Token IDs tensor of shape [batch_size, seq_len].
            start_pos: Absolute position of the first token. With a cache,
                positions before ``start_pos`` are read from it.
            kv_cache: Optional cache updated in place.

        Returns:
            Logits tensor of shape [batch_size, seq_len, vocab_size].
        """
        hidden_states = self.embed_tokens(input_ids)

        for decoder_layer in self.layers:
            hidden_states = decoder_layer(
                hidden_states,
                self.rope_cos,
                self.rope_sin,
                start_pos=start_pos,
                kv_cache=kv_cache,
            )

        hidden_states = self.norm(hidden_states)
        return self.lm_head(hidden_states)
