"""
Key/value cache for incremental decoding.

The cache holds, for every decoder layer, the rotated keys and the values of
all positions processed so far. Entries are addressed by absolute position:
writing a block that starts at ``start_pos`` discards whatever was stored at
``start_pos`` and beyond, so a forward pass starting at position 0 always
begins from an empty history no matter what an earlier call left behind.
"""

from typing import List, Optional, Tuple

import torch

from smollm_lite.models.llama.config import LlamaConfig


class KVCache:
    """Per-layer key/value storage sized by a LlamaConfig.

    Cached tensors use the attention layout
    [batch_size, num_kv_heads, cached_seq_len, head_dim].

    Attributes:
        num_layers: Number of decoder layers with a cache slot.
        max_seq_len: Largest number of positions the cache may hold.
        num_kv_heads: Number of key/value heads per layer.
        head_dim: Dimension of each head.
        device: Device the cached tensors live on.
        dtype: Dtype of the cached tensors.
    """

    def __init__(
        self,
        config: LlamaConfig,
        device: Optional[torch.device] = None,
        dtype: torch.dtype = torch.float32,
    ) -> None:
        self.num_layers = config.num_hidden_layers
        self.max_seq_len = config.max_position_embeddings
        self.num_kv_heads = config.num_key_value_heads
        self.head_dim = config.head_dim
        self.device = device or torch.device("cpu")
        self.dtype = dtype

        if self.num_layers <= 0 or self.max_seq_len <= 0:
            raise ValueError(
                f"cannot size a cache for {self.num_layers} layers and "
                f"{self.max_seq_len} positions"
            )

        self._keys: List[Optional[torch.Tensor]] = [None] * self.num_layers
        self._values: List[Optional[torch.Tensor]] = [None] * self.num_layers

    @property
    def seq_len(self) -> int:
        """Number of positions currently cached (taken from the first layer)."""
        keys = self._keys[0]
        return 0 if keys is None else keys.shape[2]

    def layer_len(self, layer_idx: int) -> int:
        keys = self._keys[layer_idx]
        return 0 if keys is None else keys.shape[2]

    def update(
        self,
        layer_idx: int,
        start_pos: int,
        key: torch.Tensor,
        value: torch.Tensor,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """Store keys/values for positions [start_pos, start_pos + seq_len).

        Args:
            layer_idx: Decoder layer the block belongs to.
            start_pos: Absolute position of the first entry in the block.
            key: Keys of shape [batch_size, num_kv_heads, seq_len, head_dim].
            value: Values with the same shape as ``key``.

        Returns:
            Tuple of (keys, values) covering positions [0, start_pos + seq_len).

        Raises:
            ValueError: If the block would leave a gap after the cached
                positions or run past ``max_seq_len``.
        """
        seq_len = key.shape[2]
        end_pos = start_pos + seq_len
        if end_pos > self.max_seq_len:
            raise ValueError(
                f"position {end_pos - 1} exceeds the cache capacity of {self.max_seq_len}"
            )

        cached_len = self.layer_len(layer_idx)
        if start_pos > cached_len:
            raise ValueError(
                f"layer {layer_idx} holds {cached_len} positions, cannot write at {start_pos}"
            )

        if start_pos == 0:
            keys, values = key, value
        else:
            keys = torch.cat([self._keys[layer_idx][:, :, :start_pos], key], dim=2)
            values = torch.cat([self._values[layer_idx][:, :, :start_pos], value], dim=2)

        self._keys[layer_idx] = keys
        self._values[layer_idx] = values
        return keys, values

    def reset(self) -> None:
        """Drop every cached position."""
        self._keys = [None] * self.num_layers
        self._values = [None] * self.num_layers

    def __repr__(self) -> str:
        return (
            f"KVCache(num_layers={self.num_layers}, seq_len={self.seq_len}, "
            f"max_seq_len={self.max_seq_len})"
        )
