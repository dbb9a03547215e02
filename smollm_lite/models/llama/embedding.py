"""
Token embedding layer for the Llama decoder.
"""

import torch
import torch.nn as nn

from smollm_lite.models.llama.config import LlamaConfig


class LlamaEmbedding(nn.Module):
    """Token embedding layer.

    Maps vocabulary indices to dense vectors of size ``hidden_size``. The
    weight is exposed so the LM head can share it when the checkpoint ties
    word embeddings.

    Attributes:
        vocab_size: Size of the vocabulary.
        hidden_size: Dimension of the embedding vectors.
    """

    def __init__(self, config: LlamaConfig) -> None:
        super().__init__()

        self.vocab_size = config.vocab_size
        self.hidden_size = config.hidden_size

        self.embedding = nn.Embedding(
            num_embeddings=config.vocab_size,
            embedding_dim=config.hidden_size,
        )

    @property
    def weight(self) -> nn.Parameter:
        """Embedding weight matrix of shape [vocab_size, hidden_size]."""
        return self.embedding.weight

    def forward(self, input_ids: torch.Tensor) -> torch.Tensor:
        """Look up embeddings.

        Args:
            input_ids: Token IDs tensor of shape [batch_size, seq_len].

        Returns:
            Embedding tensor of shape [batch_size, seq_len, hidden_size].
        """
        return self.embedding(input_ids)
