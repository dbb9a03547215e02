"""
Language modeling head for the Llama decoder.

Projects final hidden states to logits over the vocabulary.
"""

import torch
import torch.nn as nn

from smollm_lite.models.llama.config import LlamaConfig


class LlamaLMHead(nn.Module):
    """Language modeling head.

    A bias-free linear projection from ``hidden_size`` to ``vocab_size``.
    When the checkpoint ties word embeddings, :meth:`tie_to` makes the
    projection share the embedding matrix instead of owning a copy.

    Attributes:
        hidden_size: Dimension of the input hidden states.
        vocab_size: Size of the vocabulary (output dimension).
    """

    def __init__(self, config: LlamaConfig) -> None:
        super().__init__()

        self.hidden_size = config.hidden_size
        self.vocab_size = config.vocab_size

        self.linear = nn.Linear(
            in_features=config.hidden_size,
            out_features=config.vocab_size,
            bias=False,
        )

    @property
    def weight(self) -> nn.Parameter:
        """Projection weight of shape [vocab_size, hidden_size]."""
        return self.linear.weight

    def tie_to(self, embedding_weight: nn.Parameter) -> None:
        """Share the given embedding matrix as the projection weight."""
        self.linear.weight = embedding_weight

    def forward(self, hidden_states: torch.Tensor) -> torch.Tensor:
        """Compute logits.

        Args:
            hidden_states: Tensor of shape [batch_size, seq_len, hidden_size].

        Returns:
            Logits tensor of shape [batch_size, seq_len, vocab_size].
        """
        return self.linear(hidden_states)
