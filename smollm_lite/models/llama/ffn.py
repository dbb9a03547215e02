"""
Llama feed-forward network with SwiGLU activation.

- gate_proj: hidden_size -> intermediate_size (gating branch)
- up_proj: hidden_size -> intermediate_size (value branch)
- down_proj: intermediate_size -> hidden_size (output projection)

FFN(x) = down_proj(silu(gate_proj(x)) * up_proj(x))
"""

import torch
import torch.nn as nn
import torch.nn.functional as F

from smollm_lite.models.llama.config import LlamaConfig


class LlamaMLP(nn.Module):
    """Feed-forward block of a Llama decoder layer.

    Attributes:
        hidden_size: Input/output dimension of the FFN.
        intermediate_size: Hidden dimension of the FFN.
        gate_proj: Linear projection for gating (hidden_size -> intermediate_size).
        up_proj: Linear projection for values (hidden_size -> intermediate_size).
        down_proj: Linear projection for output (intermediate_size -> hidden_size).
    """

    def __init__(self, config: LlamaConfig) -> None:
        super().__init__()

        self.hidden_size = config.hidden_size
        self.intermediate_size = config.intermediate_size

        self.gate_proj = nn.Linear(config.hidden_size, config.intermediate_size, bias=False)
        self.up_proj = nn.Linear(config.hidden_size, config.intermediate_size, bias=False)
        self.down_proj = nn.Linear(config.intermediate_size, config.hidden_size, bias=False)

    def swiglu(self, x: torch.Tensor) -> torch.Tensor:
        """Compute SwiGLU activation: silu(gate_proj(x)) * up_proj(x).

        Args:
            x: Input tensor of shape [batch_size, seq_len, hidden_size].

        Returns:
            Tensor of shape [batch_size, seq_len, intermediate_size].
        """
        return F.silu(self.gate_proj(x)) * self.up_proj(x)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.down_proj(self.swiglu(x))
