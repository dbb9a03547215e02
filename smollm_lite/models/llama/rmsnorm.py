"""
RMSNorm (Root Mean Square Layer Normalization) for the Llama decoder.

Formula: RMSNorm(x) = x * rsqrt(mean(x^2) + eps) * weight
"""

import torch
import torch.nn as nn


class RMSNorm(nn.Module):
    """
    Root Mean Square Layer Normalization.

    Normalizes over the last dimension without mean centering and scales the
    result by a learned per-channel weight. The statistic is computed in
    float32 whatever the input dtype.

    Args:
        hidden_size: The size of the hidden dimension (last dimension of input)
        eps: Small constant for numerical stability
    """

    def __init__(self, hidden_size: int, eps: float = 1e-5) -> None:
        super().__init__()
        self.eps = eps
        self.weight = nn.Parameter(torch.ones(hidden_size))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Apply RMSNorm to input tensor.

        Args:
            x: Input tensor of shape [..., hidden_size]

        Returns:
            Normalized tensor of same shape and dtype as input
        """
        input_dtype = x.dtype
        x = x.float()
        variance = x.pow(2).mean(dim=-1, keepdim=True)
        x_normalized = x * torch.rsqrt(variance + self.eps)
        return self.weight * x_normalized.to(input_dtype)
