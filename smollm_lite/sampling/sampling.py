"""
Sampling strategies for text generation.

This module turns a row of logits into the next token id:
- Repetition penalty over a trailing window of the token history
- Greedy decoding (argmax) when temperature is zero
- Temperature scaling followed by nucleus (top-p) sampling otherwise

Randomness comes from a torch.Generator owned by each LogitsProcessor, so
two processors built with the same seed draw the same sequence and no global
RNG state is read or written.
"""

from typing import Optional, Sequence

import torch

from smollm_lite.core.config import GenerationParams

# Temperatures below this are treated as greedy decoding
GREEDY_TEMPERATURE_EPS = 1e-7


def greedy_sampling(logits: torch.Tensor) -> int:
    """Greedy sampling (argmax)."""
    return int(logits.argmax(dim=-1).item())


def temperature_scaling(logits: torch.Tensor, temperature: float) -> torch.Tensor:
    """Apply temperature scaling."""
    return logits / temperature


def top_p_filtering(probs: torch.Tensor, p: float) -> torch.Tensor:
    """Restrict a distribution to its nucleus and renormalize.

    Tokens are taken in order of descending probability until the running
    total reaches ``p``; the most likely token is always kept.

    Args:
        probs: Probability vector of shape [vocab_size].
        p: Nucleus threshold. Values outside (0, 1) leave ``probs`` unchanged.

    Returns:
        Probability vector of shape [vocab_size] summing to one.
    """
    if p <= 0.0 or p >= 1.0:
        return probs

    sorted_probs, sorted_indices = torch.sort(probs, descending=True, dim=-1)
    cumulative_probs = torch.cumsum(sorted_probs, dim=-1)

    # Drop a token once the mass before it already reaches p
    sorted_indices_to_remove = (cumulative_probs - sorted_probs) >= p
    sorted_indices_to_remove[..., 0] = False

    sorted_probs = sorted_probs.masked_fill(sorted_indices_to_remove, 0.0)
    filtered = torch.zeros_like(probs).scatter(-1, sorted_indices, sorted_probs)
    return filtered / filtered.sum(dim=-1, keepdim=True)


def apply_repetition_penalty(
    logits: torch.Tensor,
    previous_tokens: Sequence[int],
    penalty: float,
) -> torch.Tensor:
    """Apply repetition penalty.

    Every distinct token in ``previous_tokens`` has its score divided by
    ``penalty`` when non-negative and multiplied by it when negative. Ids
    outside the vocabulary are ignored. The input tensor is not modified.

    Args:
        logits: Score vector of shape [vocab_size].
        previous_tokens: Token ids to penalize.
        penalty: Penalty factor; 1.0 returns ``logits`` unchanged.

    Returns:
        Penalized score vector of shape [vocab_size].
    """
    if penalty == 1.0 or len(previous_tokens) == 0:
        return logits

    vocab_size = logits.shape[-1]
    seen = sorted({token for token in previous_tokens if 0 <= token < vocab_size})
    if not seen:
        return logits

    index = torch.tensor(seen, dtype=torch.long, device=logits.device)
    scores = logits[index]
    penalized = torch.where(scores >= 0, scores / penalty, scores * penalty)

    logits = logits.clone()
    logits[index] = penalized
    return logits


class LogitsProcessor:
    """Seeded token sampler for one generation session.

    Attributes:
        temperature: Sampling temperature (below GREEDY_TEMPERATURE_EPS = greedy).
        top_p: Nucleus threshold.
        generator: Random generator seeded once at construction.
    """

    def __init__(self, seed: int, temperature: Optional[float], top_p: Optional[float]) -> None:
        self.temperature = temperature if temperature is not None else 0.0
        self.top_p = top_p if top_p is not None else 1.0
        self.generator = torch.Generator(device="cpu")
        self.generator.manual_seed(seed)

    @property
    def is_greedy(self) -> bool:
        return self.temperature < GREEDY_TEMPERATURE_EPS

    def sample(self, logits: torch.Tensor) -> int:
        """Pick the next token id from a logits vector.

        Args:
            logits: Score vector of shape [vocab_size].

        Returns:
            Selected token id.

        Raises:
            ValueError: If the logits cannot be turned into a distribution.
        """
        if logits.dim() != 1 or logits.numel() == 0:
            raise ValueError(f"expected a non-empty 1-D logits vector, got shape {tuple(logits.shape)}")

        logits = logits.detach().float().cpu()

        if self.is_greedy:
            return greedy_sampling(logits)

        probs = torch.softmax(temperature_scaling(logits, self.temperature), dim=-1)
        probs = top_p_filtering(probs, self.top_p)

        if not torch.isfinite(probs).all():
            raise ValueError("probability distribution contains NaN or infinite values")

        return int(torch.multinomial(probs, num_samples=1, generator=self.generator).item())


def sample(
    logits: torch.Tensor,
    history: Sequence[int],
    params: GenerationParams,
    processor: LogitsProcessor,
) -> int:
    """Sample next token using the given parameters.

    Applies the repetition penalty over the last ``params.repeat_last_n``
    tokens of ``history``, then draws with ``processor``.
    """
    if params.repeat_penalty != 1.0:
        start_at = max(len(history) - params.repeat_last_n, 0)
        logits = apply_repetition_penalty(logits, history[start_at:], params.repeat_penalty)

    return processor.sample(logits)
