"""
Model instance: the unit that is loaded, used for generation and cleared.

A ModelInstance bundles the numeric backend, the tokenizer, the KV cache and
the device the backend runs on. ``build_model_instance`` constructs one from
the three artifacts of a checkpoint and reports each failing stage with its
own error kind.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import torch
import torch.nn as nn

from smollm_lite.core.errors import (
    CacheAllocationError,
    ConfigParseError,
    ForwardPassError,
    WeightsLoadError,
)
from smollm_lite.core.tokenizer_manager import TokenizerManager
from smollm_lite.models.llama.config import LlamaConfig
from smollm_lite.models.llama.kv_cache import KVCache
from smollm_lite.models.llama.weight_loader import build_model

logger = logging.getLogger(__name__)


@dataclass
class ModelInstance:
    """A loaded model ready for generation.

    Attributes:
        model: Backend module called as ``model(input_ids, start_pos=..., kv_cache=...)``
            and returning logits of shape [1, seq_len, vocab_size].
        tokenizer: Tokenizer matching the model vocabulary.
        cache: KV cache mutated by every forward pass.
        device: Device the backend runs on.
        config: Architecture the instance was built from.
    """

    model: nn.Module
    tokenizer: TokenizerManager
    cache: KVCache
    device: torch.device = torch.device("cpu")
    config: Optional[LlamaConfig] = None

    def forward(self, token_ids: Sequence[int], start_pos: int) -> torch.Tensor:
        """Run the backend on a block of tokens starting at ``start_pos``.

        Args:
            token_ids: Token ids to feed.
            start_pos: Absolute position of the first token.

        Returns:
            Logits tensor of shape [len(token_ids), vocab_size].

        Raises:
            ForwardPassError: If the backend fails.
        """
        try:
            input_ids = torch.tensor([list(token_ids)], dtype=torch.long, device=self.device)
            with torch.no_grad():
                logits = self.model(input_ids, start_pos=start_pos, kv_cache=self.cache)
            return logits.squeeze(0)
        except (RuntimeError, ValueError, IndexError) as e:
            raise ForwardPassError(f"Forward pass failed: {e}") from e

    def release(self) -> None:
        """Drop cached activations so their memory can be reclaimed."""
        self.cache.reset()


def build_model_instance(
    weights: bytes,
    tokenizer_json: str,
    config_json: str,
    device: Optional[torch.device] = None,
) -> ModelInstance:
    """Construct a ModelInstance from checkpoint artifacts.

    Stages run in order: parse config, build tokenizer, load weights,
    allocate the cache. Nothing outside the returned object is touched, so a
    failure at any stage leaves no trace.

    Args:
        weights: Raw bytes of a ``.safetensors`` file.
        tokenizer_json: Text of ``tokenizer.json``.
        config_json: Text of ``config.json``.
        device: Device for the backend (CPU by default).

    Returns:
        Fully constructed ModelInstance.

    Raises:
        ConfigParseError: If the configuration cannot be parsed or is invalid.
        TokenizerLoadError: If the tokenizer definition is invalid.
        WeightsLoadError: If the weights do not match the configuration.
        CacheAllocationError: If the KV cache cannot be allocated.
    """
    device = device or torch.device("cpu")

    try:
        config = LlamaConfig.from_json(config_json)
    except (ValueError, TypeError, KeyError) as e:
        raise ConfigParseError(f"Failed to parse config: {e}") from e

    logger.info(
        "Config loaded - vocab_size: %d, hidden_size: %d",
        config.vocab_size,
        config.hidden_size,
    )

    tokenizer = TokenizerManager.from_json(tokenizer_json)
    logger.info("Tokenizer loaded")

    try:
        model = build_model(weights, config).to(device)
    except (ValueError, RuntimeError) as e:
        raise WeightsLoadError(f"Failed to load weights: {e}") from e

    logger.info("Model built successfully")

    try:
        cache = KVCache(config, device=device)
    except (ValueError, RuntimeError) as e:
        raise CacheAllocationError(f"Failed to create cache: {e}") from e

    return ModelInstance(
        model=model,
        tokenizer=tokenizer,
        cache=cache,
        device=device,
        config=config,
    )
