"""
Llama model configuration.

This module defines the LlamaConfig class which stores all configuration
parameters for the Llama decoder architecture used by SmolLM2, including
dimensions, layer counts, attention parameters and normalization settings.
"""

import json
from typing import Any, Dict, Optional

from transformers import LlamaConfig as HFLlamaConfig


class LlamaConfig:
    """Configuration class for the Llama decoder.

    This class stores all hyperparameters needed to instantiate the model and
    size its KV cache. It is normally built from the ``config.json`` text that
    ships with a HuggingFace checkpoint.

    Attributes:
        vocab_size: Size of the vocabulary.
        hidden_size: Dimension of the hidden representations.
        num_hidden_layers: Number of transformer decoder layers.
        num_attention_heads: Number of attention heads for queries.
        num_key_value_heads: Number of attention heads for keys/values (GQA).
        intermediate_size: Dimension of the FFN intermediate layer.
        max_position_embeddings: Maximum sequence length supported.
        rms_norm_eps: Epsilon value for RMSNorm stability.
        rope_theta: Base frequency for rotary position embeddings.
        tie_word_embeddings: Whether the LM head shares the embedding matrix.
        bos_token_id: Beginning-of-sequence token id, if declared.
        eos_token_id: End-of-sequence token id, if declared.
    """

    def __init__(
        self,
        vocab_size: int = 49152,
        hidden_size: int = 576,
        num_hidden_layers: int = 30,
        num_attention_heads: int = 9,
        num_key_value_heads: Optional[int] = 3,
        intermediate_size: int = 1536,
        max_position_embeddings: int = 8192,
        rms_norm_eps: float = 1e-5,
        rope_theta: float = 100000.0,
        tie_word_embeddings: bool = True,
        bos_token_id: Optional[int] = None,
        eos_token_id: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        """Initialize LlamaConfig with model hyperparameters.

        The defaults describe SmolLM2-135M.

        Args:
            vocab_size: Size of the vocabulary.
            hidden_size: Dimension of the hidden representations.
            num_hidden_layers: Number of transformer decoder layers.
            num_attention_heads: Number of attention heads for queries.
            num_key_value_heads: Number of key/value heads. ``None`` means
                plain multi-head attention (same as ``num_attention_heads``).
            intermediate_size: Dimension of the FFN intermediate layer.
            max_position_embeddings: Maximum sequence length supported.
            rms_norm_eps: Epsilon value for RMSNorm stability.
            rope_theta: Base frequency for rotary position embeddings.
            tie_word_embeddings: Whether the LM head reuses the embeddings.
            bos_token_id: Beginning-of-sequence token id.
            eos_token_id: End-of-sequence token id.
            **kwargs: Additional configuration parameters (ignored).
        """
        self.vocab_size = vocab_size
        self.hidden_size = hidden_size
        self.num_hidden_layers = num_hidden_layers
        self.num_attention_heads = num_attention_heads
        self.num_key_value_heads = (
            num_key_value_heads if num_key_value_heads is not None else num_attention_heads
        )
        self.intermediate_size = intermediate_size
        self.max_position_embeddings = max_position_embeddings
        self.rms_norm_eps = rms_norm_eps
        self.rope_theta = rope_theta
        self.tie_word_embeddings = tie_word_embeddings
        self.bos_token_id = bos_token_id
        self.eos_token_id = eos_token_id

        self._validate()

    @property
    def head_dim(self) -> int:
        """Dimension of a single attention head."""
        return self.hidden_size // self.num_attention_heads

    def _validate(self) -> None:
        """Validate configuration parameters satisfy Llama architecture constraints.

        Raises:
            ValueError: If configuration parameters are invalid.
        """
        for name in (
            "vocab_size",
            "hidden_size",
            "num_hidden_layers",
            "num_attention_heads",
            "num_key_value_heads",
            "intermediate_size",
            "max_position_embeddings",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

        if self.rms_norm_eps <= 0:
            raise ValueError(f"rms_norm_eps must be positive, got {self.rms_norm_eps}")
        if self.rope_theta <= 0:
            raise ValueError(f"rope_theta must be positive, got {self.rope_theta}")

        if self.hidden_size % self.num_attention_heads != 0:
            raise ValueError(
                f"hidden_size ({self.hidden_size}) must be divisible by "
                f"num_attention_heads ({self.num_attention_heads})"
            )
        if self.num_attention_heads % self.num_key_value_heads != 0:
            raise ValueError(
                f"num_attention_heads ({self.num_attention_heads}) must be divisible by "
                f"num_key_value_heads ({self.num_key_value_heads})"
            )
        # Rotary embeddings rotate pairs of channels
        if self.head_dim % 2 != 0:
            raise ValueError(f"head_dim must be even, got {self.head_dim}")

    @classmethod
    def from_json(cls, config_json: str) -> "LlamaConfig":
        """Build a configuration from HuggingFace ``config.json`` text.

        Args:
            config_json: JSON document describing a Llama checkpoint.

        Returns:
            LlamaConfig instance with the parameters found in the document.

        Raises:
            ValueError: If the text is not a JSON object or describes an
                invalid architecture.
        """
        try:
            raw = json.loads(config_json)
        except ValueError as e:
            raise ValueError(f"config is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("config must be a JSON object")

        # transformers reports field validation failures with its own exception types
        try:
            hf_config = HFLlamaConfig.from_dict(raw)
        except Exception as e:
            raise ValueError(f"invalid config: {e}") from e

        return cls(
            vocab_size=hf_config.vocab_size,
            hidden_size=hf_config.hidden_size,
            num_hidden_layers=hf_config.num_hidden_layers,
            num_attention_heads=hf_config.num_attention_heads,
            num_key_value_heads=hf_config.num_key_value_heads,
            intermediate_size=hf_config.intermediate_size,
            max_position_embeddings=hf_config.max_position_embeddings,
            rms_norm_eps=hf_config.rms_norm_eps,
            rope_theta=_rope_theta(hf_config, raw),
            tie_word_embeddings=bool(raw.get("tie_word_embeddings", False)),
            bos_token_id=hf_config.bos_token_id,
            eos_token_id=hf_config.eos_token_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary."""
        return {
            "vocab_size": self.vocab_size,
            "hidden_size": self.hidden_size,
            "num_hidden_layers": self.num_hidden_layers,
            "num_attention_heads": self.num_attention_heads,
            "num_key_value_heads": self.num_key_value_heads,
            "intermediate_size": self.intermediate_size,
            "max_position_embeddings": self.max_position_embeddings,
            "rms_norm_eps": self.rms_norm_eps,
            "rope_theta": self.rope_theta,
            "tie_word_embeddings": self.tie_word_embeddings,
            "bos_token_id": self.bos_token_id,
            "eos_token_id": self.eos_token_id,
        }

    def __repr__(self) -> str:
        return (
            f"LlamaConfig("
            f"vocab_size={self.vocab_size}, "
            f"hidden_size={self.hidden_size}, "
            f"num_hidden_layers={self.num_hidden_layers}, "
            f"num_attention_heads={self.num_attention_heads}, "
            f"num_key_value_heads={self.num_key_value_heads}, "
            f"intermediate_size={self.intermediate_size}, "
            f"max_position_embeddings={self.max_position_embeddings}, "
            f"rms_norm_eps={self.rms_norm_eps}, "
            f"rope_theta={self.rope_theta}, "
            f"tie_word_embeddings={self.tie_word_embeddings}"
            f")"
        )


def _rope_theta(hf_config: HFLlamaConfig, raw: Dict[str, Any]) -> float:
    # Newer transformers releases keep theta inside rope_parameters
    if "rope_theta" in raw:
        return float(raw["rope_theta"])
    theta = getattr(hf_config, "rope_theta", None)
    if theta is None:
        rope_parameters = getattr(hf_config, "rope_parameters", None) or {}
        theta = rope_parameters.get("rope_theta", 10000.0)
    return float(theta)
