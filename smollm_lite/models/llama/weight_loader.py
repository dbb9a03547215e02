"""
Weight loading utilities for the Llama decoder.

This module loads pretrained weights from an in-memory safetensors buffer,
maps HuggingFace parameter names onto the module names used by
LlamaForCausalLM, and validates weight shapes against the configuration.
"""

from typing import Dict

import torch
from safetensors.torch import load as load_safetensors

from smollm_lite.models.llama.config import LlamaConfig
from smollm_lite.models.llama.model import LlamaForCausalLM

EMBEDDING_WEIGHT = "embed_tokens.embedding.weight"
LM_HEAD_WEIGHT = "lm_head.linear.weight"


def load_checkpoint(weights: bytes) -> Dict[str, torch.Tensor]:
    """Deserialize a safetensors buffer.

    Args:
        weights: Raw bytes of a ``.safetensors`` file.

    Returns:
        Dictionary mapping checkpoint weight names to tensors.

    Raises:
        ValueError: If the buffer is not a valid safetensors file.
    """
    if not weights:
        raise ValueError("weights buffer is empty")
    try:
        return load_safetensors(bytes(weights))
    except Exception as e:
        raise ValueError(f"not a valid safetensors buffer: {e}") from e


def create_weight_name_mapping(config: LlamaConfig) -> Dict[str, str]:
    """Create mapping from HuggingFace weight names to model parameter names.

    Mapping examples:
        - "model.embed_tokens.weight" -> "embed_tokens.embedding.weight"
        - "model.layers.0.self_attn.q_proj.weight" -> "layers.0.self_attn.q_proj.weight"
        - "lm_head.weight" -> "lm_head.linear.weight"

    Args:
        config: LlamaConfig instance specifying model architecture.

    Returns:
        Dictionary mapping HuggingFace weight names to model parameter names.
    """
    mapping = {
        "model.embed_tokens.weight": EMBEDDING_WEIGHT,
        "model.norm.weight": "norm.weight",
        "lm_head.weight": LM_HEAD_WEIGHT,
    }

    per_layer = (
        "self_attn.q_proj.weight",
        "self_attn.k_proj.weight",
        "self_attn.v_proj.weight",
        "self_attn.o_proj.weight",
        "mlp.gate_proj.weight",
        "mlp.up_proj.weight",
        "mlp.down_proj.weight",
        "input_layernorm.weight",
        "post_attention_layernorm.weight",
    )
    for layer_idx in range(config.num_hidden_layers):
        for suffix in per_layer:
            mapping[f"model.layers.{layer_idx}.{suffix}"] = f"layers.{layer_idx}.{suffix}"

    return mapping


def expected_weight_shapes(config: LlamaConfig) -> Dict[str, tuple]:
    """Shapes every parameter of LlamaForCausalLM must have."""
    kv_dim = config.num_key_value_heads * config.head_dim
    q_dim = config.num_attention_heads * config.head_dim

    shapes = {
        EMBEDDING_WEIGHT: (config.vocab_size, config.hidden_size),
        LM_HEAD_WEIGHT: (config.vocab_size, config.hidden_size),
        "norm.weight": (config.hidden_size,),
    }
    for layer_idx in range(config.num_hidden_layers):
        prefix = f"layers.{layer_idx}"
        shapes[f"{prefix}.self_attn.q_proj.weight"] = (q_dim, config.hidden_size)
        shapes[f"{prefix}.self_attn.k_proj.weight"] = (kv_dim, config.hidden_size)
        shapes[f"{prefix}.self_attn.v_proj.weight"] = (kv_dim, config.hidden_size)
        shapes[f"{prefix}.self_attn.o_proj.weight"] = (config.hidden_size, q_dim)
        shapes[f"{prefix}.mlp.gate_proj.weight"] = (config.intermediate_size, config.hidden_size)
        shapes[f"{prefix}.mlp.up_proj.weight"] = (config.intermediate_size, config.hidden_size)
        shapes[f"{prefix}.mlp.down_proj.weight"] = (config.hidden_size, config.intermediate_size)
        shapes[f"{prefix}.input_layernorm.weight"] = (config.hidden_size,)
        shapes[f"{prefix}.post_attention_layernorm.weight"] = (config.hidden_size,)
    return shapes


def validate_weight_shapes(state_dict: Dict[str, torch.Tensor], config: LlamaConfig) -> None:
    """Validate that weight shapes match model architecture.

    Args:
        state_dict: Dictionary of weight tensors (using model parameter names).
        config: LlamaConfig instance specifying expected dimensions.

    Raises:
        ValueError: If any weight has incorrect shape.
    """
    expected_shapes = expected_weight_shapes(config)

    for weight_name, tensor in state_dict.items():
        expected_shape = expected_shapes.get(weight_name)
        if expected_shape is None:
            continue
        actual_shape = tuple(tensor.shape)
        if actual_shape != expected_shape:
            raise ValueError(
                f"Weight '{weight_name}' shape mismatch: "
                f"expected {expected_shape}, got {actual_shape}"
            )


def load_and_map_weights(weights: bytes, config: LlamaConfig) -> Dict[str, torch.Tensor]:
    """Load and map weights from a safetensors buffer to model parameter names.

    1. Deserialize the checkpoint
    2. Rename weights and convert them to float32
    3. Reuse the embedding matrix as LM head when embeddings are tied
    4. Check that nothing is missing and validate shapes

    Args:
        weights: Raw bytes of a ``.safetensors`` file.
        config: LlamaConfig instance specifying model architecture.

    Returns:
        Dictionary mapping model parameter names to float32 tensors.

    Raises:
        ValueError: If the checkpoint cannot be read, a weight is missing, or
            shapes are invalid.
    """
    hf_state_dict = load_checkpoint(weights)

    mapped_state_dict = {}
    for hf_name, model_name in create_weight_name_mapping(config).items():
        if hf_name in hf_state_dict:
            mapped_state_dict[model_name] = hf_state_dict[hf_name].to(torch.float32)

    if config.tie_word_embeddings and EMBEDDING_WEIGHT in mapped_state_dict:
        mapped_state_dict[LM_HEAD_WEIGHT] = mapped_state_dict[EMBEDDING_WEIGHT]

    missing = sorted(set(expected_weight_shapes(config)) - set(mapped_state_dict))
    if missing:
        shown = ", ".join(missing[:5])
        more = f" (and {len(missing) - 5} more)" if len(missing) > 5 else ""
        raise ValueError(f"checkpoint is missing weights: {shown}{more}")

    validate_weight_shapes(mapped_state_dict, config)

    return mapped_state_dict


def build_model(weights: bytes, config: LlamaConfig) -> LlamaForCausalLM:
    """Instantiate LlamaForCausalLM and load checkpoint weights into it.

    Args:
        weights: Raw bytes of a ``.safetensors`` file.
        config: LlamaConfig instance specifying model architecture.

    Returns:
        Model in eval mode on CPU.

    Raises:
        ValueError: If the weights do not fit the configuration.
    """
    state_dict = load_and_map_weights(weights, config)

    model = LlamaForCausalLM(config)
    model.load_state_dict(state_dict, strict=True)
    model.eval()

    return model
