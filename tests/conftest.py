"""
Pytest configuration and shared fixtures for smollm-lite tests.

This module provides reusable fixtures for testing, including:
- A tiny random Llama checkpoint (weights, tokenizer, config)
- Isolated runtimes so no test shares the process-wide model slot
- CPU device enforcement
"""

import json
import logging
import os
from typing import Tuple

import pytest
import torch

from smollm_lite.core import api
from smollm_lite.core.api import InferenceRuntime
from smollm_lite.core.config import EngineSettings
from smollm_lite.models.llama.config import LlamaConfig
from tests.utils.checkpoint import build_tiny_model, tiny_checkpoint, tiny_config_dict


# Force CPU-only testing by disabling CUDA
os.environ["CUDA_VISIBLE_DEVICES"] = ""


@pytest.fixture(scope="session")
def cpu_device() -> torch.device:
    """
    Force CPU device for all tests.

    Returns:
        torch.device: CPU device object
    """
    return torch.device("cpu")


@pytest.fixture(scope="session")
def tiny_config() -> LlamaConfig:
    """
    Configuration of the tiny test model.

    Two decoder layers, 4 query heads sharing 2 KV heads (head_dim 4) and a
    32-token vocabulary, so a full forward pass takes well under a
    millisecond.

    Returns:
        LlamaConfig: Parsed configuration
    """
    return LlamaConfig.from_json(json.dumps(tiny_config_dict()))


@pytest.fixture
def tiny_model(tiny_config):
    """A freshly initialized tiny model with a fixed seed."""
    return build_tiny_model(tiny_config, seed=0)


@pytest.fixture(scope="session")
def model_artifacts() -> Tuple[bytes, str, str]:
    """
    Artifacts of a tiny checkpoint as they would be handed to load_model.

    This fixture:
    - Builds a random tiny model with a fixed seed
    - Exports its weights under HuggingFace names with safetensors
    - Builds a word-level tokenizer that prepends <s> and knows </s>

    Returns:
        Tuple of (weights bytes, tokenizer JSON text, config JSON text)
    """
    return tiny_checkpoint(seed=0)


@pytest.fixture(scope="session")
def other_model_artifacts() -> Tuple[bytes, str, str]:
    """Same architecture as model_artifacts with different weights."""
    return tiny_checkpoint(seed=1)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(lock_timeout=0.2)


@pytest.fixture
def runtime(settings) -> InferenceRuntime:
    """An empty runtime with its own model slot."""
    return InferenceRuntime(settings)


@pytest.fixture
def loaded_runtime(runtime, model_artifacts) -> InferenceRuntime:
    """A runtime with the tiny model already loaded."""
    runtime.load_model(*model_artifacts)
    return runtime


@pytest.fixture
def default_runtime(monkeypatch, settings) -> InferenceRuntime:
    """
    Replace the process-wide runtime behind the module-level API.

    Each test gets an empty slot; the previous runtime is restored afterwards.
    """
    fresh = InferenceRuntime(settings)
    monkeypatch.setattr(api, "_runtime", fresh)
    return fresh


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo handler and level changes made to the package logger."""
    logger = logging.getLogger("smollm_lite")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    logger.handlers = handlers
    logger.setLevel(level)
