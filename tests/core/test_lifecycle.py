"""
Tests for ModelSlot and ModelManager: load, replace, clear and the
behaviour of the slot mutex.
"""

import json

import pytest

from smollm_lite.core import lifecycle, model_instance
from smollm_lite.core.config import EngineSettings
from smollm_lite.core.errors import (
    CacheAllocationError,
    ConfigParseError,
    LockContentionError,
    ModelNotLoadedError,
    TokenizerLoadError,
    WeightsLoadError,
)
from smollm_lite.core.lifecycle import ModelManager, ModelSlot
from smollm_lite.core.model_instance import ModelInstance
from tests.utils.checkpoint import tiny_config_dict


def _active(slot: ModelSlot) -> ModelInstance:
    with slot.exclusive("inspect") as held:
        return held.borrow()


@pytest.fixture
def manager(settings) -> ModelManager:
    return ModelManager(ModelSlot(), settings)


@pytest.mark.unit
def test_fresh_manager_has_no_model(manager) -> None:
    assert manager.is_loaded() is False
    with pytest.raises(ModelNotLoadedError):
        _active(manager.slot)


@pytest.mark.integration
def test_load_installs_instance(manager, model_artifacts) -> None:
    manager.load(*model_artifacts)

    assert manager.is_loaded() is True
    instance = _active(manager.slot)
    assert instance.config.num_hidden_layers == 2
    assert instance.cache.seq_len == 0
    assert instance.device.type == "cpu"


@pytest.mark.integration
def test_load_replaces_and_releases_previous(manager, model_artifacts, other_model_artifacts) -> None:
    manager.load(*model_artifacts)
    first = _active(manager.slot)
    first.forward([1, 4, 5], 0)
    assert first.cache.seq_len == 3

    manager.load(*other_model_artifacts)
    second = _active(manager.slot)

    assert second is not first
    assert first.cache.seq_len == 0


@pytest.mark.integration
@pytest.mark.parametrize(
    "broken, error_cls",
    [
        ({"config_json": "not json"}, ConfigParseError),
        ({"config_json": "[]"}, ConfigParseError),
        ({"config_json": json.dumps(tiny_config_dict(hidden_size=10))}, ConfigParseError),
        ({"tokenizer_json": "not a tokenizer"}, TokenizerLoadError),
        ({"weights": b""}, WeightsLoadError),
        ({"weights": b"\x00" * 64}, WeightsLoadError),
        ({"config_json": json.dumps(tiny_config_dict(rope_scaling="bad"))}, ConfigParseError),
        ({"config_json": json.dumps(tiny_config_dict(num_hidden_layers=3))}, WeightsLoadError),
    ],
)
def test_failed_load_keeps_previous_model(manager, model_artifacts, broken, error_cls) -> None:
    weights, tokenizer_json, config_json = model_artifacts
    manager.load(weights, tokenizer_json, config_json)
    before = _active(manager.slot)

    artifacts = {"weights": weights, "tokenizer_json": tokenizer_json, "config_json": config_json}
    artifacts.update(broken)
    with pytest.raises(error_cls):
        manager.load(**artifacts)

    assert manager.is_loaded() is True
    assert _active(manager.slot) is before


@pytest.mark.integration
def test_failed_first_load_leaves_slot_empty(manager, model_artifacts) -> None:
    weights, tokenizer_json, _ = model_artifacts

    with pytest.raises(ConfigParseError):
        manager.load(weights, tokenizer_json, "")

    assert manager.is_loaded() is False


@pytest.mark.integration
def test_cache_allocation_failure(manager, model_artifacts, monkeypatch) -> None:
    def broken_cache(*args, **kwargs):
        raise RuntimeError("out of memory")

    monkeypatch.setattr(model_instance, "KVCache", broken_cache)

    with pytest.raises(CacheAllocationError, match="out of memory"):
        manager.load(*model_artifacts)
    assert manager.is_loaded() is False


@pytest.mark.integration
def test_clear_removes_model(manager, model_artifacts) -> None:
    manager.load(*model_artifacts)

    manager.clear()

    assert manager.is_loaded() is False
    # Clearing an empty slot is a no-op
    manager.clear()
    assert manager.is_loaded() is False


@pytest.mark.integration
def test_load_logs_stages(manager, model_artifacts, caplog) -> None:
    with caplog.at_level("INFO", logger="smollm_lite"):
        manager.load(*model_artifacts)

    messages = [
        record.getMessage() for record in caplog.records if record.name.startswith("smollm_lite")
    ]
    assert messages[0] == "Starting model load..."
    assert "Tokenizer loaded" in messages
    assert messages[-1] == "Model ready for inference"


@pytest.mark.unit
def test_is_loaded_times_out_while_slot_busy() -> None:
    manager = ModelManager(ModelSlot(), EngineSettings(lock_timeout=0.05))

    with manager.slot.exclusive("generate"):
        with pytest.raises(LockContentionError, match="check model state"):
            manager.is_loaded()


@pytest.mark.unit
def test_exclusive_non_blocking_fails_fast() -> None:
    slot = ModelSlot()

    with slot.exclusive("load"):
        with pytest.raises(LockContentionError, match="^Lock error: model slot is busy, cannot generate"):
            with slot.exclusive("generate", blocking=False):
                pass


@pytest.mark.unit
def test_exclusive_releases_on_error() -> None:
    slot = ModelSlot()

    with pytest.raises(RuntimeError):
        with slot.exclusive("load"):
            raise RuntimeError("boom")

    with slot.exclusive("generate", blocking=False):
        pass


@pytest.mark.integration
def test_thread_count_applied_only_after_successful_load(model_artifacts, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(lifecycle.torch, "set_num_threads", calls.append)
    manager = ModelManager(ModelSlot(), EngineSettings(num_threads=3))
    weights, tokenizer_json, config_json = model_artifacts

    with pytest.raises(WeightsLoadError):
        manager.load(b"", tokenizer_json, config_json)
    assert calls == []

    manager.load(weights, tokenizer_json, config_json)
    assert calls == [3]
