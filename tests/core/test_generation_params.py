"""
Tests for GenerationParams parsing and EngineSettings.
"""

import json

import pytest

from smollm_lite.core.config import U64_MAX, EngineSettings, GenerationParams
from smollm_lite.core.errors import ConfigParseError


@pytest.mark.unit
def test_defaults() -> None:
    params = GenerationParams()

    assert params.max_tokens == 256
    assert params.temperature == 0.7
    assert params.top_p == 0.9
    assert params.repeat_penalty == 1.1
    assert params.repeat_last_n == 64
    assert params.seed == 42


@pytest.mark.unit
@pytest.mark.parametrize("text", [None, "", "   "])
def test_empty_text_means_defaults(text) -> None:
    assert GenerationParams.from_json(text) == GenerationParams()


@pytest.mark.unit
def test_partial_object_overrides_given_fields() -> None:
    params = GenerationParams.from_json('{"max_tokens": 16, "temperature": 0}')

    assert params.max_tokens == 16
    assert params.temperature == 0.0
    assert params.top_p == 0.9
    assert params.seed == 42


@pytest.mark.unit
def test_camel_case_keys_are_accepted() -> None:
    params = GenerationParams.from_json(
        '{"maxTokens": 8, "topP": 0.5, "repeatPenalty": 1.3, "repeatLastN": 4}'
    )

    assert params.max_tokens == 8
    assert params.top_p == 0.5
    assert params.repeat_penalty == 1.3
    assert params.repeat_last_n == 4


@pytest.mark.unit
def test_unknown_keys_are_ignored() -> None:
    params = GenerationParams.from_json('{"seed": 7, "stream": true, "model": "x"}')

    assert params == GenerationParams(seed=7)


@pytest.mark.unit
def test_out_of_range_values_are_accepted_as_given() -> None:
    params = GenerationParams.from_json('{"temperature": 5.0, "top_p": 3, "repeat_penalty": 0.5}')

    assert params.temperature == 5.0
    assert params.top_p == 3.0
    assert params.repeat_penalty == 0.5


@pytest.mark.unit
def test_seed_accepts_full_unsigned_range() -> None:
    params = GenerationParams.from_json(json.dumps({"seed": U64_MAX}))

    assert params.seed == U64_MAX


@pytest.mark.unit
@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[1, 2]",
        '"params"',
        '{"max_tokens": -1}',
        '{"max_tokens": 1.5}',
        '{"max_tokens": "10"}',
        '{"seed": true}',
        json.dumps({"seed": U64_MAX + 1}),
        '{"temperature": "hot"}',
        '{"top_p": null}',
        '{"temperature": 1' + "0" * 400 + "}",
        '{"seed": ' + "1" * 5000 + "}",
    ],
)
def test_invalid_params_raise_config_parse_error(text: str) -> None:
    with pytest.raises(ConfigParseError, match="^Invalid params"):
        GenerationParams.from_json(text)


@pytest.mark.unit
def test_to_json_round_trip() -> None:
    params = GenerationParams(max_tokens=3, seed=9)

    assert GenerationParams.from_json(params.to_json()) == params


@pytest.mark.unit
def test_engine_settings_defaults_without_environment() -> None:
    settings = EngineSettings.from_env({})

    assert settings == EngineSettings()
    assert settings.lock_timeout == 5.0
    assert settings.fail_fast is False


@pytest.mark.unit
def test_engine_settings_read_from_environment() -> None:
    settings = EngineSettings.from_env({
        "SMOLLM_LOCK_TIMEOUT": "0.5",
        "SMOLLM_FAIL_FAST": "yes",
        "SMOLLM_NUM_THREADS": "4",
        "SMOLLM_LOG_LEVEL": "debug",
        "UNRELATED": "1",
    })

    assert settings.lock_timeout == 0.5
    assert settings.fail_fast is True
    assert settings.num_threads == 4
    assert settings.log_level == "DEBUG"


@pytest.mark.unit
@pytest.mark.parametrize(
    "name, value",
    [("SMOLLM_LOCK_TIMEOUT", "soon"), ("SMOLLM_FAIL_FAST", "maybe"), ("SMOLLM_NUM_THREADS", "2.5")],
)
def test_engine_settings_reject_bad_values(name: str, value: str) -> None:
    with pytest.raises(ConfigParseError, match=name):
        EngineSettings.from_env({name: value})
