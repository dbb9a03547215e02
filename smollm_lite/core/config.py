"""Engine settings and per-call generation parameters."""

import json
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping, Optional

from smollm_lite.core.errors import ConfigParseError

U64_MAX = 2**64 - 1

_UNSIGNED_FIELDS = ("max_tokens", "repeat_last_n", "seed")
_FLOAT_FIELDS = ("temperature", "top_p", "repeat_penalty")

# Keys as sent by the browser worker
_CAMEL_CASE_ALIASES = {
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "repeatPenalty": "repeat_penalty",
    "repeatLastN": "repeat_last_n",
}


@dataclass(frozen=True)
class GenerationParams:
    """Parameters for one generate call.

    Out-of-range values are accepted as given; only values that cannot be
    read as the right kind of number are rejected.

    Attributes:
        max_tokens: Maximum number of tokens to generate.
        temperature: Sampling temperature (0.0 = greedy).
        top_p: Nucleus sampling threshold.
        repeat_penalty: Penalty for recently seen tokens (1.0 = disabled).
        repeat_last_n: Number of trailing history tokens the penalty covers.
        seed: Seed of the session's random generator.
    """

    max_tokens: int = 256
    temperature: float = 0.7
    top_p: float = 0.9
    repeat_penalty: float = 1.1
    repeat_last_n: int = 64
    seed: int = 42

    @classmethod
    def from_json(cls, params_json: Optional[str]) -> "GenerationParams":
        """Parse parameters from JSON text; empty text means defaults.

        Raises:
            ConfigParseError: If the text is not a JSON object of valid values.
        """
        if params_json is None or not params_json.strip():
            return cls()
        try:
            raw = json.loads(params_json)
        except ValueError as e:
            raise ConfigParseError(f"Invalid params: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigParseError("Invalid params: expected a JSON object")
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "GenerationParams":
        """Build parameters from a mapping, ignoring unknown keys.

        Raises:
            ConfigParseError: If a known key holds a value of the wrong kind.
        """
        values = {}
        for key, value in raw.items():
            name = _CAMEL_CASE_ALIASES.get(key, key)
            if name in _UNSIGNED_FIELDS:
                values[name] = _parse_unsigned(name, value)
            elif name in _FLOAT_FIELDS:
                values[name] = _parse_float(name, value)
        return cls(**values)

    def to_json(self) -> str:
        return json.dumps(asdict(self))


def _parse_unsigned(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigParseError(f"Invalid params: {name} must be an unsigned integer, got {value!r}")
    if value < 0 or value > U64_MAX:
        raise ConfigParseError(f"Invalid params: {name} out of range for an unsigned integer: {value}")
    return value


def _parse_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigParseError(f"Invalid params: {name} must be a number, got {value!r}")
    try:
        return float(value)
    except OverflowError as e:
        raise ConfigParseError(f"Invalid params: {name} out of range for a float: {e}") from e


@dataclass
class EngineSettings:
    """Process-level engine settings.

    Attributes:
        lock_timeout: Seconds ``is_loaded`` waits for the model slot before
            raising LockContentionError.
        fail_fast: When true, a generate call that finds the slot busy raises
            LockContentionError instead of waiting.
        num_threads: Torch intra-op threads for the CPU backend.
        log_level: Level for ``configure_logging``.
    """

    lock_timeout: float = 5.0
    fail_fast: bool = False
    num_threads: int = 1
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Read settings from ``SMOLLM_*`` environment variables.

        ``SMOLLM_LOCK_TIMEOUT``, ``SMOLLM_FAIL_FAST``, ``SMOLLM_NUM_THREADS``
        and ``SMOLLM_LOG_LEVEL`` override the matching defaults.

        Raises:
            ConfigParseError: If a variable cannot be converted.
        """
        environ = os.environ if environ is None else environ
        settings = cls()
        for field in fields(cls):
            raw = environ.get(f"SMOLLM_{field.name.upper()}")
            if raw is None:
                continue
            try:
                setattr(settings, field.name, _convert_setting(field.type, raw))
            except ValueError as e:
                raise ConfigParseError(
                    f"Invalid setting SMOLLM_{field.name.upper()}={raw!r}: {e}"
                ) from e
        return settings


def _convert_setting(kind: Any, raw: str) -> Any:
    if kind in (bool, "bool"):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError("expected a boolean")
    if kind in (int, "int"):
        return int(raw)
    if kind in (float, "float"):
        return float(raw)
    return raw.strip().upper()
