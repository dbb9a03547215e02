"""
Error kinds raised by the inference engine.

Every failure surfaced to callers is a SmolLMError carrying one ErrorKind and
a message naming the stage that failed. None of them are retried internally.
"""

from enum import Enum


class ErrorKind(Enum):
    """Closed set of failure categories."""

    CONFIG_PARSE = "config_parse"
    TOKENIZER_LOAD = "tokenizer_load"
    WEIGHTS_LOAD = "weights_load"
    CACHE_ALLOCATION = "cache_allocation"
    LOCK_CONTENTION = "lock_contention"
    TOKENIZATION = "tokenization"
    FORWARD_PASS = "forward_pass"
    SAMPLING = "sampling"
    MODEL_NOT_LOADED = "model_not_loaded"


class SmolLMError(Exception):
    """Base class for engine errors.

    Attributes:
        kind: Category of the failure.
        message: Human-readable description including the failing stage.
    """

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigParseError(SmolLMError):
    kind = ErrorKind.CONFIG_PARSE


class TokenizerLoadError(SmolLMError):
    kind = ErrorKind.TOKENIZER_LOAD


class WeightsLoadError(SmolLMError):
    kind = ErrorKind.WEIGHTS_LOAD


class CacheAllocationError(SmolLMError):
    kind = ErrorKind.CACHE_ALLOCATION


class LockContentionError(SmolLMError):
    kind = ErrorKind.LOCK_CONTENTION


class TokenizationError(SmolLMError):
    kind = ErrorKind.TOKENIZATION


class ForwardPassError(SmolLMError):
    kind = ErrorKind.FORWARD_PASS


class SamplingError(SmolLMError):
    kind = ErrorKind.SAMPLING


class ModelNotLoadedError(SmolLMError):
    kind = ErrorKind.MODEL_NOT_LOADED

    def __init__(self, message: str = "Model not loaded") -> None:
        super().__init__(message)
