"""
Boundary operations of the engine.

The module keeps one process-wide InferenceRuntime (one model slot, its
lifecycle manager and its generation engine) and exposes it through plain
functions: ``load_model``, ``generate``, ``is_model_loaded``,
``clear_model`` and ``get_version``. The ``*_async`` variants run the same
operations on a dedicated worker thread so an asyncio host keeps serving
other work while a model loads or generates.
"""

import asyncio
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, Optional, Union

from smollm_lite.core.config import EngineSettings, GenerationParams
from smollm_lite.core.errors import ConfigParseError, TokenizerLoadError, WeightsLoadError
from smollm_lite.core.generation_engine import GenerationEngine
from smollm_lite.core.lifecycle import ModelManager, ModelSlot

PathLike = Union[str, os.PathLike]
TokenCallback = Callable[[str], None]


class InferenceRuntime:
    """A model slot together with the operations that use it.

    Attributes:
        settings: Engine settings shared by the manager and the engine.
        slot: Holder of the single active model.
        manager: Load / clear / query operations.
        engine: Generation loop.
    """

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or EngineSettings()
        self.slot = ModelSlot()
        self.manager = ModelManager(self.slot, self.settings)
        self.engine = GenerationEngine(self.slot, self.settings)

    def load_model(self, weights: bytes, tokenizer_json: str, config_json: str) -> None:
        self.manager.load(weights, tokenizer_json, config_json)

    def load_model_from_files(
        self,
        weights_path: PathLike,
        tokenizer_path: PathLike,
        config_path: PathLike,
    ) -> None:
        """Read checkpoint artifacts from disk and load them.

        Raises:
            WeightsLoadError, TokenizerLoadError, ConfigParseError: If the
                matching file cannot be read, or from the load itself.
        """
        weights = _read_file(weights_path, "weights", WeightsLoadError, binary=True)
        tokenizer_json = _read_file(tokenizer_path, "tokenizer", TokenizerLoadError)
        config_json = _read_file(config_path, "config", ConfigParseError)
        self.load_model(weights, tokenizer_json, config_json)

    def generate(
        self,
        prompt: str,
        params_json: str = "",
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        """Generate text from a prompt.

        Args:
            prompt: Input text.
            params_json: Generation parameters as JSON; empty for defaults.
            on_token: Called synchronously with every decoded fragment.

        Returns:
            The complete generated text.
        """
        params = GenerationParams.from_json(params_json)
        return self.engine.generate(prompt, params, on_token=on_token)

    def stream(self, prompt: str, params_json: str = "") -> Iterator[str]:
        """Lazy variant of :meth:`generate`; see ``GenerationEngine.stream``."""
        params = GenerationParams.from_json(params_json)
        return self.engine.stream(prompt, params)

    def is_model_loaded(self) -> bool:
        return self.manager.is_loaded()

    def clear_model(self) -> None:
        self.manager.clear()


def _read_file(path: PathLike, label: str, error_cls, binary: bool = False):
    try:
        if binary:
            with open(path, "rb") as handle:
                return handle.read()
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()
    except OSError as e:
        raise error_cls(f"Failed to read {label} from {path}: {e}") from e


_runtime: Optional[InferenceRuntime] = None
_runtime_lock = threading.Lock()

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def get_runtime() -> InferenceRuntime:
    """Return the process-wide runtime, creating it from the environment."""
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = InferenceRuntime(EngineSettings.from_env())
        return _runtime


def _get_executor() -> ThreadPoolExecutor:
    # One worker: operations on the single model are serialized anyway
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="smollm-inference")
        return _executor


def get_version() -> str:
    """Get the library version."""
    from smollm_lite import __version__

    return __version__


def is_model_loaded() -> bool:
    """Check if a model is loaded."""
    return get_runtime().is_model_loaded()


def load_model(weights: bytes, tokenizer_json: str, config_json: str) -> None:
    """Load a model from safetensors weights, tokenizer JSON and config JSON.

    Args:
        weights: The model weights as bytes (safetensors format).
        tokenizer_json: The tokenizer definition as JSON text.
        config_json: The model configuration as JSON text.
    """
    get_runtime().load_model(weights, tokenizer_json, config_json)


def load_model_from_files(
    weights_path: PathLike,
    tokenizer_path: PathLike,
    config_path: PathLike,
) -> None:
    """Load a model from ``model.safetensors``, ``tokenizer.json`` and ``config.json`` paths."""
    get_runtime().load_model_from_files(weights_path, tokenizer_path, config_path)


def generate(
    prompt: str,
    params_json: str = "",
    on_token: Optional[TokenCallback] = None,
) -> str:
    """Generate text from a prompt.

    Args:
        prompt: The input prompt text.
        params_json: Generation parameters as JSON (empty string uses defaults).
        on_token: Callback invoked with each generated text fragment.

    Returns:
        The complete generated text.
    """
    return get_runtime().generate(prompt, params_json, on_token)


def clear_model() -> None:
    """Clear the loaded model from memory."""
    get_runtime().clear_model()


async def load_model_async(weights: bytes, tokenizer_json: str, config_json: str) -> None:
    """Asynchronously load a model without blocking the event loop."""
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(_get_executor(), load_model, weights, tokenizer_json, config_json)


async def generate_async(
    prompt: str,
    params_json: str = "",
    on_token: Optional[TokenCallback] = None,
) -> str:
    """Asynchronously generate text from a prompt.

    Generation runs on the worker thread; ``on_token`` is scheduled on the
    calling event loop for each fragment, in order.
    """
    loop = asyncio.get_running_loop()

    handler = None
    if on_token is not None:
        def handler(fragment: str) -> None:
            loop.call_soon_threadsafe(on_token, fragment)

    return await loop.run_in_executor(_get_executor(), generate, prompt, params_json, handler)
