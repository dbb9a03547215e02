"""
Model lifecycle management.

The process holds at most one ModelInstance, kept in a ModelSlot guarded by a
single mutex. Every operation that reads or changes the slot (load, clear,
is_loaded and generate) runs inside ``ModelSlot.exclusive`` for its whole
duration, so a generation never overlaps a load, a clear or another
generation.

Lifecycle of an instance:
    load -> installed (replacing and releasing any previous instance)
         -> borrowed by one generate call at a time
         -> removed by clear or by the next successful load
"""

import gc
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import torch

from smollm_lite.core.config import EngineSettings
from smollm_lite.core.errors import LockContentionError, ModelNotLoadedError
from smollm_lite.core.model_instance import ModelInstance, build_model_instance

logger = logging.getLogger(__name__)


class ModelSlot:
    """Holder of the single active ModelInstance.

    ``install``, ``borrow`` and ``remove`` must be called while holding
    exclusive access obtained from :meth:`exclusive`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._instance: Optional[ModelInstance] = None

    @contextmanager
    def exclusive(
        self,
        operation: str,
        blocking: bool = True,
        timeout: Optional[float] = None,
    ) -> Iterator["ModelSlot"]:
        """Hold the slot mutex for the duration of the block.

        Args:
            operation: Name used in the contention error message.
            blocking: If False, fail immediately when the slot is busy.
            timeout: Maximum seconds to wait when blocking.

        Raises:
            LockContentionError: If the slot could not be acquired.
        """
        if not blocking:
            acquired = self._lock.acquire(blocking=False)
        elif timeout is not None:
            acquired = self._lock.acquire(timeout=timeout)
        else:
            acquired = self._lock.acquire()

        if not acquired:
            raise LockContentionError(f"Lock error: model slot is busy, cannot {operation}")
        try:
            yield self
        finally:
            self._lock.release()

    @property
    def occupied(self) -> bool:
        return self._instance is not None

    def install(self, instance: ModelInstance) -> None:
        """Make ``instance`` the active model, releasing the previous one."""
        previous, self._instance = self._instance, instance
        if previous is not None:
            previous.release()

    def borrow(self) -> ModelInstance:
        """Return the active model for use within the current exclusive block.

        Raises:
            ModelNotLoadedError: If the slot is empty.
        """
        if self._instance is None:
            raise ModelNotLoadedError()
        return self._instance

    def remove(self) -> Optional[ModelInstance]:
        """Empty the slot and return what it held."""
        instance, self._instance = self._instance, None
        return instance


class ModelManager:
    """Load, query and clear the model held in a ModelSlot."""

    def __init__(
        self,
        slot: Optional[ModelSlot] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.slot = slot or ModelSlot()
        self.settings = settings or EngineSettings()

    def load(self, weights: bytes, tokenizer_json: str, config_json: str) -> None:
        """Build a model from checkpoint artifacts and install it.

        The new instance is installed only once fully constructed; on any
        failure the previously installed instance (if any) stays active.

        Args:
            weights: Raw bytes of a ``.safetensors`` file.
            tokenizer_json: Text of ``tokenizer.json``.
            config_json: Text of ``config.json``.

        Raises:
            ConfigParseError, TokenizerLoadError, WeightsLoadError,
            CacheAllocationError: From the failing construction stage.
        """
        with self.slot.exclusive("load"):
            logger.info("Starting model load...")
            instance = build_model_instance(weights, tokenizer_json, config_json)
            self.slot.install(instance)
            if self.settings.num_threads > 0:
                torch.set_num_threads(self.settings.num_threads)
        logger.info("Model ready for inference")

    def is_loaded(self) -> bool:
        """Report whether a model is installed.

        Waits at most ``settings.lock_timeout`` seconds for an in-flight
        operation to finish.

        Raises:
            LockContentionError: If the slot stayed busy past the timeout.
        """
        with self.slot.exclusive("check model state", timeout=self.settings.lock_timeout):
            return self.slot.occupied

    def clear(self) -> None:
        """Remove and release the installed model. No-op when none is loaded."""
        with self.slot.exclusive("clear"):
            instance = self.slot.remove()
            if instance is not None:
                instance.release()
                del instance
        gc.collect()
        logger.info("Model cleared from memory")
