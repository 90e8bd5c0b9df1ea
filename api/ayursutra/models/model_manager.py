import asyncio
import logging
from typing import Any

import torch

logger = logging.getLogger("ayursutra")


class ModelManager:
    """Lazy-loads ML models on first access with a GPU semaphore."""

    def __init__(self):
        self._models: dict[str, Any] = {}
        self._gpu_semaphore = asyncio.Semaphore(2)
        self._load_locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()
        self._device = "cuda" if torch.cuda.is_available() else "cpu"

    @property
    def device(self) -> str:
        return self._device

    async def get_or_load(self, name: str, loader) -> Any:
        """Get a model, loading it in a worker thread on first use.

        Concurrent callers for the same name share one load.
        """
        model = self._models.get(name)
        if model is not None:
            return model

        async with self._global_lock:
            if name not in self._load_locks:
                self._load_locks[name] = asyncio.Lock()
            lock = self._load_locks[name]

        async with lock:
            model = self._models.get(name)
            if model is not None:
                return model
            model = await asyncio.to_thread(loader)
            self.register(name, model)
            return model

    async def run(self, func, *args):
        """Run blocking inference off the event loop, bounded by the GPU semaphore."""
        async with self._gpu_semaphore:
            return await asyncio.to_thread(func, *args)

    def register(self, name: str, model: Any):
        if self._models.get(name) is model:
            return
        self._models[name] = model
        logger.info("Model registered: %s", name)
        self._update_metrics()

    def unload(self, name: str):
        model = self._models.pop(name, None)
        if model is not None:
            del model
            if self._device == "cuda":
                torch.cuda.empty_cache()
            logger.info("Model unloaded: %s", name)
            self._update_metrics()

    def _update_metrics(self):
        try:
            from ayursutra.middleware.metrics import MODELS_LOADED
            MODELS_LOADED.set(len(self._models))
        except Exception as e:
            logger.debug("Metrics update skipped: %s", e)

    def unload_all(self):
        for name in list(self._models.keys()):
            self.unload(name)

    def loaded_models(self) -> list[str]:
        return list(self._models.keys())

    def vram_usage(self) -> dict:
        if self._device != "cuda":
            return {"available": False}
        allocated = torch.cuda.memory_allocated() / 1024**3
        reserved = torch.cuda.memory_reserved() / 1024**3
        props = torch.cuda.get_device_properties(0)
        total = getattr(props, "total_memory", 0) / 1024**3
        return {
            "available": True,
            "allocated_gb": round(allocated, 2),
            "reserved_gb": round(reserved, 2),
            "total_gb": round(total, 2),
            "free_gb": round(total - allocated, 2),
        }


model_manager = ModelManager()
