"""
Model Loader for Skin Lesion Classification

Owns the single inference session of the process. The session is fetched and
parsed lazily, exactly once, no matter how many callers ask for it
concurrently; later callers await or reuse the first caller's load.
"""
import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from .inference import InferenceSession

logger = logging.getLogger(__name__)


class ModelLoader:
    """
    Lazily initialized, exclusively owned inference session slot.

    Attributes:
        model_source (str): URL or path of the model asset, fixed at construction
        runtime_config (RuntimeConfig): Immutable runtime configuration
    """

    def __init__(self, model_source, fetcher, runtime_config, session_factory=InferenceSession.create):
        """
        Initialize ModelLoader.

        Args:
            model_source (str or Path): Where the model asset lives
            fetcher (AssetFetcher): Fetches and validates the asset
            runtime_config (RuntimeConfig): Backend/device/contract for the session
            session_factory (callable): (asset, config) -> session
        """
        self.model_source = str(model_source)
        self.fetcher = fetcher
        self.runtime_config = runtime_config
        self._session_factory = session_factory
        self._lock = threading.RLock()
        self._future = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='model-loader')

    def _ensure_load(self) -> Future:
        with self._lock:
            future = self._future
            if future is None:
                logger.info('Initializing model from %s...', self.model_source)
                future = self._executor.submit(self._load)
                self._future = future
                future.add_done_callback(self._forget_failed_load)
            return future

    def _load(self):
        asset = self.fetcher.fetch(self.model_source)
        session = self._session_factory(asset, self.runtime_config)
        logger.info('✓ Model ready for inference')
        return session

    def _forget_failed_load(self, future):
        if future.cancelled() or future.exception() is not None:
            with self._lock:
                if self._future is future:
                    self._future = None

    def get_session(self):
        """
        Return the session, loading it on first use (blocking).

        Raises:
            PipelineError: Fetch or model load failure of this attempt
        """
        return self._ensure_load().result()

    async def load_async(self):
        """
        Await the session without blocking the event loop.

        Cancelling the awaiting task never aborts a load other callers share.
        """
        return await asyncio.shield(asyncio.wrap_future(self._ensure_load()))

    def _loaded_session(self):
        with self._lock:
            future = self._future
        if future is None or not future.done() or future.cancelled():
            return None
        if future.exception() is not None:
            return None
        return future.result()

    def is_loaded(self):
        """Check if the session is loaded."""
        return self._loaded_session() is not None

    def get_device_info(self):
        """
        Get the device of the loaded session.

        Returns:
            str or None: Device name, None while no session is loaded
        """
        session = self._loaded_session()
        return session.device if session is not None else None

    def get_backend(self):
        session = self._loaded_session()
        return session.backend if session is not None else None

    def discard(self):
        """Drop the cached session; the next request fetches and parses again."""
        with self._lock:
            self._future = None
        logger.info('Model session discarded')

    def shutdown(self):
        """Release the loader thread at process teardown; a running load still finishes."""
        self._executor.shutdown(wait=False)
