"""
Diagnosis Service

Business logic for skin lesion risk screening requests.
"""
import asyncio
import logging
import time

import config
from core import (
    AssetFetcher,
    ImagePreprocessor,
    ModelLoader,
    PipelineOrchestrator,
    Postprocessor,
    RuntimeConfig,
)

logger = logging.getLogger(__name__)


def resolve_model_source(settings):
    """Prefer the local model cache, fall back to the download URL."""
    if settings.MODEL_PATH.exists():
        return settings.MODEL_PATH
    return settings.MODEL_DOWNLOAD_URL


class DiagnosisService:
    """Service for handling diagnosis requests."""

    def __init__(self, orchestrator):
        """
        Initialize diagnosis service.

        Args:
            orchestrator (PipelineOrchestrator): Pipeline that owns the model session
        """
        self.orchestrator = orchestrator

    @classmethod
    def from_settings(cls, settings=config):
        """
        Wire the pipeline from configuration constants.

        Args:
            settings (module): Configuration module, ``config`` by default

        Returns:
            DiagnosisService
        """
        fetcher = AssetFetcher(
            probe_min_bytes=settings.PROBE_MIN_BYTES,
            min_bytes=settings.MODEL_MIN_BYTES,
            max_retries=settings.FETCH_MAX_RETRIES,
            base_delay=settings.FETCH_BASE_DELAY,
            timeout=settings.FETCH_TIMEOUT,
        )
        model_loader = ModelLoader(
            resolve_model_source(settings),
            fetcher,
            RuntimeConfig.from_settings(settings),
        )
        postprocessor = Postprocessor(
            confidence_threshold=settings.CONFIDENCE_THRESHOLD,
            malignant_classes=settings.MALIGNANT_CLASSES,
            benign_classes=settings.BENIGN_CLASSES,
        )
        orchestrator = PipelineOrchestrator(
            model_loader,
            preprocessor=ImagePreprocessor(max_pixels=settings.MAX_IMAGE_PIXELS),
            postprocessor=postprocessor,
            progress_interval=settings.PROGRESS_INTERVAL,
        )
        return cls(orchestrator)

    @property
    def model_loader(self):
        return self.orchestrator.model_loader

    def initialize_model(self):
        """Fetch and load the model now instead of on the first request."""
        self.model_loader.get_session()

    def is_model_loaded(self):
        """Check if model is loaded."""
        return self.model_loader.is_loaded()

    def get_device_info(self):
        """Get device information."""
        return self.model_loader.get_device_info()

    def get_backend(self):
        return self.model_loader.get_backend()

    def diagnose(self, image_bytes):
        """
        Run the diagnosis pipeline on encoded image bytes.

        Args:
            image_bytes (bytes): Uploaded JPEG/PNG data

        Returns:
            dict: Response payload with the verdict and processing time

        Raises:
            PipelineFailed: Carries the failing stage and typed error
        """
        start_time = time.time()
        verdict = asyncio.run(
            self.orchestrator.run(image_bytes, on_progress=self._log_progress)
        )
        processing_time = (time.time() - start_time) * 1000

        return {
            'success': True,
            'verdict': verdict.to_dict(),
            'processing_time': round(processing_time, 2),
        }

    def process_uploaded_image(self, image_file):
        """
        Process an uploaded image file.

        Args:
            image_file: File object from request.files

        Returns:
            dict: Response payload, see ``diagnose``
        """
        image_file.stream.seek(0)
        return self.diagnose(image_file.stream.read())

    def shutdown(self):
        """Stop the model loader's worker thread."""
        self.model_loader.shutdown()

    @staticmethod
    def _log_progress(value):
        logger.debug('Diagnosis progress: %.0f%%', value)
