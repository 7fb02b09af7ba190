"""
Model Downloader

Prefetches the classifier into the local model cache so the server does not
download it on the first request. Uses the same probe, size check and retry
policy as the server.
"""
import sys

import config
from core import AssetFetcher, PipelineError


def download_model_if_needed(settings=config, fetcher=None):
    """
    Download model file if it doesn't exist locally.

    Returns:
        Path: Location of the cached model
    """
    model_path = settings.MODEL_PATH

    if model_path.exists():
        print(f"✓ Model already exists: {model_path.name}")
        return model_path

    print(f"📥 Downloading model file ({model_path.name})...")

    model_url = settings.MODEL_DOWNLOAD_URL
    fetcher = fetcher or AssetFetcher(
        probe_min_bytes=settings.PROBE_MIN_BYTES,
        min_bytes=settings.MODEL_MIN_BYTES,
        max_retries=settings.FETCH_MAX_RETRIES,
        base_delay=settings.FETCH_BASE_DELAY,
        timeout=settings.FETCH_TIMEOUT,
    )

    try:
        asset = fetcher.download_to(model_url, model_path)
    except PipelineError as e:
        print(f"❌ Failed to download model: {e}")
        print(f"   Please download manually from: {model_url}")
        raise

    print(f"✓ Model downloaded successfully: {model_path.name} ({asset.size / (1024 * 1024):.1f} MB)")
    return model_path


if __name__ == "__main__":
    try:
        download_model_if_needed()
    except PipelineError:
        sys.exit(1)
