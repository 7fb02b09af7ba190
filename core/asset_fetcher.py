"""
Model Asset Fetcher

Retrieves the serialized classifier from a URL or a local path.
A metadata-only probe runs first, then the full payload is downloaded with a
bounded, linearly backed-off retry policy and checked against a minimum size.
"""
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import requests

from .errors import AssetTooSmall, AssetUnreachable, PipelineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelAsset:
    """
    Serialized model bytes that passed the size integrity check.

    Attributes:
        data (bytes): Raw model payload
        min_size (int): Threshold the payload was validated against
        source (str): URL or path the payload came from
    """
    data: bytes
    min_size: int
    source: str

    def __post_init__(self):
        if len(self.data) < self.min_size:
            raise AssetTooSmall(
                f'Model asset from {self.source} is {len(self.data)} bytes, '
                f'expected at least {self.min_size}',
                size=len(self.data),
                minimum=self.min_size,
            )

    @property
    def size(self):
        return len(self.data)


def _is_remote(source):
    return urlparse(str(source)).scheme in ('http', 'https')


class AssetFetcher:
    """
    Downloads and validates model assets.

    Only exhausted-retry errors are surfaced; transient failures are logged
    and retried internally.
    """

    def __init__(self, probe_min_bytes=200 * 1024, min_bytes=1024 * 1024,
                 max_retries=3, base_delay=1.0, timeout=300.0,
                 http=None, sleep=time.sleep):
        """
        Initialize AssetFetcher.

        Args:
            probe_min_bytes (int): Declared size below which the probe fails fast
            min_bytes (int): Stricter minimum for the downloaded payload
            max_retries (int): Number of download attempts
            base_delay (float): Backoff unit in seconds, delay = base_delay * attempt
            timeout (float): Per-request timeout in seconds
            http (requests.Session): Session used for HTTP(S) sources
            sleep (callable): Sleep function used between attempts
        """
        if max_retries < 1:
            raise ValueError('max_retries must be at least 1')
        self.probe_min_bytes = probe_min_bytes
        self.min_bytes = min_bytes
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self.http = http or requests.Session()
        self._sleep = sleep

    def fetch(self, source) -> ModelAsset:
        """
        Fetch and validate a model asset.

        Args:
            source (str or Path): http(s) URL or local file path

        Returns:
            ModelAsset: Validated payload

        Raises:
            AssetUnreachable: Probe failed, or every download attempt failed in transport
            AssetTooSmall: Probe reported a placeholder-sized file, or every
                downloaded payload was below ``min_bytes``
        """
        source = str(source)
        self.probe(source)

        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                data = self._download(source)
                return ModelAsset(data=data, min_size=self.min_bytes, source=source)
            except PipelineError as e:
                if not e.retryable:
                    raise
                last_error = e
                logger.warning(
                    'Model download attempt %d/%d failed: %s', attempt, self.max_retries, e
                )
                if attempt < self.max_retries:
                    self._sleep(self.base_delay * attempt)

        raise last_error

    def probe(self, source):
        """
        Metadata-only existence and size check.

        Returns:
            int or None: Declared size in bytes, None when the source does not report one
        """
        source = str(source)
        if _is_remote(source):
            size = self._probe_remote(source)
        else:
            size = self._probe_local(source)

        if size is not None and size < self.probe_min_bytes:
            raise AssetTooSmall(
                f'Model asset at {source} reports {size} bytes, '
                f'expected at least {self.probe_min_bytes}',
                size=size,
                minimum=self.probe_min_bytes,
            )
        return size

    def download_to(self, source, path) -> ModelAsset:
        """
        Fetch an asset and write the verified payload to disk.

        Args:
            source (str): URL or path to fetch from
            path (str or Path): Destination file

        Returns:
            ModelAsset: The asset that was written
        """
        asset = self.fetch(source)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + '.part')
        tmp_path.write_bytes(asset.data)
        tmp_path.replace(path)
        logger.info('✓ Model saved to %s (%.1f MB)', path, asset.size / (1024 * 1024))
        return asset

    def _probe_remote(self, url):
        try:
            response = self.http.head(url, allow_redirects=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise AssetUnreachable(f'Model asset unreachable at {url}: {e}') from e

        # Some static hosts refuse HEAD; fall through to the download
        if response.status_code == 405:
            return None
        if response.status_code >= 400:
            raise AssetUnreachable(
                f'Model asset unreachable at {url}: HTTP {response.status_code}'
            )

        length = response.headers.get('content-length')
        if length is None or not str(length).isdigit():
            return None
        return int(length)

    def _probe_local(self, path):
        try:
            return Path(path).stat().st_size
        except OSError as e:
            raise AssetUnreachable(f'Model asset not found: {path}') from e

    def _download(self, source):
        if not _is_remote(source):
            try:
                return Path(source).read_bytes()
            except OSError as e:
                raise AssetUnreachable(f'Failed to read model asset {source}: {e}') from e

        try:
            with self.http.get(source, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                chunks = []
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        chunks.append(chunk)
        except requests.RequestException as e:
            raise AssetUnreachable(f'Failed to download model asset from {source}: {e}') from e

        return b''.join(chunks)

