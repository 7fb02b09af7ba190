"""
Configuration constants for the diagnosis backend.

Every value can be overridden with an environment variable of the same name.
"""
import os
from pathlib import Path


def _env_int(name, default):
    return int(os.getenv(name, default))


def _env_float(name, default):
    return float(os.getenv(name, default))


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name, default):
    raw = os.getenv(name)
    if raw is None:
        return tuple(default)
    return tuple(item.strip() for item in raw.split(',') if item.strip())


# Model asset
MODEL_PATH = Path(os.getenv('MODEL_PATH', 'skin_lesion_classifier.onnx'))
MODEL_DOWNLOAD_URL = os.getenv(
    'MODEL_DOWNLOAD_URL',
    'http://localhost:3000/models/skin_lesion_classifier.onnx'
)

# Asset integrity and retry policy
PROBE_MIN_BYTES = _env_int('PROBE_MIN_BYTES', 200 * 1024)  # 200 KB
MODEL_MIN_BYTES = _env_int('MODEL_MIN_BYTES', 1024 * 1024)  # 1 MB
FETCH_MAX_RETRIES = _env_int('FETCH_MAX_RETRIES', 3)
FETCH_BASE_DELAY = _env_float('FETCH_BASE_DELAY', 1.0)  # seconds
FETCH_TIMEOUT = _env_float('FETCH_TIMEOUT', 300.0)  # seconds

# Inference runtime
INFERENCE_BACKEND = os.getenv('INFERENCE_BACKEND', 'auto')  # auto | onnx | torchscript
INFERENCE_DEVICE = os.getenv('INFERENCE_DEVICE', 'auto')  # auto | cpu | cuda
INFERENCE_THREADS = _env_int('INFERENCE_THREADS', 1)
PRELOAD_MODEL = _env_bool('PRELOAD_MODEL', False)

# Model output contract, must match the order of the model's output vector
CLASS_NAMES = _env_list('CLASS_NAMES', ('benign', 'malignant'))
MALIGNANT_CLASSES = _env_list('MALIGNANT_CLASSES', ('malignant',))
BENIGN_CLASSES = _env_list('BENIGN_CLASSES', ('benign',))
CONFIDENCE_THRESHOLD = _env_float('CONFIDENCE_THRESHOLD', 70.0)  # percent

# Preprocessing
MAX_IMAGE_PIXELS = _env_int('MAX_IMAGE_PIXELS', 40 * 1000 * 1000)  # 40 megapixels

# Progress reporting
PROGRESS_INTERVAL = _env_float('PROGRESS_INTERVAL', 0.2)  # seconds

# HTTP
MAX_CONTENT_LENGTH = _env_int('MAX_CONTENT_LENGTH', 10 * 1024 * 1024)  # 10 MB
CORS_ORIGINS = _env_list('CORS_ORIGINS', ('http://localhost:3000',))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
