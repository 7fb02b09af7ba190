"""
Runtime Configuration

Immutable description of how models are executed: backend, device, thread
count and the model's input/output contract. Built once before the first
session load and never mutated afterwards.
"""
import logging
from dataclasses import dataclass
from typing import Tuple

import torch

logger = logging.getLogger(__name__)

BACKENDS = ('auto', 'onnx', 'torchscript')
DEVICES = ('auto', 'cpu', 'cuda')

INPUT_SIZE = 224
INPUT_SHAPE = (1, 3, INPUT_SIZE, INPUT_SIZE)


def detect_device():
    """
    Detect available device (CUDA GPU or CPU).

    Returns:
        str: 'cuda' or 'cpu'
    """
    if torch.cuda.is_available():
        logger.info('✓ GPU detected: %s', torch.cuda.get_device_name(0))
        return 'cuda'
    logger.info('✓ No GPU detected, using CPU')
    return 'cpu'


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Attributes:
        backend (str): 'auto', 'onnx' or 'torchscript'
        device (str): 'cpu' or 'cuda', resolved from 'auto' at construction
        num_threads (int): Intra-op threads, fixed for reproducible numerics
        input_shape (tuple): Expected input tensor shape
        class_names (tuple): Ordered class names matching the model output
    """
    backend: str = 'auto'
    device: str = 'cpu'
    num_threads: int = 1
    input_shape: Tuple[int, ...] = INPUT_SHAPE
    class_names: Tuple[str, ...] = ('benign', 'malignant')

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValueError(f'Unknown inference backend: {self.backend}')
        if self.device not in DEVICES:
            raise ValueError(f'Unknown inference device: {self.device}')
        if self.device == 'auto':
            object.__setattr__(self, 'device', detect_device())
        if len(self.class_names) < 2:
            raise ValueError('At least two class names are required')
        object.__setattr__(self, 'input_shape', tuple(self.input_shape))
        object.__setattr__(self, 'class_names', tuple(self.class_names))

    @classmethod
    def from_settings(cls, settings):
        """
        Build the runtime configuration from the ``config`` module.

        Args:
            settings (module): Object exposing INFERENCE_BACKEND, INFERENCE_DEVICE,
                INFERENCE_THREADS and CLASS_NAMES

        Returns:
            RuntimeConfig
        """
        return cls(
            backend=settings.INFERENCE_BACKEND,
            device=settings.INFERENCE_DEVICE,
            num_threads=settings.INFERENCE_THREADS,
            class_names=tuple(settings.CLASS_NAMES),
        )
