"""
Inference Session for Skin Lesion Classification

Wraps a frozen classifier (ONNX or TorchScript) behind a pure
``run(tensor) -> logits`` contract. Construction parses the model graph and
validates it with a warm-up pass; it is expensive and happens once per process.
"""
import io
import logging
import time

import numpy as np
import onnxruntime as ort
import torch

from .errors import InferenceRuntimeError, ModelLoadError, ShapeMismatchError

logger = logging.getLogger(__name__)

# TorchScript archives are zip files
_ZIP_MAGIC = b'PK\x03\x04'


def resolve_backend(data, backend):
    """Pick the execution backend for a model payload."""
    if backend != 'auto':
        return backend
    return 'torchscript' if data[:4] == _ZIP_MAGIC else 'onnx'


class _TorchScriptModel:
    """Runs a TorchScript module."""

    def __init__(self, data, config):
        if config.device == 'cuda' and not torch.cuda.is_available():
            raise ModelLoadError('CUDA device requested but not available')

        try:
            torch.set_num_threads(config.num_threads)
            module = torch.jit.load(io.BytesIO(data), map_location=config.device)
        except Exception as e:
            raise ModelLoadError(f'Failed to load TorchScript model: {str(e)}') from e

        module.eval()
        self.module = module
        self.device = torch.device(config.device)

    def __call__(self, tensor):
        with torch.inference_mode():
            output = self.module(torch.from_numpy(tensor).to(self.device))
        if isinstance(output, (tuple, list)):
            output = output[0]
        return output.detach().float().cpu().numpy()


class _OnnxModel:
    """Runs an ONNX graph through onnxruntime."""

    def __init__(self, data, config):
        providers = ['CPUExecutionProvider']
        if config.device == 'cuda':
            if 'CUDAExecutionProvider' not in ort.get_available_providers():
                raise ModelLoadError('CUDAExecutionProvider requested but not available')
            providers.insert(0, 'CUDAExecutionProvider')

        options = ort.SessionOptions()
        options.intra_op_num_threads = config.num_threads
        options.inter_op_num_threads = 1
        options.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL

        try:
            session = ort.InferenceSession(data, sess_options=options, providers=providers)
        except Exception as e:
            raise ModelLoadError(f'Failed to load ONNX model: {str(e)}') from e

        model_input = session.get_inputs()[0]
        declared = model_input.shape
        if len(declared) != len(config.input_shape) or any(
            isinstance(dim, int) and dim != expected
            for dim, expected in zip(declared, config.input_shape)
        ):
            raise ModelLoadError(
                f'Model input {model_input.name} has shape {declared}, '
                f'expected {list(config.input_shape)}'
            )

        self.session = session
        self.input_name = model_input.name

    def __call__(self, tensor):
        return self.session.run(None, {self.input_name: tensor})[0]


_BACKENDS = {
    'onnx': _OnnxModel,
    'torchscript': _TorchScriptModel,
}


class InferenceSession:
    """
    Loaded classifier with a fixed input shape and ordered class names.

    Attributes:
        backend (str): 'onnx' or 'torchscript'
        device (str): Device the model runs on
        input_shape (tuple): Shape every input tensor must have
        class_names (tuple): Output class order
    """

    def __init__(self, model, backend, config):
        self._model = model
        self.backend = backend
        self.device = config.device
        self.input_shape = config.input_shape
        self.class_names = config.class_names

    @classmethod
    def create(cls, asset, config):
        """
        Parse a model asset and validate it against the runtime contract.

        Args:
            asset (ModelAsset): Verified model bytes
            config (RuntimeConfig): Backend, device and I/O contract

        Returns:
            InferenceSession

        Raises:
            ModelLoadError: Corrupt bytes, unsupported device, or a graph that
                does not produce one score per class
        """
        start_time = time.time()
        backend = resolve_backend(asset.data, config.backend)
        model = _BACKENDS[backend](asset.data, config)
        session = cls(model, backend, config)

        # Warm-up pass proves the graph accepts the input contract
        try:
            session.run(np.zeros(config.input_shape, dtype=np.float32))
        except (InferenceRuntimeError, ShapeMismatchError) as e:
            raise ModelLoadError(f'Model failed validation: {str(e)}') from e

        load_time = (time.time() - start_time) * 1000
        logger.info('✓ Model loaded successfully (%s, %.0f ms)', backend, load_time)
        logger.info('✓ Device: %s', config.device)
        logger.info('✓ Classes: %s', ', '.join(config.class_names))
        return session

    def run(self, tensor):
        """
        Run model inference on a preprocessed tensor.

        Args:
            tensor (np.ndarray): float32 array of ``input_shape``

        Returns:
            np.ndarray: 1-D float32 logits, one per class

        Raises:
            ShapeMismatchError: Tensor shape differs from ``input_shape``
            InferenceRuntimeError: The engine failed or returned the wrong width
        """
        tensor = np.asarray(tensor)
        if tensor.shape != self.input_shape:
            raise ShapeMismatchError(
                f'Input tensor has shape {tensor.shape}, model expects {self.input_shape}'
            )
        tensor = np.ascontiguousarray(tensor, dtype=np.float32)

        try:
            output = self._model(tensor)
        except Exception as e:
            raise InferenceRuntimeError(f'Model inference failed: {str(e)}') from e

        logits = np.asarray(output, dtype=np.float32).reshape(-1)
        if logits.size != len(self.class_names):
            raise InferenceRuntimeError(
                f'Model returned {logits.size} scores for {len(self.class_names)} classes'
            )
        return logits
