"""
Pipeline Errors

Closed set of error kinds raised by the inference pipeline, so callers can
tell retryable transport problems apart from fatal model/data problems.
"""
from enum import Enum


class ErrorKind(str, Enum):
    """Every failure the pipeline can surface."""

    ASSET_UNREACHABLE = 'asset_unreachable'
    ASSET_TOO_SMALL = 'asset_too_small'
    MODEL_LOAD = 'model_load'
    DECODE = 'decode'
    SHAPE_MISMATCH = 'shape_mismatch'
    INFERENCE_RUNTIME = 'inference_runtime'


class PipelineError(Exception):
    """Base class for typed pipeline errors."""

    kind = None
    retryable = False


class AssetUnreachable(PipelineError):
    """Model asset could not be probed or downloaded."""

    kind = ErrorKind.ASSET_UNREACHABLE
    retryable = True


class AssetTooSmall(PipelineError):
    """Model asset is smaller than the integrity threshold."""

    kind = ErrorKind.ASSET_TOO_SMALL
    retryable = True

    def __init__(self, message, size=None, minimum=None):
        super().__init__(message)
        self.size = size
        self.minimum = minimum


class ModelLoadError(PipelineError):
    """Model bytes are corrupt or incompatible with the runtime."""

    kind = ErrorKind.MODEL_LOAD


class DecodeError(PipelineError):
    """Input image is corrupt or in an unsupported format."""

    kind = ErrorKind.DECODE


class ShapeMismatchError(PipelineError):
    """Tensor shape does not match the model contract."""

    kind = ErrorKind.SHAPE_MISMATCH


class InferenceRuntimeError(PipelineError):
    """Numeric engine failed while running the model."""

    kind = ErrorKind.INFERENCE_RUNTIME


class PipelineFailed(Exception):
    """
    Terminal failure of a pipeline run.

    Attributes:
        stage (PipelineStage): Stage that was running when the error occurred
        error (PipelineError): Underlying typed error
    """

    def __init__(self, stage, error):
        super().__init__(f'{stage.value} failed: {error}')
        self.stage = stage
        self.error = error

    @property
    def kind(self):
        return self.error.kind


class PipelineCancelled(Exception):
    """Raised to a caller that abandoned a run before it finished."""
