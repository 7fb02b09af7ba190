"""
Core ML/AI Components

Contains model fetching, session management and the inference pipeline for
skin lesion risk screening.
"""
from .asset_fetcher import AssetFetcher, ModelAsset
from .errors import (
    AssetTooSmall,
    AssetUnreachable,
    DecodeError,
    ErrorKind,
    InferenceRuntimeError,
    ModelLoadError,
    PipelineCancelled,
    PipelineError,
    PipelineFailed,
    ShapeMismatchError,
)
from .inference import InferenceSession
from .model_loader import ModelLoader
from .pipeline import PipelineOrchestrator, PipelineRun, PipelineStage, PipelineState
from .postprocessing import Postprocessor, RiskLevel, Verdict, softmax
from .preprocessing import ImagePreprocessor
from .runtime import RuntimeConfig

__all__ = [
    'AssetFetcher',
    'ModelAsset',
    'ErrorKind',
    'PipelineError',
    'AssetUnreachable',
    'AssetTooSmall',
    'ModelLoadError',
    'DecodeError',
    'ShapeMismatchError',
    'InferenceRuntimeError',
    'PipelineFailed',
    'PipelineCancelled',
    'InferenceSession',
    'ModelLoader',
    'PipelineOrchestrator',
    'PipelineRun',
    'PipelineStage',
    'PipelineState',
    'Postprocessor',
    'RiskLevel',
    'Verdict',
    'softmax',
    'ImagePreprocessor',
    'RuntimeConfig',
]
