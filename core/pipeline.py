"""
Diagnosis Pipeline Orchestrator

Sequences the pipeline stages for one image:

    idle -> loading -> preprocessing -> inferring -> postprocessing -> done
                                                          (any stage) -> failed

CPU-bound stages run in worker threads so the event loop stays responsive;
an estimated progress value is reported while they run.
"""
import asyncio
import logging
import time
from enum import Enum

from .errors import (
    DecodeError,
    InferenceRuntimeError,
    ModelLoadError,
    PipelineCancelled,
    PipelineError,
    PipelineFailed,
)
from .postprocessing import Postprocessor
from .preprocessing import ImagePreprocessor
from .progress import ProgressSlot, ProgressTicker

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    LOADING = 'loading'
    PREPROCESSING = 'preprocessing'
    INFERRING = 'inferring'
    POSTPROCESSING = 'postprocessing'


class PipelineState(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    PREPROCESSING = 'preprocessing'
    INFERRING = 'inferring'
    POSTPROCESSING = 'postprocessing'
    DONE = 'done'
    FAILED = 'failed'


TERMINAL_STATES = frozenset({PipelineState.DONE, PipelineState.FAILED})

# Progress floor published when a stage starts
STAGE_PROGRESS = {
    PipelineStage.LOADING: 5.0,
    PipelineStage.PREPROCESSING: 30.0,
    PipelineStage.INFERRING: 60.0,
    PipelineStage.POSTPROCESSING: 90.0,
}

# Error kind used when a stage raises something untyped
STAGE_ERRORS = {
    PipelineStage.LOADING: ModelLoadError,
    PipelineStage.PREPROCESSING: DecodeError,
    PipelineStage.INFERRING: InferenceRuntimeError,
    PipelineStage.POSTPROCESSING: InferenceRuntimeError,
}


class PipelineRun:
    """
    Observable state of a single pipeline invocation.

    Attributes:
        state (PipelineState): Current state
        stage (PipelineStage): Last stage entered, None while idle
        verdict (Verdict): Set once the run is done
        failure (PipelineFailed): Set once the run has failed
        cancelled (bool): Whether the caller abandoned the run
    """

    def __init__(self, on_progress=None):
        self.state = PipelineState.IDLE
        self.stage = None
        self.verdict = None
        self.failure = None
        self.cancelled = False
        self.history = [PipelineState.IDLE]
        self._cancel_requested = False
        self._slot = ProgressSlot(on_progress)
        self._owner = self._slot.claim()
        self._task = None

    @property
    def progress(self):
        return self._slot.value

    @property
    def finished(self):
        return self.state in TERMINAL_STATES

    def cancel(self):
        """
        Abandon the run.

        No progress, state change or result is delivered afterwards.
        """
        if self.finished or self.cancelled:
            return
        self._cancel_requested = True
        self._abandon()
        if self._task is not None:
            self._task.cancel()

    async def result(self):
        """
        Wait for the run's verdict.

        Raises:
            PipelineFailed: A stage failed
            PipelineCancelled: The run was abandoned through ``cancel()``
        """
        if self._task is None:
            raise RuntimeError('Run has not been started')
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._cancel_requested:
                raise PipelineCancelled('Pipeline run was cancelled') from None
            raise

    def _abandon(self):
        self.cancelled = True
        self._slot.close()

    def _transition(self, state):
        if self.cancelled:
            return False
        if self.finished:
            raise RuntimeError(f'Run already finished in state {self.state.value}')
        self.state = state
        self.history.append(state)
        return True

    def _enter(self, stage):
        if self._transition(PipelineState(stage.value)):
            self.stage = stage
            self._slot.publish(self._owner, STAGE_PROGRESS[stage])

    def _finish(self, verdict):
        if self._transition(PipelineState.DONE):
            self.verdict = verdict
            self._slot.publish(self._owner, 100.0)
        self._slot.close()

    def _fail(self, failure):
        if self._transition(PipelineState.FAILED):
            self.failure = failure
        self._slot.close()


class PipelineOrchestrator:
    """
    Runs image -> tensor -> logits -> verdict.

    The model loader is injected and exclusively owned; it guarantees the
    session is fetched and parsed at most once.
    """

    def __init__(self, model_loader, preprocessor=None, postprocessor=None,
                 progress_interval=0.2, progress_step=3.0):
        """
        Initialize PipelineOrchestrator.

        Args:
            model_loader (ModelLoader): Owner of the inference session
            preprocessor (ImagePreprocessor): Image -> tensor
            postprocessor (Postprocessor): Logits -> verdict
            progress_interval (float): Seconds between estimated progress ticks
            progress_step (float): Progress added per tick
        """
        self.model_loader = model_loader
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.postprocessor = postprocessor or Postprocessor()
        self.progress_interval = progress_interval
        self.progress_step = progress_step

    def start(self, image_bytes, on_progress=None) -> PipelineRun:
        """
        Schedule a run on the current event loop.

        Args:
            image_bytes (bytes): Encoded user image
            on_progress (callable): Receives progress percentages, non-decreasing

        Returns:
            PipelineRun: Handle exposing state, progress, ``cancel()`` and ``result()``
        """
        run = PipelineRun(on_progress)
        run._task = asyncio.ensure_future(self._execute(run, image_bytes))
        return run

    async def run(self, image_bytes, on_progress=None):
        """
        Run the pipeline and return its verdict.

        Raises:
            PipelineFailed: Carries the failing stage and the typed error
            PipelineCancelled: The run was cancelled
        """
        return await self.start(image_bytes, on_progress).result()

    async def _execute(self, run, image_bytes):
        start_time = time.time()
        ticker = ProgressTicker(
            run._slot, run._owner,
            interval=self.progress_interval, step=self.progress_step,
        ).start()

        try:
            run._enter(PipelineStage.LOADING)
            session = await self.model_loader.load_async()

            run._enter(PipelineStage.PREPROCESSING)
            tensor = await asyncio.to_thread(self.preprocessor.process, image_bytes)

            run._enter(PipelineStage.INFERRING)
            logits = await asyncio.to_thread(session.run, tensor)

            run._enter(PipelineStage.POSTPROCESSING)
            verdict = self.postprocessor.classify(logits, session.class_names)
        except asyncio.CancelledError:
            ticker.stop()
            run._abandon()
            logger.info('Pipeline run cancelled during %s', run.state.value)
            raise
        except Exception as e:
            ticker.stop()
            stage = run.stage or PipelineStage.LOADING
            failure = PipelineFailed(stage, self._as_pipeline_error(stage, e))
            run._fail(failure)
            logger.warning('Pipeline failed at %s: %s', stage.value, failure.error)
            raise failure from e

        ticker.stop()
        run._finish(verdict)
        logger.info(
            'Pipeline done in %.0f ms: %s (%.2f%%, %s risk)',
            (time.time() - start_time) * 1000,
            verdict.predicted_class, verdict.confidence, verdict.risk_level.value,
        )
        return verdict

    @staticmethod
    def _as_pipeline_error(stage, error):
        if isinstance(error, PipelineError):
            return error
        wrapped = STAGE_ERRORS[stage](f'{type(error).__name__}: {error}')
        wrapped.__cause__ = error
        return wrapped
