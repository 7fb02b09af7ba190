"""
Tests for the pipeline orchestrator: state machine, progress reporting,
failure mapping and cancellation.
"""
from __future__ import annotations

import asyncio
import time

import numpy as np
import pytest

from core import (
    AssetTooSmall,
    ErrorKind,
    InferenceRuntimeError,
    ModelLoader,
    PipelineCancelled,
    PipelineFailed,
    PipelineOrchestrator,
    PipelineStage,
    PipelineState,
    RiskLevel,
    RuntimeConfig,
)

from conftest import CLASS_NAMES, FakeSession, encode_image, make_loader


def _orchestrator(session=None, **kwargs):
    loader, fetcher, factory = make_loader(session=session, **kwargs)
    return PipelineOrchestrator(loader, progress_interval=0.01), fetcher, factory


def test_benign_image_scenario(image_bytes):
    """500x300 image, model 92% benign -> low risk verdict."""
    session = FakeSession()
    orchestrator, _, _ = _orchestrator(session)
    updates = []

    verdict = asyncio.run(orchestrator.run(image_bytes, on_progress=updates.append))

    assert verdict.risk_level is RiskLevel.LOW
    assert verdict.confidence == 92.0
    assert verdict.predicted_class == "benign"
    assert len(session.calls) == 1
    assert session.calls[0].shape == (1, 3, 224, 224)
    assert updates == sorted(updates)
    assert updates[-1] == 100.0


def test_run_walks_through_every_state(image_bytes):
    orchestrator, _, _ = _orchestrator()

    async def scenario():
        run = orchestrator.start(image_bytes)
        assert run.state is PipelineState.IDLE
        verdict = await run.result()
        return run, verdict

    run, verdict = asyncio.run(scenario())

    assert run.history == [
        PipelineState.IDLE,
        PipelineState.LOADING,
        PipelineState.PREPROCESSING,
        PipelineState.INFERRING,
        PipelineState.POSTPROCESSING,
        PipelineState.DONE,
    ]
    assert run.state is PipelineState.DONE
    assert run.verdict is verdict
    assert run.failure is None
    assert run.progress == 100.0


def test_non_image_fails_before_inference():
    session = FakeSession()
    orchestrator, _, _ = _orchestrator(session)

    async def scenario():
        run = orchestrator.start(b"<html>not an image</html>")
        with pytest.raises(PipelineFailed) as exc_info:
            await run.result()
        return run, exc_info.value

    run, failure = asyncio.run(scenario())

    assert failure.stage is PipelineStage.PREPROCESSING
    assert failure.kind is ErrorKind.DECODE
    assert run.state is PipelineState.FAILED
    assert run.failure is failure
    assert run.verdict is None
    assert PipelineState.INFERRING not in run.history
    assert session.calls == []


def test_stub_asset_fails_in_loading(image_bytes):
    def too_small(source):
        raise AssetTooSmall("10 bytes", size=10, minimum=1024)

    orchestrator, fetcher, factory = _orchestrator(fetch_side_effect=too_small)

    with pytest.raises(PipelineFailed) as exc_info:
        asyncio.run(orchestrator.run(image_bytes))

    assert exc_info.value.stage is PipelineStage.LOADING
    assert exc_info.value.kind is ErrorKind.ASSET_TOO_SMALL
    factory.assert_not_called()


def test_inference_error_is_reported_with_stage(image_bytes):
    def explode(tensor):
        raise InferenceRuntimeError("engine crashed")

    orchestrator, _, _ = _orchestrator(FakeSession(run_hook=explode))

    with pytest.raises(PipelineFailed) as exc_info:
        asyncio.run(orchestrator.run(image_bytes))

    assert exc_info.value.stage is PipelineStage.INFERRING
    assert exc_info.value.kind is ErrorKind.INFERENCE_RUNTIME


def test_untyped_errors_are_wrapped(image_bytes):
    def explode(tensor):
        raise MemoryError("out of memory")

    orchestrator, _, _ = _orchestrator(FakeSession(run_hook=explode))

    with pytest.raises(PipelineFailed) as exc_info:
        asyncio.run(orchestrator.run(image_bytes))

    assert isinstance(exc_info.value.error, InferenceRuntimeError)
    assert isinstance(exc_info.value.error.__cause__, MemoryError)


def test_postprocessing_errors_are_reported(image_bytes):
    orchestrator, _, _ = _orchestrator(FakeSession(logits=[np.nan, 1.0]))

    with pytest.raises(PipelineFailed) as exc_info:
        asyncio.run(orchestrator.run(image_bytes))

    assert exc_info.value.stage is PipelineStage.POSTPROCESSING


def test_progress_ticks_while_inference_runs(image_bytes):
    orchestrator, _, _ = _orchestrator(FakeSession(run_hook=lambda _: time.sleep(0.2)))
    orchestrator.progress_step = 1.0
    updates = []

    async def scenario():
        verdict = await orchestrator.run(image_bytes, on_progress=updates.append)
        seen = list(updates)
        await asyncio.sleep(0.1)
        return verdict, seen

    _, seen = asyncio.run(scenario())

    assert updates == seen
    assert updates == sorted(updates)
    assert any(60.0 < value < 90.0 for value in updates)
    assert updates[-1] == 100.0


def test_cancel_stops_all_updates(image_bytes, release_event):
    orchestrator, _, _ = _orchestrator(FakeSession(run_hook=lambda _: release_event.wait(5)))
    updates = []

    async def scenario():
        run = orchestrator.start(image_bytes, on_progress=updates.append)
        while run.state is not PipelineState.INFERRING:
            await asyncio.sleep(0.005)
        await asyncio.sleep(0.05)
        run.cancel()
        seen = list(updates)
        release_event.set()
        with pytest.raises(PipelineCancelled):
            await run.result()
        await asyncio.sleep(0.1)
        return run, seen

    run, seen = asyncio.run(asyncio.wait_for(scenario(), timeout=10))

    assert updates == seen
    assert run.cancelled
    assert run.state is PipelineState.INFERRING
    assert run.verdict is None
    assert run.failure is None


def test_cancel_before_start_never_runs(image_bytes):
    session = FakeSession()
    orchestrator, fetcher, _ = _orchestrator(session)

    async def scenario():
        run = orchestrator.start(image_bytes)
        run.cancel()
        with pytest.raises(PipelineCancelled):
            await run.result()
        return run

    run = asyncio.run(scenario())

    assert run.history == [PipelineState.IDLE]
    assert session.calls == []
    fetcher.fetch.assert_not_called()


def test_cancel_after_done_is_a_no_op(image_bytes):
    orchestrator, _, _ = _orchestrator()

    async def scenario():
        run = orchestrator.start(image_bytes)
        verdict = await run.result()
        run.cancel()
        return run, verdict

    run, verdict = asyncio.run(scenario())

    assert not run.cancelled
    assert run.state is PipelineState.DONE
    assert run.verdict is verdict


def test_concurrent_runs_share_one_model_load(image_bytes):
    orchestrator, fetcher, factory = _orchestrator()

    async def scenario():
        return await asyncio.gather(*(orchestrator.run(image_bytes) for _ in range(4)))

    verdicts = asyncio.run(scenario())

    assert len(verdicts) == 4
    assert all(v == verdicts[0] for v in verdicts)
    assert fetcher.fetch.call_count == 1
    assert factory.call_count == 1


def test_repeated_runs_reuse_the_session(image_bytes):
    orchestrator, fetcher, _ = _orchestrator()

    asyncio.run(orchestrator.run(image_bytes))
    asyncio.run(orchestrator.run(image_bytes))

    assert fetcher.fetch.call_count == 1


def test_end_to_end_with_torchscript_model_is_reproducible(torchscript_asset):
    fetcher = type("Fetcher", (), {"fetch": lambda self, source: torchscript_asset})()
    loader = ModelLoader(
        "memory://tiny.pt",
        fetcher,
        RuntimeConfig(backend="torchscript", device="cpu", class_names=CLASS_NAMES),
    )
    orchestrator = PipelineOrchestrator(loader)
    image = encode_image(500, 300, (220, 180, 160))

    first = asyncio.run(orchestrator.run(image))
    second = asyncio.run(orchestrator.run(image))

    assert first == second
    assert first.to_dict() == second.to_dict()
    assert first.predicted_class == "benign"
    assert first.risk_level is RiskLevel.LOW
    loader.shutdown()
