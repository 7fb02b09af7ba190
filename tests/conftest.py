"""
Shared fixtures: synthetic images, a tiny deterministic TorchScript
classifier and stand-ins for the model session.
"""
from __future__ import annotations

import io
import math
import threading
from unittest.mock import MagicMock

import numpy as np
import pytest
import torch
from PIL import Image
from torch import nn

from core import ModelAsset, ModelLoader, RuntimeConfig

CLASS_NAMES = ("benign", "malignant")

# Logits whose softmax gives exactly 92% benign
BENIGN_92_LOGITS = [math.log(0.92 / 0.08), 0.0]


def encode_image(width, height, color=(200, 150, 100), mode="RGB", fmt="PNG") -> bytes:
    """Encode a uniform image of the given size."""
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def encode_array(array: np.ndarray, fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format=fmt)
    return buffer.getvalue()


class TinyClassifier(nn.Module):
    """Global average pool followed by a fixed linear layer."""

    def __init__(self, num_classes=2):
        super().__init__()
        self.pool = nn.AdaptiveAvgPool2d(1)
        self.fc = nn.Linear(3, num_classes)
        weight = torch.tensor([[1.0, 0.5, 0.2], [-1.0, -0.5, -0.2], [0.3, 0.3, 0.3]])
        with torch.no_grad():
            self.fc.weight.copy_(weight[:num_classes])
            self.fc.bias.zero_()

    def forward(self, x):
        return self.fc(torch.flatten(self.pool(x), 1))


def torchscript_bytes(num_classes=2) -> bytes:
    model = TinyClassifier(num_classes).eval()
    traced = torch.jit.trace(model, torch.zeros(1, 3, 224, 224))
    buffer = io.BytesIO()
    torch.jit.save(traced, buffer)
    return buffer.getvalue()


class FakeSession:
    """Session returning fixed logits and recording calls."""

    input_shape = (1, 3, 224, 224)
    device = "cpu"
    backend = "fake"

    def __init__(self, logits=None, class_names=CLASS_NAMES, run_hook=None):
        self.logits = np.asarray(logits if logits is not None else BENIGN_92_LOGITS, dtype=np.float32)
        self.class_names = tuple(class_names)
        self.run_hook = run_hook
        self.calls = []

    def run(self, tensor):
        self.calls.append(tensor)
        if self.run_hook is not None:
            self.run_hook(tensor)
        return self.logits


def make_loader(session=None, fetch_side_effect=None, fetch_delay=None):
    """ModelLoader over a mocked fetcher and a fixed session factory."""
    fetcher = MagicMock()
    asset = ModelAsset(data=b"model-bytes", min_size=0, source="memory://model")

    def fetch(source):
        if fetch_delay is not None:
            fetch_delay.wait(5)
        if fetch_side_effect is not None:
            return fetch_side_effect(source)
        return asset

    fetcher.fetch.side_effect = fetch
    factory = MagicMock(return_value=session or FakeSession())
    loader = ModelLoader(
        "memory://model",
        fetcher,
        RuntimeConfig(backend="torchscript", device="cpu", class_names=CLASS_NAMES),
        session_factory=factory,
    )
    return loader, fetcher, factory


@pytest.fixture
def image_bytes():
    """500x300 uniform PNG."""
    return encode_image(500, 300)


@pytest.fixture
def cpu_config():
    return RuntimeConfig(backend="auto", device="cpu", class_names=CLASS_NAMES)


@pytest.fixture(scope="session")
def torchscript_model_bytes():
    return torchscript_bytes()


@pytest.fixture
def torchscript_asset(torchscript_model_bytes):
    return ModelAsset(data=torchscript_model_bytes, min_size=0, source="memory://tiny.pt")


@pytest.fixture
def release_event():
    event = threading.Event()
    yield event
    event.set()
