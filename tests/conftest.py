# tests/conftest.py
from __future__ import annotations

import pytest
import torch

from layergraph.backend import set_backend
from layergraph.config import GraphConfig


@pytest.fixture(autouse=True)
def _fresh_backend():
    torch.manual_seed(0)
    set_backend(None)
    yield
    set_backend(None)


@pytest.fixture
def quiet_config() -> GraphConfig:
    return GraphConfig(debug_layers=False, print_loss=False, print_progress=False)


@pytest.fixture
def cpu() -> torch.device:
    return torch.device("cpu")
