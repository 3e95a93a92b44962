# layergraph/backend/__init__.py
from __future__ import annotations
from typing import Optional

from .base import Backend
from .devices import ComputeDevice, InferenceComputeDevice, TrainingComputeDevice
from .ir import IRGraph, IRNode, IRValue, NodeDescriptor

_BACKEND: Optional[Backend] = None


def set_backend(b: Optional[Backend]) -> None:
    global _BACKEND
    _BACKEND = b


def get_backend() -> Backend:
    global _BACKEND
    if _BACKEND is None:
        from .torch_backend import TorchBackend  # lazy import
        _BACKEND = TorchBackend()
    return _BACKEND


__all__ = [
    "Backend",
    "ComputeDevice",
    "InferenceComputeDevice",
    "TrainingComputeDevice",
    "IRGraph",
    "IRNode",
    "IRValue",
    "NodeDescriptor",
    "get_backend",
    "set_backend",
]
