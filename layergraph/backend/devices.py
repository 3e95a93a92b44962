# layergraph/backend/devices.py
from __future__ import annotations

from enum import Enum

import torch

from layergraph.errors import NoANEDetectedError, NoGPUDetectedError


def _mps_available() -> bool:
    mps = getattr(torch.backends, "mps", None)
    return mps is not None and mps.is_available()


def _select_gpu() -> torch.device:
    if torch.cuda.is_available():
        return torch.device("cuda")
    if _mps_available():
        return torch.device("mps")
    raise NoGPUDetectedError()


class ComputeDevice(Enum):
    """Base for the device enums; select() maps a kind onto a backend device."""

    def select(self) -> torch.device:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.value


class TrainingComputeDevice(ComputeDevice):
    CPU = "cpu"
    GPU = "gpu"

    def select(self) -> torch.device:
        if self is TrainingComputeDevice.CPU:
            return torch.device("cpu")
        return _select_gpu()


class InferenceComputeDevice(ComputeDevice):
    CPU = "cpu"
    GPU = "gpu"
    # no torch device exposes the neural engine directly
    ANE = "ane"

    def select(self) -> torch.device:
        if self is InferenceComputeDevice.CPU:
            return torch.device("cpu")
        if self is InferenceComputeDevice.GPU:
            return _select_gpu()
        raise NoANEDetectedError()
