# layergraph/errors.py
from __future__ import annotations

from typing import Optional


class LayerGraphError(Exception):
    """Base class for every error raised by layergraph."""


class PreconditionError(LayerGraphError, ValueError):
    """Caller-supplied shapes, counts or tensors violate an invariant."""


class LayerNotConfiguredError(LayerGraphError, RuntimeError):
    """A layer's shapes or backend node were read before configure()."""

    def __init__(self, layer_name: str, attr: str):
        self.layer_name = layer_name
        self.attr = attr
        super().__init__(f"[layer] {layer_name}.{attr} is only available after configure()")


# ---------------- devices ----------------

class DeviceError(LayerGraphError):
    """A requested compute device is unavailable."""

    def __init__(self, device_kind: str, message: Optional[str] = None):
        self.device_kind = device_kind
        if message is None:
            message = f"[device] no {device_kind} detected"
        super().__init__(message)


class NoGPUDetectedError(DeviceError):
    def __init__(self, message: Optional[str] = None):
        super().__init__("gpu", message)


class NoANEDetectedError(DeviceError):
    def __init__(self, message: Optional[str] = None):
        super().__init__("ane", message)


# ---------------- training ----------------

class TrainingError(LayerGraphError):
    """Training was rejected before any state change."""


class TrainingIncompatibleError(TrainingError):
    def __init__(self, layer_name: str, device: str):
        self.layer_name = layer_name
        self.device = device
        super().__init__(f"[train] {layer_name} can't be trained on {device}")


class AlreadyTrainedError(TrainingError):
    def __init__(self):
        super().__init__("[train] this graph has already been trained")


# ---------------- inference ----------------

class InferenceError(LayerGraphError):
    """Inference was rejected before any state change."""


class InferenceIncompatibleError(InferenceError):
    def __init__(self, layer_name: str, device: str):
        self.layer_name = layer_name
        self.device = device
        super().__init__(f"[infer] {layer_name} can't run inference on {device}")


class UntrainedGraphWarning(UserWarning):
    """Inference ran with self-initialized parameters."""
