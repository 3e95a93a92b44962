# layergraph/__init__.py
from __future__ import annotations

from .backend import InferenceComputeDevice, TrainingComputeDevice, get_backend, set_backend
from .config import GraphConfig, LossConfig, OptimizerConfig
from .core import Shape, Tensor, autobatch
from .data import TrainingData
from .errors import (
    AlreadyTrainedError,
    DeviceError,
    InferenceError,
    InferenceIncompatibleError,
    LayerGraphError,
    LayerNotConfiguredError,
    NoANEDetectedError,
    NoGPUDetectedError,
    PreconditionError,
    TrainingError,
    TrainingIncompatibleError,
    UntrainedGraphWarning,
)
from .fw import Graph, WeightsContainer
from .nn import (
    ActivationLayer,
    ActivationType,
    FullyConnectedLayer,
    Layer,
    LSTMLayer,
    ReshapeLayer,
    SoftmaxLayer,
)

__version__ = "0.1.0"

__all__ = [
    "InferenceComputeDevice",
    "TrainingComputeDevice",
    "get_backend",
    "set_backend",
    "GraphConfig",
    "LossConfig",
    "OptimizerConfig",
    "Shape",
    "Tensor",
    "autobatch",
    "TrainingData",
    "AlreadyTrainedError",
    "DeviceError",
    "InferenceError",
    "InferenceIncompatibleError",
    "LayerGraphError",
    "LayerNotConfiguredError",
    "NoANEDetectedError",
    "NoGPUDetectedError",
    "PreconditionError",
    "TrainingError",
    "TrainingIncompatibleError",
    "UntrainedGraphWarning",
    "Graph",
    "WeightsContainer",
    "ActivationLayer",
    "ActivationType",
    "FullyConnectedLayer",
    "Layer",
    "LSTMLayer",
    "ReshapeLayer",
    "SoftmaxLayer",
]
