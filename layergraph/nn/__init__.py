from .base import Layer, LayerBinding, ParametricLayer, WeightsLayout
from .activation import ACTIVATION_KINDS, ActivationLayer, ActivationType
from .softmax import SoftmaxLayer
from .reshape import ReshapeLayer
from .fully_connected import FullyConnectedLayer
from .lstm import GATE_COUNT, LSTMLayer

__all__ = [
    "Layer",
    "LayerBinding",
    "ParametricLayer",
    "WeightsLayout",
    "ACTIVATION_KINDS",
    "ActivationLayer",
    "ActivationType",
    "SoftmaxLayer",
    "ReshapeLayer",
    "FullyConnectedLayer",
    "GATE_COUNT",
    "LSTMLayer",
]
