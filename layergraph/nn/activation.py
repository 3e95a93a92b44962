# layergraph/nn/activation.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import torch

from layergraph.backend.ir import NodeDescriptor
from layergraph.core.tensor import Shape
from layergraph.errors import PreconditionError
from .base import Layer

ACTIVATION_KINDS = frozenset({
    "celu", "clamp", "elu", "gelu", "hard_shrink", "hard_sigmoid", "hard_swish",
    "leaky_relu", "linear", "log_sigmoid", "relu", "relun", "relu6", "selu",
    "sigmoid", "soft_plus", "soft_shrink", "soft_sign", "tanh", "tanh_shrink",
    "threshold",
})


def _args(**kwargs: Optional[float]) -> Tuple[Tuple[str, float], ...]:
    # unset optional parameters fall back to the backend default
    return tuple((k, float(v)) for k, v in kwargs.items() if v is not None)


@dataclass(frozen=True)
class ActivationType:
    """One named nonlinearity plus its parameters."""
    kind: str
    args: Tuple[Tuple[str, float], ...] = ()

    def __post_init__(self):
        if self.kind not in ACTIVATION_KINDS:
            raise PreconditionError(f"Unknown activation: {self.kind}")

    @classmethod
    def celu(cls, alpha: Optional[float] = None) -> "ActivationType":
        return cls("celu", _args(alpha=alpha))

    @classmethod
    def clamp(cls, min_value: float, max_value: float) -> "ActivationType":
        return cls("clamp", _args(min_value=min_value, max_value=max_value))

    @classmethod
    def elu(cls, alpha: Optional[float] = None) -> "ActivationType":
        return cls("elu", _args(alpha=alpha))

    @classmethod
    def gelu(cls) -> "ActivationType":
        return cls("gelu")

    @classmethod
    def hard_shrink(cls, lambd: Optional[float] = None) -> "ActivationType":
        return cls("hard_shrink", _args(lambd=lambd))

    @classmethod
    def hard_sigmoid(cls) -> "ActivationType":
        return cls("hard_sigmoid")

    @classmethod
    def hard_swish(cls) -> "ActivationType":
        return cls("hard_swish")

    @classmethod
    def leaky_relu(cls, negative_slope: Optional[float] = None) -> "ActivationType":
        return cls("leaky_relu", _args(negative_slope=negative_slope))

    @classmethod
    def linear(cls, scale: float, bias: float) -> "ActivationType":
        return cls("linear", _args(scale=scale, bias=bias))

    @classmethod
    def log_sigmoid(cls) -> "ActivationType":
        return cls("log_sigmoid")

    @classmethod
    def relu(cls) -> "ActivationType":
        return cls("relu")

    @classmethod
    def relun(cls, alpha: float, beta: float) -> "ActivationType":
        return cls("relun", _args(alpha=alpha, beta=beta))

    @classmethod
    def relu6(cls) -> "ActivationType":
        return cls("relu6")

    @classmethod
    def selu(cls) -> "ActivationType":
        return cls("selu")

    @classmethod
    def sigmoid(cls) -> "ActivationType":
        return cls("sigmoid")

    @classmethod
    def soft_plus(cls, beta: Optional[float] = None) -> "ActivationType":
        return cls("soft_plus", _args(beta=beta))

    @classmethod
    def soft_shrink(cls, lambd: Optional[float] = None) -> "ActivationType":
        return cls("soft_shrink", _args(lambd=lambd))

    @classmethod
    def soft_sign(cls) -> "ActivationType":
        return cls("soft_sign")

    @classmethod
    def tanh(cls) -> "ActivationType":
        return cls("tanh")

    @classmethod
    def tanh_shrink(cls) -> "ActivationType":
        return cls("tanh_shrink")

    @classmethod
    def threshold(cls, value: float, replacement: float) -> "ActivationType":
        return cls("threshold", _args(threshold=value, value=replacement))


class ActivationLayer(Layer):
    def __init__(self, activation_type: ActivationType):
        super().__init__()
        self.activation_type = activation_type

    def _output_shape(self, input_shape: Shape) -> Shape:
        return input_shape

    def _describe(self, input_shape: Shape, output_shape: Shape,
                  internal_device: torch.device) -> NodeDescriptor:
        return self._descriptor(
            "activation", input_shape, output_shape,
            attrs={"kind": self.activation_type.kind, "args": dict(self.activation_type.args)},
        )
