# layergraph/nn/fully_connected.py
from __future__ import annotations

from typing import Dict, List, Optional

import torch

from layergraph.backend.ir import NodeDescriptor
from layergraph.core.tensor import Shape
from layergraph.errors import PreconditionError
from .base import ParametricLayer, WeightsLayout, uniform_parameter, zero_parameter

_LAYOUT = WeightsLayout((("weights", 1), ("biases", 1)))


class FullyConnectedLayer(ParametricLayer):
    """
    Dense layer over the primary axis.
    weights: (input primary axis, output_size) uniform in [-1, 1]; biases: (output_size,) zeros.
    """

    def __init__(self, output_size: int):
        super().__init__()
        if int(output_size) <= 0:
            raise PreconditionError(f"Invalid output size: {output_size}")
        self.output_size = int(output_size)
        self._weights: Optional[torch.Tensor] = None
        self._biases: Optional[torch.Tensor] = None

    def weights_layout(self) -> WeightsLayout:
        return _LAYOUT

    def _get_groups(self) -> Dict[str, Optional[List[torch.Tensor]]]:
        return {
            "weights": None if self._weights is None else [self._weights],
            "biases": None if self._biases is None else [self._biases],
        }

    def _set_groups(self, groups: Dict[str, List[torch.Tensor]]) -> None:
        (self._weights,) = groups["weights"]
        (self._biases,) = groups["biases"]

    def _output_shape(self, input_shape: Shape) -> Shape:
        return Shape(self.output_size, input_shape.secondary_axis, input_shape.batch_size)

    def _describe(self, input_shape: Shape, output_shape: Shape,
                  internal_device: torch.device) -> NodeDescriptor:
        w_shape = (input_shape.primary_axis, self.output_size)
        b_shape = (self.output_size,)
        if self._weights is None:
            self._weights = uniform_parameter(w_shape, internal_device)
        if self._biases is None:
            self._biases = zero_parameter(b_shape, internal_device)
        (self._weights,) = self._on_device([self._weights], internal_device)
        (self._biases,) = self._on_device([self._biases], internal_device)
        self._check_group("weights", [self._weights], [w_shape])
        self._check_group("biases", [self._biases], [b_shape])

        return self._descriptor(
            "fully_connected", input_shape, output_shape,
            attrs={"in_features": input_shape.primary_axis, "out_features": self.output_size},
            params={"weights": self._weights, "biases": self._biases},
        )
