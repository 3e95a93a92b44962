# layergraph/nn/lstm.py
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import torch

from layergraph.backend.devices import TrainingComputeDevice
from layergraph.backend.ir import NodeDescriptor
from layergraph.core.tensor import Shape
from layergraph.errors import PreconditionError
from .base import ParametricLayer, WeightsLayout, uniform_parameter, zero_parameter

GATE_COUNT = 4  # input, forget, cell, output


class LSTMLayer(ParametricLayer):
    """
    Stacked, batch-first LSTM running along the secondary axis.

    Parameters come in three groups of GATE_COUNT * layer_count tensors each,
    index 4*l + k for gate k of internal layer l:
      input_weights  (IN, H) for l == 0, (H, H) above
      hidden_weights (H, H)
      biases         (H,)
    Output is (H, T, B) with returns_sequences, else (H, 1, B) holding the last step.
    The secondary axis collapses to 1 in the second case so the declared output
    shape always matches the data the kernel produces; downstream layers and
    targets size themselves against one step, not T.
    """

    def __init__(self, hidden_size: int, layer_count: int = 1, returns_sequences: bool = False):
        super().__init__()
        if int(hidden_size) <= 0:
            raise PreconditionError(f"Invalid hidden size: {hidden_size}")
        if int(layer_count) <= 0:
            raise PreconditionError(f"Invalid layer count: {layer_count}")
        self.hidden_size = int(hidden_size)
        self.layer_count = int(layer_count)
        self.returns_sequences = bool(returns_sequences)
        self._input_weights: Optional[List[torch.Tensor]] = None
        self._hidden_weights: Optional[List[torch.Tensor]] = None
        self._biases: Optional[List[torch.Tensor]] = None

    @property
    def _per_group(self) -> int:
        return GATE_COUNT * self.layer_count

    def weights_layout(self) -> WeightsLayout:
        n = self._per_group
        return WeightsLayout((("input_weights", n), ("hidden_weights", n), ("biases", n)))

    def _get_groups(self) -> Dict[str, Optional[List[torch.Tensor]]]:
        return {
            "input_weights": self._input_weights,
            "hidden_weights": self._hidden_weights,
            "biases": self._biases,
        }

    def _set_groups(self, groups: Dict[str, List[torch.Tensor]]) -> None:
        self._input_weights = list(groups["input_weights"])
        self._hidden_weights = list(groups["hidden_weights"])
        self._biases = list(groups["biases"])

    def _input_weight_shapes(self, input_size: int) -> List[Tuple[int, ...]]:
        H = self.hidden_size
        return [((input_size if i < GATE_COUNT else H), H) for i in range(self._per_group)]

    def _output_shape(self, input_shape: Shape) -> Shape:
        steps = input_shape.secondary_axis if self.returns_sequences else 1
        return Shape(self.hidden_size, steps, input_shape.batch_size)

    def _describe(self, input_shape: Shape, output_shape: Shape,
                  internal_device: torch.device) -> NodeDescriptor:
        H = self.hidden_size
        in_shapes = self._input_weight_shapes(input_shape.primary_axis)
        h_shapes = [(H, H)] * self._per_group
        b_shapes = [(H,)] * self._per_group

        if self._input_weights is None:
            self._input_weights = [uniform_parameter(s, internal_device) for s in in_shapes]
        if self._hidden_weights is None:
            self._hidden_weights = [uniform_parameter(s, internal_device) for s in h_shapes]
        if self._biases is None:
            self._biases = [zero_parameter(s, internal_device) for s in b_shapes]
        self._input_weights = self._on_device(self._input_weights, internal_device)
        self._hidden_weights = self._on_device(self._hidden_weights, internal_device)
        self._biases = self._on_device(self._biases, internal_device)
        self._check_group("input_weights", self._input_weights, in_shapes)
        self._check_group("hidden_weights", self._hidden_weights, h_shapes)
        self._check_group("biases", self._biases, b_shapes)

        return self._descriptor(
            "lstm", input_shape, output_shape,
            attrs={
                "input_size": input_shape.primary_axis,
                "hidden_size": H,
                "layer_count": self.layer_count,
                "returns_sequences": self.returns_sequences,
                "batch_first": True,
            },
            params={
                "input_weights": list(self._input_weights),
                "hidden_weights": list(self._hidden_weights),
                "biases": list(self._biases),
            },
        )

    def check_training_compatibility(self, device: TrainingComputeDevice) -> bool:
        # trained recurrent weights can't be read back reliably from GPU memory
        return device != TrainingComputeDevice.GPU
