# layergraph/nn/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple

import torch

from layergraph.backend.devices import InferenceComputeDevice, TrainingComputeDevice
from layergraph.backend.ir import NodeDescriptor
from layergraph.core.tensor import Shape, Tensor, internal_tensors
from layergraph.errors import LayerNotConfiguredError, PreconditionError

if TYPE_CHECKING:
    from layergraph.fw.weights import WeightsContainer


@dataclass(frozen=True)
class LayerBinding:
    """Everything configure() produces. A layer without one is unconfigured."""
    input_shape: Shape
    output_shape: Shape
    internal_layer: NodeDescriptor


class Layer:
    """
    Shape-transforming unit of a Graph.

    Lifecycle per session: (load_weights) -> configure -> execution by the Graph.
    Subclasses implement _output_shape() and _describe(); configure() itself is
    shared so the binding is only ever written in one place.
    """

    def __init__(self) -> None:
        self._binding: Optional[LayerBinding] = None

    @property
    def name(self) -> str:
        return type(self).__name__

    # ----- configured state -----
    @property
    def is_configured(self) -> bool:
        return self._binding is not None

    def _bound(self, attr: str) -> LayerBinding:
        if self._binding is None:
            raise LayerNotConfiguredError(self.name, attr)
        return self._binding

    @property
    def input_shape(self) -> Shape:
        return self._bound("input_shape").input_shape

    @property
    def output_shape(self) -> Shape:
        return self._bound("output_shape").output_shape

    @property
    def internal_layer(self) -> NodeDescriptor:
        return self._bound("internal_layer").internal_layer

    # ----- configuration -----
    def configure(self, input_shape: Shape, internal_device: torch.device) -> None:
        """
        Bind to `input_shape` on `internal_device`: record the output shape,
        materialize parameters if they are still unset, and build the backend
        node descriptor. Runs once per train/infer session, before execution.
        """
        output_shape = self._output_shape(input_shape)
        descriptor = self._describe(input_shape, output_shape, internal_device)
        self._binding = LayerBinding(input_shape, output_shape, descriptor)

    def _output_shape(self, input_shape: Shape) -> Shape:
        raise NotImplementedError

    def _describe(self, input_shape: Shape, output_shape: Shape,
                  internal_device: torch.device) -> NodeDescriptor:
        raise NotImplementedError

    def _descriptor(self, op: str, input_shape: Shape, output_shape: Shape,
                    attrs: Optional[Dict] = None, params: Optional[Dict] = None) -> NodeDescriptor:
        return NodeDescriptor(
            op=op,
            input_shape=tuple(input_shape.shape_array),
            output_shape=tuple(output_shape.shape_array),
            attrs=dict(attrs or {}),
            params=dict(params or {}),
        )

    # ----- weights (stateless default) -----
    def store_weights(self, weights_container: "WeightsContainer") -> None:
        return None

    def load_weights(self, weights_container: "WeightsContainer", index: int,
                     internal_device: torch.device) -> None:
        return None

    # ----- compatibility -----
    def check_training_compatibility(self, device: TrainingComputeDevice) -> bool:
        return True

    def check_inference_compatibility(self, device: InferenceComputeDevice) -> bool:
        return True

    def __repr__(self) -> str:
        state = f"configured {self.input_shape!r} -> {self.output_shape!r}" if self.is_configured else "unconfigured"
        return f"{self.name}({state})"


@dataclass(frozen=True)
class WeightsLayout:
    """
    Ordered (group name, tensor count) description of a layer's parameters.
    store_weights flattens groups in this order; load_weights slices the stored
    entry back with the same boundaries.
    """
    groups: Tuple[Tuple[str, int], ...]

    @property
    def total(self) -> int:
        return sum(n for _, n in self.groups)

    def boundaries(self) -> List[Tuple[str, int, int]]:
        out: List[Tuple[str, int, int]] = []
        start = 0
        for name, n in self.groups:
            out.append((name, start, start + n))
            start += n
        return out

    def ordered(self, groups: Mapping[str, Sequence]) -> List[List]:
        out: List[List] = []
        for name, n in self.groups:
            group = list(groups[name])
            if len(group) != n:
                raise PreconditionError(f"[weights] group '{name}' has {len(group)} tensors, expected {n}")
            out.append(group)
        return out

    def split(self, entry: Sequence[Tensor]) -> Dict[str, List[Tensor]]:
        if len(entry) != self.total:
            raise PreconditionError(f"[weights] entry has {len(entry)} tensors, layout expects {self.total}")
        return {name: list(entry[lo:hi]) for name, lo, hi in self.boundaries()}


class ParametricLayer(Layer):
    """
    Layer owning parameter tensors. Each group is None until first materialized
    (randomly by configure(), or from a WeightsContainer by load_weights()).
    """

    def weights_layout(self) -> WeightsLayout:
        raise NotImplementedError

    def _get_groups(self) -> Dict[str, Optional[List[torch.Tensor]]]:
        raise NotImplementedError

    def _set_groups(self, groups: Dict[str, List[torch.Tensor]]) -> None:
        raise NotImplementedError

    def parameters(self) -> List[torch.Tensor]:
        out: List[torch.Tensor] = []
        for group in self.weights_layout().ordered(self._materialized("parameters")):
            out.extend(group)
        return out

    def _materialized(self, attr: str) -> Dict[str, List[torch.Tensor]]:
        groups = self._get_groups()
        if any(g is None for g in groups.values()):
            raise LayerNotConfiguredError(self.name, attr)
        return groups  # type: ignore[return-value]

    def store_weights(self, weights_container: "WeightsContainer") -> None:
        weights_container.store(*self.weights_layout().ordered(self._materialized("store_weights")))

    def load_weights(self, weights_container: "WeightsContainer", index: int,
                     internal_device: torch.device) -> None:
        split = self.weights_layout().split(weights_container[index])
        self._set_groups({name: internal_tensors(ts, internal_device) for name, ts in split.items()})

    @staticmethod
    def _on_device(group: List[torch.Tensor], internal_device: torch.device) -> List[torch.Tensor]:
        if all(t.device == internal_device for t in group):
            return group
        return [t.detach().to(device=internal_device) for t in group]

    def _check_group(self, name: str, group: List[torch.Tensor], shapes: List[Tuple[int, ...]]) -> None:
        got = [tuple(t.shape) for t in group]
        if got != shapes:
            raise PreconditionError(
                f"[{self.name}] parameter group '{name}' shapes {got} don't fit this input (expected {shapes})"
            )


def uniform_parameter(shape: Tuple[int, ...], internal_device: torch.device,
                      low: float = -1.0, high: float = 1.0) -> torch.Tensor:
    return torch.empty(shape, dtype=torch.float32, device=internal_device).uniform_(low, high)


def zero_parameter(shape: Tuple[int, ...], internal_device: torch.device) -> torch.Tensor:
    return torch.zeros(shape, dtype=torch.float32, device=internal_device)
