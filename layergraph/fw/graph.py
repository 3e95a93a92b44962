# layergraph/fw/graph.py
from __future__ import annotations

import warnings
from typing import Callable, Iterable, List, Optional

import numpy as np
import torch

from layergraph.backend import get_backend
from layergraph.backend.devices import InferenceComputeDevice, TrainingComputeDevice
from layergraph.backend.ir import IRGraph, IRValue
from layergraph.config import GraphConfig
from layergraph.core.tensor import Shape, Tensor
from layergraph.data.training_data import TrainingData
from layergraph.errors import (
    AlreadyTrainedError,
    InferenceIncompatibleError,
    PreconditionError,
    TrainingIncompatibleError,
    UntrainedGraphWarning,
)
from layergraph.nn.base import Layer
from .naming import INPUT_LABEL, TARGET_LABEL, graph_name
from .weights import WeightsContainer

OutputCallback = Callable[[Tensor], None]


def _decode_output(executable, output: IRValue) -> Tensor:
    # host copy-out of the last execute(); shape follows the compiled output value
    flat = np.frombuffer(executable.read_bytes(output), dtype=np.float32)
    return Tensor.from_flat(flat, Shape.from_shape_array(output.shape))


class Graph:
    """
    Executable single-chain graph of layers.

    Owns its layers and, once trained, one WeightsContainer. train() runs at most
    once per Graph; infer() may run any number of times, restoring trained
    weights into the layers before each configuration pass.

    Not thread-safe: callers serialize train()/infer() on one Graph.
    """

    def __init__(self, layers: Iterable[Layer], config: Optional[GraphConfig] = None):
        self._layers: List[Layer] = list(layers)
        if len(self._layers) == 0:
            raise PreconditionError("A graph needs at least one layer")
        for layer in self._layers:
            if not isinstance(layer, Layer):
                raise TypeError(f"expected Layer, got {type(layer)}")
        self._weights_container: Optional[WeightsContainer] = None
        self.config = config or GraphConfig.from_env()

    @classmethod
    def from_layers(cls, *layers: Layer, config: Optional[GraphConfig] = None) -> "Graph":
        return cls(layers, config=config)

    @property
    def layers(self) -> List[Layer]:
        return list(self._layers)

    @property
    def weights_container(self) -> Optional[WeightsContainer]:
        return self._weights_container

    @property
    def is_trained(self) -> bool:
        return self._weights_container is not None

    # ------------------------------------------------------------
    # shared: propagate shapes, chain backend nodes
    # ------------------------------------------------------------
    def _build_chain(self, ir: IRGraph, input_shape: Shape, internal_device: torch.device,
                     weights: Optional[WeightsContainer]) -> IRValue:
        tail = ir.input(INPUT_LABEL, input_shape.shape_array)
        next_input_shape = input_shape
        for index, layer in enumerate(self._layers):
            if weights is not None:
                layer.load_weights(weights, index, internal_device)
            layer.configure(next_input_shape, internal_device)
            next_input_shape = layer.output_shape
            tail = ir.node(layer.internal_layer, sources=[tail])
        return tail

    # ------------------------------------------------------------
    # train
    # ------------------------------------------------------------
    def train(self, data: TrainingData, iterations: int, device: TrainingComputeDevice,
              callback: OutputCallback) -> None:
        """
        Train for `iterations` passes over `data`, in the order supplied.

        `callback` receives the output tensor of the very last example of the
        last iteration, once. On success the trained parameters are captured
        into `weights_container`.

        Raises TrainingIncompatibleError / AlreadyTrainedError before any state
        change, DeviceError from device selection, PreconditionError on invalid
        iterations, data, or a final shape that doesn't match the targets.
        """
        for layer in self._layers:
            if not layer.check_training_compatibility(device):
                raise TrainingIncompatibleError(layer.name, str(device))
        if int(iterations) <= 0:
            raise PreconditionError(f"Invalid iterations count: {iterations}")
        data.validate()
        if self._weights_container is not None:
            raise AlreadyTrainedError()

        cfg = self.config
        internal_device = device.select()
        inputs = data.input_tensors
        targets = data.target_tensors
        target_shape = targets[0].shape

        ir = IRGraph(name=graph_name("train", self._layers))
        output = self._build_chain(ir, inputs[0].shape, internal_device, weights=None)
        if list(output.shape) != target_shape.shape_array:
            raise PreconditionError(
                f"Target shape mismatch: graph output {tuple(output.shape)} vs target {tuple(target_shape.shape_array)}"
            )
        ir.loss_label(TARGET_LABEL, target_shape.shape_array)

        executable = get_backend().compile_training(
            ir,
            output=output,
            device=internal_device,
            loss=cfg.loss,
            optimizer=cfg.optimizer,
            debug_layers=cfg.debug_layers,
        )

        iterations = int(iterations)
        last_example = len(inputs) - 1
        for iteration in range(iterations):
            if cfg.print_progress:
                print(f"[train] Executing iteration {iteration + 1} of {iterations}...")
            for example, (input_tensor, target_tensor) in enumerate(zip(inputs, targets)):
                is_final = iteration == iterations - 1 and example == last_example

                def on_complete(loss_tensors: List[torch.Tensor], is_final: bool = is_final) -> None:
                    if cfg.print_loss:
                        print("[loss] result tensors:")
                        for lt in loss_tensors:
                            print(f"  {lt.detach().cpu().reshape(-1).tolist()}")
                    if is_final:
                        callback(_decode_output(executable, output))

                executable.execute(
                    inputs_data={INPUT_LABEL: input_tensor.internal_tensor_data()},
                    loss_labels_data={TARGET_LABEL: target_tensor.internal_tensor_data()},
                    batch_size=input_tensor.shape.batch_size,
                    synchronous=True,
                    completion=on_complete,
                )

        weights_container = WeightsContainer()
        for index, layer in enumerate(self._layers):
            layer.store_weights(weights_container)
            if len(weights_container) == index:
                # stateless layers keep their slot with an empty entry
                weights_container.store()
            assert len(weights_container) == index + 1, f"{layer.name} stored more than one entry"
        self._weights_container = weights_container

    # ------------------------------------------------------------
    # infer
    # ------------------------------------------------------------
    def infer(self, input_tensor: Tensor, device: InferenceComputeDevice,
              ignore_batch_size: bool = True) -> Tensor:
        """
        One forward pass over `input_tensor`.

        Trained weights are restored into each layer before it is configured.
        An untrained graph runs with self-initialized parameters and emits an
        UntrainedGraphWarning. With `ignore_batch_size` only batch element 0 is
        returned.
        """
        for layer in self._layers:
            if not layer.check_inference_compatibility(device):
                raise InferenceIncompatibleError(layer.name, str(device))
        if self._weights_container is None:
            warnings.warn("This graph has not yet been trained", UntrainedGraphWarning, stacklevel=2)

        cfg = self.config
        internal_device = device.select()
        ir = IRGraph(name=graph_name("infer", self._layers))
        output = self._build_chain(ir, input_tensor.shape, internal_device, weights=self._weights_container)

        executable = get_backend().compile_inference(
            ir,
            output=output,
            device=internal_device,
            debug_layers=cfg.debug_layers,
        )
        executable.execute(
            inputs_data={INPUT_LABEL: input_tensor.internal_tensor_data()},
            batch_size=input_tensor.shape.batch_size,
            synchronous=True,
        )
        output_tensor = _decode_output(executable, output)
        return output_tensor.batch_elements[0] if ignore_batch_size else output_tensor

    def __repr__(self) -> str:
        state = "trained" if self.is_trained else "untrained"
        return f"Graph({', '.join(l.name for l in self._layers)}; {state})"
