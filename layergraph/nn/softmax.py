# layergraph/nn/softmax.py
from __future__ import annotations

import torch

from layergraph.backend.ir import NodeDescriptor
from layergraph.core.tensor import Shape
from .base import Layer


class SoftmaxLayer(Layer):
    """Softmax over the primary axis; log-domain when use_log_variant is set."""

    def __init__(self, use_log_variant: bool = False):
        super().__init__()
        self.use_log_variant = bool(use_log_variant)

    def _output_shape(self, input_shape: Shape) -> Shape:
        return input_shape

    def _describe(self, input_shape: Shape, output_shape: Shape,
                  internal_device: torch.device) -> NodeDescriptor:
        return self._descriptor("softmax", input_shape, output_shape, attrs={"log": self.use_log_variant})
