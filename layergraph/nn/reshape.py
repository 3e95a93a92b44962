# layergraph/nn/reshape.py
from __future__ import annotations

from typing import Optional

import torch

from layergraph.backend.ir import NodeDescriptor
from layergraph.core.tensor import Shape
from layergraph.errors import PreconditionError
from .base import Layer


class ReshapeLayer(Layer):
    """
    Reshape to an explicit target shape.

      ReshapeLayer(Shape(p, s, b))                           -> batch size fixed at b
      ReshapeLayer(new_primary_axis=p, new_secondary_axis=s) -> batch size taken from the input

    The element count and batch size must match the input at configure time.
    """

    def __init__(self, new_shape: Optional[Shape] = None, *,
                 new_primary_axis: Optional[int] = None, new_secondary_axis: Optional[int] = None):
        super().__init__()
        if new_shape is not None:
            if new_primary_axis is not None or new_secondary_axis is not None:
                raise PreconditionError("Pass either new_shape or new_primary_axis/new_secondary_axis, not both")
            self.new_shape = new_shape
            self.inherits_batch_size = False
        else:
            if new_primary_axis is None or new_secondary_axis is None:
                raise PreconditionError("new_primary_axis and new_secondary_axis are both required")
            self.new_shape = Shape(new_primary_axis, new_secondary_axis)
            self.inherits_batch_size = True

    @classmethod
    def with_axes(cls, new_primary_axis: int, new_secondary_axis: int) -> "ReshapeLayer":
        return cls(new_primary_axis=new_primary_axis, new_secondary_axis=new_secondary_axis)

    def _output_shape(self, input_shape: Shape) -> Shape:
        target = self.new_shape
        if self.inherits_batch_size:
            target = target.with_batch_size(input_shape.batch_size)
        if input_shape.batch_size != target.batch_size:
            raise PreconditionError(
                f"Input and output batch sizes must be the same ({input_shape.batch_size} vs {target.batch_size})"
            )
        if input_shape.flat_length != target.flat_length:
            raise PreconditionError(
                f"Input and output tensors must have the same number of elements "
                f"({input_shape.flat_length} vs {target.flat_length})"
            )
        return target

    def _describe(self, input_shape: Shape, output_shape: Shape,
                  internal_device: torch.device) -> NodeDescriptor:
        return self._descriptor("reshape", input_shape, output_shape,
                                attrs={"shape": tuple(output_shape.shape_array)})
