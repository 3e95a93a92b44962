from .tensor import Shape, Tensor, autobatch, internal_tensors

__all__ = ["Shape", "Tensor", "autobatch", "internal_tensors"]
