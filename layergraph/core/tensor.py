# layergraph/core/tensor.py
from __future__ import annotations

import numbers
from dataclasses import dataclass, replace
from typing import Iterable, List, Sequence, Tuple, Union

import numpy as np
import torch

from layergraph.errors import PreconditionError

_DTYPE = np.float32


@dataclass(frozen=True)
class Shape:
    """
    Shape of a rank-3 tensor: (primary_axis, secondary_axis, batch_size).

    Backend layout is [batch, secondary, primary]. Shapes decoded from rank-1/2
    backend tensors carry 0 in the missing axes (see from_shape_array); those
    zeros count as 1 in flat_length.
    """
    primary_axis: int
    secondary_axis: int
    batch_size: int = 1

    def __post_init__(self):
        for name, label in (("primary_axis", "primary axis"), ("secondary_axis", "secondary axis"),
                            ("batch_size", "batch size")):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, numbers.Integral) or v <= 0:
                raise PreconditionError(f"Invalid {label}: {v!r}")
            # numpy integers are stored as plain ints
            object.__setattr__(self, name, int(v))

    @classmethod
    def from_shape_array(cls, shape_array: Sequence[int]) -> "Shape":
        # unchecked: rank-1/2 arrays leave the missing axes at 0
        dims = [int(d) for d in shape_array]
        if len(dims) == 1:
            p, s, b = dims[0], 0, 0
        elif len(dims) == 2:
            p, s, b = dims[1], dims[0], 0
        elif len(dims) == 3:
            p, s, b = dims[2], dims[1], dims[0]
        else:
            raise PreconditionError(f"Unexpected length of shape array: {tuple(dims)}")
        obj = object.__new__(cls)
        object.__setattr__(obj, "primary_axis", p)
        object.__setattr__(obj, "secondary_axis", s)
        object.__setattr__(obj, "batch_size", b)
        return obj

    @property
    def flat_length(self) -> int:
        p = self.primary_axis if self.primary_axis > 0 else 1
        s = self.secondary_axis if self.secondary_axis > 0 else 1
        b = self.batch_size if self.batch_size > 0 else 1
        return p * s * b

    @property
    def shape_array(self) -> List[int]:
        if self.batch_size == 0:
            if self.secondary_axis == 0:
                return [self.primary_axis]
            return [self.secondary_axis, self.primary_axis]
        return [self.batch_size, self.secondary_axis, self.primary_axis]

    @property
    def is_legacy(self) -> bool:
        return self.batch_size == 0 or self.secondary_axis == 0

    def with_batch_size(self, batch_size: int) -> "Shape":
        return replace(self, batch_size=batch_size)

    def __repr__(self) -> str:
        return f"Shape(primary={self.primary_axis}, secondary={self.secondary_axis}, batch={self.batch_size})"


NestedData = Sequence[Sequence[Sequence[float]]]


class Tensor:
    """
    Flat float32 buffer + Shape, laid out batch-major, then secondary, then primary.

    Value semantics: constructors copy their input, accessors hand out copies,
    so two Tensor objects never share a buffer.
    """
    __slots__ = ("_shape", "_flat")

    def __init__(self, shape: Shape):
        self._shape = shape
        self._flat = np.zeros(shape.flat_length, dtype=_DTYPE)

    # ----- construction -----
    @classmethod
    def zeros(cls, primary_axis: int, secondary_axis: int, batch_size: int = 1) -> "Tensor":
        return cls(Shape(primary_axis, secondary_axis, batch_size))

    @classmethod
    def from_flat(cls, flat_data: Union[Sequence[float], np.ndarray], shape: Shape) -> "Tensor":
        flat = np.array(flat_data, dtype=_DTYPE).reshape(-1)
        if flat.size != shape.flat_length:
            raise PreconditionError(
                f"Shape mismatch: {flat.size} elements supplied for {shape} ({shape.flat_length} expected)"
            )
        t = cls.__new__(cls)
        t._shape = shape
        t._flat = flat
        return t

    @classmethod
    def from_nested(cls, data: NestedData) -> "Tensor":
        """data is indexed [batch][secondary][primary]."""
        try:
            arr = np.array(data, dtype=_DTYPE)
        except (TypeError, ValueError) as exc:
            raise PreconditionError(f"Nested data must be rank-3 and rectangular: {exc}") from exc
        if arr.ndim != 3:
            raise PreconditionError(f"Nested data must be rank-3 and rectangular, got ndim={arr.ndim}")
        b, s, p = arr.shape
        return cls.from_flat(arr, Shape(p, s, b))

    @classmethod
    def repeating(cls, tensor: "Tensor", batch_size: int) -> "Tensor":
        if tensor.shape.batch_size != 1:
            raise PreconditionError(f"Invalid tensor shape for repetition: {tensor.shape}")
        shape = tensor.shape.with_batch_size(batch_size)
        return cls.from_flat(np.tile(tensor._flat, shape.batch_size), shape)

    @classmethod
    def from_internal(cls, internal: torch.Tensor) -> "Tensor":
        """Copy a backend tensor out of device memory."""
        host = internal.detach().to(device="cpu", dtype=torch.float32).contiguous()
        flat = host.numpy().reshape(-1).copy()
        shape = Shape.from_shape_array(tuple(host.shape))
        assert flat.size == shape.flat_length, f"copy-out length {flat.size} != {shape.flat_length}"
        return cls.from_flat(flat, shape)

    # ----- accessors -----
    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def flat_data(self) -> np.ndarray:
        return self._flat.copy()

    def _offset(self, primary_index: int, secondary_index: int, batch_index: int) -> int:
        sh = self._shape
        p = sh.primary_axis if sh.primary_axis > 0 else 1
        s = sh.secondary_axis if sh.secondary_axis > 0 else 1
        b = sh.batch_size if sh.batch_size > 0 else 1
        for name, i, n in (("primary", primary_index, p), ("secondary", secondary_index, s), ("batch", batch_index, b)):
            if not 0 <= int(i) < n:
                raise IndexError(f"{name} index {i} out of range for {sh}")
        return (int(batch_index) * s + int(secondary_index)) * p + int(primary_index)

    def __getitem__(self, index: Tuple[int, int, int]) -> float:
        p, s, b = index
        return float(self._flat[self._offset(p, s, b)])

    def __setitem__(self, index: Tuple[int, int, int], value: float) -> None:
        p, s, b = index
        self._flat[self._offset(p, s, b)] = value

    @property
    def batch_elements(self) -> List["Tensor"]:
        sh = self._shape
        if sh.batch_size == 0:
            # rank-1/2 tensors have no batch axis: the whole tensor is the one element
            return [self.copy()]
        element_shape = Shape.from_shape_array([1, sh.secondary_axis, sh.primary_axis])
        n = element_shape.flat_length
        return [Tensor.from_flat(self._flat[i * n:(i + 1) * n], element_shape) for i in range(sh.batch_size)]

    def copy(self) -> "Tensor":
        return Tensor.from_flat(self._flat, self._shape)

    def __copy__(self) -> "Tensor":
        return self.copy()

    def __deepcopy__(self, memo) -> "Tensor":
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tensor):
            return NotImplemented
        return self._shape == other._shape and bool(np.array_equal(self._flat, other._flat))

    __hash__ = None

    def __repr__(self) -> str:
        return f"Tensor(shape={self._shape!r}, len={self._flat.size})"

    # ----- backend bridge -----
    def internal_tensor_data(self) -> bytes:
        """Raw float32 bytes, ready for backend copy-in."""
        return self._flat.tobytes()

    def internal_tensor(self, device: torch.device) -> torch.Tensor:
        t = torch.from_numpy(self._flat.copy()).reshape(self._shape.shape_array)
        return t.to(device=device)


def internal_tensors(tensors: Iterable[Tensor], device: torch.device) -> List[torch.Tensor]:
    return [t.internal_tensor(device) for t in tensors]


def autobatch(tensors: Sequence[Tensor], batch_size: int) -> List[Tensor]:
    """Concatenate consecutive runs of `batch_size` unbatched tensors into one batch each."""
    batch_size = int(batch_size)
    if batch_size <= 0:
        raise PreconditionError(f"Invalid batch size: {batch_size}")
    if len(tensors) == 0:
        raise PreconditionError("Must supply at least one tensor")
    if len(tensors) % batch_size != 0:
        raise PreconditionError(
            f"Invalid batch size {batch_size} for {len(tensors)} supplied tensors"
        )
    if not all(t.shape.batch_size == 1 for t in tensors):
        raise PreconditionError("Must supply unbatched tensors")
    first = tensors[0].shape
    if not all(t.shape == first for t in tensors):
        raise PreconditionError("All tensors must have the same shape")

    shape = first.with_batch_size(batch_size)
    out: List[Tensor] = []
    for base in range(0, len(tensors), batch_size):
        run = tensors[base:base + batch_size]
        out.append(Tensor.from_flat(np.concatenate([t._flat for t in run]), shape))
    return out
