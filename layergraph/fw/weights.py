# layergraph/fw/weights.py
from __future__ import annotations

from typing import Iterator, List, Sequence, Union

import torch

from layergraph.core.tensor import Tensor

TensorLike = Union[Tensor, torch.Tensor]
TensorGroup = Union[TensorLike, Sequence[TensorLike]]


def _as_tensor(t: TensorLike) -> Tensor:
    if isinstance(t, Tensor):
        return t.copy()
    if isinstance(t, torch.Tensor):
        return Tensor.from_internal(t)
    raise TypeError(f"expected Tensor or torch.Tensor, got {type(t)}")


def _flatten(group: TensorGroup) -> List[Tensor]:
    if isinstance(group, (Tensor, torch.Tensor)):
        return [_as_tensor(group)]
    return [_as_tensor(t) for t in group]


class WeightsContainer:
    """
    Positional, append-only store: one entry per layer, each entry the layer's
    parameter tensors flattened across its groups in the order they were stored.
    """

    def __init__(self) -> None:
        self._tensors: List[List[Tensor]] = []

    def store(self, *groups: TensorGroup) -> None:
        """Append one entry made of `groups` flattened in order (an entry may be empty)."""
        entry: List[Tensor] = []
        for g in groups:
            entry.extend(_flatten(g))
        self._tensors.append(entry)

    def __getitem__(self, index: int) -> List[Tensor]:
        # positions are layer indices; out of range is a programming error
        if not 0 <= int(index) < len(self._tensors):
            raise IndexError(f"weights index {index} out of range for {len(self._tensors)} entries")
        return [t.copy() for t in self._tensors[index]]

    def __len__(self) -> int:
        return len(self._tensors)

    def __iter__(self) -> Iterator[List[Tensor]]:
        for i in range(len(self._tensors)):
            yield self[i]

    def __repr__(self) -> str:
        return f"WeightsContainer(entries={[len(e) for e in self._tensors]})"
