# layergraph/data/training_data.py
from __future__ import annotations

from typing import Iterator, List, Sequence, Tuple

from layergraph.core.tensor import Tensor, autobatch
from layergraph.errors import PreconditionError


def _check_pairing(inputs: Sequence[Tensor], targets: Sequence[Tensor]) -> None:
    if len(inputs) == 0:
        raise PreconditionError("Must supply at least one input tensor")
    if len(inputs) != len(targets):
        raise PreconditionError(
            f"Must supply the same number of input tensors and target tensors ({len(inputs)} vs {len(targets)})"
        )
    in0 = inputs[0].shape
    if not all(t.shape == in0 for t in inputs[1:]):
        raise PreconditionError("All input tensors must have the same shape")
    tg0 = targets[0].shape
    if not all(t.shape == tg0 for t in targets[1:]):
        raise PreconditionError("All target tensors must have the same shape")
    if in0.batch_size != tg0.batch_size:
        raise PreconditionError(
            f"Input tensors and target tensors must have the same batch size ({in0.batch_size} vs {tg0.batch_size})"
        )


class TrainingData:
    """
    Parallel input/target tensor groups.

    Invariants (checked on construction, after autobatch, and again by Graph.train):
      - at least one input tensor
      - as many targets as inputs
      - uniform shape within each group
      - equal batch size across the two groups
    """

    def __init__(self, input_tensors: Sequence[Tensor], target_tensors: Sequence[Tensor]):
        inputs = [t.copy() for t in input_tensors]
        targets = [t.copy() for t in target_tensors]
        _check_pairing(inputs, targets)
        self._inputs: List[Tensor] = inputs
        self._targets: List[Tensor] = targets

    @property
    def input_tensors(self) -> List[Tensor]:
        return [t.copy() for t in self._inputs]

    @property
    def target_tensors(self) -> List[Tensor]:
        return [t.copy() for t in self._targets]

    def __len__(self) -> int:
        return len(self._inputs)

    def pairs(self) -> Iterator[Tuple[Tensor, Tensor]]:
        """(input, target) in the order supplied. No copies; read-only use."""
        return zip(self._inputs, self._targets)

    def validate(self) -> None:
        _check_pairing(self._inputs, self._targets)

    def autobatch(self, size: int) -> None:
        """
        Regroup consecutive runs of `size` unbatched examples into batches of `size`.
        Leaves the data untouched when the precondition fails.
        """
        inputs = autobatch(self._inputs, size)
        targets = autobatch(self._targets, size)
        self._inputs = inputs
        self._targets = targets

    def __repr__(self) -> str:
        return (
            f"TrainingData(n={len(self)}, input={self._inputs[0].shape!r}, "
            f"target={self._targets[0].shape!r})"
        )
