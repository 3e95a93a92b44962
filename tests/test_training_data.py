# tests/test_training_data.py
from __future__ import annotations

import pytest

from layergraph.core import Shape, Tensor
from layergraph.data import TrainingData
from layergraph.errors import PreconditionError


def _flat(values, batch_size=1):
    return Tensor.from_flat(values, Shape(len(values) // batch_size, 1, batch_size))


def test_pairing_invariants():
    with pytest.raises(PreconditionError):
        TrainingData([], [])
    with pytest.raises(PreconditionError):
        TrainingData([_flat([1, 2])], [])
    with pytest.raises(PreconditionError):
        TrainingData([_flat([1, 2]), _flat([1, 2, 3])], [_flat([1]), _flat([2])])
    with pytest.raises(PreconditionError):
        TrainingData([_flat([1]), _flat([2])], [_flat([1]), _flat([1, 2])])
    with pytest.raises(PreconditionError):
        TrainingData([_flat([1, 2], batch_size=2)], [_flat([1])])


def test_tensors_are_copied():
    x = _flat([1, 2])
    data = TrainingData([x], [_flat([3])])
    x[0, 0, 0] = 100.0
    assert data.input_tensors[0][0, 0, 0] == 1.0

    data.input_tensors[0][0, 0, 0] = 50.0
    assert data.input_tensors[0][0, 0, 0] == 1.0


def test_len_and_pairs():
    data = TrainingData([_flat([1]), _flat([2])], [_flat([10]), _flat([20])])
    assert len(data) == 2
    assert [(x[0, 0, 0], y[0, 0, 0]) for x, y in data.pairs()] == [(1.0, 10.0), (2.0, 20.0)]


def test_autobatch_in_place():
    data = TrainingData([_flat([i]) for i in range(4)], [_flat([10 * i]) for i in range(4)])
    data.autobatch(2)
    assert len(data) == 2
    assert data.input_tensors[1].flat_data.tolist() == [2, 3]
    assert data.target_tensors[0].flat_data.tolist() == [0, 10]
    assert data.input_tensors[0].shape == Shape(1, 1, 2)
    data.validate()


def test_failed_autobatch_leaves_data_unchanged():
    data = TrainingData([_flat([i]) for i in range(3)], [_flat([i]) for i in range(3)])
    with pytest.raises(PreconditionError):
        data.autobatch(2)
    assert len(data) == 3
    assert data.input_tensors[0].shape == Shape(1, 1, 1)
