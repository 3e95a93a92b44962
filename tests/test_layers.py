# tests/test_layers.py
from __future__ import annotations

import pytest
import torch

from layergraph.backend.torch_backend import ACTIVATIONS
from layergraph.core import Shape
from layergraph.errors import LayerNotConfiguredError, PreconditionError
from layergraph.fw import WeightsContainer
from layergraph.nn import (
    ACTIVATION_KINDS,
    ActivationLayer,
    ActivationType,
    FullyConnectedLayer,
    LSTMLayer,
    ReshapeLayer,
    SoftmaxLayer,
    WeightsLayout,
)


# =============================================================================
# lifecycle
# =============================================================================

def test_unconfigured_layer_has_no_shapes():
    layer = FullyConnectedLayer(4)
    assert not layer.is_configured
    with pytest.raises(LayerNotConfiguredError):
        layer.output_shape
    with pytest.raises(LayerNotConfiguredError):
        layer.internal_layer
    with pytest.raises(LayerNotConfiguredError):
        layer.store_weights(WeightsContainer())


def test_stateless_layers_store_nothing(cpu):
    layer = ActivationLayer(ActivationType.relu())
    layer.configure(Shape(3, 1), cpu)
    c = WeightsContainer()
    layer.store_weights(c)
    assert len(c) == 0


# =============================================================================
# fully connected
# =============================================================================

def test_fully_connected_shapes(cpu):
    layer = FullyConnectedLayer(4)
    layer.configure(Shape(3, 1, 2), cpu)
    assert layer.input_shape == Shape(3, 1, 2)
    assert layer.output_shape == Shape(4, 1, 2)

    weights, biases = layer.parameters()
    assert tuple(weights.shape) == (3, 4)
    assert tuple(biases.shape) == (4,)
    assert float(weights.min()) >= -1.0 and float(weights.max()) <= 1.0
    assert not biases.any()

    d = layer.internal_layer
    assert d.op == "fully_connected"
    assert d.input_shape == (2, 1, 3)
    assert d.output_shape == (2, 1, 4)


def test_fully_connected_rejects_bad_size():
    with pytest.raises(PreconditionError):
        FullyConnectedLayer(0)


def test_fully_connected_weights_round_trip(cpu):
    trained = FullyConnectedLayer(2)
    trained.configure(Shape(3, 1), cpu)
    c = WeightsContainer()
    trained.store_weights(c)
    assert len(c) == 1 and len(c[0]) == 2

    restored = FullyConnectedLayer(2)
    restored.load_weights(c, 0, cpu)
    restored.configure(Shape(3, 1), cpu)
    for a, b in zip(trained.parameters(), restored.parameters()):
        assert torch.equal(a.detach(), b)


def test_fully_connected_reuse_with_other_input_fails(cpu):
    layer = FullyConnectedLayer(2)
    layer.configure(Shape(3, 1), cpu)
    with pytest.raises(PreconditionError):
        layer.configure(Shape(5, 1), cpu)


def test_load_with_wrong_tensor_count(cpu):
    c = WeightsContainer()
    c.store(torch.zeros(3, 2))
    with pytest.raises(PreconditionError):
        FullyConnectedLayer(2).load_weights(c, 0, cpu)


def test_weights_layout():
    layout = WeightsLayout((("a", 2), ("b", 1)))
    assert layout.total == 3
    assert layout.boundaries() == [("a", 0, 2), ("b", 2, 3)]
    assert layout.split(["x", "y", "z"]) == {"a": ["x", "y"], "b": ["z"]}
    with pytest.raises(PreconditionError):
        layout.ordered({"a": ["x"], "b": ["z"]})


# =============================================================================
# reshape
# =============================================================================

def test_reshape_preserves_element_count(cpu):
    layer = ReshapeLayer(Shape(2, 6, 1))
    layer.configure(Shape(12, 1, 1), cpu)
    assert layer.output_shape == Shape(2, 6, 1)
    assert layer.internal_layer.attrs["shape"] == (1, 6, 2)


def test_reshape_element_count_mismatch(cpu):
    with pytest.raises(PreconditionError):
        ReshapeLayer(Shape(5, 1, 1)).configure(Shape(12, 1, 1), cpu)


def test_reshape_batch_size_mismatch(cpu):
    with pytest.raises(PreconditionError):
        ReshapeLayer(Shape(2, 6, 1)).configure(Shape(12, 1, 2), cpu)


def test_reshape_with_axes_inherits_batch_size(cpu):
    layer = ReshapeLayer.with_axes(2, 6)
    layer.configure(Shape(12, 1, 3), cpu)
    assert layer.output_shape == Shape(2, 6, 3)
    # configured shape is derived per session, the requested one stays as given
    assert layer.new_shape == Shape(2, 6, 1)
    layer.configure(Shape(3, 4, 5), cpu)
    assert layer.output_shape == Shape(2, 6, 5)


def test_reshape_argument_forms():
    with pytest.raises(PreconditionError):
        ReshapeLayer()
    with pytest.raises(PreconditionError):
        ReshapeLayer(Shape(1, 1), new_primary_axis=1, new_secondary_axis=1)


# =============================================================================
# lstm
# =============================================================================

@pytest.mark.parametrize("returns_sequences, steps", [(True, 5), (False, 1)])
def test_lstm_shapes(cpu, returns_sequences, steps):
    layer = LSTMLayer(4, layer_count=2, returns_sequences=returns_sequences)
    layer.configure(Shape(3, 5, 2), cpu)
    assert layer.output_shape == Shape(4, steps, 2)

    params = layer.parameters()
    assert len(params) == 3 * 4 * 2
    input_weights = params[:8]
    assert [tuple(w.shape) for w in input_weights[:4]] == [(3, 4)] * 4
    assert [tuple(w.shape) for w in input_weights[4:]] == [(4, 4)] * 4
    assert all(tuple(b.shape) == (4,) for b in params[16:])


def test_lstm_weights_round_trip(cpu):
    trained = LSTMLayer(3)
    trained.configure(Shape(2, 4), cpu)
    c = WeightsContainer()
    trained.store_weights(c)
    assert len(c[0]) == 12

    restored = LSTMLayer(3)
    restored.load_weights(c, 0, cpu)
    restored.configure(Shape(2, 4), cpu)
    for a, b in zip(trained.parameters(), restored.parameters()):
        assert torch.equal(a.detach(), b)


def test_lstm_rejects_bad_sizes():
    with pytest.raises(PreconditionError):
        LSTMLayer(0)
    with pytest.raises(PreconditionError):
        LSTMLayer(2, layer_count=0)


# =============================================================================
# activation / softmax
# =============================================================================

def test_activation_kinds_match_backend_table():
    assert ACTIVATION_KINDS == frozenset(ACTIVATIONS)


def test_unknown_activation():
    with pytest.raises(PreconditionError):
        ActivationType("swish")


def test_activation_descriptor(cpu):
    layer = ActivationLayer(ActivationType.clamp(-1.0, 1.0))
    layer.configure(Shape(3, 2), cpu)
    assert layer.output_shape == Shape(3, 2)
    d = layer.internal_layer
    assert d.op == "activation"
    assert d.attrs == {"kind": "clamp", "args": {"min_value": -1.0, "max_value": 1.0}}


def test_optional_activation_args_are_omitted():
    assert ActivationType.leaky_relu().args == ()
    assert ActivationType.leaky_relu(0.2).args == (("negative_slope", 0.2),)


def test_relun_is_leaky_and_capped():
    x = torch.tensor([-2.0, 0.5, 3.0])
    y = ACTIVATIONS["relun"](x, alpha=0.1, beta=1.0)
    assert torch.allclose(y, torch.tensor([-0.2, 0.5, 1.0]))


def test_softmax_descriptor(cpu):
    layer = SoftmaxLayer(use_log_variant=True)
    layer.configure(Shape(4, 1, 2), cpu)
    assert layer.output_shape == Shape(4, 1, 2)
    assert layer.internal_layer.attrs == {"log": True}
