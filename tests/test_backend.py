# tests/test_backend.py
from __future__ import annotations

import numpy as np
import pytest
import torch

from layergraph.backend import get_backend, set_backend
from layergraph.backend.ir import IRGraph, NodeDescriptor, ROLE_INPUT
from layergraph.backend.printer import dump_ir, dump_lowered
from layergraph.backend.torch_backend import TorchBackend, copy_in, copy_out, lower_to_backend_ops
from layergraph.config import LossConfig, OptimizerConfig
from layergraph.core import Shape, Tensor
from layergraph.fw import WeightsContainer
from layergraph.nn import ActivationLayer, ActivationType, FullyConnectedLayer, ReshapeLayer


def _fixed_fc(cpu, in_size=3, out_size=2, input_shape=None):
    # all-ones weights, zero biases
    c = WeightsContainer()
    c.store(torch.ones(in_size, out_size), torch.zeros(out_size))
    layer = FullyConnectedLayer(out_size)
    layer.load_weights(c, 0, cpu)
    layer.configure(input_shape or Shape(in_size, 1), cpu)
    return layer


# =============================================================================
# IR
# =============================================================================

def test_ir_chain(cpu):
    fc = _fixed_fc(cpu)
    act = ActivationLayer(ActivationType.relu())
    act.configure(fc.output_shape, cpu)

    ir = IRGraph(name="chain")
    x = ir.input("input", Shape(3, 1).shape_array)
    h = ir.node(fc.internal_layer, sources=[x])
    y = ir.node(act.internal_layer, sources=[h])

    assert x.role == ROLE_INPUT
    assert [n.op for n in ir.nodes] == ["fully_connected", "activation"]
    assert y.shape == (1, 1, 2)
    assert ir.last_value() == y
    assert ir.inputs() == [x]

    text = dump_ir(ir)
    assert "=== IRGraph: chain ===" in text
    assert "fully_connected" in text
    assert "params(weights(3, 2), biases(2,))" in text


def test_ir_node_must_extend_tail(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph()
    x = ir.input("input", (1, 1, 3))
    ir.node(fc.internal_layer, sources=[x])
    with pytest.raises(RuntimeError):
        ir.node(fc.internal_layer, sources=[x])


def test_ir_node_shape_mismatch(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph()
    x = ir.input("input", (1, 1, 4))
    with pytest.raises(RuntimeError):
        ir.node(fc.internal_layer, sources=[x])


def test_lower_unknown_op():
    ir = IRGraph()
    x = ir.input("input", (1, 1, 1))
    ir.node(NodeDescriptor(op="conv", input_shape=(1, 1, 1), output_shape=(1, 1, 1)), sources=[x])
    with pytest.raises(KeyError):
        lower_to_backend_ops(ir)


def test_dump_lowered(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph(name="g")
    ir.node(fc.internal_layer, sources=[ir.input("input", (1, 1, 3))])
    text = dump_lowered(lower_to_backend_ops(ir), name=ir.name)
    assert text.startswith("=== LoweredOps(g) ===")
    assert "ops: 1" in text


# =============================================================================
# copy in/out
# =============================================================================

def test_copy_in_uses_runtime_batch(cpu):
    buf = np.arange(12, dtype=np.float32).tobytes()
    t = copy_in(buf, (1, 2, 3), batch_size=2, device=cpu)
    assert tuple(t.shape) == (2, 2, 3)
    assert copy_out(t) == buf


# =============================================================================
# executables
# =============================================================================

def test_inference_executes_forward(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph()
    y = ir.node(fc.internal_layer, sources=[ir.input("input", (1, 1, 3))])
    exe = TorchBackend().compile_inference(ir, output=y, device=cpu)

    x = Tensor.from_flat([1, 2, 3], Shape(3, 1))
    exe.execute(inputs_data={"input": x.internal_tensor_data()}, batch_size=1)
    out = Tensor.from_internal(exe.read(y))
    assert out.shape == Shape(2, 1, 1)
    assert out.flat_data.tolist() == [6.0, 6.0]


def test_read_before_execute(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph()
    y = ir.node(fc.internal_layer, sources=[ir.input("input", (1, 1, 3))])
    exe = TorchBackend().compile_inference(ir, output=y, device=cpu)
    with pytest.raises(RuntimeError):
        exe.read(y)


def test_unknown_label(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph()
    y = ir.node(fc.internal_layer, sources=[ir.input("input", (1, 1, 3))])
    exe = TorchBackend().compile_inference(ir, output=y, device=cpu)
    with pytest.raises(KeyError):
        exe.execute(inputs_data={"x": b""}, batch_size=1)


def test_reshape_kernel(cpu):
    layer = ReshapeLayer.with_axes(2, 3)
    layer.configure(Shape(6, 1, 2), cpu)
    ir = IRGraph()
    y = ir.node(layer.internal_layer, sources=[ir.input("input", (2, 1, 6))])
    exe = TorchBackend().compile_inference(ir, output=y, device=cpu)
    x = Tensor.from_flat(list(range(12)), Shape(6, 1, 2))
    exe.execute(inputs_data={"input": x.internal_tensor_data()}, batch_size=2)
    out = Tensor.from_internal(exe.read(y))
    assert out.shape == Shape(2, 3, 2)
    assert out.flat_data.tolist() == list(range(12))


def test_training_step_reports_unreduced_loss_and_updates(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph()
    y = ir.node(fc.internal_layer, sources=[ir.input("input", (1, 1, 3))])
    ir.loss_label("target", (1, 1, 2))
    exe = TorchBackend().compile_training(ir, output=y, device=cpu,
                                          loss=LossConfig(), optimizer=OptimizerConfig())
    before = [p.detach().clone() for p in fc.parameters()]

    losses = []
    x = Tensor.from_flat([1, 2, 3], Shape(3, 1))
    t = Tensor.from_flat([5, 7], Shape(2, 1))
    exe.execute(
        inputs_data={"input": x.internal_tensor_data()},
        loss_labels_data={"target": t.internal_tensor_data()},
        batch_size=1,
        completion=losses.append,
    )

    assert len(losses) == 1
    (loss,) = losses[0]
    # output is (6, 6): squared errors per element
    assert loss.reshape(-1).tolist() == [1.0, 1.0]
    after = fc.parameters()
    assert not torch.equal(before[0], after[0].detach())


def test_training_rejects_unsupported_loss(cpu):
    fc = _fixed_fc(cpu)
    ir = IRGraph()
    y = ir.node(fc.internal_layer, sources=[ir.input("input", (1, 1, 3))])
    ir.loss_label("target", (1, 1, 2))
    with pytest.raises(ValueError):
        TorchBackend().compile_training(ir, output=y, device=cpu,
                                        loss=LossConfig(reduction="mean"), optimizer=OptimizerConfig())
    with pytest.raises(ValueError):
        TorchBackend().compile_training(ir, output=y, device=cpu, loss=LossConfig(),
                                        optimizer=OptimizerConfig(regularization="l2"))


def test_debug_layers_prints_ir(cpu, capsys):
    fc = _fixed_fc(cpu)
    ir = IRGraph(name="dbg")
    y = ir.node(fc.internal_layer, sources=[ir.input("input", (1, 1, 3))])
    TorchBackend().compile_inference(ir, output=y, device=cpu, debug_layers=True)
    out = capsys.readouterr().out
    assert "=== IRGraph: dbg ===" in out
    assert "=== LoweredOps(dbg) ===" in out


# =============================================================================
# backend selection
# =============================================================================

def test_default_backend_is_torch():
    assert isinstance(get_backend(), TorchBackend)


def test_set_backend():
    custom = TorchBackend()
    set_backend(custom)
    assert get_backend() is custom
