# layergraph/backend/torch_backend.py
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import torch
import torch.nn.functional as F

from layergraph.config import LossConfig, OptimizerConfig
from .base import Backend
from .ir import IRGraph, IRValue
from .printer import dump_ir, dump_lowered

LossCallback = Callable[[List[torch.Tensor]], None]


# -----------------------------
# activations
# -----------------------------
def _relun(x: torch.Tensor, alpha: float, beta: float) -> torch.Tensor:
    # leaky below zero (slope alpha), clipped above at beta
    return torch.clamp(torch.where(x >= 0, x, alpha * x), max=beta)


ACTIVATIONS: Dict[str, Callable[..., torch.Tensor]] = {
    "celu": lambda x, alpha=1.0: F.celu(x, alpha=alpha),
    "clamp": lambda x, min_value, max_value: torch.clamp(x, min=min_value, max=max_value),
    "elu": lambda x, alpha=1.0: F.elu(x, alpha=alpha),
    "gelu": lambda x: F.gelu(x),
    "hard_shrink": lambda x, lambd=0.5: F.hardshrink(x, lambd=lambd),
    "hard_sigmoid": lambda x: F.hardsigmoid(x),
    "hard_swish": lambda x: F.hardswish(x),
    "leaky_relu": lambda x, negative_slope=0.01: F.leaky_relu(x, negative_slope=negative_slope),
    "linear": lambda x, scale, bias: x * scale + bias,
    "log_sigmoid": lambda x: F.logsigmoid(x),
    "relu": lambda x: F.relu(x),
    "relun": _relun,
    "relu6": lambda x: F.relu6(x),
    "selu": lambda x: F.selu(x),
    "sigmoid": lambda x: torch.sigmoid(x),
    "soft_plus": lambda x, beta=1.0: F.softplus(x, beta=beta),
    "soft_shrink": lambda x, lambd=0.5: F.softshrink(x, lambd=lambd),
    "soft_sign": lambda x: F.softsign(x),
    "tanh": lambda x: torch.tanh(x),
    "tanh_shrink": lambda x: F.tanhshrink(x),
    "threshold": lambda x, threshold, value: F.threshold(x, threshold, value),
}


# -----------------------------
# op kernels: (x, attrs, params) -> y
# -----------------------------
def _op_activation(x: torch.Tensor, attrs: Dict[str, Any], params: Dict[str, Any]) -> torch.Tensor:
    fn = ACTIVATIONS[attrs["kind"]]
    return fn(x, **dict(attrs.get("args", {})))


def _op_softmax(x: torch.Tensor, attrs: Dict[str, Any], params: Dict[str, Any]) -> torch.Tensor:
    if attrs.get("log", False):
        return F.log_softmax(x, dim=-1)
    return F.softmax(x, dim=-1)


def _op_reshape(x: torch.Tensor, attrs: Dict[str, Any], params: Dict[str, Any]) -> torch.Tensor:
    shape = list(attrs["shape"])
    # runtime batch follows the bound input
    return x.reshape([x.shape[0]] + shape[1:])


def _op_fully_connected(x: torch.Tensor, attrs: Dict[str, Any], params: Dict[str, Any]) -> torch.Tensor:
    # weights: (IN, OUT), biases: (OUT,)
    return x @ params["weights"] + params["biases"]


def _op_lstm(x: torch.Tensor, attrs: Dict[str, Any], params: Dict[str, Any]) -> torch.Tensor:
    """
    batch-first LSTM over the secondary axis: x (B, T, IN) -> (B, T, H) or (B, 1, H).
    Gate k of internal layer l uses tensor index 4*l + k, gate order (i, f, g, o).
    """
    H = int(attrs["hidden_size"])
    L = int(attrs["layer_count"])
    W_in: Sequence[torch.Tensor] = params["input_weights"]
    W_h: Sequence[torch.Tensor] = params["hidden_weights"]
    b: Sequence[torch.Tensor] = params["biases"]

    B, T = x.shape[0], x.shape[1]
    seq = x
    for layer in range(L):
        base = 4 * layer
        h = x.new_zeros((B, H))
        c = x.new_zeros((B, H))
        outs: List[torch.Tensor] = []
        for step in range(T):
            xt = seq[:, step, :]
            gates = [xt @ W_in[base + k] + h @ W_h[base + k] + b[base + k] for k in range(4)]
            i = torch.sigmoid(gates[0])
            f = torch.sigmoid(gates[1])
            g = torch.tanh(gates[2])
            o = torch.sigmoid(gates[3])
            c = f * c + i * g
            h = o * torch.tanh(c)
            outs.append(h)
        seq = torch.stack(outs, dim=1)

    if attrs.get("returns_sequences", False):
        return seq
    return seq[:, -1:, :]


OPS: Dict[str, Callable[[torch.Tensor, Dict[str, Any], Dict[str, Any]], torch.Tensor]] = {
    "activation": _op_activation,
    "softmax": _op_softmax,
    "reshape": _op_reshape,
    "fully_connected": _op_fully_connected,
    "lstm": _op_lstm,
}


# -----------------------------
# lowering
# -----------------------------
def lower_to_backend_ops(ir: IRGraph) -> List[Dict[str, Any]]:
    lowered: List[Dict[str, Any]] = []
    for n in ir.nodes:
        op = str(n.op).strip().lower()
        if op not in OPS:
            raise KeyError(f"[lower] unknown op: {n.op}")
        lowered.append({
            "op": op,
            "inputs": list(n.inputs),
            "outputs": list(n.outputs),
            "attrs": dict(n.attrs),
            "params": dict(n.params),
        })
    return lowered


def _collect_params(lowered: List[Dict[str, Any]]) -> List[torch.Tensor]:
    out: List[torch.Tensor] = []
    seen: set[int] = set()
    for it in lowered:
        for p in it["params"].values():
            group = p if isinstance(p, (list, tuple)) else [p]
            for t in group:
                if id(t) not in seen:
                    seen.add(id(t))
                    out.append(t)
    return out


def copy_in(buf: bytes, shape: Sequence[int], batch_size: int, device: torch.device) -> torch.Tensor:
    """Raw float32 bytes -> device tensor; leading dim of `shape` is replaced by batch_size."""
    arr = np.frombuffer(buf, dtype=np.float32).copy()
    dims = [int(batch_size)] + [int(d) for d in shape[1:]]
    return torch.from_numpy(arr).reshape(dims).to(device=device)


def copy_out(t: torch.Tensor) -> bytes:
    return t.detach().to(device="cpu", dtype=torch.float32).contiguous().numpy().tobytes()


def _synchronize(device: torch.device) -> None:
    if device.type == "cuda":
        torch.cuda.synchronize(device)
    elif device.type == "mps":
        torch.mps.synchronize()


# -----------------------------
# executables
# -----------------------------
class _Executable:
    def __init__(self, *, ir: IRGraph, lowered: List[Dict[str, Any]], device: torch.device,
                 inputs: List[IRValue], output: IRValue):
        self.ir = ir
        self.lowered = lowered
        self.device = device
        self.inputs = {v.name: v for v in inputs}
        self.output = output
        self._env: Dict[int, torch.Tensor] = {}

    def _bind(self, values: Dict[str, IRValue], data: Dict[str, bytes], batch_size: int) -> None:
        for label, buf in data.items():
            if label not in values:
                raise KeyError(f"[exec] unknown label: {label}")
            v = values[label]
            self._env[v.id] = copy_in(buf, v.shape, batch_size, self.device)

    def _forward(self) -> torch.Tensor:
        for it in self.lowered:
            x = self._env[it["inputs"][0]]
            y = OPS[it["op"]](x, it["attrs"], it["params"])
            self._env[it["outputs"][0]] = y
        return self._env[self.output.id]

    def read(self, value: IRValue) -> torch.Tensor:
        """Device-resident result of the last execute(); detached."""
        if value.id not in self._env:
            raise RuntimeError(f"[exec] v{value.id:03d}({value.name}) has no data yet")
        return self._env[value.id].detach()

    def read_bytes(self, value: IRValue) -> bytes:
        return copy_out(self.read(value))


class TrainingExecutable(_Executable):
    """Forward + unreduced MSE + backward + Adam, one example (batch) per execute()."""

    def __init__(self, *, ir: IRGraph, lowered: List[Dict[str, Any]], device: torch.device,
                 inputs: List[IRValue], output: IRValue, loss_labels: List[IRValue],
                 loss: LossConfig, optimizer: OptimizerConfig):
        super().__init__(ir=ir, lowered=lowered, device=device, inputs=inputs, output=output)
        if loss.kind != "mse" or loss.reduction != "none":
            raise ValueError(f"[compile] unsupported loss: {loss}")
        if optimizer.regularization != "none":
            raise ValueError(f"[compile] unsupported regularization: {optimizer.regularization}")
        self.loss_labels = {v.name: v for v in loss_labels}
        self.loss_cfg = loss
        self.opt_cfg = optimizer
        self.params = _collect_params(lowered)
        for p in self.params:
            p.requires_grad_(True)
        self.optim = torch.optim.Adam(
            self.params,
            lr=optimizer.learning_rate,
            betas=(optimizer.beta1, optimizer.beta2),
            eps=optimizer.eps,
            weight_decay=0.0,
        ) if self.params else None

    def execute(self, *, inputs_data: Dict[str, bytes], loss_labels_data: Dict[str, bytes],
                batch_size: int, synchronous: bool = True,
                completion: Optional[LossCallback] = None) -> None:
        self._bind(self.inputs, inputs_data, batch_size)
        self._bind(self.loss_labels, loss_labels_data, batch_size)
        (label,) = self.loss_labels.values()

        if self.optim is not None:
            self.optim.zero_grad(set_to_none=True)
        y = self._forward()
        t = self._env[label.id]
        if tuple(y.shape) != tuple(t.shape):
            raise RuntimeError(f"[exec] loss shape mismatch: output={tuple(y.shape)} target={tuple(t.shape)}")

        loss = (y - t) ** 2 * self.loss_cfg.weight
        if loss.requires_grad:
            loss.backward(torch.ones_like(loss))
            if self.opt_cfg.gradient_rescale != 1.0:
                for p in self.params:
                    if p.grad is not None:
                        p.grad.mul_(self.opt_cfg.gradient_rescale)
            self.optim.step()

        if synchronous:
            _synchronize(self.device)
        if completion is not None:
            completion([loss.detach()])


class InferenceExecutable(_Executable):
    def execute(self, *, inputs_data: Dict[str, bytes], batch_size: int, synchronous: bool = True) -> None:
        self._bind(self.inputs, inputs_data, batch_size)
        with torch.no_grad():
            self._forward()
        if synchronous:
            _synchronize(self.device)


# -----------------------------
# backend
# -----------------------------
class TorchBackend(Backend):
    """Reference backend: every op is a plain torch call; autograd drives training."""

    def compile_training(self, ir: IRGraph, *, output: IRValue, device: torch.device,
                         loss: LossConfig, optimizer: OptimizerConfig,
                         debug_layers: bool = False) -> TrainingExecutable:
        lowered = lower_to_backend_ops(ir)
        if debug_layers:
            print(dump_ir(ir))
            print(dump_lowered(lowered, name=ir.name))
        return TrainingExecutable(
            ir=ir, lowered=lowered, device=device,
            inputs=ir.inputs(), output=output, loss_labels=ir.loss_labels(),
            loss=loss, optimizer=optimizer,
        )

    def compile_inference(self, ir: IRGraph, *, output: IRValue, device: torch.device,
                          debug_layers: bool = False) -> InferenceExecutable:
        lowered = lower_to_backend_ops(ir)
        if debug_layers:
            print(dump_ir(ir))
            print(dump_lowered(lowered, name=ir.name))
        return InferenceExecutable(ir=ir, lowered=lowered, device=device, inputs=ir.inputs(), output=output)
