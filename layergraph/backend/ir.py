# layergraph/backend/ir.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

ROLE_INPUT = "input"
ROLE_LOSS_LABEL = "loss_label"
ROLE_NODE = "node"


@dataclass(frozen=True)
class NodeDescriptor:
    """
    What a configured layer hands to the backend: op kind, attrs, the parameter
    tensors the op reads (torch leaves owned by the layer), and the shape arrays
    it expects/produces.
    """
    op: str
    input_shape: Tuple[int, ...]
    output_shape: Tuple[int, ...]
    attrs: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IRValue:
    id: int
    name: str
    shape: Tuple[int, ...]
    role: str = ROLE_NODE


@dataclass
class IRNode:
    op: str
    inputs: List[int]
    outputs: List[int]
    attrs: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IRGraph:
    """Acyclic single-chain graph: one input value, then one node per layer."""
    name: str = "graph"
    values: Dict[int, IRValue] = field(default_factory=dict)
    nodes: List[IRNode] = field(default_factory=list)
    _next_vid: int = 0

    def new_value(self, *, name: str, shape: Sequence[int], role: str = ROLE_NODE) -> IRValue:
        vid = self._next_vid
        self._next_vid += 1
        v = IRValue(id=vid, name=str(name), shape=tuple(int(d) for d in shape), role=role)
        self.values[vid] = v
        return v

    def emit(self, *, op: str, inputs: List[IRValue], outputs: List[IRValue],
             attrs: Dict[str, Any] | None = None, params: Dict[str, Any] | None = None) -> IRNode:
        n = IRNode(
            op=str(op),
            inputs=[int(v.id) for v in inputs],
            outputs=[int(v.id) for v in outputs],
            attrs=dict(attrs or {}),
            params=dict(params or {}),
        )
        self.nodes.append(n)
        return n

    def input(self, name: str, shape: Sequence[int]) -> IRValue:
        return self.new_value(name=name, shape=shape, role=ROLE_INPUT)

    def loss_label(self, name: str, shape: Sequence[int]) -> IRValue:
        return self.new_value(name=name, shape=shape, role=ROLE_LOSS_LABEL)

    def last_value(self) -> Optional[IRValue]:
        chain = [v for v in self.values.values() if v.role != ROLE_LOSS_LABEL]
        return chain[-1] if chain else None

    def node(self, descriptor: NodeDescriptor, sources: List[IRValue]) -> IRValue:
        """Append one node fed by `sources` (exactly the current chain tail)."""
        if len(sources) != 1:
            raise RuntimeError(f"[ir] chain node expects 1 source, got {len(sources)}")
        src = sources[0]
        tail = self.last_value()
        if tail is None or src.id != tail.id:
            raise RuntimeError(f"[ir] node source v{src.id:03d} is not the chain tail")
        if tuple(src.shape) != tuple(descriptor.input_shape):
            raise RuntimeError(
                f"[ir] {descriptor.op} input shape mismatch: source={tuple(src.shape)} "
                f"expected={tuple(descriptor.input_shape)}"
            )
        out = self.new_value(name=f"{len(self.nodes)}.{descriptor.op}_out", shape=descriptor.output_shape)
        self.emit(op=descriptor.op, inputs=[src], outputs=[out],
                  attrs=descriptor.attrs, params=descriptor.params)
        return out

    def inputs(self) -> List[IRValue]:
        return [v for v in self.values.values() if v.role == ROLE_INPUT]

    def loss_labels(self) -> List[IRValue]:
        return [v for v in self.values.values() if v.role == ROLE_LOSS_LABEL]
