# layergraph/backend/printer.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from .ir import IRGraph


def _fmt_attrs(attrs: Dict[str, Any]) -> str:
    if not attrs:
        return ""
    items = []
    for k, v in attrs.items():
        if isinstance(v, float):
            items.append(f"{k}={v:.6g}")
        else:
            items.append(f"{k}={v}")
    return "  {" + ", ".join(items) + "}"


def _fmt_params(params: Dict[str, Any]) -> str:
    if not params:
        return ""
    items = []
    for k, v in params.items():
        if isinstance(v, (list, tuple)):
            items.append(f"{k}[{len(v)}]")
        else:
            items.append(f"{k}{tuple(getattr(v, 'shape', ()))}")
    return "  params(" + ", ".join(items) + ")"


def dump_ir(ir: IRGraph) -> str:
    lines: List[str] = []
    lines.append(f"=== IRGraph: {ir.name} ===")
    lines.append(f"values: {len(ir.values)}, nodes: {len(ir.nodes)}")
    lines.append("")

    lines.append("[values]")
    for vid in sorted(ir.values.keys()):
        v = ir.values[vid]
        lines.append(f"  v{int(v.id):03d}  {str(v.name):24s} shape={tuple(v.shape)} role={v.role}")

    lines.append("")
    lines.append("[nodes]")
    for i, n in enumerate(ir.nodes):
        ins = ", ".join([f"v{int(vid):03d}" for vid in n.inputs])
        outs = ", ".join([f"v{int(vid):03d}" for vid in n.outputs])
        lines.append(f"  #{i:03d} {str(n.op):16s} ({ins}) -> ({outs}){_fmt_attrs(n.attrs)}{_fmt_params(n.params)}")

    return "\n".join(lines)


def dump_lowered(
    lowered: List[Dict[str, Any]],
    *,
    title: str = "LoweredOps",
    name: Optional[str] = None,
) -> str:
    hdr = f"{title}({name})" if name else title

    lines: List[str] = []
    lines.append(f"=== {hdr} ===")
    lines.append(f"ops: {len(lowered)}")
    lines.append("")

    for i, it in enumerate(lowered):
        op = str(it.get("op"))
        ins_s = ", ".join([f"v{int(v):03d}" for v in it.get("inputs", [])])
        outs_s = ", ".join([f"v{int(v):03d}" for v in it.get("outputs", [])])
        attrs_s = _fmt_attrs(dict(it.get("attrs", {}) or {}))
        lines.append(f"  #{i:03d} {op:16s} ({ins_s}) -> ({outs_s}){attrs_s}")

    return "\n".join(lines)
