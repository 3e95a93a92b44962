# layergraph/backend/base.py
from __future__ import annotations

from typing import Any

from .ir import IRGraph, IRValue


class Backend:
    """
    Capability surface the graph orchestrator depends on.
    Device selection lives on the device enums; everything else is here.
    """

    def compile_training(self, ir: IRGraph, *, output: IRValue, device: Any,
                         loss: Any, optimizer: Any, debug_layers: bool = False) -> Any:
        raise NotImplementedError

    def compile_inference(self, ir: IRGraph, *, output: IRValue, device: Any,
                          debug_layers: bool = False) -> Any:
        raise NotImplementedError
