# layergraph/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    v = os.environ.get(name, "")
    if v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    return _env_int(name, 1 if default else 0) != 0


@dataclass(frozen=True)
class OptimizerConfig:
    """Adam descriptor. Training always uses these values."""
    learning_rate: float = 0.01
    gradient_rescale: float = 1.0
    regularization: str = "none"
    beta1: float = 0.9
    beta2: float = 0.999
    eps: float = 1e-8


@dataclass(frozen=True)
class LossConfig:
    kind: str = "mse"
    reduction: str = "none"
    weight: float = 1.0


@dataclass
class GraphConfig:
    debug_layers: bool = False      # dump IR + lowered ops on compile
    print_loss: bool = True         # per-example loss tensors during training
    print_progress: bool = True     # "Executing iteration i of n..."
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    loss: LossConfig = field(default_factory=LossConfig)

    @classmethod
    def from_env(cls) -> "GraphConfig":
        """
        LAYERGRAPH_DEBUG=1        -> debug_layers
        LAYERGRAPH_PRINT_LOSS=0   -> silence loss tensors
        LAYERGRAPH_PRINT_ITER=0   -> silence progress lines
        """
        return cls(
            debug_layers=_env_flag("LAYERGRAPH_DEBUG", False),
            print_loss=_env_flag("LAYERGRAPH_PRINT_LOSS", True),
            print_progress=_env_flag("LAYERGRAPH_PRINT_ITER", True),
        )
