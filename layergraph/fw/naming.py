# layergraph/fw/naming.py
from __future__ import annotations

from typing import Sequence

# labels binding caller buffers to backend values
INPUT_LABEL = "input"
TARGET_LABEL = "target"


def graph_name(kind: str, layers: Sequence) -> str:
    # e.g. kind="train", layers=[FC, Act] -> "train:FullyConnectedLayer>ActivationLayer"
    return f"{kind}:" + ">".join(type(l).__name__ for l in layers)
