from .graph import Graph
from .weights import WeightsContainer

__all__ = ["Graph", "WeightsContainer"]
