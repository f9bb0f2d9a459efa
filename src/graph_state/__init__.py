from .builder import EntityGraphBuilder, GraphBuildStats

__all__ = ["EntityGraphBuilder", "GraphBuildStats"]
