"""SECD abstract machine: cell arena, environments, closures and the dispatch loop."""
