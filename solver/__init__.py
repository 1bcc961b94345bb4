"""Memswap Solver - Python Implementation."""

from solver.orchestrator import FillOrchestrator, OrchestratorContext, build_context

__version__ = "0.1.0"
__all__ = ["FillOrchestrator", "OrchestratorContext", "build_context", "__version__"]
