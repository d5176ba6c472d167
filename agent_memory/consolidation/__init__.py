"""Consolidation: reconcile extracted candidates with existing long-term memory."""

__all__ = [
    "DecisionApplier",
    "MemoryConsolidator",
]


def __getattr__(name: str):
    """Lazy export to avoid import cycles during package initialization."""
    if name == "DecisionApplier":
        from .applier import DecisionApplier

        return DecisionApplier
    if name == "MemoryConsolidator":
        from .consolidator import MemoryConsolidator

        return MemoryConsolidator
    raise AttributeError(name)
