"""Memory components: transcripts, long-term records, service registry, orchestrator."""

__all__ = [
    "LongTermMemoryStore",
    "MemoryOrchestrator",
    "ServiceRegistry",
    "TranscriptStore",
]


def __getattr__(name: str):
    """Lazy exports to avoid package-level import cycles."""
    if name == "LongTermMemoryStore":
        from .long_term import LongTermMemoryStore

        return LongTermMemoryStore
    if name == "MemoryOrchestrator":
        from .orchestrator import MemoryOrchestrator

        return MemoryOrchestrator
    if name == "ServiceRegistry":
        from .services import ServiceRegistry

        return ServiceRegistry
    if name == "TranscriptStore":
        from .short_term import TranscriptStore

        return TranscriptStore
    raise AttributeError(name)
