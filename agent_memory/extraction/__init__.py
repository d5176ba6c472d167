"""Extraction: category registry, LLM extractor, extraction cycle, and dispatch."""

from .memory_extractor import MemoryExtractor
from .pipeline import ExtractionCycleReport, ExtractionJob, ExtractionPipeline
from .registry import CategoryDefinition, CategoryRegistry, category_registry
from .trigger import ExtractionTrigger
from .worker import CeleryDispatcher, ExtractionDispatcher, ExtractionWorkerPool

__all__ = [
    "CategoryDefinition",
    "CategoryRegistry",
    "CeleryDispatcher",
    "ExtractionCycleReport",
    "ExtractionDispatcher",
    "ExtractionJob",
    "ExtractionPipeline",
    "ExtractionTrigger",
    "ExtractionWorkerPool",
    "MemoryExtractor",
    "category_registry",
]
