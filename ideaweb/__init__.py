"""Public package interface for the idea web engine."""

from .analytics import AnalyticsReport, acknowledge_emerging, build_analytics
from .embeddings import TextProcessor
from .layout import ForceDirectedLayout
from .pipeline import GraphSignal, IngestionPipeline
from .store import Idea, MemoryStore

__all__ = [
    "AnalyticsReport",
    "ForceDirectedLayout",
    "GraphSignal",
    "Idea",
    "IngestionPipeline",
    "MemoryStore",
    "TextProcessor",
    "acknowledge_emerging",
    "build_analytics",
]
