"""Indexing queue and progress tracking for Dossier."""

from src.pipeline.indexing_coordinator import IndexingCoordinator
from src.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "IndexingCoordinator",
    "ProgressTracker",
]
