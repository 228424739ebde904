"""vectorlane - async LanceDB adapter with vector and hybrid (RRF) search."""

from vectorlane.config import VectorlaneConfig, load_config
from vectorlane.interfaces import (
    HybridSearchOptions,
    SearchOptions,
    SearchResult,
    TextRequest,
    VectorDatabase,
    VectorDocument,
    VectorRequest,
)
from vectorlane.vectordb import LanceDBVectorDatabase, create_vector_database

__version__ = "0.1.0"

__all__ = [
    "HybridSearchOptions",
    "LanceDBVectorDatabase",
    "SearchOptions",
    "SearchResult",
    "TextRequest",
    "VectorDatabase",
    "VectorDocument",
    "VectorRequest",
    "VectorlaneConfig",
    "create_vector_database",
    "load_config",
]
