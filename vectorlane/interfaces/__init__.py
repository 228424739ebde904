"""Interfaces and data models shared by vectorlane backends."""

from vectorlane.interfaces.vectordb import (
    HybridSearchOptions,
    SearchOptions,
    SearchRequest,
    SearchResult,
    TextRequest,
    VectorDatabase,
    VectorDocument,
    VectorRequest,
    classify_request,
)

__all__ = [
    "HybridSearchOptions",
    "SearchOptions",
    "SearchRequest",
    "SearchResult",
    "TextRequest",
    "VectorDatabase",
    "VectorDocument",
    "VectorRequest",
    "classify_request",
]
