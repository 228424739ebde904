"""Vector database backends."""

from vectorlane.config.models import VectorlaneConfig
from vectorlane.interfaces.vectordb import VectorDatabase
from vectorlane.vectordb.errors import (
    CollectionNotFoundError,
    DatabaseConnectionError,
    IndexCreationError,
    OperationError,
    UninitializedError,
    VectorDatabaseError,
)
from vectorlane.vectordb.fusion import RRF_K, reciprocal_rank_fusion
from vectorlane.vectordb.lancedb_store import LanceDBVectorDatabase

_BACKEND_MAP: dict[str, type[LanceDBVectorDatabase]] = {
    "lancedb": LanceDBVectorDatabase,
}


def create_vector_database(config: VectorlaneConfig) -> VectorDatabase:
    """Create a vector database backend from app-level config."""
    cls = _BACKEND_MAP.get(config.database.backend)
    if cls is None:
        raise ValueError(
            f"Unsupported vector database backend: {config.database.backend!r}. "
            f"Supported: {', '.join(_BACKEND_MAP)}"
        )
    return cls(
        config.database.uri,
        distance_type=config.database.distance_type,
        default_top_k=config.search.default_top_k,
        rrf_k=config.search.rrf_k,
        overfetch_factor=config.search.overfetch_factor,
        fts_column=config.search.fts_column,
    )


__all__ = [
    "CollectionNotFoundError",
    "DatabaseConnectionError",
    "IndexCreationError",
    "LanceDBVectorDatabase",
    "OperationError",
    "RRF_K",
    "UninitializedError",
    "VectorDatabase",
    "VectorDatabaseError",
    "create_vector_database",
    "reciprocal_rank_fusion",
]
