"""Arrow schema for collections and the document <-> row mapping."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import pyarrow as pa

from vectorlane.interfaces.vectordb import VectorDocument

SEED_ROW_ID = "__sample__"


def collection_schema(dimension: int) -> pa.Schema:
    """Schema of a collection whose vectors have ``dimension`` components."""
    if dimension < 1:
        raise ValueError(f"dimension must be positive, got {dimension}")
    return pa.schema(
        [
            pa.field("id", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), dimension)),
            pa.field("content", pa.string()),
            pa.field("relativePath", pa.string()),
            pa.field("startLine", pa.int64()),
            pa.field("endLine", pa.int64()),
            pa.field("fileExtension", pa.string()),
            pa.field("metadata", pa.string()),
        ]
    )


def seed_row(dimension: int) -> dict[str, Any]:
    """Placeholder row that lets the engine build an index on a fresh table."""
    return {
        "id": SEED_ROW_ID,
        "vector": [0.0] * dimension,
        "content": "Sample content for schema initialization",
        "relativePath": "",
        "startLine": 0,
        "endLine": 0,
        "fileExtension": "",
        "metadata": "{}",
    }


def document_to_row(doc: VectorDocument) -> dict[str, Any]:
    row = doc.model_dump(by_alias=True)
    row["metadata"] = json.dumps(doc.metadata)
    return row


def parse_metadata(raw: object) -> dict[str, Any]:
    """Decode a stored metadata value; missing or empty means ``{}``."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    return json.loads(raw)


def row_to_document(row: Mapping[str, Any]) -> VectorDocument:
    vector = row.get("vector")
    return VectorDocument(
        id=row["id"],
        vector=list(vector) if vector is not None else [],
        content=row.get("content") or "",
        relative_path=row.get("relativePath") or "",
        start_line=row.get("startLine") or 0,
        end_line=row.get("endLine") or 0,
        file_extension=row.get("fileExtension") or "",
        metadata=parse_metadata(row.get("metadata")),
    )
