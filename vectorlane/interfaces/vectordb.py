"""Vector database interface and models."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from numbers import Real
from typing import Annotated, Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VectorDocument(BaseModel):
    """A chunk of a source file together with its embedding.

    Field aliases are the column names used by the stored rows.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    vector: list[float] = Field(default_factory=list)
    content: str
    relative_path: str = Field(alias="relativePath")
    start_line: int = Field(alias="startLine")
    end_line: int = Field(alias="endLine")
    file_extension: str = Field(alias="fileExtension")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("id cannot be empty or whitespace")
        return v


class SearchResult(BaseModel):
    """A single hit returned by `search` or `hybrid_search`.

    `score` keeps the convention of the call that produced it: for plain
    vector search it is the cosine distance (lower is closer) and equals
    `distance`; for hybrid search it is the fused RRF score (higher is
    better) and equals `fused_score`.
    """

    model_config = ConfigDict(frozen=True)

    document: VectorDocument
    score: float
    distance: float | None = None
    fused_score: float | None = None


class SearchOptions(BaseModel):
    top_k: int = Field(default=10, gt=0)
    filter_expr: str | None = None


class HybridSearchOptions(BaseModel):
    limit: int | None = Field(default=None, gt=0)
    filter_expr: str | None = None


class VectorRequest(BaseModel):
    """Dense nearest-neighbor leg of a hybrid search."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["vector"] = "vector"
    vector: list[float] = Field(min_length=1)
    limit: int | None = Field(default=None, gt=0)


class TextRequest(BaseModel):
    """Full-text leg of a hybrid search."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    query: str
    limit: int | None = Field(default=None, gt=0)


SearchRequest = Annotated[VectorRequest | TextRequest, Field(discriminator="kind")]


def _is_number_sequence(data: object) -> bool:
    if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
        return False
    return all(isinstance(x, Real) for x in data)


def classify_request(payload: VectorRequest | TextRequest | Mapping[str, Any]) -> VectorRequest | TextRequest:
    """Turn a raw ``{"data": ..., "anns_field": ...}`` mapping into a tagged request.

    A payload is a vector request when ``anns_field == "vector"`` or its data
    is a sequence of numbers, and a text request when ``anns_field ==
    "sparse_vector"`` or its data is a string. Tagged requests pass through.
    """
    if isinstance(payload, (VectorRequest, TextRequest)):
        return payload
    if "kind" in payload:
        if payload["kind"] == "vector":
            return VectorRequest.model_validate(payload)
        return TextRequest.model_validate(payload)

    data = payload.get("data")
    anns_field = payload.get("anns_field")
    limit = payload.get("limit")
    if anns_field == "vector" or _is_number_sequence(data):
        return VectorRequest(vector=data, limit=limit)
    if anns_field == "sparse_vector" or isinstance(data, str):
        return TextRequest(query=data, limit=limit)
    raise ValueError(f"Cannot classify search request with data of type {type(data).__name__}")


@runtime_checkable
class VectorDatabase(Protocol):
    """Collection management, CRUD, vector and hybrid search over one database."""

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def create_collection(
        self, collection_name: str, dimension: int, description: str | None = None
    ) -> None: ...

    async def create_hybrid_collection(
        self, collection_name: str, dimension: int, description: str | None = None
    ) -> None: ...

    async def drop_collection(self, collection_name: str) -> None: ...

    async def has_collection(self, collection_name: str) -> bool: ...

    async def list_collections(self) -> list[str]: ...

    async def insert(self, collection_name: str, documents: list[VectorDocument]) -> None: ...

    async def insert_hybrid(self, collection_name: str, documents: list[VectorDocument]) -> None: ...

    async def search(
        self,
        collection_name: str,
        query_vector: list[float],
        options: SearchOptions | None = None,
    ) -> list[SearchResult]: ...

    async def hybrid_search(
        self,
        collection_name: str,
        requests: Sequence[VectorRequest | TextRequest | Mapping[str, Any]],
        options: HybridSearchOptions | None = None,
    ) -> list[SearchResult]: ...

    async def delete(self, collection_name: str, ids: list[str]) -> None: ...

    async def query(
        self,
        collection_name: str,
        filter_expr: str,
        output_fields: list[str],
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...
