"""VectorDatabase implementation backed by an embedded LanceDB database."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import lancedb
from lancedb.index import FTS

from vectorlane.interfaces.vectordb import (
    HybridSearchOptions,
    SearchOptions,
    SearchResult,
    TextRequest,
    VectorDocument,
    VectorRequest,
    classify_request,
)
from vectorlane.vectordb.errors import (
    CollectionNotFoundError,
    DatabaseConnectionError,
    IndexCreationError,
    OperationError,
    UninitializedError,
    VectorDatabaseError,
)
from vectorlane.vectordb.fusion import RRF_K, SCORE_FIELD, reciprocal_rank_fusion
from vectorlane.vectordb.schema import (
    SEED_ROW_ID,
    collection_schema,
    document_to_row,
    parse_metadata,
    row_to_document,
    seed_row,
)

if TYPE_CHECKING:
    from lancedb.db import AsyncConnection
    from lancedb.table import AsyncTable

logger = logging.getLogger(__name__)

DEFAULT_URI = ".context/lancedb"


def _active_filter(expr: str | None) -> str | None:
    return expr if expr and expr.strip() else None


def _retrieve_exception(task: asyncio.Task[None]) -> None:
    # awaiters re-raise it; mark it retrieved for tasks nobody awaits
    if not task.cancelled():
        task.exception()


async def _to_rows(query: Any) -> list[dict[str, Any]]:
    return (await query.to_arrow()).to_pylist()


async def _list_table_names(db: AsyncConnection) -> list[str]:
    """All table names, following ``list_tables`` pagination."""
    names: list[str] = []
    page_token = None
    while True:
        response = await db.list_tables(page_token=page_token)
        names.extend(response.tables)
        page_token = response.page_token
        if not page_token:
            return names


class LanceDBVectorDatabase:
    """VectorDatabase implementation on LanceDB's async API.

    Construction never blocks. When an event loop is already running the
    connection is scheduled right away; otherwise it starts on the first
    ``open()`` or operation. Either way there is exactly one connection
    attempt per instance, and every operation awaits that same task, so a
    failed connection fails every caller with the same
    ``DatabaseConnectionError`` and is never retried.

    Table handles are cached per collection name. Two concurrent first
    accesses to one collection may both open it; the later handle replaces
    the earlier one in the cache.
    """

    def __init__(
        self,
        uri: str = DEFAULT_URI,
        *,
        distance_type: str = "cosine",
        default_top_k: int = 10,
        rrf_k: int = RRF_K,
        overfetch_factor: int = 2,
        fts_column: str = "content",
    ) -> None:
        self._uri = uri
        self._distance_type = distance_type
        self._default_top_k = default_top_k
        self._rrf_k = rrf_k
        self._overfetch_factor = overfetch_factor
        self._fts_column = fts_column

        self._db: AsyncConnection | None = None
        self._tables: dict[str, AsyncTable] = {}
        self._fts_ready: set[str] = set()
        self._init_task: asyncio.Task[None] | None = None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._schedule_init(loop)

    @property
    def uri(self) -> str:
        return self._uri

    # -- connection gate -------------------------------------------------------

    def _schedule_init(self, loop: asyncio.AbstractEventLoop) -> asyncio.Task[None]:
        task = loop.create_task(self._initialize())
        task.add_done_callback(_retrieve_exception)
        self._init_task = task
        return task

    async def _initialize(self) -> None:
        try:
            if "://" in self._uri:
                target = self._uri
            else:
                db_path = Path(self._uri).expanduser().resolve()
                await asyncio.to_thread(db_path.mkdir, parents=True, exist_ok=True)
                target = str(db_path)
            logger.info("Connecting to LanceDB at %s", target)
            self._db = await lancedb.connect_async(target)
        except Exception as e:
            logger.error("Failed to initialize LanceDB at %s: %s", self._uri, e)
            raise DatabaseConnectionError(self._uri, e) from e

    async def open(self) -> None:
        """Wait for the shared connection task, starting it if needed."""
        task = self._init_task
        if task is None:
            task = self._schedule_init(asyncio.get_running_loop())
        # shielded: cancelling one caller leaves the shared task running
        await asyncio.shield(task)

    async def _ensure_initialized(self) -> AsyncConnection:
        await self.open()
        if self._db is None:
            raise UninitializedError()
        return self._db

    async def close(self) -> None:
        """Release table handles and the connection. Later calls raise UninitializedError."""
        if self._init_task is not None and not self._init_task.done():
            await asyncio.wait([self._init_task])
        for table in self._tables.values():
            table.close()
        self._tables.clear()
        self._fts_ready.clear()
        if self._db is not None:
            self._db.close()
            self._db = None

    async def __aenter__(self) -> LanceDBVectorDatabase:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -- helpers ---------------------------------------------------------------

    async def _get_table(self, db: AsyncConnection, collection_name: str) -> AsyncTable:
        table = self._tables.get(collection_name)
        if table is not None:
            return table
        try:
            table = await db.open_table(collection_name)
        except Exception as e:
            raise CollectionNotFoundError(collection_name) from e
        self._tables[collection_name] = table
        return table

    async def _build_fts_index(self, table: AsyncTable, collection_name: str) -> None:
        await table.create_index(self._fts_column, config=FTS(), replace=False)
        self._fts_ready.add(collection_name)

    async def _ensure_fts_index(self, table: AsyncTable, collection_name: str) -> None:
        """Create the FTS index unless it is known to exist already."""
        if collection_name in self._fts_ready:
            return
        logger.debug("Ensuring FTS index exists for collection %s", collection_name)
        try:
            await self._build_fts_index(table, collection_name)
            logger.info("FTS index created for collection %s", collection_name)
        except Exception as e:
            if "already exists" in str(e):
                logger.debug("FTS index already exists for collection %s", collection_name)
                self._fts_ready.add(collection_name)
                return
            logger.error("Failed to create FTS index for collection %s: %s", collection_name, e)
            raise IndexCreationError(collection_name, self._fts_column, e) from e

    async def _create_table(
        self, db: AsyncConnection, collection_name: str, dimension: int
    ) -> AsyncTable | None:
        """Create an empty table, or return None when it already exists."""
        schema = collection_schema(dimension)
        logger.info("Creating collection %s with dimension %d", collection_name, dimension)
        try:
            if collection_name in await _list_table_names(db):
                logger.info("Collection '%s' already exists", collection_name)
                return None
            return await db.create_table(collection_name, schema=schema, mode="create")
        except Exception as e:
            logger.error("Failed to create collection '%s': %s", collection_name, e)
            raise OperationError(collection_name, "create_collection", e) from e

    # -- collection management -------------------------------------------------

    async def create_collection(
        self, collection_name: str, dimension: int, description: str | None = None
    ) -> None:
        """Create a collection. Existing collections are left untouched.

        ``description`` is accepted for interface parity; LanceDB tables
        carry no description.
        """
        db = await self._ensure_initialized()
        table = await self._create_table(db, collection_name, dimension)
        if table is not None:
            self._tables[collection_name] = table
            logger.info("Created LanceDB table '%s' with dimension %d", collection_name, dimension)

    async def create_hybrid_collection(
        self, collection_name: str, dimension: int, description: str | None = None
    ) -> None:
        """Create a collection with an FTS index on the content column.

        The engine needs data to train the index on, so a seed row is added
        first and removed once the index exists. If any of these steps fails
        the new table is dropped again before the error propagates.
        """
        db = await self._ensure_initialized()
        table = await self._create_table(db, collection_name, dimension)
        if table is None:
            return

        try:
            await self._seed_fts_index(table, collection_name, dimension)
        except VectorDatabaseError:
            await self._discard_table(db, table, collection_name)
            raise

        self._tables[collection_name] = table
        logger.info("Created LanceDB hybrid table '%s' with FTS index", collection_name)

    async def _seed_fts_index(self, table: AsyncTable, collection_name: str, dimension: int) -> None:
        try:
            await table.add([seed_row(dimension)])
        except Exception as e:
            logger.error("Failed to seed collection '%s': %s", collection_name, e)
            raise OperationError(collection_name, "create_hybrid_collection", e) from e

        try:
            await self._build_fts_index(table, collection_name)
        except Exception as e:
            logger.error("Failed to create FTS index for '%s': %s", collection_name, e)
            raise IndexCreationError(collection_name, self._fts_column, e) from e

        try:
            await table.delete(f"id = '{SEED_ROW_ID}'")
        except Exception as e:
            logger.error("Failed to remove seed row from '%s': %s", collection_name, e)
            raise OperationError(collection_name, "create_hybrid_collection", e) from e

    async def _discard_table(self, db: AsyncConnection, table: AsyncTable, collection_name: str) -> None:
        """Drop a half-built table; the caller re-raises the original error."""
        self._fts_ready.discard(collection_name)
        table.close()
        try:
            await db.drop_table(collection_name)
            logger.info("Dropped partially created collection '%s'", collection_name)
        except Exception as e:
            logger.error("Failed to drop partially created collection '%s': %s", collection_name, e)

    async def drop_collection(self, collection_name: str) -> None:
        db = await self._ensure_initialized()
        try:
            await db.drop_table(collection_name)
        except Exception as e:
            logger.error("Failed to drop collection '%s': %s", collection_name, e)
            raise OperationError(collection_name, "drop_collection", e) from e
        self._tables.pop(collection_name, None)
        self._fts_ready.discard(collection_name)
        logger.info("Dropped collection '%s'", collection_name)

    async def has_collection(self, collection_name: str) -> bool:
        return collection_name in await self.list_collections()

    async def list_collections(self) -> list[str]:
        db = await self._ensure_initialized()
        try:
            return await _list_table_names(db)
        except Exception as e:
            logger.error("Failed to list collections: %s", e)
            raise OperationError(None, "list_collections", e) from e

    # -- documents -------------------------------------------------------------

    async def insert(self, collection_name: str, documents: list[VectorDocument]) -> None:
        """Upsert documents by id; within one batch the last document per id wins."""
        db = await self._ensure_initialized()
        table = await self._get_table(db, collection_name)

        rows = list({doc.id: document_to_row(doc) for doc in documents}.values())
        if not rows:
            return
        try:
            await (
                table.merge_insert("id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(rows)
            )
        except Exception as e:
            logger.error("Failed to insert documents into '%s': %s", collection_name, e)
            raise OperationError(collection_name, "insert", e) from e
        logger.info("Inserted %d documents into '%s'", len(rows), collection_name)

    async def insert_hybrid(self, collection_name: str, documents: list[VectorDocument]) -> None:
        # The FTS index covers the content column, so a plain insert is enough.
        await self.insert(collection_name, documents)

    async def delete(self, collection_name: str, ids: list[str]) -> None:
        """Delete documents by id.

        Ids are quoted verbatim. An id containing a single quote breaks the
        predicate; it is reported, not escaped.
        """
        db = await self._ensure_initialized()
        table = await self._get_table(db, collection_name)
        if not ids:
            return

        for doc_id in ids:
            if "'" in doc_id:
                logger.warning("Document id %r contains a quote and is not escaped", doc_id)
        predicate = "id IN ({})".format(", ".join(f"'{doc_id}'" for doc_id in ids))
        try:
            await table.delete(predicate)
        except Exception as e:
            logger.error("Failed to delete documents from '%s': %s", collection_name, e)
            raise OperationError(collection_name, "delete", e) from e
        logger.info("Deleted %d documents from '%s'", len(ids), collection_name)

    async def query(
        self,
        collection_name: str,
        filter_expr: str,
        output_fields: list[str],
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Scalar query; a string ``metadata`` column comes back as a dict."""
        db = await self._ensure_initialized()
        table = await self._get_table(db, collection_name)
        try:
            query = table.query()
            if _active_filter(filter_expr):
                query = query.where(filter_expr)
            if output_fields:
                query = query.select(output_fields)
            if limit:
                query = query.limit(limit)
            rows = await _to_rows(query)
            for row in rows:
                if isinstance(row.get("metadata"), str):
                    row["metadata"] = parse_metadata(row["metadata"])
            return rows
        except Exception as e:
            logger.error("Failed to query collection '%s': %s", collection_name, e)
            raise OperationError(collection_name, "query", e) from e

    # -- search ----------------------------------------------------------------

    def _vector_query(self, table: AsyncTable, vector: Sequence[float], limit: int, filter_expr: str | None):
        query = table.query().nearest_to(list(vector)).distance_type(self._distance_type).limit(limit)
        if filter_expr:
            query = query.where(filter_expr)
        return query

    async def search(
        self,
        collection_name: str,
        query_vector: list[float],
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Nearest neighbors of ``query_vector``. ``score`` is the distance, lower is closer."""
        db = await self._ensure_initialized()
        table = await self._get_table(db, collection_name)
        top_k = options.top_k if options else self._default_top_k
        filter_expr = _active_filter(options.filter_expr) if options else None

        try:
            rows = await _to_rows(self._vector_query(table, query_vector, top_k, filter_expr))
            results = []
            for row in rows:
                distance = float(row.get("_distance") or 0.0)
                results.append(
                    SearchResult(document=row_to_document(row), score=distance, distance=distance)
                )
            return results
        except Exception as e:
            logger.error("Failed to search collection '%s': %s", collection_name, e)
            raise OperationError(collection_name, "search", e) from e

    async def hybrid_search(
        self,
        collection_name: str,
        requests: Sequence[VectorRequest | TextRequest | Mapping[str, Any]],
        options: HybridSearchOptions | None = None,
    ) -> list[SearchResult]:
        """Run the vector and text legs and fuse them with RRF.

        ``score`` is the fused score, higher is better. A leg that fails
        contributes no candidates; a failure to create the missing FTS
        index is fatal.
        """
        db = await self._ensure_initialized()
        table = await self._get_table(db, collection_name)
        options = options or HybridSearchOptions()

        vector_request: VectorRequest | None = None
        text_request: TextRequest | None = None
        for raw in requests:
            request = classify_request(raw)
            if isinstance(request, VectorRequest):
                vector_request = request
            else:
                text_request = request

        limit = (
            options.limit
            or (vector_request.limit if vector_request else None)
            or self._default_top_k
        )
        fetch_limit = limit * self._overfetch_factor
        filter_expr = _active_filter(options.filter_expr)

        vector_rows: list[dict[str, Any]] = []
        if vector_request is not None:
            logger.debug("Vector search with %dD embedding", len(vector_request.vector))
            try:
                vector_rows = await _to_rows(
                    self._vector_query(table, vector_request.vector, fetch_limit, filter_expr)
                )
                logger.debug("Vector search returned %d rows", len(vector_rows))
            except Exception as e:
                logger.warning("Vector search on '%s' failed, using text results only: %s", collection_name, e)

        text_rows: list[dict[str, Any]] = []
        if text_request is not None:
            await self._ensure_fts_index(table, collection_name)
            logger.debug("FTS search for query %r", text_request.query)
            try:
                query = table.query().nearest_to_text(text_request.query).limit(fetch_limit)
                if filter_expr:
                    query = query.where(filter_expr)
                text_rows = await _to_rows(query)
                logger.debug("FTS search returned %d rows", len(text_rows))
            except Exception as e:
                logger.warning("FTS search on '%s' failed, using vector results only: %s", collection_name, e)

        try:
            fused = reciprocal_rank_fusion(vector_rows, text_rows, limit, k=self._rrf_k)
            return [
                SearchResult(
                    document=row_to_document(row),
                    score=row[SCORE_FIELD],
                    fused_score=row[SCORE_FIELD],
                )
                for row in fused
            ]
        except Exception as e:
            logger.error("Failed to perform hybrid search on '%s': %s", collection_name, e)
            raise OperationError(collection_name, "hybrid_search", e) from e
