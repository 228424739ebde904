"""Shared test fixtures for vectorlane."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pyarrow as pa
import pytest

from vectorlane.config.models import VectorlaneConfig
from vectorlane.interfaces.vectordb import VectorDocument
from vectorlane.vectordb.lancedb_store import LanceDBVectorDatabase


# ---------------------------------------------------------------------------
# In-memory stand-ins for the LanceDB async API
# ---------------------------------------------------------------------------


class FakeQuery:
    """Chainable query builder that returns rows preset on its table."""

    def __init__(self, table: FakeTable) -> None:
        self._table = table
        self.mode = "plain"
        self.calls: list[tuple] = []

    def _record(self, name: str, *args) -> FakeQuery:
        self.calls.append((name, *args))
        return self

    def nearest_to(self, vector):
        self.mode = "vector"
        return self._record("nearest_to", vector)

    def nearest_to_text(self, text):
        self.mode = "text"
        return self._record("nearest_to_text", text)

    def distance_type(self, name):
        return self._record("distance_type", name)

    def limit(self, n):
        return self._record("limit", n)

    def where(self, expr):
        return self._record("where", expr)

    def select(self, columns):
        return self._record("select", columns)

    def call_args(self, name: str) -> list[tuple]:
        return [c[1:] for c in self.calls if c[0] == name]

    async def to_arrow(self) -> pa.Table:
        self._table.queries.append(self)
        result = self._table.results.get(self.mode, [])
        if isinstance(result, Exception):
            raise result
        return pa.Table.from_pylist([dict(row) for row in result])


class FakeMergeBuilder:
    def __init__(self, table: FakeTable, on: str) -> None:
        self._table = table
        self.on = on

    def when_matched_update_all(self):
        return self

    def when_not_matched_insert_all(self):
        return self

    async def execute(self, rows):
        if self._table.merge_error is not None:
            raise self._table.merge_error
        self._table.merged.append((self.on, rows))


class FakeTable:
    def __init__(self, name: str, schema: pa.Schema | None = None) -> None:
        self.name = name
        self.schema = schema
        self.results: dict[str, list[dict] | Exception] = {}
        self.queries: list[FakeQuery] = []
        self.merged: list[tuple[str, list[dict]]] = []
        self.merge_error: Exception | None = None
        self.add = AsyncMock()
        self.delete = AsyncMock()
        self.create_index = AsyncMock()
        self.close = MagicMock()

    def query(self) -> FakeQuery:
        return FakeQuery(self)

    def merge_insert(self, on: str) -> FakeMergeBuilder:
        return FakeMergeBuilder(self, on)

    def queries_by_mode(self, mode: str) -> list[FakeQuery]:
        return [q for q in self.queries if q.mode == mode]


class FakeConnection:
    def __init__(self) -> None:
        self.tables: dict[str, FakeTable] = {}
        self.open_table = AsyncMock(side_effect=self._open_table)
        self.create_table = AsyncMock(side_effect=self._create_table)
        self.drop_table = AsyncMock(side_effect=self._drop_table)
        self.list_tables = AsyncMock(side_effect=self._list_tables)
        self.page_size: int | None = None
        self.close = MagicMock()

    def add_table(self, name: str) -> FakeTable:
        table = FakeTable(name)
        self.tables[name] = table
        return table

    async def _open_table(self, name: str) -> FakeTable:
        if name not in self.tables:
            raise ValueError(f"Table '{name}' was not found")
        return self.tables[name]

    async def _create_table(self, name: str, schema=None, mode=None) -> FakeTable:
        if name in self.tables:
            raise ValueError(f"Table '{name}' already exists")
        table = FakeTable(name, schema)
        self.tables[name] = table
        return table

    async def _drop_table(self, name: str) -> None:
        if name not in self.tables:
            raise ValueError(f"Table '{name}' was not found")
        del self.tables[name]

    async def _list_tables(self, page_token: str | None = None) -> SimpleNamespace:
        names = sorted(self.tables)
        start = int(page_token) if page_token else 0
        end = len(names) if self.page_size is None else start + self.page_size
        next_token = str(end) if end < len(names) else None
        return SimpleNamespace(tables=names[start:end], page_token=next_token)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_config():
    return VectorlaneConfig()


@pytest.fixture
def make_doc():
    """Factory for VectorDocument with sensible defaults."""

    def _make(doc_id: str = "doc-1", **overrides) -> VectorDocument:
        defaults = dict(
            id=doc_id,
            vector=[0.1, 0.2, 0.3],
            content=f"content of {doc_id}",
            relative_path="src/app.py",
            start_line=1,
            end_line=10,
            file_extension=".py",
            metadata={"language": "python"},
        )
        defaults.update(overrides)
        return VectorDocument(**defaults)

    return _make


def _make_row(doc_id: str, **extra) -> dict:
    row = {
        "id": doc_id,
        "vector": [0.1, 0.2, 0.3],
        "content": f"content of {doc_id}",
        "relativePath": "src/app.py",
        "startLine": 1,
        "endLine": 10,
        "fileExtension": ".py",
        "metadata": '{"language": "python"}',
    }
    row.update(extra)
    return row


@pytest.fixture
def make_row():
    """Factory for stored rows as the engine returns them."""
    return _make_row


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def connect_mock(fake_connection):
    """Patch lancedb.connect_async to hand out the fake connection."""
    with patch(
        "vectorlane.vectordb.lancedb_store.lancedb.connect_async",
        new=AsyncMock(return_value=fake_connection),
    ) as mock:
        yield mock


@pytest.fixture
def store(tmp_path, connect_mock) -> LanceDBVectorDatabase:
    """A store wired to the fake connection. Built outside a loop, so init is lazy."""
    return LanceDBVectorDatabase(str(tmp_path / "lancedb"))
