"""Tests for vectorlane.interfaces: models, request classification, structural subtyping."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from vectorlane.interfaces import (
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
from vectorlane.vectordb import LanceDBVectorDatabase


# ---------------------------------------------------------------------------
# VectorDocument
# ---------------------------------------------------------------------------


class TestVectorDocument:
    def test_accepts_field_names(self, make_doc):
        doc = make_doc("a")
        assert doc.relative_path == "src/app.py"
        assert doc.start_line == 1

    def test_accepts_column_aliases(self):
        doc = VectorDocument.model_validate(
            {
                "id": "a",
                "vector": [1.0],
                "content": "x",
                "relativePath": "main.go",
                "startLine": 3,
                "endLine": 4,
                "fileExtension": ".go",
            }
        )
        assert doc.relative_path == "main.go"
        assert doc.file_extension == ".go"
        assert doc.metadata == {}

    def test_dump_by_alias_uses_column_names(self, make_doc):
        dumped = make_doc("a").model_dump(by_alias=True)
        assert {"relativePath", "startLine", "endLine", "fileExtension"} <= dumped.keys()

    @pytest.mark.parametrize("bad_id", ["", "   "])
    def test_empty_id_rejected(self, make_doc, bad_id):
        with pytest.raises(ValidationError):
            make_doc(bad_id)


class TestSearchResult:
    def test_frozen(self, make_doc):
        result = SearchResult(document=make_doc(), score=0.1, distance=0.1)
        with pytest.raises(ValidationError):
            result.score = 0.5

    def test_score_conventions_are_separate_fields(self, make_doc):
        plain = SearchResult(document=make_doc(), score=0.2, distance=0.2)
        fused = SearchResult(document=make_doc(), score=0.03, fused_score=0.03)
        assert plain.fused_score is None
        assert fused.distance is None


class TestOptions:
    def test_search_defaults(self):
        opts = SearchOptions()
        assert opts.top_k == 10
        assert opts.filter_expr is None

    def test_top_k_must_be_positive(self):
        with pytest.raises(ValidationError):
            SearchOptions(top_k=0)

    def test_hybrid_limit_optional(self):
        assert HybridSearchOptions().limit is None
        with pytest.raises(ValidationError):
            HybridSearchOptions(limit=0)


# ---------------------------------------------------------------------------
# Tagged requests
# ---------------------------------------------------------------------------


class TestSearchRequestUnion:
    def test_discriminates_on_kind(self):
        adapter = TypeAdapter(SearchRequest)
        assert isinstance(adapter.validate_python({"kind": "vector", "vector": [1.0]}), VectorRequest)
        assert isinstance(adapter.validate_python({"kind": "text", "query": "hi"}), TextRequest)

    def test_empty_vector_rejected(self):
        with pytest.raises(ValidationError):
            VectorRequest(vector=[])


class TestClassifyRequest:
    def test_number_sequence_is_vector(self):
        req = classify_request({"data": [0.1, 0.2, 0.3]})
        assert req == VectorRequest(vector=[0.1, 0.2, 0.3])

    def test_ints_count_as_numbers(self):
        assert isinstance(classify_request({"data": (1, 0, 0)}), VectorRequest)

    def test_string_is_text(self):
        req = classify_request({"data": "hello world", "limit": 5})
        assert req == TextRequest(query="hello world", limit=5)

    def test_anns_field_hints(self):
        assert isinstance(classify_request({"data": [1.0], "anns_field": "vector"}), VectorRequest)
        assert isinstance(classify_request({"data": "q", "anns_field": "sparse_vector"}), TextRequest)

    def test_tagged_requests_pass_through(self):
        req = TextRequest(query="q")
        assert classify_request(req) is req

    def test_kind_mapping(self):
        assert isinstance(classify_request({"kind": "text", "query": "q"}), TextRequest)

    @pytest.mark.parametrize("data", [None, 42, {"a": 1}, [1.0, "x"]])
    def test_unclassifiable_rejected(self, data):
        with pytest.raises(ValueError):
            classify_request({"data": data})


# ---------------------------------------------------------------------------
# Protocol conformance
# ---------------------------------------------------------------------------


class TestProtocol:
    def test_lancedb_backend_satisfies_protocol(self, tmp_path):
        assert isinstance(LanceDBVectorDatabase(str(tmp_path)), VectorDatabase)
