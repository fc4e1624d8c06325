"""Tests for index maintenance."""

import hashlib
from datetime import datetime, timezone

import pytest

from service_search.app.indexing import indexer as indexer_module
from service_search.app.indexing.documents import (
    CATALOG_MAPPING,
    DOC_MAPPING,
    doc_document,
    resource_document,
    vector_metadata,
    vector_text,
)
from service_search.app.indexing.indexer import SearchIndexer
from service_search.app.models import DocPage, DocType, EntityType
from tests.fakes import FakeCatalog, FakeEmbedder, FakeIndices, FakeOpenSearch, FakeVectorStore

INDICES = {
    EntityType.COMPONENT: "components",
    EntityType.DOC: "docs",
    EntityType.RESOURCE: "resources",
}

KIT = {
    "id": "6f1c2a9e-3b1d-4c2a-9d7e-1a2b3c4d5e6f",
    "name": "Admin Kit",
    "description": "Dashboard templates",
    "frameworks": ["react", "vue"],
    "category": "Templates",
    "tags": ["admin", "dashboard"],
    "has_typescript": True,
    "created_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
}
FORM = {
    "id": "0b7d4e52-8a61-4f0e-b3c9-5d6e7f809a1b",
    "name": "Form Builder",
    "description": "",
    "frameworks": [],
    "category": None,
    "tags": [],
}


class RecordingBulk:
    def __init__(self, failed=None):
        self.failed = failed or []
        self.calls = []

    async def __call__(self, client, actions, **kwargs):
        actions = list(actions)
        self.calls.append((actions, kwargs))
        return len(actions) - len(self.failed), self.failed


def make_indexer(rows=None, opensearch=None, batch_size=100):
    opensearch = opensearch or FakeOpenSearch()
    vector_store = FakeVectorStore()
    embedder = FakeEmbedder(vector=[0.5, 0.5])
    catalog = FakeCatalog({row["id"]: row for row in (rows if rows is not None else [KIT, FORM])})
    indexer = SearchIndexer(opensearch, INDICES, catalog, embedder, vector_store, batch_size=batch_size)
    return indexer, opensearch, vector_store, embedder


def test_resource_document_uses_first_framework():
    document = resource_document(KIT)

    assert document["framework"] == "react"
    assert document["frameworks"] == ["react", "vue"]
    assert document["has_typescript"] is True
    assert "is_free" not in document
    assert document["created_at"] == "2024-05-01T00:00:00+00:00"
    assert resource_document(FORM)["framework"] == "unknown"


def test_doc_document():
    page = DocPage(id="d1", title="Theming", url="/docs/theming", headings=["Colors"], type=DocType.API)

    assert doc_document(page) == {
        "title": "Theming",
        "content": "",
        "url": "/docs/theming",
        "category": None,
        "tags": [],
        "headings": ["Colors"],
        "type": "api",
    }


def test_vector_text_and_metadata():
    text = vector_text(KIT)

    assert text == "Admin Kit | Dashboard templates | Framework: react | Category: Templates | Tags: admin, dashboard"
    assert vector_text(FORM) == "Form Builder"

    metadata = vector_metadata(KIT, text)
    assert metadata["framework"] == "react"
    assert metadata["tags"] == ["admin", "dashboard"]
    assert metadata["content_hash"] == hashlib.sha256(text.encode()).hexdigest()


@pytest.mark.asyncio
async def test_ensure_indices_creates_only_missing_ones():
    opensearch = FakeOpenSearch()
    opensearch.indices = FakeIndices(existing=["components"])
    indexer, _, _, _ = make_indexer(opensearch=opensearch)

    created = await indexer.ensure_indices()

    assert created == ["docs", "resources"]
    assert opensearch.indices.created["docs"] is DOC_MAPPING
    assert opensearch.indices.created["resources"] is CATALOG_MAPPING
    assert await indexer.ensure_indices() == []


@pytest.mark.asyncio
async def test_index_resources_writes_both_catalog_indices(monkeypatch):
    bulk = RecordingBulk()
    monkeypatch.setattr(indexer_module, "async_bulk", bulk)
    indexer, _, _, _ = make_indexer(batch_size=1)

    processed = await indexer.index_resources()

    assert processed == 2
    assert len(bulk.calls) == 2
    actions, kwargs = bulk.calls[0]
    assert [(action["_index"], action["_id"]) for action in actions] == [
        ("resources", KIT["id"]),
        ("components", KIT["id"]),
    ]
    assert actions[0]["_source"]["name"] == "Admin Kit"
    assert kwargs == {"raise_on_error": False}


@pytest.mark.asyncio
async def test_index_documentation_counts_accepted_pages(monkeypatch):
    bulk = RecordingBulk(failed=[{"index": {"_id": "d2", "status": 400}}])
    monkeypatch.setattr(indexer_module, "async_bulk", bulk)
    indexer, _, _, _ = make_indexer()
    pages = [
        DocPage(id="d1", title="Theming", url="/docs/theming"),
        DocPage(id="d2", title="API", url="/docs/api", type=DocType.API),
    ]

    assert await indexer.index_documentation(pages) == 1
    assert [action["_index"] for action in bulk.calls[0][0]] == ["docs", "docs"]
    assert await indexer.index_documentation([]) == 0
    assert len(bulk.calls) == 1


@pytest.mark.asyncio
async def test_index_embeddings_upserts_every_resource():
    indexer, _, vector_store, embedder = make_indexer()

    stored = await indexer.index_embeddings()

    assert stored == 2
    assert embedder.calls == [vector_text(KIT), vector_text(FORM)]
    entity_id, vector, metadata = vector_store.upserts[0]
    assert entity_id == KIT["id"]
    assert vector == [0.5, 0.5]
    assert metadata["category"] == "Templates"


@pytest.mark.asyncio
async def test_index_stats_and_clear():
    indexer, opensearch, vector_store, _ = make_indexer()
    opensearch.counts = {"components": 5, "docs": 2, "resources": 5}
    vector_store.embeddings = {"a": [0.1]}

    stats = await indexer.index_stats()
    assert (stats.components, stats.documentation, stats.resources, stats.vectors) == (5, 2, 5, 1)

    await indexer.clear_indices()
    assert [call["index"] for call in opensearch.deleted] == ["components", "docs", "resources"]
    assert opensearch.deleted[0]["params"] == {"refresh": True}
    assert (await indexer.index_stats()).components == 0


@pytest.mark.asyncio
async def test_failed_bulk_request_propagates(monkeypatch):
    async def failing_bulk(client, actions, **kwargs):
        raise ConnectionError("cluster unavailable")

    monkeypatch.setattr(indexer_module, "async_bulk", failing_bulk)
    indexer, _, _, _ = make_indexer()

    with pytest.raises(ConnectionError):
        await indexer.index_resources()
