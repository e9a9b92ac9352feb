"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import (
    get_conversation_store,
    get_embedding_service,
    get_guideline_cache,
    get_guideline_store,
    get_orchestrator_factory,
)
from app.main import app
from app.matching.lexical import LexicalRanker
from app.matching.models import SimilarityHit
from app.services.embedding import EmbeddingService
from app.services.ranking import RankingOrchestrator
from tests.fakes import FakeConversationStore, FakeEmbeddingProvider, FakeEmbeddingStore, FakeGuidelineStore


@pytest.fixture
def conversations():
    return FakeConversationStore()


@pytest.fixture
def client(catalog, conversations, cache):
    store = FakeGuidelineStore(catalog)

    def factory(method=None):
        return RankingOrchestrator(store, conversations, cache, LexicalRanker())

    app.dependency_overrides[get_orchestrator_factory] = lambda: factory
    app.dependency_overrides[get_conversation_store] = lambda: conversations
    app.dependency_overrides[get_embedding_service] = lambda: None
    app.dependency_overrides[get_guideline_cache] = lambda: cache
    app.dependency_overrides[get_guideline_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestMatch:
    def test_match(self, client, conversations):
        resp = client.post("/api/guidelines/match", json={"message": "saluda", "session_id": "abc"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["session_id"] == "abc"
        assert body["conversation_id"] == 1
        assert body["matching_method"] == "text"
        assert [g["id"] for g in body["guidelines_used"]] == [1]
        assert body["guidelines_used"][0]["score"] == 100
        assert "GUIDELINES GENERALES:\n1. Cuando el usuario saluda: Saludar y ofrecer ayuda" in body["system_prompt"]

        # El mensaje queda como contexto y el uso registrado
        assert conversations.messages[-1].content == "saluda"
        assert conversations.recorded == [(1, 1, 100, True)]

    def test_generates_session_id(self, client):
        body = client.post("/api/guidelines/match", json={"message": "hola"}).json()
        assert body["session_id"]

    def test_empty_message_rejected(self, client):
        assert client.post("/api/guidelines/match", json={"message": ""}).status_code == 422

    def test_invalid_weight_rejected(self, client):
        resp = client.post("/api/guidelines/match", json={"message": "hola", "hybrid_weight": 1.5})
        assert resp.status_code == 422

    def test_invalid_method_rejected(self, client):
        resp = client.post("/api/guidelines/match", json={"message": "hola", "matching_method": "magic"})
        assert resp.status_code == 422

    def test_catalog_unavailable(self, catalog, conversations, cache):
        store = FakeGuidelineStore(catalog, fail=ConnectionError("db down"))
        app.dependency_overrides[get_orchestrator_factory] = lambda: (
            lambda method=None: RankingOrchestrator(store, conversations, cache, LexicalRanker())
        )
        app.dependency_overrides[get_conversation_store] = lambda: conversations
        try:
            resp = TestClient(app).post("/api/guidelines/match", json={"message": "hola", "session_id": "s"})
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 503
        assert conversations.messages == []


def test_usage_stats(client):
    client.post("/api/guidelines/match", json={"message": "saluda", "session_id": "abc"})
    stats = client.get("/api/guidelines/usage/stats").json()
    assert stats["total_usages"] == 1
    assert stats["top_guidelines"][0]["guideline_id"] == 1


class TestEmbeddings:
    def test_status_without_provider(self, client):
        body = client.get("/api/embeddings/status").json()
        assert body["openai_configured"] is False
        assert body["vector_search_enabled"] is False

    @pytest.mark.parametrize("method,path,payload", [
        ("post", "/api/embeddings/generate", {}),
        ("post", "/api/embeddings/search", {"query": "precio"}),
        ("delete", "/api/embeddings/cleanup", None),
    ])
    def test_unavailable_without_provider(self, client, method, path, payload):
        kwargs = {"json": payload} if payload is not None else {}
        assert getattr(client, method)(path, **kwargs).status_code == 503

    def test_search(self, client):
        store = FakeEmbeddingStore(hits=[SimilarityHit(2, 0.91), SimilarityHit(4, 0.5)])
        app.dependency_overrides[get_embedding_service] = lambda: EmbeddingService(FakeEmbeddingProvider(), store)

        body = client.post("/api/embeddings/search", json={"query": "precio", "threshold": 0.6}).json()

        assert body["results"] == [{"id": 2, "similarity": 0.91, "similarity_percentage": "91.0%"}]
        assert store.searches == [(0.6, 5)]

    def test_status_with_provider(self, client):
        store = FakeEmbeddingStore()
        app.dependency_overrides[get_embedding_service] = lambda: EmbeddingService(FakeEmbeddingProvider(), store)
        body = client.get("/api/embeddings/status").json()
        assert body["embedding_model"] == "fake-embedding"
        assert body["vector_search_enabled"] is False

    def test_status_reports_guideline_cache(self, client):
        client.post("/api/guidelines/match", json={"message": "saluda", "session_id": "abc"})
        cache_stats = client.get("/api/embeddings/status").json()["guideline_cache"]
        assert cache_stats["total_sessions"] == 1
        assert cache_stats["sessions"]["abc"]["guidelines_count"] == 5

    def test_test_route_is_search(self, client):
        store = FakeEmbeddingStore(hits=[SimilarityHit(2, 0.91)])
        app.dependency_overrides[get_embedding_service] = lambda: EmbeddingService(FakeEmbeddingProvider(), store)

        body = client.post("/api/embeddings/test", json={"query": "precio"}).json()

        assert [r["id"] for r in body["results"]] == [2]
        assert store.searches == [(0.6, 5)]

    def test_guideline_embedding_info(self, client, catalog):
        catalog[1].condition_embedding = [0.1, 0.2, 0.3]

        with_embedding = client.get("/api/embeddings/guidelines/2").json()
        without_embedding = client.get("/api/embeddings/guidelines/1").json()

        assert with_embedding["condition"] == "cuando el usuario pregunta por el precio"
        assert with_embedding["has_embedding"] is True
        assert with_embedding["embedding_dimension"] == 3
        assert without_embedding["has_embedding"] is False
        assert without_embedding["embedding_dimension"] is None

    def test_guideline_embedding_info_not_found(self, client):
        assert client.get("/api/embeddings/guidelines/99").status_code == 404

    def test_similar_guidelines(self, client):
        provider = FakeEmbeddingProvider(vectors={
            "cuando el usuario pregunta por el precio": [1.0, 0.0],
            "cuando pregunta por la ubicacion": [0.9, 0.1],
        })
        app.dependency_overrides[get_embedding_service] = lambda: EmbeddingService(provider, FakeEmbeddingStore())

        body = client.get("/api/embeddings/guidelines/2/similar", params={"threshold": 0.9}).json()

        assert [g["id"] for g in body["similar"]] == [4]
        assert body["similar"][0]["similarity"] == pytest.approx(0.9939, abs=1e-4)

    def test_similar_guidelines_needs_provider(self, client):
        assert client.get("/api/embeddings/guidelines/2/similar").status_code == 503


class TestConversations:
    def test_history(self, client):
        client.post("/api/guidelines/match", json={"message": "saluda", "session_id": "abc"})
        client.post("/api/guidelines/match", json={"message": "¿cuánto cuesta?", "session_id": "abc"})

        body = client.get("/api/conversations/abc").json()

        assert body["conversation_id"] == 1
        assert [m["content"] for m in body["messages"]] == ["saluda", "¿cuánto cuesta?"]
        assert all(m["role"] == "user" for m in body["messages"])

    def test_history_limit(self, client):
        for message in ("uno", "dos", "tres"):
            client.post("/api/guidelines/match", json={"message": message, "session_id": "abc"})
        body = client.get("/api/conversations/abc", params={"limit": 2}).json()
        assert [m["content"] for m in body["messages"]] == ["dos", "tres"]

    def test_history_not_found(self, client):
        assert client.get("/api/conversations/nope").status_code == 404

    def test_delete(self, client, conversations, cache):
        client.post("/api/guidelines/match", json={"message": "saluda", "session_id": "abc"})
        assert cache.get("abc") is not None
        assert conversations.recorded

        resp = client.delete("/api/conversations/abc")

        assert resp.status_code == 200
        assert conversations.deleted == [1]
        assert conversations.recorded == []
        assert cache.get("abc") is None
        assert client.get("/api/conversations/abc").status_code == 404

    def test_delete_not_found(self, client, conversations):
        assert client.delete("/api/conversations/nope").status_code == 404
        assert conversations.deleted == []
