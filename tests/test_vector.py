"""Tests for hybrid (vector + lexical) ranking and its fallback."""

import asyncio

import pytest

from app.matching.lexical import LexicalRanker
from app.matching.models import ContextMessage, SimilarityHit
from app.matching.vector import SupportsVectorRanking, VectorScorer, blend
from app.services.embedding import EmbeddingService
from tests.fakes import FakeEmbeddingProvider, FakeEmbeddingStore

MESSAGE = "¿Cuál es el precio del piso?"


def make_scorer(hits=(), provider=None, fail_search=None, timeout_seconds=1.0, weight=0.8):
    store = FakeEmbeddingStore(hits=hits, fail_search=fail_search)
    service = EmbeddingService(provider or FakeEmbeddingProvider(), store)
    return VectorScorer(service, LexicalRanker(), default_weight=weight, timeout_seconds=timeout_seconds), store


def test_blend_scenario():
    assert blend(90, 30, 0.8) == pytest.approx(78.0)


def test_scorer_is_a_vector_strategy():
    scorer, _ = make_scorer()
    assert isinstance(scorer, SupportsVectorRanking)
    assert scorer.supports_vector_ranking is True
    assert LexicalRanker.supports_vector_ranking is False


class TestHybridRank:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("weight", [0.0, 0.3, 0.8, 1.0])
    async def test_blend_linearity(self, catalog, weight):
        scorer, _ = make_scorer(hits=[SimilarityHit(4, 0.9), SimilarityHit(1, 0.45)])
        ranked = await scorer.hybrid_rank(catalog, MESSAGE, "s1", vector_weight=weight)

        by_id = {r.guideline.id: r for r in ranked}
        assert by_id[4].vector_score == pytest.approx(90)
        assert by_id[1].vector_score == pytest.approx(45)
        assert by_id[2].vector_score == 0

        for r in ranked:
            expected = r.vector_score * weight + r.text_score * (1 - weight)
            assert r.hybrid_score == pytest.approx(expected, abs=1e-6)
            assert r.score == r.hybrid_score
            assert r.matched == (r.hybrid_score > 30)
        if weight == 0.0:
            assert all(r.hybrid_score == pytest.approx(r.text_score, abs=1e-6) for r in ranked)
        if weight == 1.0:
            assert all(r.hybrid_score == pytest.approx(r.vector_score, abs=1e-6) for r in ranked)

    @pytest.mark.asyncio
    async def test_sorted_descending(self, catalog):
        scorer, _ = make_scorer(hits=[SimilarityHit(3, 0.95), SimilarityHit(5, 0.4)])
        ranked = await scorer.hybrid_rank(catalog, MESSAGE, "s1")
        scores = [r.hybrid_score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_search_uses_threshold_and_limit(self, catalog):
        scorer, store = make_scorer()
        await scorer.hybrid_rank(catalog, MESSAGE, "s1")
        assert store.searches == [(0.3, 30)]

    @pytest.mark.asyncio
    async def test_invalid_weight(self, catalog):
        scorer, _ = make_scorer()
        with pytest.raises(ValueError):
            await scorer.hybrid_rank(catalog, MESSAGE, "s1", vector_weight=1.5)


class TestFallback:
    async def _assert_matches_lexical(self, scorer, catalog, history):
        hybrid = await scorer.rank_with_context(catalog, MESSAGE, "s1", history)
        lexical = LexicalRanker().rank_with_context(catalog, MESSAGE, history)

        assert [(r.guideline.id, r.score) for r in hybrid] == [(r.guideline.id, r.score) for r in lexical]
        assert all(r.vector_score == 0 for r in hybrid)
        assert all(r.hybrid_score == r.score for r in hybrid)

    @pytest.mark.asyncio
    async def test_provider_error(self, catalog):
        scorer, _ = make_scorer(provider=FakeEmbeddingProvider(fail=ConnectionError("openai down")))
        history = [ContextMessage("user", "hola")]
        await self._assert_matches_lexical(scorer, catalog, history)

    @pytest.mark.asyncio
    async def test_search_error(self, catalog):
        scorer, _ = make_scorer(fail_search=RuntimeError("rpc failed"))
        await self._assert_matches_lexical(scorer, catalog, [])

    @pytest.mark.asyncio
    async def test_timeout(self, catalog):
        scorer, _ = make_scorer(provider=FakeEmbeddingProvider(delay=0.5), timeout_seconds=0.01)
        await self._assert_matches_lexical(scorer, catalog, [])

    @pytest.mark.asyncio
    async def test_hybrid_rank_fallback_uses_text_scores(self, catalog):
        scorer, _ = make_scorer(provider=FakeEmbeddingProvider(fail=ValueError("malformed")))
        ranked = await scorer.hybrid_rank(catalog, MESSAGE, "s1")
        expected = LexicalRanker().rank(catalog, MESSAGE)
        assert [(r.guideline.id, r.text_score) for r in ranked] == [(r.guideline.id, r.score) for r in expected]
        assert all(r.hybrid_score == r.text_score for r in ranked)


class TestRankWithContext:
    @pytest.mark.asyncio
    async def test_context_bonus_added_after_blend(self, catalog):
        scorer, _ = make_scorer(hits=[SimilarityHit(4, 0.5)])
        history = [ContextMessage("user", "hola")]
        plain = {r.guideline.id: r for r in await scorer.hybrid_rank(catalog, MESSAGE, "s1")}
        ranked = await scorer.rank_with_context(catalog, MESSAGE, "s1", history)

        for r in ranked:
            bonus = scorer.lexical.context.bonus(r.guideline, history)
            assert r.score == pytest.approx(min(plain[r.guideline.id].hybrid_score + bonus, 100))

        scores = [r.score for r in ranked]
        assert scores == sorted(scores, reverse=True)


class TestEmbeddingCache:
    @pytest.mark.asyncio
    async def test_identical_messages_reuse_embedding(self):
        provider = FakeEmbeddingProvider()
        store = FakeEmbeddingStore()
        service = EmbeddingService(provider, store)

        first = await service.get_or_create_message_embedding("s1", "hola")
        second = await service.get_or_create_message_embedding("s2", "hola")

        assert first == second
        assert provider.calls == ["hola"]
        assert len(store.cache) == 1

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_not_fatal(self):
        class BrokenStore(FakeEmbeddingStore):
            async def save_message_embedding(self, *args, **kwargs):
                raise ConnectionError("db down")

        service = EmbeddingService(FakeEmbeddingProvider(), BrokenStore())
        assert await service.get_or_create_message_embedding("s1", "hola") == [1.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_concurrent_rankings_share_cache(self, catalog):
        provider = FakeEmbeddingProvider()
        scorer, _ = make_scorer(provider=provider)
        await scorer.hybrid_rank(catalog, "hola", "s1")
        results = await asyncio.gather(*(scorer.hybrid_rank(catalog, "hola", f"s{i}") for i in range(5)))
        assert len(results) == 5
        assert provider.calls == ["hola"]
