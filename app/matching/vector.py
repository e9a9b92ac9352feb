import asyncio
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from app.core.logger import get_logger
from app.matching.lexical import LexicalRanker
from app.matching.models import ContextMessage, HybridMatchScore, SimilarityHit, clamp_score
from app.models.guideline import Guideline

logger = get_logger(__name__)


class SimilaritySource(Protocol):
    async def get_or_create_message_embedding(self, session_id: str, message: str) -> List[float]: ...

    async def search_by_similarity(self, embedding: List[float], threshold: float, limit: int) -> List[SimilarityHit]: ...


@runtime_checkable
class SupportsVectorRanking(Protocol):
    supports_vector_ranking: bool

    async def rank_with_context(
        self,
        guidelines: Sequence[Guideline],
        message: str,
        session_id: str,
        recent_messages: Sequence[ContextMessage] = (),
        vector_weight: Optional[float] = None,
    ) -> List[HybridMatchScore]: ...


def blend(vector_score: float, text_score: float, vector_weight: float) -> float:
    return vector_score * vector_weight + text_score * (1 - vector_weight)


class VectorScorer:
    """
    Ranking híbrido: similitud semántica (embeddings) + puntaje léxico.

    Cualquier fallo del embedding o de la búsqueda vectorial (incluido un
    timeout) degrada a ranking léxico puro sobre las mismas guidelines.
    """

    supports_vector_ranking = True
    name = "vector"

    def __init__(
        self,
        embeddings: SimilaritySource,
        lexical: Optional[LexicalRanker] = None,
        default_weight: float = 0.8,
        similarity_threshold: float = 0.3,
        search_limit: int = 30,
        timeout_seconds: Optional[float] = 8.0,
    ):
        self.embeddings = embeddings
        self.lexical = lexical or LexicalRanker()
        self.default_weight = self._check_weight(default_weight)
        self.similarity_threshold = similarity_threshold
        self.search_limit = search_limit
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def _check_weight(weight: float) -> float:
        if not 0 <= weight <= 1:
            raise ValueError(f"vector_weight must be in [0, 1], got {weight}")
        return weight

    async def _with_timeout(self, awaitable):
        if self.timeout_seconds is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)

    async def _vector_scores(self, message: str, session_id: str) -> dict:
        embedding = await self._with_timeout(
            self.embeddings.get_or_create_message_embedding(session_id, message)
        )
        hits = await self._with_timeout(
            self.embeddings.search_by_similarity(embedding, self.similarity_threshold, self.search_limit)
        )
        return {hit.guideline_id: hit.similarity * 100 for hit in hits}

    async def _score_all(
        self,
        guidelines: Sequence[Guideline],
        message: str,
        session_id: str,
        vector_weight: float,
    ) -> List[HybridMatchScore]:
        """Puntajes en el orden de entrada (sin ordenar)."""
        try:
            vector_scores = await self._vector_scores(message, session_id)
        except Exception as e:
            logger.warning("Error en matching vectorial, usando sólo texto: %r", e)
            vector_scores = None

        scores = []
        for guideline in guidelines:
            text_score = self.lexical.scorer.score(message, guideline)
            if vector_scores is None:
                vector_score = 0.0
                hybrid_score = text_score
            else:
                vector_score = clamp_score(vector_scores.get(guideline.id, 0.0))
                hybrid_score = clamp_score(blend(vector_score, text_score, vector_weight))
            scores.append(HybridMatchScore(
                guideline=guideline,
                score=hybrid_score,
                matched=self.lexical.is_match(hybrid_score),
                vector_score=vector_score,
                text_score=text_score,
                hybrid_score=hybrid_score,
            ))
        return scores

    async def hybrid_rank(
        self,
        guidelines: Sequence[Guideline],
        message: str,
        session_id: str,
        vector_weight: Optional[float] = None,
    ) -> List[HybridMatchScore]:
        weight = self._check_weight(self.default_weight if vector_weight is None else vector_weight)
        scores = await self._score_all(guidelines, message, session_id, weight)
        return sorted(scores, key=lambda s: s.score, reverse=True)

    async def rank_with_context(
        self,
        guidelines: Sequence[Guideline],
        message: str,
        session_id: str,
        recent_messages: Sequence[ContextMessage] = (),
        vector_weight: Optional[float] = None,
    ) -> List[HybridMatchScore]:
        weight = self._check_weight(self.default_weight if vector_weight is None else vector_weight)
        scores = await self._score_all(guidelines, message, session_id, weight)

        for s in scores:
            bonus = self.lexical.context.bonus(s.guideline, recent_messages)
            s.hybrid_score = clamp_score(s.hybrid_score + bonus)
            s.score = s.hybrid_score
            s.matched = self.lexical.is_match(s.score)

        # Se ordena desde el orden de entrada para coincidir con el ranking léxico
        return sorted(scores, key=lambda s: s.score, reverse=True)
