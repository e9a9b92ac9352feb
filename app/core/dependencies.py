from typing import Optional

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.guideline_cache import SessionGuidelineCache
from app.core.logger import get_logger
from app.core.openai import client
from app.db.postgres_store import (
    PostgresConversationStore,
    PostgresEmbeddingStore,
    PostgresGuidelineStore,
)
from app.matching.context import ContextBonusCalculator
from app.matching.fatigue import FatigueAdjuster
from app.matching.lexical import LexicalRanker
from app.matching.vector import VectorScorer
from app.services.embedding import EmbeddingService, OpenAIEmbeddingProvider
from app.services.ranking import RankingOrchestrator

logger = get_logger(__name__)

guideline_store_instance = PostgresGuidelineStore(async_session_maker)
conversation_store_instance = PostgresConversationStore(async_session_maker)
embedding_store_instance = PostgresEmbeddingStore(async_session_maker)

# Una sola caché compartida por ambas estrategias
guideline_cache_instance = SessionGuidelineCache(ttl_ms=settings.cache_ttl_ms)

_embedding_service: Optional[EmbeddingService] = None
_orchestrators: dict = {}


def get_embedding_service() -> Optional[EmbeddingService]:
    """None cuando no hay proveedor de embeddings configurado."""
    global _embedding_service
    if not settings.embeddings_enabled:
        return None
    if _embedding_service is None:
        provider = OpenAIEmbeddingProvider(client(), model=settings.OPENAI_EMBEDDING_MODEL)
        _embedding_service = EmbeddingService(
            provider=provider,
            embedding_store=embedding_store_instance,
            guideline_store=guideline_store_instance,
            batch_size=settings.EMBEDDING_BATCH_SIZE,
            batch_delay_seconds=settings.EMBEDDING_BATCH_DELAY_SECONDS,
        )
    return _embedding_service


def _build_lexical_ranker() -> LexicalRanker:
    return LexicalRanker(
        context=ContextBonusCalculator(window=settings.RECENT_MESSAGES_CONTEXT),
        match_threshold=settings.MATCH_THRESHOLD,
        max_guidelines=settings.MAX_GUIDELINES_PER_RESPONSE,
    )


def build_orchestrator(method: str) -> RankingOrchestrator:
    lexical = _build_lexical_ranker()
    vector = None

    embedding_service = get_embedding_service() if method == "vector" else None
    if embedding_service is not None:
        vector = VectorScorer(
            embeddings=embedding_service,
            lexical=lexical,
            default_weight=settings.HYBRID_WEIGHT,
            similarity_threshold=settings.VECTOR_SIMILARITY_THRESHOLD,
            search_limit=settings.VECTOR_SEARCH_LIMIT,
            timeout_seconds=settings.EMBEDDING_TIMEOUT_SECONDS,
        )
        logger.info("Usando ranking híbrido con embeddings de OpenAI")
    elif method == "vector":
        logger.info("Ranking vectorial pedido sin API key de OpenAI; usando ranking por texto")
    else:
        logger.info("Usando ranking por texto")

    return RankingOrchestrator(
        guideline_store=guideline_store_instance,
        conversation_store=conversation_store_instance,
        cache=guideline_cache_instance,
        lexical=lexical,
        vector=vector,
        fatigue=FatigueAdjuster(settings.FATIGUE_FACTOR),
        max_guidelines=settings.MAX_GUIDELINES_PER_RESPONSE,
        recent_messages_context=settings.RECENT_MESSAGES_CONTEXT,
        timeout_seconds=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    )


def get_orchestrator(method: Optional[str] = None) -> RankingOrchestrator:
    method = method or settings.MATCHING_METHOD
    if method not in _orchestrators:
        _orchestrators[method] = build_orchestrator(method)
    return _orchestrators[method]


def get_orchestrator_factory():
    return get_orchestrator


def get_conversation_store() -> PostgresConversationStore:
    return conversation_store_instance


def get_guideline_store() -> PostgresGuidelineStore:
    return guideline_store_instance


def get_guideline_cache() -> SessionGuidelineCache:
    return guideline_cache_instance
