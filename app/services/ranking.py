"""
Pipeline por turno de chat: catálogo (caché o BD) → ranking léxico o híbrido
con contexto → fatiga → top-K → registro de uso.
"""
import asyncio
from typing import Dict, List, Optional

from app.core.guideline_cache import SessionGuidelineCache
from app.core.logger import get_logger
from app.db.interfaces import ConversationStore, GuidelineStore
from app.matching.category import CategoryClassifier
from app.matching.fatigue import FatigueAdjuster
from app.matching.lexical import LexicalRanker
from app.matching.models import ContextMessage, MatchScore, RankedGuideline, TurnResult
from app.matching.vector import SupportsVectorRanking
from app.models.guideline import Guideline

logger = get_logger(__name__)


class CatalogUnavailableError(RuntimeError):
    """No se pudo obtener el catálogo de guidelines; el turno no puede continuar."""


class RankingOrchestrator:
    def __init__(
        self,
        guideline_store: GuidelineStore,
        conversation_store: ConversationStore,
        cache: SessionGuidelineCache,
        lexical: LexicalRanker,
        vector: Optional[SupportsVectorRanking] = None,
        fatigue: Optional[FatigueAdjuster] = None,
        classifier: Optional[CategoryClassifier] = None,
        max_guidelines: int = 3,
        recent_messages_context: int = 3,
        timeout_seconds: Optional[float] = 10.0,
    ):
        self.guideline_store = guideline_store
        self.conversation_store = conversation_store
        self.cache = cache
        self.lexical = lexical
        self.vector = vector
        self.fatigue = fatigue or FatigueAdjuster()
        self.classifier = classifier or lexical.context.classifier or CategoryClassifier()
        self.max_guidelines = max_guidelines
        self.recent_messages_context = recent_messages_context
        self.timeout_seconds = timeout_seconds

    @property
    def strategy(self) -> str:
        return "vector" if self.vector is not None else "text"

    async def _call(self, awaitable):
        if self.timeout_seconds is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)

    async def resolve_catalog(self, session_id: str) -> List[Guideline]:
        cached = self.cache.get(session_id)
        if cached is not None:
            return cached

        try:
            guidelines = await self._call(self.guideline_store.fetch_active_guidelines())
        except Exception as e:
            logger.error("Error obteniendo guidelines activas: %r", e)
            raise CatalogUnavailableError(f"Failed to fetch active guidelines: {e!r}") from e

        self.cache.set(session_id, guidelines)
        logger.info("Catálogo cacheado para sesión %s (%d guidelines)", session_id, len(guidelines))
        return guidelines

    async def _recent_messages(self, conversation_id: int) -> List[ContextMessage]:
        try:
            return list(await self._call(
                self.conversation_store.fetch_recent_messages(conversation_id, self.recent_messages_context)
            ))
        except Exception as e:
            logger.warning("Error obteniendo mensajes recientes, sin contexto: %r", e)
            return []

    async def _usage_counts(self, conversation_id: int) -> Dict[int, int]:
        try:
            return dict(await self._call(
                self.conversation_store.fetch_guideline_usage_counts(conversation_id)
            ))
        except Exception as e:
            logger.warning("Error obteniendo uso de guidelines, se asume cero: %r", e)
            return {}

    async def rank(
        self,
        guidelines: List[Guideline],
        message: str,
        session_id: str,
        recent_messages: List[ContextMessage],
        hybrid_weight: Optional[float] = None,
    ) -> List[MatchScore]:
        if self.vector is not None:
            return await self.vector.rank_with_context(
                guidelines, message, session_id, recent_messages, hybrid_weight
            )
        return self.lexical.rank_with_context(guidelines, message, recent_messages)

    async def process_turn(
        self,
        session_id: str,
        message: str,
        conversation_id: int,
        hybrid_weight: Optional[float] = None,
    ) -> TurnResult:
        guidelines = await self.resolve_catalog(session_id)
        self.cache.sweep_expired()

        recent_messages, usage_counts = await asyncio.gather(
            self._recent_messages(conversation_id),
            self._usage_counts(conversation_id),
        )

        ranked = await self.rank(guidelines, message, session_id, recent_messages, hybrid_weight)
        matched = [s for s in ranked if s.matched]
        selected = self.fatigue.apply(matched, usage_counts, limit=self.max_guidelines)

        logger.info(
            "Sesión %s: %d candidatas, %d con match, %d seleccionadas",
            session_id, len(guidelines), len(matched), len(selected),
        )

        await self._record_usage(conversation_id, selected)

        return TurnResult(
            guidelines=selected,
            detected_category=self.classifier.detect(message),
            strategy=self.strategy,
        )

    async def _record_usage(self, conversation_id: int, selected: List[RankedGuideline]) -> None:
        async def record(item: RankedGuideline):
            try:
                await self._call(self.conversation_store.record_usage(
                    conversation_id, item.guideline.id, item.score, True
                ))
            except Exception as e:
                logger.warning("Error registrando uso de guideline %s: %r", item.guideline.id, e)

        await asyncio.gather(*(record(item) for item in selected))
