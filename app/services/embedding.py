"""
Embeddings de mensajes y guidelines.

El proveedor (OpenAI) se trata como una función opaca texto → vector; este
servicio agrega la caché por hash de contenido, la búsqueda por similitud y
la generación por lotes de embeddings de guidelines.
"""
import asyncio
import hashlib
import math
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from app.core.logger import get_logger
from app.db.interfaces import EmbeddingStore, GuidelineStore
from app.matching.models import SimilarityHit
from app.models.guideline import Guideline

logger = get_logger(__name__)


class EmbeddingError(RuntimeError):
    """Fallo del proveedor de embeddings."""


class EmbeddingProvider(ABC):
    model: str

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        pass


class OpenAIEmbeddingProvider(EmbeddingProvider):
    def __init__(self, client, model: str = "text-embedding-3-small", dimensions: Optional[int] = None):
        self.client = client
        self.model = model
        self.dimensions = dimensions

    async def embed_text(self, text: str) -> List[float]:
        kwargs = {"input": [text], "model": self.model}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        try:
            resp = await self.client.embeddings.create(**kwargs)
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

        if not resp.data or not resp.data[0].embedding:
            raise EmbeddingError("No embedding data received from OpenAI")
        return [float(x) for x in resp.data[0].embedding]


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Embeddings must have the same dimension")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class EmbeddingService:
    def __init__(
        self,
        provider: EmbeddingProvider,
        embedding_store: EmbeddingStore,
        guideline_store: Optional[GuidelineStore] = None,
        batch_size: int = 10,
        batch_delay_seconds: float = 1.0,
    ):
        self.provider = provider
        self.embedding_store = embedding_store
        self.guideline_store = guideline_store
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds

    @property
    def model(self) -> str:
        return self.provider.model

    async def embed_text(self, text: str) -> List[float]:
        return await self.provider.embed_text(text)

    async def get_or_create_message_embedding(self, session_id: str, message: str) -> List[float]:
        """
        Embedding del mensaje, reutilizando el de la caché si ya se calculó
        para exactamente el mismo texto (en cualquier sesión).
        """
        message_hash = hash_text(message)

        cached = await self.embedding_store.get_message_embedding(message_hash)
        if cached:
            return cached

        embedding = await self.provider.embed_text(message)

        try:
            await self.embedding_store.save_message_embedding(
                session_id=session_id,
                message_hash=message_hash,
                message_text=message,
                embedding=embedding,
                model=self.model,
            )
        except Exception as e:
            logger.warning("No se pudo guardar el embedding del mensaje en caché: %s", e)

        return embedding

    async def search_by_similarity(self, embedding: List[float], threshold: float = 0.3, limit: int = 30) -> List[SimilarityHit]:
        return await self.embedding_store.search_by_similarity(embedding, threshold, limit)

    async def update_guideline_embeddings(self, guideline_ids: Optional[Sequence[int]] = None) -> int:
        """Genera embeddings para las guidelines que no tienen; retorna cuántas se actualizaron."""
        if self.guideline_store is None:
            raise RuntimeError("update_guideline_embeddings requires a guideline store")

        guidelines = await self.guideline_store.fetch_guidelines_missing_embeddings(guideline_ids)
        if not guidelines:
            logger.info("Ninguna guideline necesita embeddings")
            return 0

        batches = [
            guidelines[i:i + self.batch_size]
            for i in range(0, len(guidelines), self.batch_size)
        ]

        updated = 0
        for index, batch in enumerate(batches):
            results = await asyncio.gather(*(self._embed_guideline(g) for g in batch))
            updated += sum(1 for ok in results if ok)

            # Límite de tasa del proveedor
            if index < len(batches) - 1 and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

        logger.info("Embeddings actualizados: %d/%d guidelines", updated, len(guidelines))
        return updated

    async def _embed_guideline(self, guideline: Guideline) -> bool:
        try:
            embedding = await self.provider.embed_text(guideline.condition)
            await self.guideline_store.update_guideline_embedding(guideline.id, embedding, self.model)
        except Exception as e:
            logger.error("Error generando embedding para guideline %s: %s", guideline.id, e)
            return False
        return True

    async def find_similar_guidelines(
        self,
        reference: Guideline,
        guidelines: Sequence[Guideline],
        threshold: float = 0.8,
    ) -> List[Tuple[Guideline, float]]:
        """Guidelines con condición semánticamente parecida a ``reference`` (duplicados o conflictos)."""
        try:
            reference_embedding = await self.provider.embed_text(reference.condition)
        except Exception as e:
            logger.warning("Error buscando guidelines similares: %s", e)
            return []

        async def compare(guideline: Guideline) -> Optional[float]:
            try:
                embedding = await self.provider.embed_text(guideline.condition)
                return cosine_similarity(reference_embedding, embedding)
            except Exception as e:
                logger.warning("Sin embedding para guideline %s: %s", guideline.id, e)
                return None

        candidates = [g for g in guidelines if g.id != reference.id]
        similarities = await asyncio.gather(*(compare(g) for g in candidates))

        similar = [
            (guideline, similarity)
            for guideline, similarity in zip(candidates, similarities)
            if similarity is not None and similarity >= threshold
        ]
        return sorted(similar, key=lambda pair: pair[1], reverse=True)

    async def cleanup_message_embeddings(self, days_to_keep: int = 7) -> int:
        return await self.embedding_store.cleanup_message_embeddings(days_to_keep)

    async def embedding_status(self) -> dict:
        return await self.embedding_store.embedding_status()
