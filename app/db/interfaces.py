from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from app.matching.models import ContextMessage, SimilarityHit
from app.models.guideline import Guideline


@dataclass
class UsageRow:
    guideline_id: int
    score: float
    applied: bool
    category: Optional[str] = None
    condition: Optional[str] = None
    action: Optional[str] = None


class GuidelineStore(ABC):
    @abstractmethod
    async def fetch_active_guidelines(self) -> List[Guideline]:
        """Catálogo de guidelines activas, de mayor a menor prioridad."""
        pass

    @abstractmethod
    async def fetch_guideline(self, guideline_id: int) -> Optional[Guideline]:
        pass

    @abstractmethod
    async def fetch_guidelines_missing_embeddings(self, guideline_ids: Optional[Sequence[int]] = None) -> List[Guideline]:
        pass

    @abstractmethod
    async def update_guideline_embedding(self, guideline_id: int, embedding: List[float], model: str) -> None:
        pass


class ConversationStore(ABC):
    @abstractmethod
    async def get_or_create_conversation(self, session_id: str) -> int:
        """Retorna el id de la conversación de la sesión, creándola si no existe."""
        pass

    @abstractmethod
    async def get_conversation_id(self, session_id: str) -> Optional[int]:
        """Id de la conversación de la sesión, o None si no existe (no la crea)."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: int) -> None:
        """Borra la conversación junto con sus mensajes y registros de uso."""
        pass

    @abstractmethod
    async def add_message(self, conversation_id: int, role: str, content: str, guideline_ids: Sequence[int] = ()) -> None:
        pass

    @abstractmethod
    async def fetch_recent_messages(self, conversation_id: int, limit: int) -> List[ContextMessage]:
        """Últimos ``limit`` mensajes, del más antiguo al más reciente."""
        pass

    @abstractmethod
    async def fetch_guideline_usage_counts(self, conversation_id: int) -> Dict[int, int]:
        pass

    @abstractmethod
    async def record_usage(self, conversation_id: int, guideline_id: int, score: float, applied: bool) -> None:
        pass

    @abstractmethod
    async def fetch_usage_rows(self, conversation_id: Optional[int] = None) -> List[UsageRow]:
        pass


class EmbeddingStore(ABC):
    @abstractmethod
    async def get_message_embedding(self, message_hash: str) -> Optional[List[float]]:
        pass

    @abstractmethod
    async def save_message_embedding(
        self,
        session_id: str,
        message_hash: str,
        message_text: str,
        embedding: List[float],
        model: str,
    ) -> None:
        pass

    @abstractmethod
    async def search_by_similarity(self, embedding: List[float], threshold: float, limit: int) -> List[SimilarityHit]:
        pass

    @abstractmethod
    async def cleanup_message_embeddings(self, days_to_keep: int) -> int:
        pass

    @abstractmethod
    async def embedding_status(self) -> Dict[str, int]:
        pass
