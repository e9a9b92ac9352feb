from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlmodel import col

from app.db.interfaces import ConversationStore, EmbeddingStore, GuidelineStore, UsageRow
from app.matching.models import ContextMessage, SimilarityHit
from app.models.guideline import (
    Conversation,
    ConversationMessage,
    Guideline,
    GuidelineUsage,
    MessageEmbedding,
)


class _PostgresStore:
    def __init__(self, session_maker):
        self.session_maker = session_maker


class PostgresGuidelineStore(_PostgresStore, GuidelineStore):
    async def fetch_active_guidelines(self) -> List[Guideline]:
        statement = (
            select(Guideline)
            .where(col(Guideline.active).is_(True))
            .order_by(col(Guideline.priority).desc())
        )
        async with self.session_maker() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def fetch_guideline(self, guideline_id: int) -> Optional[Guideline]:
        async with self.session_maker() as session:
            return await session.get(Guideline, guideline_id)

    async def fetch_guidelines_missing_embeddings(self, guideline_ids: Optional[Sequence[int]] = None) -> List[Guideline]:
        statement = select(Guideline).where(col(Guideline.condition_embedding).is_(None))
        if guideline_ids:
            statement = statement.where(col(Guideline.id).in_(list(guideline_ids)))
        async with self.session_maker() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def update_guideline_embedding(self, guideline_id: int, embedding: List[float], model: str) -> None:
        statement = (
            update(Guideline)
            .where(col(Guideline.id) == guideline_id)
            .values(
                condition_embedding=embedding,
                embedding_model=model,
                embedding_generated_at=datetime.now(timezone.utc),
            )
        )
        async with self.session_maker() as session:
            await session.execute(statement)
            await session.commit()


class PostgresConversationStore(_PostgresStore, ConversationStore):
    async def get_or_create_conversation(self, session_id: str) -> int:
        t = Conversation.__table__
        # Dos turnos concurrentes de la misma sesión: el segundo INSERT no hace nada
        insert_stmt = (
            pg_insert(t)
            .values(session_id=session_id, created_at=func.now(), updated_at=func.now())
            .on_conflict_do_nothing(index_elements=[t.c.session_id])
        )
        async with self.session_maker() as session:
            await session.execute(insert_stmt)
            await session.commit()
            result = await session.execute(select(t.c.id).where(t.c.session_id == session_id))
            return int(result.scalar_one())

    async def get_conversation_id(self, session_id: str) -> Optional[int]:
        statement = select(Conversation.id).where(col(Conversation.session_id) == session_id)
        async with self.session_maker() as session:
            result = await session.execute(statement)
            return result.scalar_one_or_none()

    async def delete_conversation(self, conversation_id: int) -> None:
        # Hijos primero por las claves foráneas
        async with self.session_maker() as session:
            await session.execute(
                delete(GuidelineUsage).where(col(GuidelineUsage.conversation_id) == conversation_id)
            )
            await session.execute(
                delete(ConversationMessage).where(col(ConversationMessage.conversation_id) == conversation_id)
            )
            await session.execute(
                delete(Conversation).where(col(Conversation.id) == conversation_id)
            )
            await session.commit()

    async def add_message(self, conversation_id: int, role: str, content: str, guideline_ids: Sequence[int] = ()) -> None:
        async with self.session_maker() as session:
            session.add(ConversationMessage(
                conversation_id=conversation_id,
                role=role,
                content=content,
                guidelines_used=list(guideline_ids),
            ))
            await session.execute(
                update(Conversation)
                .where(col(Conversation.id) == conversation_id)
                .values(updated_at=func.now())
            )
            await session.commit()

    async def fetch_recent_messages(self, conversation_id: int, limit: int) -> List[ContextMessage]:
        statement = (
            select(ConversationMessage)
            .where(col(ConversationMessage.conversation_id) == conversation_id)
            .order_by(col(ConversationMessage.created_at).desc(), col(ConversationMessage.id).desc())
            .limit(limit)
        )
        async with self.session_maker() as session:
            result = await session.execute(statement)
            rows = result.scalars().all()
        return [
            ContextMessage(role=m.role, content=m.content, timestamp=m.created_at)
            for m in reversed(rows)
        ]

    async def fetch_guideline_usage_counts(self, conversation_id: int) -> Dict[int, int]:
        statement = (
            select(GuidelineUsage.guideline_id, func.count())
            .where(col(GuidelineUsage.conversation_id) == conversation_id)
            .group_by(GuidelineUsage.guideline_id)
        )
        async with self.session_maker() as session:
            result = await session.execute(statement)
            return {int(gid): int(count) for gid, count in result.all()}

    async def record_usage(self, conversation_id: int, guideline_id: int, score: float, applied: bool) -> None:
        async with self.session_maker() as session:
            session.add(GuidelineUsage(
                conversation_id=conversation_id,
                guideline_id=guideline_id,
                score=score,
                applied=applied,
            ))
            await session.commit()

    async def fetch_usage_rows(self, conversation_id: Optional[int] = None) -> List[UsageRow]:
        statement = (
            select(
                GuidelineUsage.guideline_id,
                GuidelineUsage.score,
                GuidelineUsage.applied,
                Guideline.category,
                Guideline.condition,
                Guideline.action,
            )
            .select_from(GuidelineUsage)
            .join(Guideline, col(Guideline.id) == col(GuidelineUsage.guideline_id), isouter=True)
        )
        if conversation_id is not None:
            statement = statement.where(col(GuidelineUsage.conversation_id) == conversation_id)

        async with self.session_maker() as session:
            result = await session.execute(statement)
            return [
                UsageRow(
                    guideline_id=row[0],
                    score=float(row[1]),
                    applied=bool(row[2]),
                    category=row[3],
                    condition=row[4],
                    action=row[5],
                )
                for row in result.all()
            ]


class PostgresEmbeddingStore(_PostgresStore, EmbeddingStore):
    async def get_message_embedding(self, message_hash: str) -> Optional[List[float]]:
        statement = select(MessageEmbedding.embedding).where(col(MessageEmbedding.message_hash) == message_hash)
        async with self.session_maker() as session:
            result = await session.execute(statement)
            embedding = result.scalar_one_or_none()
        return [float(x) for x in embedding] if embedding is not None else None

    async def save_message_embedding(
        self,
        session_id: str,
        message_hash: str,
        message_text: str,
        embedding: List[float],
        model: str,
    ) -> None:
        t = MessageEmbedding.__table__
        statement = (
            pg_insert(t)
            .values(
                session_id=session_id,
                message_hash=message_hash,
                message_text=message_text,
                embedding=embedding,
                embedding_model=model,
                created_at=func.now(),
            )
            .on_conflict_do_nothing(index_elements=[t.c.message_hash])
        )
        async with self.session_maker() as session:
            await session.execute(statement)
            await session.commit()

    async def search_by_similarity(self, embedding: List[float], threshold: float, limit: int) -> List[SimilarityHit]:
        dist = col(Guideline.condition_embedding).cosine_distance(embedding)
        sim = (1 - dist).label("similarity")

        statement = (
            select(Guideline.id, sim)
            .where(col(Guideline.active).is_(True))
            .where(col(Guideline.condition_embedding).is_not(None))
            .where((1 - dist) >= threshold)
            .order_by(dist)
            .limit(int(limit))
        )
        async with self.session_maker() as session:
            result = await session.execute(statement)
            rows = result.all()

        return [SimilarityHit(guideline_id=int(row[0]), similarity=float(row[1])) for row in rows]

    async def cleanup_message_embeddings(self, days_to_keep: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
        statement = delete(MessageEmbedding).where(col(MessageEmbedding.created_at) < cutoff)
        async with self.session_maker() as session:
            result = await session.execute(statement)
            await session.commit()
            return int(result.rowcount or 0)

    async def embedding_status(self) -> Dict[str, int]:
        async with self.session_maker() as session:
            total = await session.execute(select(func.count()).select_from(Guideline))
            with_embeddings = await session.execute(
                select(func.count())
                .select_from(Guideline)
                .where(col(Guideline.condition_embedding).is_not(None))
            )
            cached = await session.execute(select(func.count()).select_from(MessageEmbedding))
            total_guidelines = int(total.scalar_one())
            embedded = int(with_embeddings.scalar_one())
            return {
                "total_guidelines": total_guidelines,
                "guidelines_with_embeddings": embedded,
                "missing_embeddings": total_guidelines - embedded,
                "cached_message_embeddings": int(cached.scalar_one()),
            }
