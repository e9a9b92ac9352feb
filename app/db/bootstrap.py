from sqlmodel import text

from app.core.config import settings
from app.core.database import engine, init_db

DDL = f"""
CREATE INDEX IF NOT EXISTS guidelines_active_priority_idx
  ON {settings.DB_SCHEMA}.guidelines (active, priority DESC);
CREATE INDEX IF NOT EXISTS guideline_usage_conversation_guideline_idx
  ON {settings.DB_SCHEMA}.guideline_usage (conversation_id, guideline_id);
CREATE INDEX IF NOT EXISTS conversation_messages_conversation_created_idx
  ON {settings.DB_SCHEMA}.conversation_messages (conversation_id, created_at DESC);
-- HNSW si tu pgvector lo soporta:
CREATE INDEX IF NOT EXISTS guidelines_condition_embedding_hnsw
  ON {settings.DB_SCHEMA}.guidelines USING hnsw (condition_embedding vector_cosine_ops);
"""

async def bootstrap_db():
    await init_db()
    async with engine.begin() as conn:
        for statement in filter(None, (s.strip() for s in DDL.split(";"))):
            await conn.execute(text(statement))
