from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.dependencies import get_conversation_store, get_guideline_cache
from app.core.guideline_cache import SessionGuidelineCache
from app.core.logger import get_logger
from app.db.interfaces import ConversationStore

logger = get_logger(__name__)

router = APIRouter(prefix="/conversations", tags=["Conversations"])

async def _conversation_id_or_404(conversations: ConversationStore, session_id: str) -> int:
    conversation_id = await conversations.get_conversation_id(session_id)
    if conversation_id is None:
        raise HTTPException(status_code=404, detail=f"Conversation not found: {session_id}")
    return conversation_id

@router.get("/{session_id}")
async def conversation_history(
    session_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    conversations: ConversationStore = Depends(get_conversation_store),
):
    conversation_id = await _conversation_id_or_404(conversations, session_id)
    messages = await conversations.fetch_recent_messages(conversation_id, limit)
    return {
        "session_id": session_id,
        "conversation_id": conversation_id,
        "messages": [
            {"role": m.role, "content": m.content, "created_at": m.timestamp}
            for m in messages
        ],
    }

@router.delete("/{session_id}")
async def delete_conversation(
    session_id: str,
    conversations: ConversationStore = Depends(get_conversation_store),
    cache: SessionGuidelineCache = Depends(get_guideline_cache),
):
    """Borra la conversación (mensajes y uso incluidos) y el catálogo cacheado de la sesión."""
    conversation_id = await _conversation_id_or_404(conversations, session_id)
    await conversations.delete_conversation(conversation_id)
    cache.invalidate(session_id)
    logger.info("Conversación %s eliminada (sesión %s)", conversation_id, session_id)
    return {"message": "Conversation deleted successfully", "session_id": session_id}
