from typing import Literal, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.core.dependencies import get_conversation_store, get_orchestrator_factory
from app.core.logger import get_logger
from app.db.interfaces import ConversationStore
from app.services.ranking import CatalogUnavailableError
from app.services.usage_stats import compute_usage_statistics
from app.utils.prompts import build_system_prompt

logger = get_logger(__name__)

router = APIRouter(prefix="/guidelines", tags=["Guidelines"])

class MatchRequest(BaseModel):
    message: str = Field(min_length=1)
    session_id: Optional[str] = None
    matching_method: Optional[Literal["text", "vector"]] = None
    hybrid_weight: Optional[float] = Field(default=None, ge=0, le=1)

@router.post("/match")
async def match_guidelines(
    request: MatchRequest,
    orchestrator_factory=Depends(get_orchestrator_factory),
    conversations: ConversationStore = Depends(get_conversation_store),
):
    session_id = request.session_id or str(uuid4())

    try:
        conversation_id = await conversations.get_or_create_conversation(session_id)
    except Exception as e:
        logger.error("Error obteniendo la conversación de %s: %r", session_id, e)
        raise HTTPException(status_code=503, detail="Conversation store unavailable") from e

    orchestrator = orchestrator_factory(request.matching_method)
    try:
        result = await orchestrator.process_turn(
            session_id, request.message, conversation_id, request.hybrid_weight
        )
    except CatalogUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    guidelines = [r.guideline for r in result.guidelines]

    # El mensaje del usuario pasa a formar parte del contexto de los próximos turnos
    try:
        await conversations.add_message(conversation_id, "user", request.message, [g.id for g in guidelines])
    except Exception as e:
        logger.warning("No se pudo guardar el mensaje del usuario: %r", e)

    return {
        "session_id": session_id,
        "conversation_id": conversation_id,
        "guidelines_used": [r.to_dict() for r in result.guidelines],
        "detected_category": result.detected_category,
        "matching_method": result.strategy,
        "system_prompt": build_system_prompt(guidelines),
    }

@router.get("/usage/stats")
async def usage_statistics(
    conversation_id: Optional[int] = None,
    conversations: ConversationStore = Depends(get_conversation_store),
):
    rows = await conversations.fetch_usage_rows(conversation_id)
    return compute_usage_statistics(rows)
